import json
import re
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # Prefer JSON, but tolerate plain comma/space separated hosts.
    if raw.startswith(("[", '"', "'")):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]
        if isinstance(parsed, str):
            raw = parsed.strip()
            if not raw or raw == "[]":
                return []
            if raw == "*":
                return ["*"]

    origins: list[str] = []
    for part in (p for p in re.split(r"[,\s]+", raw) if p):
        if part == "*":
            return ["*"]
        if "://" in part:
            origins.append(part)
        else:
            # Browsers send the scheme in Origin, so allow both.
            origins.append(f"http://{part}")
            origins.append(f"https://{part}")

    return list(dict.fromkeys(origins))


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Redis settings. An empty URL means the store is not configured and
    # every store-backed operation fails fast.
    redis_url: str = ""
    redis_socket_timeout: float = 5.0
    redis_max_connections: int = 50

    # Redemption lock
    lock_ttl_ms: int = 120_000

    # Code registry
    code_scan_batch: int = 200
    generation_attempt_factor: int = 20
    code_default_length: int = 10
    code_min_length: int = 6
    code_max_length: int = 32
    code_max_count: int = 200

    # Operation log (bounded Redis list)
    operation_log_key: str = "logs"
    operation_log_max_entries: int = 1000
    operation_log_tail_default: int = 100

    # ChatGPT workspace invite API
    chatgpt_account_id: str = ""
    chatgpt_token: str = ""
    chatgpt_base_url: str = "https://chatgpt.com/backend-api"
    invite_role: str = "standard-user"
    invite_mock_sender: bool = False  # Use MockInviteSender, no network calls

    # HTTP Client connection pool settings
    httpx_connect_timeout: float = 10.0
    httpx_read_timeout: float = 30.0
    httpx_write_timeout: float = 10.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 50
    httpx_max_keepalive_connections: int = 10

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # CORS settings
    # NoDecode keeps misconfigured values (e.g. "43.163.94.63") from crashing
    # JSON parsing at startup.
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator(
        "lock_ttl_ms",
        "code_scan_batch",
        "generation_attempt_factor",
        "operation_log_max_entries",
        "operation_log_tail_default",
        "redis_max_connections",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate integer limits are positive."""
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator(
        "redis_socket_timeout",
        "httpx_connect_timeout",
        "httpx_read_timeout",
        "httpx_write_timeout",
        "httpx_pool_timeout",
    )
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("code_min_length", "code_max_length", "code_default_length")
    @classmethod
    def validate_code_length(cls, v: int) -> int:
        """Generated codes must stay inside the 1..64 code alphabet limit."""
        if not 1 <= v <= 64:
            raise ValueError("code lengths must be between 1 and 64")
        return v

    @property
    def invite_credentials_configured(self) -> bool:
        return bool(self.chatgpt_account_id and self.chatgpt_token)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
