"""Custom exceptions for the redemption service."""

from typing import Any


class RedeemerException(Exception):
    """Base class for service exceptions with HTTP status code.

    All custom exceptions inherit from this class and define their
    specific status_code and error_code for consistent responses.
    """
    status_code: int = 500
    error_code: str = "InternalError"

    def __init__(self, message: str = "Internal error"):
        self.message = message
        super().__init__(message)

    def payload(self) -> dict[str, Any]:
        """Extra response fields beyond success/error/message."""
        return {}


class InputValidationError(RedeemerException):
    """Raised for malformed email or code input.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400
    error_code = "ValidationError"

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"Invalid {field}")


class CodeInUseError(RedeemerException):
    """Raised when another redemption of the same code holds the lock.

    Transient; the caller should retry later. Maps to HTTP 409 Conflict.
    """
    status_code = 409
    error_code = "InUse"

    def __init__(self, code: str):
        self.code = code
        super().__init__("Code is being redeemed, please retry later")


class InvalidCodeError(RedeemerException):
    """Raised when no record exists for a code."""
    status_code = 400
    error_code = "InvalidCode"

    def __init__(self, code: str):
        self.code = code
        super().__init__("Invalid redemption code")


class CodeAlreadyUsedError(RedeemerException):
    """Raised when a code has already been consumed."""
    status_code = 400
    error_code = "AlreadyUsed"

    def __init__(self, code: str):
        self.code = code
        super().__init__("Redemption code has already been used")


class CorruptRecordError(RedeemerException):
    """Raised when a stored record cannot be parsed.

    Needs operator attention; never repaired automatically.
    """
    status_code = 500
    error_code = "CorruptRecord"

    def __init__(self, code: str, raw: Any = None):
        self.code = code
        self.raw = raw
        super().__init__("Redemption code data is corrupt, please contact the administrator")


class ServiceMisconfiguredError(RedeemerException):
    """Raised when required configuration (credentials, admin token) is missing."""
    status_code = 500
    error_code = "Misconfigured"

    def __init__(self, detail: str = "Service is misconfigured"):
        super().__init__(detail)


class StoreUnavailableError(RedeemerException):
    """Raised when the key-value store is not configured or not reachable."""
    status_code = 500
    error_code = "StoreUnavailable"

    def __init__(self, detail: str = "Redis is not configured"):
        super().__init__(detail)


class UpstreamSendError(RedeemerException):
    """Raised when the external invite call fails.

    The code is left unused, so retrying the redemption is safe.
    Maps to HTTP 502 Bad Gateway.
    """
    status_code = 502
    error_code = "UpstreamSendFailure"

    def __init__(self, message: str | None = None, data: Any = None):
        self.data = data
        super().__init__(message or "Failed to send invite")

    def payload(self) -> dict[str, Any]:
        return {"data": self.data}


class CodeNotFoundError(RedeemerException):
    """Raised when an admin operation targets a code that does not exist."""
    status_code = 404
    error_code = "NotFound"

    def __init__(self, code: str):
        self.code = code
        super().__init__("Not Found")


class CodeConflictError(RedeemerException):
    """Raised when some requested codes already existed.

    Carries the exact created/skipped partition so the caller knows which
    codes succeeded.
    """
    status_code = 409
    error_code = "PartialConflict"

    def __init__(self, created: list[str], skipped: list[str]):
        self.created = created
        self.skipped = skipped
        super().__init__("Some redemption codes already exist")

    def payload(self) -> dict[str, Any]:
        return {"created": self.created, "skipped": self.skipped}


class CodeGenerationError(RedeemerException):
    """Raised when random generation exhausts its attempt budget."""
    status_code = 500
    error_code = "GenerationFailed"

    def __init__(self, requested: int, created: list[str]):
        self.requested = requested
        self.created = created
        super().__init__(
            f"Generated {len(created)} of {requested} codes before giving up, please retry"
        )

    def payload(self) -> dict[str, Any]:
        return {"codes": self.created}
