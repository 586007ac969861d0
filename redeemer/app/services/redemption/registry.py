"""Code registry: redemption code records stored in Redis.

Redis key format:
- code:{code} - JSON record {"createdAt", "used", "usedAt", "usedBy"}

Creation uses SET NX so an existing record is never overwritten. Listing
walks the keyspace with SCAN instead of KEYS so large registries do not
block the server.
"""

import json
import re
import secrets
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from redeemer.app.core.config import settings
from redeemer.app.core.logging import get_log_context, get_logger
from redeemer.app.core.utils import parse_timestamp
from redeemer.app.exceptions import (
    CodeGenerationError,
    CorruptRecordError,
    InputValidationError,
)

from .models import CodeRecord, CreateResult

logger = get_logger(__name__)

MAX_CODE_LENGTH = 64
CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

# No 0/O, 1/I/L: codes are read and typed by people.
GENERATION_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def validate_code(raw: Any) -> str:
    """Return the code with surrounding whitespace removed.

    Raises:
        InputValidationError: If the code is empty, longer than 64
            characters, or uses characters outside [A-Za-z0-9_-].
    """
    if not isinstance(raw, str):
        raise InputValidationError("code", "Please enter a valid redemption code")
    code = raw.strip()
    if not code or len(code) > MAX_CODE_LENGTH or not CODE_PATTERN.match(code):
        raise InputValidationError("code", "Please enter a valid redemption code")
    return code


def generate_code(length: int) -> str:
    return "".join(secrets.choice(GENERATION_ALPHABET) for _ in range(length))


def _listing_entry(code: str, raw: str) -> dict:
    """Decode a stored value for listing; unparsable values pass through raw."""
    try:
        data = json.loads(raw)
    except ValueError:
        return {"code": code, "raw": raw}
    if not isinstance(data, dict):
        return {"code": code, "raw": raw}
    return {"code": code, **data}


def _created_sort_key(entry: dict) -> datetime:
    return parse_timestamp(entry.get("createdAt")) or _EPOCH


class CodeRegistry:
    """Create, read, list and delete redemption code records."""

    KEY_PREFIX = "code:"

    def __init__(
        self,
        redis_client: Any,
        scan_batch: Optional[int] = None,
        attempt_factor: Optional[int] = None,
    ) -> None:
        self._redis = redis_client
        self.scan_batch = scan_batch or settings.code_scan_batch
        self.attempt_factor = attempt_factor or settings.generation_attempt_factor

    def _make_key(self, code: str) -> str:
        return f"{self.KEY_PREFIX}{code}"

    async def create_one(self, code: str, record: Optional[CodeRecord] = None) -> bool:
        """Store a new record unless the code already exists.

        Returns:
            True if created, False if a record was already present.
        """
        record = record or CodeRecord.new()
        created = await self._redis.set(self._make_key(code), record.to_json(), nx=True)
        return bool(created)

    async def create_many(self, codes: Iterable[str]) -> CreateResult:
        """Create each code, reporting exactly which were created and skipped.

        Codes must already be validated. Duplicates in the input are
        collapsed, keeping first-seen order.
        """
        record = CodeRecord.new()
        result = CreateResult()
        for code in dict.fromkeys(codes):
            if await self.create_one(code, record):
                result.created.append(code)
            else:
                result.skipped.append(code)
        return result

    async def generate(self, count: int, length: int) -> list[str]:
        """Create ``count`` new random codes of ``length`` characters.

        Collisions with existing codes are retried, up to
        ``attempt_factor * count`` attempts in total.

        Raises:
            InputValidationError: If count or length is out of range.
            CodeGenerationError: If the attempt budget runs out. The codes
                created before that point stay in the registry and are
                listed on the exception.
        """
        if count < 1:
            raise InputValidationError("count", "count must be at least 1")
        if not 1 <= length <= MAX_CODE_LENGTH:
            raise InputValidationError("length", f"length must be between 1 and {MAX_CODE_LENGTH}")

        record = CodeRecord.new()
        created: list[str] = []
        max_attempts = count * self.attempt_factor
        attempts = 0
        while len(created) < count and attempts < max_attempts:
            attempts += 1
            code = generate_code(length)
            if await self.create_one(code, record):
                created.append(code)

        if len(created) != count:
            logger.error(
                f"Code generation gave up after {attempts} attempts "
                f"({len(created)}/{count} created, length={length})"
            )
            raise CodeGenerationError(count, created)
        return created

    async def get(self, code: str) -> Optional[CodeRecord]:
        """Fetch the record for ``code``.

        Returns:
            The record, or None if the code does not exist.

        Raises:
            CorruptRecordError: If the stored value is not a JSON object.
        """
        raw = await self._redis.get(self._make_key(code))
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            data = None
        if not isinstance(data, dict):
            logger.error("Stored code record is not valid JSON", extra=get_log_context(code=code))
            raise CorruptRecordError(code, raw)
        return CodeRecord.from_dict(data)

    async def mark_used(
        self,
        code: str,
        record: CodeRecord,
        email: str,
        now: Optional[datetime] = None,
    ) -> CodeRecord:
        """Persist the used state with a single overwrite of the record."""
        updated = record.mark_used(email, now)
        await self._redis.set(self._make_key(code), updated.to_json())
        return updated

    async def list_codes(self) -> list[dict]:
        """List every code, newest first.

        Keys deleted between SCAN and GET are skipped. SCAN may return a key
        more than once; each code appears once in the result.
        """
        match = f"{self.KEY_PREFIX}*"
        entries: dict[str, dict] = {}
        cursor = 0
        while True:
            cursor, keys = await self._redis.scan(cursor=cursor, match=match, count=self.scan_batch)
            if keys:
                pipe = self._redis.pipeline(transaction=False)
                for key in keys:
                    pipe.get(key)
                values = await pipe.execute()
                for key, value in zip(keys, values):
                    if value is None:
                        continue
                    code = key[len(self.KEY_PREFIX):]
                    entries[code] = _listing_entry(code, value)
            if int(cursor) == 0:
                break

        return sorted(entries.values(), key=_created_sort_key, reverse=True)

    async def delete(self, code: str) -> bool:
        """Delete a record, used or not.

        Returns:
            True if a record existed and was removed.
        """
        return bool(await self._redis.delete(self._make_key(code)))
