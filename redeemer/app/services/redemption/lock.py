"""Per-code distributed lock built on Redis SET NX PX.

Gives at most one in-flight redemption per code across every process that
shares the Redis instance. The TTL bounds how long a crashed holder can
block a code.

Redis key format:
- code_lock:{code} - random per-attempt token, expires after ttl_ms
"""

import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from redis.exceptions import RedisError

from redeemer.app.core.config import settings
from redeemer.app.core.logging import get_log_context, get_logger
from redeemer.app.exceptions import CodeInUseError

from .redis_lua import RELEASE_LOCK_SCRIPT

logger = get_logger(__name__)


class RedemptionLock:
    """Mutual exclusion for redemptions of a single code."""

    KEY_PREFIX = "code_lock:"

    def __init__(self, redis_client: Any, ttl_ms: Optional[int] = None) -> None:
        self._redis = redis_client
        self.ttl_ms = ttl_ms or settings.lock_ttl_ms

    def _make_key(self, code: str) -> str:
        return f"{self.KEY_PREFIX}{code}"

    async def acquire(self, code: str) -> str:
        """Take the lock for ``code``.

        Returns:
            The token identifying this holder; pass it to ``release``.

        Raises:
            CodeInUseError: If another attempt holds the lock.
        """
        token = uuid.uuid4().hex
        acquired = await self._redis.set(self._make_key(code), token, px=self.ttl_ms, nx=True)
        if not acquired:
            raise CodeInUseError(code)
        return token

    async def release(self, code: str, token: str) -> bool:
        """Release the lock if ``token`` still owns it.

        A stale or unknown token is a no-op. Store errors are logged and
        swallowed; the TTL reclaims the key.

        Returns:
            True if the lock key was deleted.
        """
        try:
            deleted = await self._redis.eval(RELEASE_LOCK_SCRIPT, 1, self._make_key(code), token)
        except RedisError as e:
            logger.error(f"Failed to release redemption lock: {e}", extra=get_log_context(code=code))
            return False
        if not deleted:
            logger.warning(
                "Redemption lock was no longer held at release (expired or taken over)",
                extra=get_log_context(code=code),
            )
        return bool(deleted)

    @asynccontextmanager
    async def hold(self, code: str) -> AsyncGenerator[str, None]:
        """Hold the lock for the duration of the block.

        Release runs on every exit path, including exceptions and
        cancellation.
        """
        token = await self.acquire(code)
        try:
            yield token
        finally:
            await self.release(code, token)

    async def is_locked(self, code: str) -> bool:
        return bool(await self._redis.exists(self._make_key(code)))
