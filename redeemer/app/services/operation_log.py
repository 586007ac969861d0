"""Operation log: a capped Redis list of recent admin and redemption events.

New entries are pushed to the head and the list is trimmed to
``max_entries`` in the same round-trip, so storage stays bounded. Writes are
best-effort: a failed write is logged and never affects the operation being
described.
"""

import json
from typing import Any, Optional

from redeemer.app.core.config import settings
from redeemer.app.core.logging import get_logger
from redeemer.app.core.utils import utc_now_iso

logger = get_logger(__name__)


class OperationLog:
    """Bounded, newest-first audit log."""

    def __init__(
        self,
        redis_client: Any,
        key: Optional[str] = None,
        max_entries: Optional[int] = None,
    ) -> None:
        self._redis = redis_client
        self.key = key or settings.operation_log_key
        self.max_entries = max_entries or settings.operation_log_max_entries

    async def append(self, event_type: str, **fields: Any) -> bool:
        """Record one event. Never raises.

        Returns:
            True if the entry was written.
        """
        entry = {"type": event_type, "time": utc_now_iso(), **fields}
        try:
            pipe = self._redis.pipeline(transaction=False)
            pipe.lpush(self.key, json.dumps(entry, ensure_ascii=False, default=str))
            pipe.ltrim(self.key, 0, self.max_entries - 1)
            await pipe.execute()
        except Exception as e:
            logger.error(f"Operation log write failed ({event_type}): {e}")
            return False
        return True

    async def tail(self, limit: Optional[int] = None) -> list[dict]:
        """Return up to ``limit`` most recent entries, newest first."""
        limit = limit or settings.operation_log_tail_default
        limit = max(1, min(limit, self.max_entries))
        items = await self._redis.lrange(self.key, 0, limit - 1)
        entries = []
        for item in items:
            try:
                entry = json.loads(item)
            except ValueError:
                entry = None
            entries.append(entry if isinstance(entry, dict) else {"raw": item})
        return entries


def preview_codes(codes: list[str], limit: int = 5) -> str:
    """Short comma-joined preview of created codes for log entries."""
    preview = ",".join(codes[:limit])
    return preview + "..." if len(codes) > limit else preview
