"""Utility functions for the redemption service."""

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Request


def utc_now_iso(now: Optional[datetime] = None) -> str:
    """UTC timestamp in ISO-8601 with millisecond precision and a Z suffix.

    Examples:
        >>> utc_now_iso(datetime(2026, 2, 17, 8, 30, tzinfo=timezone.utc))
        '2026-02-17T08:30:00.000Z'
    """
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored ISO timestamp, returning None when it is unusable.

    Naive timestamps are taken to be UTC.
    """
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def get_client_ip(request: Request) -> str:
    """Best-effort client IP: proxy headers first, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
