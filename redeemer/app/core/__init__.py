"""Core utilities for the redemption service."""

from redeemer.app.core.config import settings
from redeemer.app.core.logging import get_logger, setup_logging
from redeemer.app.core.redis import close_redis, get_redis, init_redis, set_redis

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
    "get_redis",
    "set_redis",
    "init_redis",
    "close_redis",
]
