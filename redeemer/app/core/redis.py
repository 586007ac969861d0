"""Shared Redis client management.

A single ``redis.asyncio.Redis`` handle (which owns its own connection pool)
is shared by every request task in the process. It is created once, either
explicitly by ``init_redis()`` during the application lifespan or lazily on
first use by ``get_redis()``, and closed by ``close_redis()`` on shutdown.
Construction is guarded by a lock so concurrent first use still yields
exactly one client.
"""

import threading
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import redis.asyncio as aioredis

from redeemer.app.core.config import settings
from redeemer.app.core.logging import get_logger
from redeemer.app.exceptions import StoreUnavailableError

logger = get_logger(__name__)

_shared_redis: aioredis.Redis | None = None
_redis_lock = threading.Lock()


def _create_client(redis_url: str) -> aioredis.Redis:
    return aioredis.from_url(
        redis_url,
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout,
        max_connections=settings.redis_max_connections,
    )


def get_redis() -> aioredis.Redis:
    """Get the shared Redis client, creating it on first use.

    Raises:
        StoreUnavailableError: If REDIS_URL is not configured.
    """
    global _shared_redis

    client = _shared_redis
    if client is not None:
        return client

    with _redis_lock:
        if _shared_redis is None:
            if not settings.redis_url:
                logger.error("REDIS_URL is not set")
                raise StoreUnavailableError("Redis is not configured")
            _shared_redis = _create_client(settings.redis_url)
            logger.info("Redis client created")
        return _shared_redis


def set_redis(client: aioredis.Redis | None) -> None:
    """Install a specific client as the shared handle.

    This is primarily useful for testing.
    """
    global _shared_redis
    with _redis_lock:
        _shared_redis = client


async def close_redis() -> None:
    """Close and forget the shared Redis client."""
    global _shared_redis
    with _redis_lock:
        client, _shared_redis = _shared_redis, None
    if client is not None:
        try:
            await client.aclose()
        except Exception as e:
            logger.warning(f"Error closing Redis connection: {e}")


@asynccontextmanager
async def init_redis() -> AsyncGenerator[aioredis.Redis | None, None]:
    """Initialize the shared Redis client for the application lifespan.

    Yields None when REDIS_URL is not configured so the app can still start;
    store-backed endpoints then fail fast with StoreUnavailableError.
    """
    try:
        client = get_redis()
    except StoreUnavailableError:
        client = None
    try:
        yield client
    finally:
        await close_redis()
