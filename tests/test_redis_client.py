"""Tests for the shared Redis client handle."""

import threading
from unittest.mock import MagicMock, patch

import pytest

from redeemer.app.core import redis as redis_module
from redeemer.app.core.config import settings
from redeemer.app.core.redis import close_redis, get_redis, init_redis, set_redis
from redeemer.app.exceptions import StoreUnavailableError


def test_unconfigured_url_raises(monkeypatch):
    monkeypatch.setattr(settings, "redis_url", "")

    with pytest.raises(StoreUnavailableError):
        get_redis()


def test_client_is_created_once(monkeypatch):
    monkeypatch.setattr(settings, "redis_url", "redis://localhost:6379/0")

    with patch.object(redis_module, "_create_client", return_value=MagicMock()) as create:
        first = get_redis()
        second = get_redis()

    assert first is second
    create.assert_called_once_with("redis://localhost:6379/0")


def test_concurrent_first_use_creates_one_client(monkeypatch):
    monkeypatch.setattr(settings, "redis_url", "redis://localhost:6379/0")
    results = []

    with patch.object(redis_module, "_create_client", side_effect=lambda url: MagicMock()) as create:
        threads = [threading.Thread(target=lambda: results.append(get_redis())) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

    assert create.call_count == 1
    assert len({id(r) for r in results}) == 1


@pytest.mark.asyncio
async def test_close_redis_closes_and_forgets(fake_redis, monkeypatch):
    monkeypatch.setattr(settings, "redis_url", "")
    set_redis(fake_redis)

    await close_redis()

    assert fake_redis.closed is True
    with pytest.raises(StoreUnavailableError):
        get_redis()


@pytest.mark.asyncio
async def test_init_redis_yields_none_when_unconfigured(monkeypatch):
    monkeypatch.setattr(settings, "redis_url", "")

    async with init_redis() as client:
        assert client is None


@pytest.mark.asyncio
async def test_init_redis_closes_on_exit(fake_redis):
    set_redis(fake_redis)

    async with init_redis() as client:
        assert client is fake_redis

    assert fake_redis.closed is True
