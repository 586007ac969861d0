"""Shared fixtures: an in-memory Redis stand-in, a controllable clock and a
stub invite sender."""

import asyncio
import fnmatch
from typing import Any, Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from redeemer.app.core.redis import set_redis
from redeemer.app.providers import BaseInviteSender, InviteResult, reset_invite_sender
from redeemer.app.services.redemption import RELEASE_LOCK_SCRIPT, reset_redemption_coordinator


class FakeClock:
    """Monotonic seconds that only move when a test says so."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePipeline:
    """Buffers commands and runs them in order on execute()."""

    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._queued: list[tuple[str, tuple, dict]] = []

    def __getattr__(self, name: str):
        def queue(*args, **kwargs):
            self._queued.append((name, args, kwargs))
            return self
        return queue

    async def execute(self) -> list[Any]:
        queued, self._queued = self._queued, []
        return [await getattr(self._redis, name)(*args, **kwargs) for name, args, kwargs in queued]


class FakeRedis:
    """In-memory subset of redis.asyncio.Redis with decode_responses=True.

    Supports SET NX/PX, GET, DEL, EXISTS, the lock release script via EVAL,
    SCAN, LPUSH/LTRIM/LRANGE and pipelines. Commands named in ``fail_on``
    raise a Redis ConnectionError.
    """

    def __init__(self, clock: Optional[FakeClock] = None):
        self.clock = clock or FakeClock()
        self.strings: dict[str, str] = {}
        self.lists: dict[str, list[str]] = {}
        self.expiry: dict[str, float] = {}
        self.fail_on: set[str] = set()
        self.calls: list[str] = []
        self.closed = False

    def _command(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise RedisConnectionError(f"{name} failed")

    def _purge(self, key: str) -> None:
        expires_at = self.expiry.get(key)
        if expires_at is not None and expires_at <= self.clock():
            self.strings.pop(key, None)
            self.expiry.pop(key, None)

    def _live_keys(self) -> list[str]:
        for key in list(self.strings):
            self._purge(key)
        return sorted(set(self.strings) | set(self.lists))

    async def set(self, key, value, ex=None, px=None, nx=False):
        self._command("set")
        self._purge(key)
        if nx and key in self.strings:
            return None
        self.strings[key] = str(value)
        self.expiry.pop(key, None)
        if px is not None:
            self.expiry[key] = self.clock() + px / 1000
        elif ex is not None:
            self.expiry[key] = self.clock() + ex
        return True

    async def get(self, key):
        self._command("get")
        self._purge(key)
        return self.strings.get(key)

    async def delete(self, *keys):
        self._command("delete")
        removed = 0
        for key in keys:
            self._purge(key)
            if self.strings.pop(key, None) is not None or self.lists.pop(key, None) is not None:
                removed += 1
            self.expiry.pop(key, None)
        return removed

    async def exists(self, *keys):
        self._command("exists")
        live = self._live_keys()
        return sum(1 for key in keys if key in live)

    async def eval(self, script, numkeys, *args):
        self._command("eval")
        keys, argv = args[:numkeys], args[numkeys:]
        if script != RELEASE_LOCK_SCRIPT:
            raise NotImplementedError("FakeRedis only knows the lock release script")
        key = keys[0]
        self._purge(key)
        if self.strings.get(key) == argv[0]:
            del self.strings[key]
            self.expiry.pop(key, None)
            return 1
        return 0

    async def scan(self, cursor=0, match=None, count=None):
        self._command("scan")
        keys = [k for k in self._live_keys() if fnmatch.fnmatchcase(k, match or "*")]
        start = int(cursor)
        end = start + (count or 10)
        next_cursor = end if end < len(keys) else 0
        return next_cursor, keys[start:end]

    async def lpush(self, key, *values):
        self._command("lpush")
        items = self.lists.setdefault(key, [])
        for value in values:
            items.insert(0, str(value))
        return len(items)

    @staticmethod
    def _slice(items: list, start: int, stop: int) -> list:
        n = len(items)
        if start < 0:
            start = max(n + start, 0)
        if stop < 0:
            stop = n + stop
        return items[start:stop + 1]

    async def ltrim(self, key, start, stop):
        self._command("ltrim")
        if key in self.lists:
            self.lists[key] = self._slice(self.lists[key], start, stop)
        return True

    async def lrange(self, key, start, stop):
        self._command("lrange")
        return list(self._slice(self.lists.get(key, []), start, stop))

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def ping(self):
        self._command("ping")
        return True

    async def aclose(self):
        self.closed = True


class StubSender(BaseInviteSender):
    """Invite sender double that records calls."""

    def __init__(
        self,
        result: Optional[InviteResult] = None,
        delay: float = 0.0,
        exc: Optional[Exception] = None,
        on_send=None,
    ):
        super().__init__("http://stub.invites")
        self.result = result or InviteResult(success=True, message="invite sent")
        self.delay = delay
        self.exc = exc
        self.on_send = on_send
        self.calls: list[tuple[str, str, str]] = []

    async def send(self, email: str, account_id: str, token: str) -> InviteResult:
        self.calls.append((email, account_id, token))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.on_send is not None:
            self.on_send()
        if self.exc is not None:
            raise self.exc
        return self.result


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_redis(clock):
    return FakeRedis(clock)


@pytest.fixture
def stub_sender():
    return StubSender()


@pytest.fixture(autouse=True)
def reset_globals():
    """Reset process-wide singletons before and after each test."""
    set_redis(None)
    reset_invite_sender()
    reset_redemption_coordinator()
    yield
    set_redis(None)
    reset_invite_sender()
    reset_redemption_coordinator()
