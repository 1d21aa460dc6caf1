"""
TagCache — Test Configuration and Shared Fixtures

Provides pytest configuration and shared fixtures for unit and integration tests.
"""

from __future__ import annotations

import asyncio
import os
from collections import Counter
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
import pytest_asyncio
from redis.asyncio import Redis

from tagcache.cache.backends.memory import MemoryBackend
from tagcache.cache.engine import CacheEngine
from tagcache.errors import BackendUnavailable

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"


class CountingBackend(MemoryBackend):
    """Memory backend that records every adapter call."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.calls: Counter[str] = Counter()

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    async def get(self, key: str) -> str | None:
        self.calls["get"] += 1
        return await super().get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        self.calls["set"] += 1
        await super().set(key, value, ttl)

    async def delete(self, key: str) -> bool:
        self.calls["delete"] += 1
        return await super().delete(key)

    async def delete_many(self, keys: list[str]) -> int:
        self.calls["delete_many"] += 1
        return await super().delete_many(keys)

    async def add_tag_membership(self, tag: str, entry_id: str) -> None:
        self.calls["add_tag_membership"] += 1
        await super().add_tag_membership(tag, entry_id)

    async def remove_tag_membership(self, tag: str, entry_id: str) -> None:
        self.calls["remove_tag_membership"] += 1
        await super().remove_tag_membership(tag, entry_id)

    async def ids_for_tag(self, tag: str) -> set[str]:
        self.calls["ids_for_tag"] += 1
        return await super().ids_for_tag(tag)

    async def clear_tag(self, tag: str) -> None:
        self.calls["clear_tag"] += 1
        await super().clear_tag(tag)


class FlakyBackend(MemoryBackend):
    """Memory backend whose delete_many fails from the ``fail_on``-th call on."""

    def __init__(self, fail_on: int, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.fail_on: int | None = fail_on
        self.delete_many_calls = 0

    def heal(self) -> None:
        self.fail_on = None

    async def delete_many(self, keys: list[str]) -> int:
        self.delete_many_calls += 1
        if self.fail_on is not None and self.delete_many_calls >= self.fail_on:
            raise BackendUnavailable(self.name, "delete_many", {"error": "connection reset"})
        return await super().delete_many(keys)


class GatedBackend(MemoryBackend):
    """Memory backend that parks every value write until ``release`` is set."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.write_pending = asyncio.Event()
        self.release = asyncio.Event()
        self.waiting = 0

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        self.waiting += 1
        self.write_pending.set()
        await self.release.wait()
        await super().set(key, value, ttl)


class FrozenClock:
    """Controllable clock for expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2030, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def backend() -> CountingBackend:
    return CountingBackend(max_size=0, namespace="test")


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def engine(backend: CountingBackend, clock: FrozenClock) -> CacheEngine:
    """Engine over a call-counting memory backend with a frozen clock."""
    return CacheEngine(backend, clock=clock)


@pytest.fixture
def test_redis_url() -> str:
    """Get Redis URL for testing (database 15 for isolation)."""
    return os.environ.get("TEST_REDIS_URL", "redis://localhost:6379/15")


@pytest_asyncio.fixture
async def redis_client(test_redis_url: str) -> AsyncGenerator[Redis, None]:
    """
    Create a Redis client for testing.

    Automatically skips tests if Redis is not available.
    Clears the test database before and after each test.
    """
    client: Redis = Redis.from_url(test_redis_url, decode_responses=True)

    try:
        await client.ping()
    except Exception as e:
        await client.aclose()
        pytest.skip(f"Redis not available for testing: {e}")

    await client.flushdb()

    yield client

    try:
        await client.flushdb()
    finally:
        await client.aclose()


@pytest.fixture
def mock_env_memory(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set environment variables for memory cache backend."""
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.setenv("CACHE_BACKEND", "memory")
    monkeypatch.setenv("CACHE_MAX_SIZE", "100")
    monkeypatch.setenv("CACHE_NAMESPACE", "test")


@pytest.fixture
def gated_backend() -> GatedBackend:
    return GatedBackend(max_size=0, namespace="test")


@pytest.fixture
def make_flaky_backend() -> Any:
    """Factory for memory backends whose n-th bulk delete fails."""

    def _make(fail_on: int) -> FlakyBackend:
        return FlakyBackend(fail_on, max_size=0, namespace="test")

    return _make
