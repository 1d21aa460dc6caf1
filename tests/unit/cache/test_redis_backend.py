"""
TagCache — Redis Backend Tests

Error translation is tested against a mocked client; the live suite requires
a Redis server on localhost:6379 (or TEST_REDIS_URL) and is skipped otherwise.
"""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from tagcache.cache.backends.redis import RedisBackend
from tagcache.cache.engine import CacheEngine
from tagcache.errors import BackendUnavailable, NotFound

# Check if Redis is available
try:
    import socket

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.settimeout(1)
    redis_available = sock.connect_ex(("localhost", 6379)) == 0
    sock.close()
except OSError:
    redis_available = False


class TestRedisErrorTranslation:
    """redis-py failures surface as BackendUnavailable."""

    @pytest.fixture
    def client(self) -> AsyncMock:
        return AsyncMock()

    @pytest.fixture
    def backend(self, client: AsyncMock) -> RedisBackend:
        return RedisBackend(redis_url="redis://unused", namespace="test", client=client)

    def test_requires_url_or_client(self) -> None:
        with pytest.raises(ValueError):
            RedisBackend(redis_url="")

    async def test_get_connection_error(self, backend: RedisBackend, client: AsyncMock) -> None:
        client.get.side_effect = RedisConnectionError("refused")

        with pytest.raises(BackendUnavailable) as exc_info:
            await backend.get("shop1:a")

        assert exc_info.value.backend == "redis"
        assert exc_info.value.operation == "get"
        assert isinstance(exc_info.value.__cause__, RedisConnectionError)

    async def test_set_timeout(self, backend: RedisBackend, client: AsyncMock) -> None:
        client.set.side_effect = RedisTimeoutError("timed out")

        with pytest.raises(BackendUnavailable):
            await backend.set("shop1:a", "v", ttl=10)

    async def test_tag_operations_translate_errors(self, backend: RedisBackend, client: AsyncMock) -> None:
        client.sadd.side_effect = RedisConnectionError("down")
        client.smembers.side_effect = RedisConnectionError("down")

        with pytest.raises(BackendUnavailable):
            await backend.add_tag_membership("shop1:t", "a")
        with pytest.raises(BackendUnavailable):
            await backend.ids_for_tag("shop1:t")

    async def test_delete_many_translates_errors(self, backend: RedisBackend, client: AsyncMock) -> None:
        client.delete.side_effect = RedisConnectionError("down")

        with pytest.raises(BackendUnavailable):
            await backend.delete_many(["shop1:a"])

    async def test_key_layout(self, backend: RedisBackend, client: AsyncMock) -> None:
        client.get.return_value = None

        await backend.get("shop1:a")
        await backend.set("shop1:a", "v", ttl=5)
        await backend.add_tag_membership("shop1:t", "a")

        client.get.assert_awaited_once_with("test:entry:shop1:a")
        client.set.assert_awaited_once_with(name="test:entry:shop1:a", value="v", ex=5)
        client.sadd.assert_awaited_once_with("test:tag:shop1:t", "a")

    async def test_no_ttl_means_no_expiry(self, backend: RedisBackend, client: AsyncMock) -> None:
        await backend.set("shop1:a", "v")
        client.set.assert_awaited_once_with(name="test:entry:shop1:a", value="v", ex=None)

    async def test_get_stats_without_server(self, backend: RedisBackend, client: AsyncMock) -> None:
        client.ping.side_effect = RedisConnectionError("down")

        stats = await backend.get_stats()

        assert stats["backend"] == "redis"
        assert stats["connected"] is False


@pytest.mark.skipif(not redis_available, reason="Redis server not available")
class TestRedisBackendLive:
    """Live suite for RedisBackend."""

    @pytest.fixture
    async def cache(self, redis_client: Redis, test_redis_url: str) -> AsyncGenerator[RedisBackend, None]:
        """Create a Redis backend on the flushed test database."""
        cache = RedisBackend(redis_url=test_redis_url, namespace="test", max_connections=5, socket_timeout=2)
        yield cache
        await cache.close()

    async def test_set_get_delete(self, cache: RedisBackend) -> None:
        await cache.set("shop1:a", "value1")
        assert await cache.get("shop1:a") == "value1"

        assert await cache.delete("shop1:a") is True
        assert await cache.delete("shop1:a") is False
        assert await cache.get("shop1:a") is None

    async def test_native_ttl(self, cache: RedisBackend, redis_client: Redis) -> None:
        await cache.set("shop1:a", "v", ttl=30)
        ttl = await redis_client.ttl("test:entry:shop1:a")
        assert 0 < ttl <= 30

    async def test_tag_buckets(self, cache: RedisBackend) -> None:
        await cache.add_tag_membership("shop1:t", "a")
        await cache.add_tag_membership("shop1:t", "b")
        await cache.remove_tag_membership("shop1:t", "a")

        assert await cache.ids_for_tag("shop1:t") == {"b"}

        await cache.clear_tag("shop1:t")
        assert await cache.ids_for_tag("shop1:t") == set()

    async def test_delete_many(self, cache: RedisBackend) -> None:
        await cache.set("shop1:a", "1")
        await cache.set("shop1:b", "2")

        assert await cache.delete_many(["shop1:a", "shop1:b", "shop1:missing"]) == 2

    async def test_engine_scenario(self, cache: RedisBackend) -> None:
        engine = CacheEngine(cache)

        await engine.set("shop1", "sess-42", "payload", ttl=60, tags={"session"})
        assert await engine.get("shop1", "sess-42") == "payload"

        assert await engine.delete_by_tag("shop1", "session") == 1
        with pytest.raises(NotFound):
            await engine.get("shop1", "sess-42")

    async def test_ping_and_stats(self, cache: RedisBackend) -> None:
        assert await cache.ping() is True

        stats = await cache.get_stats()
        assert stats["connected"] is True
        assert stats["namespace"] == "test"
