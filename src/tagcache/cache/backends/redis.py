"""
TagCache — Redis Backend

Asynchronous Redis adapter:
- Values stored with SET ... EX for native expiry
- Tag buckets stored as Redis sets (SADD/SREM/SMEMBERS)
- Values under "<namespace>:entry:", tag sets under "<namespace>:tag:"
- Bulk deletes via chunked variadic DEL

Requires: redis>=5.0 with asyncio support

Example:
    backend = RedisBackend(redis_url="redis://localhost:6379/0", namespace="tagcache")
    await backend.set("shop1:sess-42", "payload", ttl=60)
    await backend.add_tag_membership("shop1:session", "sess-42")
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from ...errors import BackendUnavailable
from ..interface import BackendAdapter

logger = logging.getLogger(__name__)

try:
    # redis-py asyncio client (v4.2+)
    from redis.asyncio import Redis
    from redis.exceptions import RedisError
except ImportError as e:  # pragma: no cover
    raise ImportError(
        "Redis async client is required but not installed. "
        "Install with: pip install 'redis>=5.0.0' or add 'redis' to your dependencies."
    ) from e


class RedisBackend(BackendAdapter):
    """
    Redis backend adapter.

    Notes:
    - Payloads are stored as-is; serialization happens above the adapter.
    - Every redis-py error is re-raised as BackendUnavailable.
    - No pipelines spanning several keys are used as transactions.
    """

    name = "redis"

    _DELETE_CHUNK_SIZE = 1000

    def __init__(
        self,
        redis_url: str,
        namespace: str = "tagcache",
        max_connections: int = 10,
        socket_timeout: int = 5,
        client: Redis | None = None,
        **client_options: Any,
    ) -> None:
        """
        Initialize Redis backend.

        Args:
            redis_url: Connection URL, e.g., redis://localhost:6379/0 or rediss:// for TLS
            namespace: Prefix for all keys
            max_connections: Connection pool size
            socket_timeout: Socket timeout in seconds
            client: Pre-built client, mainly for tests
            **client_options: Extra keyword arguments for Redis.from_url
        """
        if not redis_url and client is None:
            raise ValueError("redis_url is required")

        self.namespace = namespace.strip() or "tagcache"
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

        # Lazy connection; connects on first command
        self._client: Redis = client or Redis.from_url(  # type: ignore[call-overload]
            url=redis_url,
            decode_responses=True,
            max_connections=max_connections,
            socket_timeout=socket_timeout,
            **client_options,
        )

    # ------------ Helpers ------------

    def _make_key(self, key: str) -> str:
        """Create namespaced value key."""
        return f"{self.namespace}:entry:{key}"

    def _make_tag_key(self, tag: str) -> str:
        """Create namespaced tag set key."""
        return f"{self.namespace}:tag:{tag}"

    @contextmanager
    def _translate_errors(self, operation: str, key: str | None = None) -> Iterator[None]:
        """Re-raise redis-py failures as BackendUnavailable."""
        try:
            yield
        except RedisError as e:
            logger.error(
                f"Redis {operation} failed: {e}",
                extra={"operation": operation, "key": key, "namespace": self.namespace, "error": str(e)},
            )
            raise BackendUnavailable(self.name, operation, {"key": key, "error": str(e)}) from e

    # ------------ Values ------------

    async def get(self, key: str) -> str | None:
        with self._translate_errors("get", key):
            data = await self._client.get(self._make_key(key))

        if data is None:
            self._misses += 1
            return None

        self._hits += 1
        return data

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        with self._translate_errors("set", key):
            await self._client.set(name=self._make_key(key), value=value, ex=ttl or None)
        self._sets += 1

    async def delete(self, key: str) -> bool:
        with self._translate_errors("delete", key):
            deleted = await self._client.delete(self._make_key(key))
        if deleted:
            self._deletes += 1
        return bool(deleted)

    async def delete_many(self, keys: list[str]) -> int:
        if not keys:
            return 0

        ns_keys = [self._make_key(k) for k in keys]
        deleted_total = 0

        with self._translate_errors("delete_many"):
            for i in range(0, len(ns_keys), self._DELETE_CHUNK_SIZE):
                chunk = ns_keys[i : i + self._DELETE_CHUNK_SIZE]
                deleted_total += int(await self._client.delete(*chunk))

        self._deletes += deleted_total
        return deleted_total

    # ------------ Tag buckets ------------

    async def add_tag_membership(self, tag: str, entry_id: str) -> None:
        with self._translate_errors("add_tag_membership", tag):
            await self._client.sadd(self._make_tag_key(tag), entry_id)

    async def remove_tag_membership(self, tag: str, entry_id: str) -> None:
        with self._translate_errors("remove_tag_membership", tag):
            await self._client.srem(self._make_tag_key(tag), entry_id)

    async def ids_for_tag(self, tag: str) -> set[str]:
        with self._translate_errors("ids_for_tag", tag):
            members = await self._client.smembers(self._make_tag_key(tag))
        return set(members)

    async def clear_tag(self, tag: str) -> None:
        with self._translate_errors("clear_tag", tag):
            await self._client.delete(self._make_tag_key(tag))

    # ------------ Lifecycle ------------

    async def ping(self) -> bool:
        with self._translate_errors("ping"):
            return bool(await self._client.ping())

    async def get_stats(self) -> dict[str, Any]:
        """Return counters and basic Redis server info."""
        total_requests = self._hits + self._misses
        stats: dict[str, Any] = {
            "backend": self.name,
            "namespace": self.namespace,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round((self._hits / total_requests) * 100, 2) if total_requests else 0.0,
            "sets": self._sets,
            "deletes": self._deletes,
            "connected": False,
        }

        try:
            stats["connected"] = bool(await self._client.ping())
            info = await self._client.info(section="server")
            stats["redis_version"] = info.get("redis_version")
            stats["redis_mode"] = info.get("redis_mode")
        except RedisError as e:
            # INFO may be restricted; stats stay minimal
            logger.warning(f"Failed to get Redis INFO (restricted or unavailable): {e}", extra={"error": str(e)})

        return stats

    async def close(self) -> None:
        """Close the Redis client and release resources."""
        try:
            await self._client.aclose()
            logger.info(f"Closed Redis backend for namespace '{self.namespace}'")
        except RedisError as e:
            logger.error(
                f"Error closing Redis client: {e}", extra={"namespace": self.namespace, "error": str(e)}, exc_info=True
            )
