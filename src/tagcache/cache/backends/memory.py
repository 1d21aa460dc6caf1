"""
TagCache — Memory Backend

In-process backend with per-key expiry, optional LRU eviction and
set-based tag buckets. Suitable for single-process deployments and tests.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Any

from ..interface import BackendAdapter

logger = logging.getLogger(__name__)


class MemoryBackend(BackendAdapter):
    """
    In-memory backend adapter.

    Features:
    - Per-key TTL, evicted lazily on access
    - LRU eviction when max_size is reached (0 disables the cap)
    - Expired or evicted values leave their tag memberships behind
    - Tag buckets kept apart from values
    - All operations serialized by a single asyncio lock
    """

    name = "memory"

    def __init__(
        self,
        max_size: int = 10000,
        namespace: str = "tagcache",
    ):
        """
        Initialize memory backend.

        Args:
            max_size: Maximum number of values (0 = unbounded)
            namespace: Key namespace/prefix
        """
        self.max_size = max_size
        self.namespace = namespace

        # key -> (value, expiry_time)
        self._values: OrderedDict[str, tuple[str, float | None]] = OrderedDict()
        # tag -> ids
        self._tags: dict[str, set[str]] = {}

        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0
        self._evictions = 0

        self._lock = asyncio.Lock()

    def _make_key(self, key: str) -> str:
        """Create namespaced value key."""
        return f"{self.namespace}:{key}"

    def _make_tag_key(self, tag: str) -> str:
        """Create namespaced tag bucket key."""
        return f"{self.namespace}:tag:{tag}"

    def _is_expired(self, expiry: float | None) -> bool:
        if expiry is None:
            return False
        return time.time() >= expiry

    async def get(self, key: str) -> str | None:
        async with self._lock:
            cache_key = self._make_key(key)

            if cache_key not in self._values:
                self._misses += 1
                return None

            value, expiry = self._values[cache_key]

            if self._is_expired(expiry):
                del self._values[cache_key]
                self._misses += 1
                return None

            self._values.move_to_end(cache_key)
            self._hits += 1
            return value

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        async with self._lock:
            cache_key = self._make_key(key)
            expiry = time.time() + ttl if ttl else None

            if self.max_size and cache_key not in self._values and len(self._values) >= self.max_size:
                evicted_key, _ = self._values.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Evicted key from memory backend: {evicted_key}")

            self._values[cache_key] = (value, expiry)
            self._values.move_to_end(cache_key)
            self._sets += 1

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._delete_locked(self._make_key(key))

    async def delete_many(self, keys: list[str]) -> int:
        if not keys:
            return 0

        async with self._lock:
            return sum(1 for key in keys if self._delete_locked(self._make_key(key)))

    def _delete_locked(self, cache_key: str) -> bool:
        entry = self._values.pop(cache_key, None)
        if entry is None:
            return False
        self._deletes += 1
        # An expired value counts as already gone
        return not self._is_expired(entry[1])

    async def add_tag_membership(self, tag: str, entry_id: str) -> None:
        async with self._lock:
            self._tags.setdefault(self._make_tag_key(tag), set()).add(entry_id)

    async def remove_tag_membership(self, tag: str, entry_id: str) -> None:
        async with self._lock:
            tag_key = self._make_tag_key(tag)
            members = self._tags.get(tag_key)
            if members is None:
                return
            members.discard(entry_id)
            if not members:
                del self._tags[tag_key]

    async def ids_for_tag(self, tag: str) -> set[str]:
        async with self._lock:
            return set(self._tags.get(self._make_tag_key(tag), ()))

    async def clear_tag(self, tag: str) -> None:
        async with self._lock:
            self._tags.pop(self._make_tag_key(tag), None)

    async def get_stats(self) -> dict[str, Any]:
        """Get backend statistics."""
        async with self._lock:
            total_requests = self._hits + self._misses
            hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0.0

            return {
                "backend": self.name,
                "size": len(self._values),
                "tags": len(self._tags),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(hit_rate, 2),
                "sets": self._sets,
                "deletes": self._deletes,
                "evictions": self._evictions,
                "namespace": self.namespace,
            }

    async def close(self) -> None:
        """Close backend. Data stays in-process until garbage collected."""
        logger.debug(f"Memory backend closed for namespace '{self.namespace}'")
