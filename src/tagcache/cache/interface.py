"""
TagCache — Backend Adapter Interface

Defines the abstract interface that every key-value backend must implement.
Adapters are thin protocol translators: they receive fully formed physical
keys and never interpret tenants, tags or payloads.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class BackendAdapter(ABC):
    """
    Abstract base class for backend adapters.

    Contract:
    - Every method is a point operation; no cross-key transaction is assumed.
    - Values and tag buckets live in disjoint key spaces.
    - Connectivity or protocol failures raise BackendUnavailable; nothing is
      swallowed.
    - Values removed by the backend itself (native expiry, size eviction) keep
      their tag memberships. Buckets hold such ids until the engine deletes
      by that tag, which skips and clears them.
    """

    name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """
        Retrieve a raw value.

        Args:
            key: Physical key

        Returns:
            Stored value, or None when the key is absent
        """

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        """
        Store a raw value.

        Args:
            key: Physical key
            value: Serialized payload
            ttl: Native expiry in whole seconds (None = no expiry)
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            True if the key existed
        """

    @abstractmethod
    async def add_tag_membership(self, tag: str, entry_id: str) -> None:
        """Add ``entry_id`` to the bucket of ``tag``."""

    @abstractmethod
    async def remove_tag_membership(self, tag: str, entry_id: str) -> None:
        """Remove ``entry_id`` from the bucket of ``tag``."""

    @abstractmethod
    async def ids_for_tag(self, tag: str) -> set[str]:
        """Return the ids currently in the bucket of ``tag``."""

    @abstractmethod
    async def clear_tag(self, tag: str) -> None:
        """Drop the whole bucket of ``tag``."""

    @abstractmethod
    async def get_stats(self) -> dict[str, Any]:
        """
        Get backend statistics.

        Returns:
            Dictionary with counters (hits, misses, size, etc.)
        """

    @abstractmethod
    async def close(self) -> None:
        """
        Close the backend and release resources.

        Should be called during graceful shutdown.
        """

    async def ping(self) -> bool:
        """Check the backend is reachable. In-process backends always are."""
        return True

    async def delete_many(self, keys: list[str]) -> int:
        """
        Delete multiple keys.

        Default implementation calls delete() for each key.
        Backends can override for better performance.

        Args:
            keys: Physical keys to delete

        Returns:
            Number of keys that existed and were removed
        """
        count = 0
        for key in keys:
            if await self.delete(key):
                count += 1
        return count
