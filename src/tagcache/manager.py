"""
TagCache — Cache Item Manager

Translates cache entries (the in-memory entity handed around by callers)
to engine calls and back, scoped to the tenant of the current context.

The ``modified`` flag is explicit: it is set when an entry is built from fresh
input or changed through a setter, and cleared only by a successful save.
Saving an unmodified entry touches no backend at all.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from .cache.engine import CacheEngine
from .context import get_current_tenant
from .errors import ItemNotFound, NotFound, TypeMismatch, ValidationError

logger = logging.getLogger(__name__)


@runtime_checkable
class CacheEntryLike(Protocol):
    """Capabilities an object needs to be saved by the manager."""

    id: str
    value: str | bytes
    tags: frozenset[str]
    expire_at: datetime | None
    modified: bool


class CacheEntry:
    """A cache item: id, opaque value, tags, optional expiry and owning tenant."""

    __slots__ = ("_id", "_value", "_tags", "_expire_at", "_tenant_id", "_modified")

    def __init__(
        self,
        id: str,
        value: str | bytes,
        tags: Iterable[str] = (),
        expire_at: datetime | None = None,
        tenant_id: str | None = None,
    ):
        if not id:
            raise ValidationError("Cache entry id must not be empty")
        self._id = id
        self._value = value
        self._tags = frozenset(tags)
        self._expire_at = _aware(expire_at)
        self._tenant_id = tenant_id
        self._modified = True

    @classmethod
    def from_storage(
        cls,
        id: str,
        value: str | bytes,
        tags: Iterable[str],
        expire_at: datetime | None,
        tenant_id: str,
    ) -> "CacheEntry":
        """Build an entry that mirrors what is persisted (not modified)."""
        entry = cls(id, value, tags=tags, expire_at=expire_at, tenant_id=tenant_id)
        entry._modified = False
        return entry

    @property
    def id(self) -> str:
        return self._id

    @property
    def tenant_id(self) -> str | None:
        return self._tenant_id

    @property
    def value(self) -> str | bytes:
        return self._value

    @value.setter
    def value(self, value: str | bytes) -> None:
        self._value = value
        self._modified = True

    @property
    def tags(self) -> frozenset[str]:
        return self._tags

    @tags.setter
    def tags(self, tags: Iterable[str]) -> None:
        self._tags = frozenset(tags)
        self._modified = True

    @property
    def expire_at(self) -> datetime | None:
        return self._expire_at

    @expire_at.setter
    def expire_at(self, expire_at: datetime | None) -> None:
        self._expire_at = _aware(expire_at)
        self._modified = True

    @property
    def modified(self) -> bool:
        return self._modified

    @modified.setter
    def modified(self, modified: bool) -> None:
        self._modified = bool(modified)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self._id,
            "tenant_id": self._tenant_id,
            "value": self._value,
            "tags": sorted(self._tags),
            "expire_at": self._expire_at.isoformat() if self._expire_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"CacheEntry(id={self._id!r}, tenant_id={self._tenant_id!r}, "
            f"tags={sorted(self._tags)!r}, expire_at={self._expire_at!r}, modified={self._modified!r})"
        )


def _aware(moment: datetime | None) -> datetime | None:
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=UTC)


class CacheManager:
    """
    Entry lifecycle on top of a CacheEngine.

    Args:
        engine: Engine executing the cache operations
        tenant_provider: Returns the tenant of the current caller
    """

    def __init__(
        self,
        engine: CacheEngine,
        tenant_provider: Callable[[], str] = get_current_tenant,
    ):
        self.engine = engine
        self._tenant_provider = tenant_provider

    def _tenant(self) -> str:
        tenant_id = self._tenant_provider()
        if not tenant_id:
            raise ValidationError("Tenant provider returned an empty tenant id")
        return tenant_id

    def create_entry(
        self,
        id: str,
        value: str | bytes,
        tags: Iterable[str] = (),
        expire_at: datetime | None = None,
    ) -> CacheEntry:
        """Create a new, modified entry owned by the current tenant."""
        return CacheEntry(id, value, tags=tags, expire_at=expire_at, tenant_id=self._tenant())

    async def save(self, entry: CacheEntryLike) -> None:
        """
        Persist an entry if it was modified.

        Raises:
            TypeMismatch: If ``entry`` lacks the cache entry capabilities
            ValidationError: If the entry belongs to another tenant
        """
        if not isinstance(entry, CacheEntryLike):
            raise TypeMismatch(CacheEntryLike.__name__, entry)

        if not entry.modified:
            return

        tenant_id = self._tenant()
        owner = getattr(entry, "tenant_id", None)
        if owner is not None and owner != tenant_id:
            raise ValidationError(
                "Cache entry belongs to another tenant",
                {"id": entry.id, "entry_tenant": owner, "current_tenant": tenant_id},
            )

        # An entry without expire_at never expires, whatever the engine default
        ttl = entry.expire_at if entry.expire_at is not None else 0
        await self.engine.set(tenant_id, entry.id, entry.value, ttl=ttl, tags=entry.tags)
        entry.modified = False

    async def fetch(self, id: str, tenant_id: str | None = None) -> CacheEntry:
        """
        Load an entry by id.

        Args:
            id: Entry id
            tenant_id: Tenant to read from (defaults to the current tenant)

        Raises:
            ItemNotFound: If the entry is absent or expired
        """
        tenant_id = tenant_id or self._tenant()
        try:
            stored = await self.engine.get_entry(tenant_id, id)
        except NotFound as e:
            raise ItemNotFound(id, tenant_id) from e

        return CacheEntry.from_storage(
            id,
            stored.payload(),
            tags=stored.tags,
            expire_at=stored.expire_at,
            tenant_id=tenant_id,
        )

    async def delete(self, id: str) -> bool:
        """Delete one entry of the current tenant. Idempotent."""
        return await self.engine.delete(self._tenant(), id)

    async def delete_many(self, ids: Iterable[str]) -> int:
        """Delete several entries of the current tenant."""
        return await self.engine.delete_multiple(self._tenant(), ids)

    async def delete_by_tag(self, tag: str) -> int:
        """Delete every entry of the current tenant carrying ``tag``."""
        return await self.engine.delete_by_tag(self._tenant(), tag)

    async def search(self, criteria: Any = None) -> list[CacheEntry]:
        """Not supported by key-value backends; always an empty list."""
        await self.engine.search(self._tenant(), criteria)
        return []
