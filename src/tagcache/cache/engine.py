"""
TagCache — Cache Engine

Orchestrates tenant-scoped set/get/delete/delete_multiple/delete_by_tag on
top of a backend adapter and the tag index.

Replacing a value is two physical steps, not a transaction: the old entry is
deleted (dropping its tag memberships), then the new one is written. A reader
running between the two steps sees a miss. Two concurrent writers for the same
id may leave memberships from both in the index; delete_by_tag only removes
entries whose current envelope still carries the tag, so such leftovers never
invalidate the wrong value.
"""

import logging
import math
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

from ..errors import BackendUnavailable, CorruptEntryError, NotFound, PartialDeletionError, ValidationError
from .entry import KeyScheme, StoredEntry
from .interface import BackendAdapter
from .tags import TagIndex

logger = logging.getLogger(__name__)

Expiry = int | float | timedelta | datetime | None


def utcnow() -> datetime:
    return datetime.now(UTC)


class CacheEngine:
    """
    Tag-indexed, tenant-scoped cache on top of a BackendAdapter.

    Errors raised by the backend propagate unchanged, except that a failure in
    the middle of a bulk delete is reported as PartialDeletionError.
    """

    def __init__(
        self,
        backend: BackendAdapter,
        separator: str = ":",
        default_ttl: int = 0,
        delete_batch_size: int = 100,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the engine.

        Args:
            backend: Adapter executing the physical operations
            separator: Separator between tenant id and entry id/tag
            default_ttl: Seconds applied when set() gets no ttl (0 = never expires)
            delete_batch_size: Ids handled per physical batch in bulk deletes
            clock: Source of the current time (timezone-aware)
        """
        if delete_batch_size < 1:
            raise ValueError("delete_batch_size must be positive")

        self.backend = backend
        self.keys = KeyScheme(separator)
        self.tags = TagIndex(backend, self.keys)
        self.default_ttl = max(0, int(default_ttl))
        self.delete_batch_size = delete_batch_size
        self._clock = clock

    # ------------ Helpers ------------

    def _check_tenant(self, tenant_id: str) -> None:
        if not tenant_id:
            raise ValidationError("tenant_id must not be empty")
        # The first separator in a physical key must end the tenant id
        if self.keys.separator in tenant_id:
            raise ValidationError(
                "tenant_id must not contain the key separator",
                {"tenant_id": tenant_id, "separator": self.keys.separator},
            )

    def _check(self, tenant_id: str, entry_id: str) -> None:
        self._check_tenant(tenant_id)
        if not entry_id:
            raise ValidationError("Cache entry id must not be empty", {"tenant_id": tenant_id})

    @staticmethod
    def _check_tags(tags: Iterable[str]) -> frozenset[str]:
        tag_set = frozenset(tags)
        for tag in tag_set:
            if not isinstance(tag, str) or not tag:
                raise ValidationError("Tags must be non-empty strings", {"tag": repr(tag)})
        return tag_set

    def _resolve_expiry(self, ttl: Expiry, now: datetime) -> datetime | None:
        """
        Turn a ttl argument into an absolute expiry.

        None uses the default ttl; 0 means never expires; naive datetimes are
        taken as UTC.
        """
        if ttl is None:
            return now + timedelta(seconds=self.default_ttl) if self.default_ttl else None
        if isinstance(ttl, datetime):
            return ttl if ttl.tzinfo is not None else ttl.replace(tzinfo=UTC)
        if isinstance(ttl, timedelta):
            return now + ttl
        if isinstance(ttl, bool) or not isinstance(ttl, int | float):
            raise ValidationError("ttl must be seconds, a timedelta or a datetime", {"ttl": repr(ttl)})
        if ttl < 0:
            raise ValidationError("ttl must not be negative", {"ttl": ttl})
        return now + timedelta(seconds=ttl) if ttl else None

    @staticmethod
    def _native_ttl(expire_at: datetime | None, now: datetime) -> int | None:
        if expire_at is None:
            return None
        return max(1, math.ceil((expire_at - now).total_seconds()))

    async def _read(self, tenant_id: str, entry_id: str) -> StoredEntry | None:
        raw = await self.backend.get(self.keys.entry_key(tenant_id, entry_id))
        if raw is None:
            return None
        return StoredEntry.loads(raw)

    # ------------ Reads ------------

    async def get_entry(self, tenant_id: str, entry_id: str) -> StoredEntry:
        """
        Fetch the stored envelope of an entry.

        Raises:
            NotFound: If the entry is absent or past its expiry
        """
        self._check(tenant_id, entry_id)

        stored = await self._read(tenant_id, entry_id)
        if stored is None:
            raise NotFound(tenant_id, entry_id)

        if stored.is_expired(self._clock()):
            logger.debug(
                "Serving miss for expired entry not yet evicted by backend",
                extra={"tenant_id": tenant_id, "id": entry_id},
            )
            raise NotFound(tenant_id, entry_id)

        return stored

    async def get(self, tenant_id: str, entry_id: str) -> str | bytes:
        """
        Fetch the value of an entry.

        Raises:
            NotFound: If the entry is absent or past its expiry
        """
        stored = await self.get_entry(tenant_id, entry_id)
        return stored.payload()

    async def search(self, tenant_id: str, criteria: Any = None) -> list[StoredEntry]:
        """
        Enumerate entries matching arbitrary criteria.

        Key-value backends offer no general query capability, so only id and
        tag lookups are supported; this always returns an empty list.
        """
        logger.debug(
            "Search is not supported by the cache engine, returning no entries",
            extra={"tenant_id": tenant_id, "backend": self.backend.name},
        )
        return []

    # ------------ Writes ------------

    async def set(
        self,
        tenant_id: str,
        entry_id: str,
        value: str | bytes,
        ttl: Expiry = None,
        tags: Iterable[str] = (),
    ) -> None:
        """
        Replace an entry: delete the old one with its tag memberships, then
        write the new value and memberships.

        Args:
            tenant_id: Isolation scope
            entry_id: Caller-supplied id
            value: Opaque payload
            ttl: Seconds, timedelta, absolute datetime, or None for the default
            tags: Tags to attach
        """
        self._check(tenant_id, entry_id)
        if not isinstance(value, str | bytes):
            raise ValidationError("Cache values must be str or bytes", {"value_type": type(value).__name__})

        tag_set = self._check_tags(tags)
        now = self._clock()
        expire_at = self._resolve_expiry(ttl, now)

        await self.delete(tenant_id, entry_id)

        if expire_at is not None and expire_at <= now:
            logger.debug(
                "Skipping write of already expired entry",
                extra={"tenant_id": tenant_id, "id": entry_id, "expire_at": expire_at.isoformat()},
            )
            return

        stored = StoredEntry.wrap(value, tag_set, expire_at)

        # Memberships go in before the value so a value is never reachable
        # without its tags being indexed.
        await self.tags.link(tenant_id, entry_id, tag_set)
        await self.backend.set(
            self.keys.entry_key(tenant_id, entry_id),
            stored.dumps(),
            ttl=self._native_ttl(expire_at, now),
        )

    # ------------ Deletes ------------

    async def _purge(self, tenant_id: str, entry_ids: list[str], only_tag: str | None = None) -> int:
        """
        Delete one batch of entries, then unlink their tag memberships.

        Values go first so a failed delete leaves memberships in place and a
        retried delete_by_tag still finds the entries. Memberships left behind
        by a failed unlink are stale and skipped later.

        Returns:
            Number of entries that existed
        """
        keys: list[str] = []
        linked: list[tuple[str, list[str]]] = []

        for entry_id in entry_ids:
            try:
                stored = await self._read(tenant_id, entry_id)
            except CorruptEntryError:
                logger.warning(
                    "Deleting unreadable cache entry without tag cleanup",
                    extra={"tenant_id": tenant_id, "id": entry_id},
                )
                keys.append(self.keys.entry_key(tenant_id, entry_id))
                continue

            if stored is None:
                continue

            if only_tag is not None and only_tag not in stored.tags:
                # Stale membership left behind by a concurrent replace
                continue

            keys.append(self.keys.entry_key(tenant_id, entry_id))
            linked.append((entry_id, stored.tags))

        if not keys:
            return 0

        removed = await self.backend.delete_many(keys)
        for entry_id, tags in linked:
            await self.tags.unlink(tenant_id, entry_id, tags)
        return removed

    async def _delete_ids(self, tenant_id: str, entry_ids: list[str], only_tag: str | None = None) -> int:
        confirmed: list[str] = []
        removed = 0

        for start in range(0, len(entry_ids), self.delete_batch_size):
            batch = entry_ids[start : start + self.delete_batch_size]
            try:
                removed += await self._purge(tenant_id, batch, only_tag)
            except BackendUnavailable as e:
                logger.error(
                    f"Bulk delete interrupted after {len(confirmed)} of {len(entry_ids)} ids",
                    extra={"tenant_id": tenant_id, "backend": self.backend.name, "error": e.message},
                )
                raise PartialDeletionError(
                    self.backend.name,
                    deleted=confirmed,
                    unknown=entry_ids[start:],
                    cause=e,
                ) from e
            confirmed.extend(batch)

        return removed

    async def delete(self, tenant_id: str, entry_id: str) -> bool:
        """
        Delete an entry and its tag memberships. Idempotent.

        Returns:
            True if the entry existed
        """
        self._check(tenant_id, entry_id)
        return await self._purge(tenant_id, [entry_id]) > 0

    async def delete_multiple(self, tenant_id: str, entry_ids: Iterable[str]) -> int:
        """
        Delete several entries with the same semantics as delete().

        Returns:
            Number of entries that existed

        Raises:
            PartialDeletionError: If the backend fails mid-way; lists the ids
                confirmed deleted and those in unknown state
        """
        ids = list(dict.fromkeys(entry_ids))
        for entry_id in ids:
            self._check(tenant_id, entry_id)

        if not ids:
            return 0
        return await self._delete_ids(tenant_id, ids)

    async def delete_by_tag(self, tenant_id: str, tag: str) -> int:
        """
        Delete every entry currently carrying ``tag``, then clear the bucket.

        Returns:
            Number of entries removed (0 for an empty or unknown tag)
        """
        self._check_tenant(tenant_id)
        self._check_tags([tag])

        ids = await self.tags.members(tenant_id, tag)
        if not ids:
            logger.debug("No entries for tag", extra={"tenant_id": tenant_id, "tag": tag})
            return 0

        removed = await self._delete_ids(tenant_id, sorted(ids), only_tag=tag)
        await self.tags.drop(tenant_id, tag)

        logger.info(
            f"Invalidated {removed} entries by tag '{tag}'",
            extra={"tenant_id": tenant_id, "tag": tag, "removed": removed},
        )
        return removed

    # ------------ Lifecycle ------------

    async def get_stats(self) -> dict[str, Any]:
        return await self.backend.get_stats()

    async def close(self) -> None:
        await self.backend.close()
