"""
TagCache — Tag Index

Maintains, per tenant and tag, the set of entry ids carrying that tag.
The buckets live in the same backend as the values; members are bare entry
ids because the bucket key is already tenant-scoped.
"""

import logging
from collections.abc import Iterable

from .entry import KeyScheme
from .interface import BackendAdapter

logger = logging.getLogger(__name__)


class TagIndex:
    """Tag -> ids relation on top of a backend adapter. Never suppresses backend errors."""

    def __init__(self, backend: BackendAdapter, keys: KeyScheme):
        self._backend = backend
        self._keys = keys

    async def link(self, tenant_id: str, entry_id: str, tags: Iterable[str]) -> None:
        """Add ``entry_id`` to every bucket in ``tags``."""
        for tag in tags:
            await self._backend.add_tag_membership(self._keys.tag_key(tenant_id, tag), entry_id)

    async def unlink(self, tenant_id: str, entry_id: str, tags: Iterable[str]) -> None:
        """Remove ``entry_id`` from every bucket in ``tags``."""
        for tag in tags:
            await self._backend.remove_tag_membership(self._keys.tag_key(tenant_id, tag), entry_id)

    async def members(self, tenant_id: str, tag: str) -> set[str]:
        return await self._backend.ids_for_tag(self._keys.tag_key(tenant_id, tag))

    async def drop(self, tenant_id: str, tag: str) -> None:
        """Clear the bucket of ``tag``."""
        await self._backend.clear_tag(self._keys.tag_key(tenant_id, tag))
        logger.debug("Dropped tag bucket", extra={"tenant_id": tenant_id, "tag": tag})
