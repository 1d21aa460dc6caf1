"""
Tag Invalidation Example

Demonstrates the cache layer end to end:
- Creating a cache from configuration
- Saving entries for a tenant through the manager
- Fetching, and invalidating by tag
"""

import asyncio
import logging

from tagcache import CacheManager, tenant_context
from tagcache.cache import close_all_caches, create_cache
from tagcache.config import CacheConfig
from tagcache.errors import ItemNotFound
from tagcache.logging_config import configure_logging

logger = logging.getLogger("tagcache.examples")


async def main() -> None:
    configure_logging()

    cache = create_cache(CacheConfig(backend="memory", default_ttl_seconds=3600))
    manager = CacheManager(cache)

    with tenant_context("shop1"):
        await manager.save(manager.create_entry("sess-42", "payload", tags={"session"}))
        await manager.save(manager.create_entry("product-7", "<html>...</html>", tags={"catalog"}))

        entry = await manager.fetch("sess-42")
        logger.info(f"Fetched {entry.id}: {entry.value!r} tags={sorted(entry.tags)}")

        removed = await manager.delete_by_tag("session")
        logger.info(f"Invalidated {removed} session entries")

        try:
            await manager.fetch("sess-42")
        except ItemNotFound as e:
            logger.info(f"As expected: {e.message}")

    # Same id, other tenant: nothing there
    with tenant_context("shop2"):
        try:
            await manager.fetch("product-7")
        except ItemNotFound:
            logger.info("shop2 cannot see shop1's entries")

    await close_all_caches()


if __name__ == "__main__":
    asyncio.run(main())
