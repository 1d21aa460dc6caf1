"""
TagCache — Cache Module

Tag-indexed, tenant-scoped caching over pluggable key-value backends.

- interface.py: Backend adapter contract
- backends/: Adapter implementations (memory always, redis lazily)
- tags.py: Tag -> ids index kept in the backend
- engine.py: set/get/delete/delete_multiple/delete_by_tag
- factory.py: Backend registry and named engine instances

Usage:
    from tagcache.cache import create_cache

    cache = create_cache()
    await cache.set("shop1", "sess-42", "payload", ttl=60, tags={"session"})
    value = await cache.get("shop1", "sess-42")
    await cache.delete_by_tag("shop1", "session")
"""

from .engine import CacheEngine
from .entry import KeyScheme, StoredEntry
from .factory import (
    available_backends,
    close_all_caches,
    create_backend,
    create_cache,
    get_cache,
    list_cache_instances,
    register_backend,
    reset_cache_factory,
    validate_backend,
)
from .interface import BackendAdapter
from .tags import TagIndex

__all__ = [
    # Factory functions
    "create_cache",
    "create_backend",
    "get_cache",
    "close_all_caches",
    "list_cache_instances",
    "reset_cache_factory",
    "register_backend",
    "available_backends",
    "validate_backend",
    # Core
    "BackendAdapter",
    "CacheEngine",
    "TagIndex",
    "StoredEntry",
    "KeyScheme",
]
