"""
TagCache — Tag-Indexed Multi-Tenant Cache

Uniform interface over key-value stores: store opaque values under an id,
attach tags, set expiry, and invalidate by id, id list or tag, with every key
scoped to a tenant.
"""

__version__ = "1.0.0"

from .cache import CacheEngine, create_cache, get_cache
from .context import get_current_tenant, tenant_context
from .manager import CacheEntry, CacheEntryLike, CacheManager

__all__ = [
    "CacheEngine",
    "CacheEntry",
    "CacheEntryLike",
    "CacheManager",
    "create_cache",
    "get_cache",
    "get_current_tenant",
    "tenant_context",
]
