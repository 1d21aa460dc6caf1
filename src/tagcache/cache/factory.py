"""
TagCache — Backend Registry and Cache Factory

Resolves a configuration block to a constructed backend adapter by name and
wraps it in a CacheEngine.

Key points:
- Backends are looked up in a name -> constructor registry; "memory" and
  "redis" are registered out of the box, others via register_backend()
- Unknown names fail fast with ConfigurationError
- A backend whose client library is missing fails with DependencyError
- Engines are kept in a named instance registry for reuse and shutdown

Examples:
    from tagcache.cache.factory import create_cache

    # Uses env-configured backend (memory by default)
    cache = create_cache()

    # Or explicitly supply a CacheConfig (e.g., for tests)
    from tagcache.config import CacheConfig
    cache = create_cache(CacheConfig(backend="memory", separator="|"), name="test")
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..config import CacheBackend, CacheConfig, get_config
from ..errors import ConfigurationError, DependencyError
from .backends.memory import MemoryBackend
from .engine import CacheEngine
from .interface import BackendAdapter

logger = logging.getLogger(__name__)

BackendConstructor = Callable[[CacheConfig], BackendAdapter]

_backend_registry: dict[str, BackendConstructor] = {}

# Global engine instances registry
_cache_instances: dict[str, CacheEngine] = {}


def _create_memory_backend(config: CacheConfig) -> BackendAdapter:
    """Internal helper to construct a memory backend."""
    return MemoryBackend(max_size=config.max_size, namespace=config.namespace)


def _create_redis_backend(config: CacheConfig) -> BackendAdapter:
    """Internal helper to construct a redis backend with lazy import."""
    if not config.redis_url:
        raise ConfigurationError(
            "REDIS_URL must be set when CACHE_BACKEND=redis",
            details={"env": "REDIS_URL", "backend": "redis"},
        )

    # Lazy import to avoid hard dependency when memory backend is used
    try:
        from .backends.redis import RedisBackend
    except ImportError as e:
        logger.error(
            "Redis backend selected but redis client is not installed",
            extra={"package": "redis>=5.0.0", "error": str(e)},
        )
        raise DependencyError(
            "redis",
            feature="the redis cache backend",
            install_hint="pip install 'redis>=5.0.0'",
            details={"error": str(e), "backend": "redis"},
        ) from e

    return RedisBackend(
        redis_url=config.redis_url,
        namespace=config.namespace,
        max_connections=config.redis_max_connections,
        socket_timeout=config.redis_socket_timeout,
        **config.options,
    )


def register_backend(name: str, constructor: BackendConstructor, replace: bool = False) -> None:
    """
    Register a backend constructor under ``name``.

    Args:
        name: Backend name as used in CacheConfig.backend
        constructor: Callable building an adapter from a CacheConfig
        replace: Allow overriding an existing registration

    Raises:
        ConfigurationError: If the name is taken and replace is False
    """
    key = name.strip().lower()
    if not key:
        raise ConfigurationError("Backend name must not be empty")
    if key in _backend_registry and not replace:
        raise ConfigurationError(
            f"Cache backend already registered: {key}",
            details={"backend": key},
        )
    _backend_registry[key] = constructor
    logger.debug("Registered cache backend: %s", key)


def unregister_backend(name: str) -> None:
    """Remove a backend registration. Unknown names are ignored."""
    _backend_registry.pop(name.strip().lower(), None)


def available_backends() -> list[str]:
    """List registered backend names."""
    return sorted(_backend_registry)


def validate_backend(config: CacheConfig) -> None:
    """
    Check at startup that the configured backend is known.

    Raises:
        ConfigurationError: If no constructor is registered for the name
    """
    if config.backend not in _backend_registry:
        raise ConfigurationError(
            f"Unknown cache backend: {config.backend}",
            details={"backend": config.backend, "supported": available_backends()},
        )


def create_backend(config: CacheConfig) -> BackendAdapter:
    """
    Construct the backend adapter named by ``config.backend``.

    Raises:
        ConfigurationError: If the backend is unknown or construction fails
        DependencyError: If the backend's client library is not available
    """
    validate_backend(config)

    try:
        return _backend_registry[config.backend](config)
    except ConfigurationError:
        # Covers DependencyError too; already logged
        raise
    except Exception as e:
        logger.error(
            "Unexpected error creating cache backend '%s': %s",
            config.backend,
            e,
            extra={"backend": config.backend, "error": str(e)},
            exc_info=True,
        )
        raise ConfigurationError(
            f"Failed to create cache backend '{config.backend}': {e}",
            details={"backend": config.backend, "error": str(e)},
        ) from e


def create_cache(
    config: CacheConfig | None = None,
    name: str = "default",
) -> CacheEngine:
    """
    Create a cache engine based on configuration.

    Args:
        config: Cache configuration (uses global config if not provided)
        name: Instance name (for multiple cache instances)

    Returns:
        Configured CacheEngine; an existing one if ``name`` was already created

    Raises:
        ConfigurationError: If configuration is invalid or backend unavailable
    """
    if name in _cache_instances:
        logger.debug("Returning existing cache instance: %s", name)
        return _cache_instances[name]

    if config is None:
        config = get_config().cache

    logger.info(
        "Creating cache instance '%s' with backend: %s",
        name,
        config.backend,
        extra={"cache_name": name, "backend": config.backend},
    )

    backend = create_backend(config)
    cache = CacheEngine(
        backend,
        separator=config.separator,
        default_ttl=config.default_ttl_seconds,
        delete_batch_size=config.delete_batch_size,
    )
    _cache_instances[name] = cache

    logger.info(
        "Cache instance '%s' created successfully",
        name,
        extra={"cache_name": name, "backend": config.backend},
    )
    return cache


def get_cache(name: str = "default") -> CacheEngine:
    """
    Get an existing cache instance by name.

    If the instance doesn't exist, it is created from the global configuration.
    """
    if name not in _cache_instances:
        logger.debug("Cache instance '%s' not found, creating new instance", name)
        return create_cache(name=name)

    return _cache_instances[name]


async def close_all_caches() -> None:
    """
    Close all cache instances and release resources.

    Must be called during graceful shutdown.
    """
    if not _cache_instances:
        logger.debug("No cache instances to close")
        return

    logger.info("Closing %d cache instance(s)...", len(_cache_instances))

    for name, cache in list(_cache_instances.items()):
        try:
            await cache.close()
            logger.info("Closed cache instance: %s", name)
        except Exception as e:
            # Keep closing the rest
            logger.error(
                "Error closing cache instance '%s': %s",
                name,
                e,
                extra={"cache_name": name, "error": str(e)},
                exc_info=True,
            )

    _cache_instances.clear()
    logger.info("All cache instances closed")


def reset_cache_factory() -> None:
    """
    Reset the instance registry without closing instances.

    Warning: Only use this in testing contexts.
    """
    count = len(_cache_instances)
    _cache_instances.clear()
    logger.debug("Reset cache factory, cleared %d instance reference(s)", count)


def list_cache_instances() -> list[str]:
    """List all registered cache instance names."""
    return list(_cache_instances.keys())


register_backend(CacheBackend.MEMORY.value, _create_memory_backend)
register_backend(CacheBackend.REDIS.value, _create_redis_backend)
