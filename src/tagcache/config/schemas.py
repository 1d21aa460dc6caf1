"""
TagCache — Configuration Schemas

Defines typed configuration models using Pydantic for validation and type safety.
All configuration is validated at startup.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Environment(str, Enum):
    """Runtime environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class CacheBackend(str, Enum):
    """Built-in cache backends. Others can be registered by name."""

    MEMORY = "memory"
    REDIS = "redis"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CacheConfig(BaseModel):
    """Cache configuration block handed to the backend factory."""

    backend: str = Field(default=CacheBackend.MEMORY.value, description="Registered backend name")
    namespace: str = Field(default="tagcache", description="Prefix for every physical key")
    separator: str = Field(default=":", min_length=1, description="Separator between tenant id and id/tag")
    default_ttl_seconds: int = Field(default=0, ge=0, description="TTL applied when none is given (0 = no expiry)")
    max_size: int = Field(default=10000, ge=0, description="Max entries for the memory backend (0 = unbounded)")
    delete_batch_size: int = Field(default=100, ge=1, description="Ids processed per physical batch in bulk deletes")

    # Redis-specific settings (only used when backend=redis)
    redis_url: str | None = Field(default=None, validate_default=True, description="Redis connection URL")
    redis_max_connections: int = Field(default=10, ge=1, description="Redis connection pool size")
    redis_socket_timeout: int = Field(default=5, ge=1, description="Redis socket timeout in seconds")
    options: dict[str, Any] = Field(default_factory=dict, description="Extra backend-specific client options")

    @field_validator("backend")
    @classmethod
    def normalize_backend(cls, v: str) -> str:
        """Backend names are matched case-insensitively."""
        v = v.strip().lower()
        if not v:
            raise ValueError("backend name must not be empty")
        return v

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: str | None, info: Any) -> str | None:
        """Ensure redis_url is provided when backend is redis."""
        backend = info.data.get("backend")
        if backend == CacheBackend.REDIS.value and not v:
            raise ValueError("redis_url is required when cache backend is 'redis'")
        return v


class TagCacheConfig(BaseModel):
    """Root configuration for TagCache."""

    environment: Environment = Field(default=Environment.DEVELOPMENT, description="Runtime environment")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_json: bool = Field(default=False, description="Emit structured JSON log lines")

    cache: CacheConfig = Field(default_factory=CacheConfig)

    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)
