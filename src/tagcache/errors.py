"""
TagCache - Core Error Types

Defines the exception hierarchy for the cache layer.
All exceptions inherit from TagCacheError for consistent error handling.

- BackendUnavailable: connectivity or protocol failure in an adapter
- NotFound: engine-level miss (absent or expired)
- ItemNotFound: manager-level miss, carries the requested id
- TypeMismatch: object handed to the manager is not a cache entry
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standard error codes attached to serialized errors."""

    # Input validation errors
    INVALID_INPUT = "INVALID_INPUT"
    TYPE_MISMATCH = "TYPE_MISMATCH"

    # Configuration errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    DEPENDENCY_MISSING = "DEPENDENCY_MISSING"
    TENANT_MISSING = "TENANT_MISSING"

    # Cache errors
    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"
    PARTIAL_DELETION = "PARTIAL_DELETION"
    CACHE_MISS = "CACHE_MISS"
    CORRUPT_ENTRY = "CORRUPT_ENTRY"
    ITEM_NOT_FOUND = "ITEM_NOT_FOUND"

    # Internal errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class TagCacheError(Exception):
    """Base exception for all TagCache errors."""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        status_code: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(TagCacheError):
    """Raised when configuration is invalid or missing."""

    error_code = ErrorCode.CONFIGURATION_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details, status_code=500)


class DependencyError(ConfigurationError):
    """Raised when a required client library is missing or fails to load."""

    error_code = ErrorCode.DEPENDENCY_MISSING

    def __init__(
        self,
        package: str,
        feature: str | None = None,
        install_hint: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        if feature:
            message = f"Required client library '{package}' not available for {feature}"
        else:
            message = f"Required client library '{package}' not available"

        if install_hint:
            message += f". Install with: {install_hint}"

        error_details = details or {}
        error_details.update(
            {
                "package": package,
                "feature": feature,
                "install_hint": install_hint,
            }
        )

        super().__init__(message, error_details)
        self.package = package


class TenantContextError(ConfigurationError):
    """Raised when no tenant is bound to the current context."""

    error_code = ErrorCode.TENANT_MISSING

    def __init__(self, message: str = "No tenant bound to the current context"):
        super().__init__(message)


class ValidationError(TagCacheError):
    """Raised when input validation fails."""

    error_code = ErrorCode.INVALID_INPUT

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details, status_code=400)


class TypeMismatch(TagCacheError):
    """Raised when an object does not provide the cache entry capabilities."""

    error_code = ErrorCode.TYPE_MISMATCH

    def __init__(self, expected: str, received: Any):
        message = f'Object is not of required type "{expected}"'
        super().__init__(
            message,
            {"expected": expected, "received": type(received).__name__},
            status_code=400,
        )


class CacheError(TagCacheError):
    """Base exception for cache-related errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None, status_code: int = 500):
        super().__init__(message, details, status_code=status_code)


class BackendUnavailable(CacheError):
    """Raised when the backend store cannot be reached or answers garbage."""

    error_code = ErrorCode.BACKEND_UNAVAILABLE

    def __init__(self, backend: str, operation: str, details: dict[str, Any] | None = None):
        message = f"Cache backend '{backend}' unavailable during {operation}"
        error_details = details or {}
        error_details.update({"backend": backend, "operation": operation})
        super().__init__(message, error_details, status_code=503)
        self.backend = backend
        self.operation = operation


class PartialDeletionError(BackendUnavailable):
    """
    Raised when a bulk delete is interrupted by a backend failure.

    ``deleted`` lists ids confirmed gone; ``unknown`` lists ids whose state
    could not be confirmed.
    """

    error_code = ErrorCode.PARTIAL_DELETION

    def __init__(self, backend: str, deleted: list[str], unknown: list[str], cause: BackendUnavailable):
        super().__init__(
            backend,
            "delete_multiple",
            {"deleted": list(deleted), "unknown": list(unknown), "cause": cause.message},
        )
        self.deleted = list(deleted)
        self.unknown = list(unknown)


class CorruptEntryError(CacheError):
    """Raised when a stored envelope cannot be decoded."""

    error_code = ErrorCode.CORRUPT_ENTRY


class NotFound(CacheError):
    """Raised by the engine when an entry is absent or expired."""

    error_code = ErrorCode.CACHE_MISS

    def __init__(self, tenant_id: str, entry_id: str):
        super().__init__(
            f"Cache entry not found: {entry_id}",
            {"tenant_id": tenant_id, "id": entry_id},
            status_code=404,
        )
        self.tenant_id = tenant_id
        self.entry_id = entry_id


class ItemNotFound(TagCacheError):
    """Raised by the manager when a requested item does not exist."""

    error_code = ErrorCode.ITEM_NOT_FOUND

    def __init__(self, item_id: str, tenant_id: str | None = None):
        super().__init__(
            f'Item with ID "{item_id}" not found',
            {"id": item_id, "tenant_id": tenant_id},
            status_code=404,
        )
        self.item_id = item_id
        self.tenant_id = tenant_id


def is_retryable_error(error: Exception) -> bool:
    """
    Check if an error is transient and worth retrying by the caller.

    Nothing inside the cache layer retries; this only classifies.

    Args:
        error: Exception to check

    Returns:
        True if error is retryable (transient)
    """
    return isinstance(error, BackendUnavailable)


def make_error_response(error: TagCacheError) -> dict[str, Any]:
    """
    Create a standardized error response.

    Example:
        >>> make_error_response(ItemNotFound("sess-42"))["error_code"]
        'ITEM_NOT_FOUND'
    """
    return {"success": False, **error.to_dict()}
