"""
TagCache — Error Type Tests
"""

from tagcache.errors import (
    BackendUnavailable,
    CacheError,
    ConfigurationError,
    DependencyError,
    ErrorCode,
    ItemNotFound,
    NotFound,
    PartialDeletionError,
    TagCacheError,
    TypeMismatch,
    is_retryable_error,
    make_error_response,
)


def test_item_not_found_carries_id() -> None:
    error = ItemNotFound("sess-42", tenant_id="shop1")

    assert error.item_id == "sess-42"
    assert 'Item with ID "sess-42" not found' in str(error)
    assert error.status_code == 404
    assert error.to_dict()["details"] == {"id": "sess-42", "tenant_id": "shop1"}


def test_backend_unavailable_details() -> None:
    error = BackendUnavailable("redis", "get", {"key": "a"})

    assert isinstance(error, CacheError)
    assert error.details == {"key": "a", "backend": "redis", "operation": "get"}
    assert error.status_code == 503


def test_partial_deletion_error() -> None:
    cause = BackendUnavailable("redis", "delete_many")
    error = PartialDeletionError("redis", deleted=["a"], unknown=["b", "c"], cause=cause)

    assert isinstance(error, BackendUnavailable)
    assert error.deleted == ["a"]
    assert error.unknown == ["b", "c"]
    assert error.to_dict()["error_code"] == ErrorCode.PARTIAL_DELETION.value


def test_dependency_error_is_configuration_error() -> None:
    error = DependencyError("redis", feature="the redis cache backend", install_hint="pip install redis")

    assert isinstance(error, ConfigurationError)
    assert "Required client library 'redis' not available" in error.message
    assert error.details["install_hint"] == "pip install redis"


def test_type_mismatch_names_received_type() -> None:
    error = TypeMismatch("CacheEntryLike", 42)
    assert error.details == {"expected": "CacheEntryLike", "received": "int"}


def test_not_found_is_cache_error() -> None:
    error = NotFound("shop1", "a")
    assert isinstance(error, TagCacheError)
    assert error.error_code is ErrorCode.CACHE_MISS


def test_is_retryable_error() -> None:
    assert is_retryable_error(BackendUnavailable("redis", "get"))
    assert not is_retryable_error(ItemNotFound("a"))
    assert not is_retryable_error(ValueError("x"))


def test_make_error_response() -> None:
    response = make_error_response(ItemNotFound("a"))

    assert response["success"] is False
    assert response["error"] == "ItemNotFound"
    assert response["error_code"] == "ITEM_NOT_FOUND"
