"""
TagCache — Tenant Context

Holds the tenant ("site") identifier of the current caller in a context
variable so that concurrent tasks each see their own tenant. The cache layer
never computes a tenant itself; callers bind one with ``tenant_context``.
"""

import contextvars
from collections.abc import Generator
from contextlib import contextmanager

from .errors import TenantContextError, ValidationError

_tenant_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar("tenant_id", default=None)


def get_current_tenant() -> str:
    """
    Return the tenant bound to the current context.

    Raises:
        TenantContextError: If no tenant is bound
    """
    tenant_id = _tenant_ctx.get()
    if tenant_id is None:
        raise TenantContextError()
    return tenant_id


def peek_current_tenant() -> str | None:
    """Return the bound tenant or None, without raising."""
    return _tenant_ctx.get()


def set_current_tenant(tenant_id: str) -> contextvars.Token[str | None]:
    """Bind a tenant to the current context and return the reset token."""
    if not tenant_id:
        raise ValidationError("tenant_id must not be empty")
    return _tenant_ctx.set(tenant_id)


def reset_current_tenant(token: contextvars.Token[str | None]) -> None:
    """Restore the tenant binding that was active before ``set_current_tenant``."""
    _tenant_ctx.reset(token)


@contextmanager
def tenant_context(tenant_id: str) -> Generator[str, None, None]:
    """
    Bind ``tenant_id`` for the duration of the block.

    Example:
        with tenant_context("shop1"):
            await manager.save(entry)
    """
    token = set_current_tenant(tenant_id)
    try:
        yield tenant_id
    finally:
        _tenant_ctx.reset(token)
