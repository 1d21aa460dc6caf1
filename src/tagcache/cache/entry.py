"""
TagCache — Stored Entry Envelope and Key Scheme

The engine writes a small JSON envelope at every value key. Besides the
payload it records the entry's tags and absolute expiry, which lets the
engine unlink old tag memberships on replace/delete and refuse to serve an
expired value when the backend has not evicted it yet.
"""

import base64
import binascii
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..errors import CorruptEntryError


class StoredEntry(BaseModel):
    """Envelope persisted at ``tenant_id + separator + id``."""

    value: str
    encoding: Literal["text", "base64"] = "text"
    tags: list[str] = Field(default_factory=list)
    expire_at: datetime | None = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def wrap(cls, value: str | bytes, tags: frozenset[str], expire_at: datetime | None) -> "StoredEntry":
        """Build an envelope, base64-encoding binary payloads."""
        if isinstance(value, bytes):
            return cls(
                value=base64.b64encode(value).decode("ascii"),
                encoding="base64",
                tags=sorted(tags),
                expire_at=expire_at,
            )
        return cls(value=value, tags=sorted(tags), expire_at=expire_at)

    def payload(self) -> str | bytes:
        """Return the original value with its original type."""
        if self.encoding == "base64":
            try:
                return base64.b64decode(self.value, validate=True)
            except binascii.Error as e:
                raise CorruptEntryError("Corrupt binary payload in cache envelope", {"error": str(e)}) from e
        return self.value

    def is_expired(self, now: datetime) -> bool:
        return self.expire_at is not None and self.expire_at <= now

    def dumps(self) -> str:
        return self.model_dump_json()

    @classmethod
    def loads(cls, raw: str) -> "StoredEntry":
        try:
            return cls.model_validate_json(raw)
        except PydanticValidationError as e:
            raise CorruptEntryError("Unreadable cache envelope", {"errors": e.errors()}) from e


class KeyScheme:
    """Builds tenant-scoped physical keys."""

    def __init__(self, separator: str = ":"):
        if not separator:
            raise ValueError("separator must not be empty")
        self.separator = separator

    def entry_key(self, tenant_id: str, entry_id: str) -> str:
        return f"{tenant_id}{self.separator}{entry_id}"

    def tag_key(self, tenant_id: str, tag: str) -> str:
        return f"{tenant_id}{self.separator}{tag}"
