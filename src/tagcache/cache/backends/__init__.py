"""
TagCache — Backend Adapters

Exports the always-available backend implementations.

The Redis backend is lazy-loaded via factory.py so that redis stays optional.
"""

from .memory import MemoryBackend

__all__ = [
    "MemoryBackend",
]
