"""Error taxonomy for the peer cache.

Every failed lookup reaches the caller as one of these exceptions:
- NotFound: the key does not exist in the backing store (never cached)
- LoadError: the backing store or a peer call failed
- LoadTimeout: a bounded wait on a load or peer call expired
- LoadCancelled: the in-flight load was cancelled before completing
"""

from __future__ import annotations


class CacheError(Exception):
    """Base class for cache lookup failures."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        self.message = message or self.default_message(key)
        super().__init__(self.message)

    def default_message(self, key: str) -> str:
        return f"lookup of '{key}' failed"


class NotFound(CacheError):
    """Key absent from the backing store."""

    def default_message(self, key: str) -> str:
        return f"key '{key}' not found"


class LoadError(CacheError):
    """Backing-store or peer call failed."""


class LoadTimeout(CacheError):
    """Bounded wait exceeded on a load or a peer call."""

    def default_message(self, key: str) -> str:
        return f"timed out loading '{key}'"


class LoadCancelled(CacheError):
    """The shared load was cancelled before it produced a result."""

    def default_message(self, key: str) -> str:
        return f"load of '{key}' was cancelled"
