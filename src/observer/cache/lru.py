"""Byte-bounded LRU cache with lazy TTL expiry.

One instance backs each cache tier of a group (main and hot). Entries are
immutable; a put for an existing key replaces the whole entry. Expiry is
checked on read only, there is no background sweep.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from observer.cache.stats import CacheStats


@dataclass(frozen=True)
class CacheEntry:
    """Cached value with an optional absolute expiry (cache clock seconds)."""

    value: bytes
    expire_at: float | None = None

    def expired(self, now: float) -> bool:
        return self.expire_at is not None and now >= self.expire_at


def entry_size(key: str, entry: CacheEntry) -> int:
    """Bytes accounted against the cache capacity for one entry."""
    return len(key.encode()) + len(entry.value)


class LRUCache:
    """Least-recently-used cache bounded by total bytes.

    The most recently used entry sits at the end of the ordered dict; eviction
    pops from the front. All operations take the instance lock, so a cache may
    be shared between concurrent request handlers.
    """

    def __init__(
        self,
        max_bytes: int,
        max_entries: int = 0,
        clock: Callable[[], float] = time.monotonic,
        on_evicted: Callable[[str, CacheEntry], None] | None = None,
    ):
        self.max_bytes = max_bytes
        self.max_entries = max_entries
        self.clock = clock
        self.on_evicted = on_evicted
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._bytes = 0
        self._gets = 0
        self._hits = 0
        self._evictions = 0
        self._expirations = 0

    def get(self, key: str) -> CacheEntry | None:
        """Return the live entry for key, refreshing its recency.

        An expired entry is dropped and reported as a miss.
        """
        with self._lock:
            self._gets += 1
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expired(self.clock()):
                self._remove(key)
                self._expirations += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return entry

    def put(self, key: str, entry: CacheEntry) -> None:
        """Insert or replace an entry, evicting LRU entries to make room.

        An entry that could never fit is not stored, and any previous entry
        for key is dropped.
        """
        size = entry_size(key, entry)
        if size > self.max_bytes:
            with self._lock:
                if key in self._entries:
                    self._remove(key)
            return

        evicted: list[tuple[str, CacheEntry]] = []
        with self._lock:
            if key in self._entries:
                self._remove(key)
            self._entries[key] = entry
            self._bytes += size
            while self._over_capacity():
                evicted.append(self._evict_oldest())

        if self.on_evicted is not None:
            for evicted_key, evicted_entry in evicted:
                self.on_evicted(evicted_key, evicted_entry)

    def remove(self, key: str) -> bool:
        """Drop key if present."""
        with self._lock:
            if key not in self._entries:
                return False
            self._remove(key)
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._bytes = 0

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        with self._lock:
            return list(self._entries)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                items=len(self._entries),
                bytes=self._bytes,
                gets=self._gets,
                hits=self._hits,
                evictions=self._evictions,
                expirations=self._expirations,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    # Callers hold self._lock for everything below.

    def _over_capacity(self) -> bool:
        if self._bytes > self.max_bytes:
            return True
        return self.max_entries > 0 and len(self._entries) > self.max_entries

    def _evict_oldest(self) -> tuple[str, CacheEntry]:
        key, entry = self._entries.popitem(last=False)
        self._bytes -= entry_size(key, entry)
        self._evictions += 1
        return key, entry

    def _remove(self, key: str) -> None:
        entry = self._entries.pop(key)
        self._bytes -= entry_size(key, entry)
