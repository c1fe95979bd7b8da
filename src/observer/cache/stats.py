"""Counters for the peer cache.

GroupStats collects the per-group counters incremented by the group at its
instrumentation points; CacheStats is a point-in-time view of one cache tier.
Reads are snapshots and are not transactional across counters.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, fields
from typing import Any


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of a single cache tier."""

    items: int = 0
    bytes: int = 0
    gets: int = 0
    hits: int = 0
    evictions: int = 0
    expirations: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to the JSON shape served on /stats."""
        return {
            "Items": self.items,
            "Bytes": self.bytes,
            "Gets": self.gets,
            "Hits": self.hits,
            "Evictions": self.evictions,
            "Expirations": self.expirations,
        }


@dataclass
class GroupStats:
    """Monotonic counters for one cache group."""

    # Any get request, including from peers
    gets: int = 0
    # Served from the main cache
    main_hits: int = 0
    # Served from the hot cache
    hot_hits: int = 0
    # Misses that entered the loader (gets - hits)
    loads: int = 0
    # Loads that joined an in-flight load instead of starting one
    loads_deduped: int = 0
    # Loads served by the local fetcher
    local_loads: int = 0
    local_load_errors: int = 0
    # Requests sent to remote peers
    peer_loads: int = 0
    peer_errors: int = 0
    # Requests received from remote peers
    server_requests: int = 0

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def incr(self, name: str, n: int = 1) -> None:
        """Increment a counter by name."""
        with self._lock:
            setattr(self, name, getattr(self, name) + n)

    def snapshot(self) -> dict[str, int]:
        """Return a copy of all counters."""
        with self._lock:
            return {f.name: getattr(self, f.name) for f in fields(self)}

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON shape served on /stats."""
        snap = self.snapshot()
        return {
            "Gets": snap["gets"],
            "CacheHits": snap["main_hits"] + snap["hot_hits"],
            "MainCacheHits": snap["main_hits"],
            "HotCacheHits": snap["hot_hits"],
            "Loads": snap["loads"],
            "LoadsDeduped": snap["loads_deduped"],
            "LocalLoads": snap["local_loads"],
            "LocalLoadErrs": snap["local_load_errors"],
            "PeerLoads": snap["peer_loads"],
            "PeerErrors": snap["peer_errors"],
            "ServerRequests": snap["server_requests"],
        }
