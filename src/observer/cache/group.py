"""Cache group: read-through lookup across the peer set.

A group is a named keyspace with one fetcher. A lookup is served, in order,
from the hot cache (values owned by other peers), the main cache (values this
instance owns), the owning peer, or the local fetcher. Loads are deduplicated
per key, and only successful loads are cached.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from functools import partial
from typing import Protocol

from observer.cache.errors import CacheError, LoadError, LoadTimeout
from observer.cache.lru import CacheEntry, LRUCache
from observer.cache.singleflight import SingleFlight
from observer.cache.stats import CacheStats, GroupStats
from observer.observability.tracing import get_tracer

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

DEFAULT_TTL = 300.0


class Fetcher(Protocol):
    """Loads the authoritative value for a key from the backing store.

    Raises NotFound when the key does not exist.
    """

    async def fetch(self, key: str) -> bytes: ...


class FetcherFunc:
    """Adapts a plain coroutine function to the Fetcher protocol."""

    def __init__(self, fn: Callable[[str], Awaitable[bytes]]):
        self.fn = fn

    async def fetch(self, key: str) -> bytes:
        return await self.fn(key)


class PeerFetcher(Protocol):
    async def fetch(self, group: str, key: str) -> bytes: ...


class PeerPicker(Protocol):
    def pick_peer(self, key: str) -> PeerFetcher | None: ...


class CacheType(str, Enum):
    """Cache tiers of a group."""

    MAIN = "main"
    HOT = "hot"


class Group:
    """A named, peer-distributed, read-through cache."""

    def __init__(
        self,
        name: str,
        fetcher: Fetcher,
        peers: PeerPicker | None = None,
        main_bytes: int = 10 * 1024 * 1024,
        hot_bytes: int = 10 * 1024 * 1024 // 8,
        ttl: float = DEFAULT_TTL,
        wait_timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.fetcher = fetcher
        self.peers = peers
        self.ttl = ttl
        self.wait_timeout = wait_timeout
        self.clock = clock
        self.main_cache = LRUCache(main_bytes, clock=clock)
        self.hot_cache = LRUCache(hot_bytes, clock=clock)
        self.stats = GroupStats()
        self._flight: SingleFlight[bytes] = SingleFlight()
        self._local_flight: SingleFlight[bytes] = SingleFlight()

    async def get(self, key: str, timeout: float | None = None) -> bytes:
        """Return the value for key, loading it on a miss.

        Raises:
            NotFound: key absent from the backing store
            LoadError: fetcher or peer failed
            LoadTimeout: the wait or the peer call exceeded its bound
            LoadCancelled: the shared load was cancelled
        """
        self.stats.incr("gets")
        value = self._lookup_cache(key)
        if value is not None:
            return value

        self.stats.incr("loads")
        value, shared = await self._flight.do_ex(
            key, partial(self._load, key), timeout or self.wait_timeout
        )
        if shared:
            self.stats.incr("loads_deduped")
        return value

    async def get_local(self, key: str, timeout: float | None = None) -> bytes:
        """Serve a request from a peer: main cache or local fetcher only.

        Never forwards to another peer, so a peer request is one hop at most.
        """
        self.stats.incr("gets")
        self.stats.incr("server_requests")
        entry = self.main_cache.get(key)
        if entry is not None:
            self.stats.incr("main_hits")
            return entry.value

        self.stats.incr("loads")
        value, shared = await self._local_flight.do_ex(
            key, partial(self._load_local, key), timeout or self.wait_timeout
        )
        if shared:
            self.stats.incr("loads_deduped")
        return value

    def cache_stats(self, which: CacheType) -> CacheStats:
        if which == CacheType.HOT:
            return self.hot_cache.stats()
        return self.main_cache.stats()

    def _lookup_cache(self, key: str) -> bytes | None:
        entry = self.hot_cache.get(key)
        if entry is not None:
            self.stats.incr("hot_hits")
            return entry.value
        entry = self.main_cache.get(key)
        if entry is not None:
            self.stats.incr("main_hits")
            return entry.value
        return None

    def _new_entry(self, value: bytes) -> CacheEntry:
        expire_at = self.clock() + self.ttl if self.ttl > 0 else None
        return CacheEntry(value=value, expire_at=expire_at)

    async def _load(self, key: str) -> bytes:
        # A load that finished just before this one started may already have
        # filled a cache; singleflight only merges overlapping calls.
        value = self._lookup_cache(key)
        if value is not None:
            return value

        peer = self.peers.pick_peer(key) if self.peers is not None else None
        if peer is None:
            return await self._local_flight.do(key, partial(self._load_local, key))
        return await self._load_from_peer(peer, key)

    async def _load_from_peer(self, peer: PeerFetcher, key: str) -> bytes:
        self.stats.incr("peer_loads")
        try:
            value = await peer.fetch(self.name, key)
        except CacheError:
            self.stats.incr("peer_errors")
            raise
        self.hot_cache.put(key, self._new_entry(value))
        return value

    async def _load_local(self, key: str) -> bytes:
        entry = self.main_cache.get(key)
        if entry is not None:
            return entry.value

        self.stats.incr("local_loads")
        logger.info(f"Caching {key}...")
        with tracer.start_as_current_span("cache.load_local") as span:
            span.set_attribute("cache.group", self.name)
            span.set_attribute("cache.key", key)
            try:
                value = await self.fetcher.fetch(key)
            except CacheError:
                self.stats.incr("local_load_errors")
                raise
            except TimeoutError as e:
                self.stats.incr("local_load_errors")
                raise LoadTimeout(key) from e
            except Exception as e:
                self.stats.incr("local_load_errors")
                logger.warning(f"Loading {key} in group {self.name} failed: {e}")
                raise LoadError(key, f"loading '{key}' failed: {e}") from e

        value = bytes(value)
        self.main_cache.put(key, self._new_entry(value))
        return value

    def __repr__(self) -> str:
        return f"Group({self.name!r})"