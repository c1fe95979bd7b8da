"""Distributed read-through cache for Observer.

Provides a groupcache-style peer cache:
- Consistent hashing decides which peer owns a key
- Owned keys are loaded once (singleflight) and kept in the main cache
- Keys owned by other peers are fetched over HTTP and kept in the hot cache
- Byte-bounded LRU tiers with lazy TTL expiry
"""

from observer.cache.context import CacheContext
from observer.cache.errors import CacheError, LoadCancelled, LoadError, LoadTimeout, NotFound
from observer.cache.group import CacheType, Fetcher, FetcherFunc, Group
from observer.cache.lru import CacheEntry, LRUCache
from observer.cache.peers import HTTPPool, PeerClient
from observer.cache.ring import HashRing
from observer.cache.singleflight import SingleFlight
from observer.cache.stats import CacheStats, GroupStats

__all__ = [
    # Core cache
    "CacheContext",
    "CacheEntry",
    "CacheType",
    "Fetcher",
    "FetcherFunc",
    "Group",
    "LRUCache",
    "SingleFlight",
    # Peers
    "HashRing",
    "HTTPPool",
    "PeerClient",
    # Stats
    "CacheStats",
    "GroupStats",
    # Errors
    "CacheError",
    "LoadCancelled",
    "LoadError",
    "LoadTimeout",
    "NotFound",
]
