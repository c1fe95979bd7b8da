"""Process-owned cache context.

Holds the peer pool and the named groups of one serving process. The
application creates one at startup and keeps it on `app.state.cache`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from observer.cache.group import Fetcher, Group
from observer.cache.peers import HTTPPool

if TYPE_CHECKING:
    from observer.config import Settings

logger = logging.getLogger(__name__)


class CacheContext:
    """Peer pool plus a registry of groups by name."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.settings = settings
        self.pool = HTTPPool(
            self_url=settings.cache_self,
            peers=settings.peer_urls,
            replicas=settings.cache_replicas,
            timeout=settings.cache_peer_timeout,
            client=client,
        )
        self._groups: dict[str, Group] = {}

    def new_group(
        self,
        name: str,
        fetcher: Fetcher,
        main_bytes: int | None = None,
        hot_bytes: int | None = None,
        ttl: float | None = None,
    ) -> Group:
        """Create and register a group; names are unique per context."""
        if name in self._groups:
            raise ValueError(f"duplicate registration of group {name}")
        group = Group(
            name,
            fetcher,
            peers=self.pool,
            main_bytes=main_bytes if main_bytes is not None else self.settings.cache_main_bytes,
            hot_bytes=hot_bytes if hot_bytes is not None else self.settings.cache_hot_bytes,
            ttl=ttl if ttl is not None else self.settings.cache_ttl_seconds,
            wait_timeout=self.settings.cache_wait_timeout,
        )
        self._groups[name] = group
        logger.info(f"Registered cache group {name}")
        return group

    def get_group(self, name: str) -> Group | None:
        return self._groups.get(name)

    def groups(self) -> list[Group]:
        return list(self._groups.values())

    async def aclose(self) -> None:
        await self.pool.aclose()
