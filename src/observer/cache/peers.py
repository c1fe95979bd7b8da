"""Peer pool and the internal peer fetch protocol.

Peers are other observer instances serving the same groups. Each peer exposes
GET {base_url}/_internal/cache/{group}/{key}, answering with the raw value
bytes. The pool owns the hash ring and decides, per key, whether this
instance or a remote peer is the owner.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from urllib.parse import quote

import httpx

from observer.cache.errors import LoadError, LoadTimeout, NotFound
from observer.cache.ring import DEFAULT_REPLICAS, HashRing
from observer.observability.logging import correlation_id_var
from observer.observability.tracing import get_tracer

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

DEFAULT_BASE_PATH = "/_internal/cache"
DEFAULT_PEER_TIMEOUT = 5.0


class PeerClient:
    """Fetches values from one remote peer."""

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient,
        base_path: str = DEFAULT_BASE_PATH,
    ):
        self.base_url = base_url.rstrip("/")
        self.base_path = base_path
        self._client = client

    def url_for(self, group: str, key: str) -> str:
        return (
            f"{self.base_url}{self.base_path}/"
            f"{quote(group, safe='')}/{quote(key, safe='')}"
        )

    async def fetch(self, group: str, key: str) -> bytes:
        """Fetch the value for key from this peer.

        Raises:
            NotFound: the peer reports the key absent
            LoadTimeout: the peer did not answer in time
            LoadError: the peer is unreachable or answered with an error
        """
        url = self.url_for(group, key)
        with tracer.start_as_current_span("cache.peer_fetch") as span:
            span.set_attribute("cache.group", group)
            span.set_attribute("cache.key", key)
            span.set_attribute("peer.url", self.base_url)
            try:
                response = await self._client.get(url, headers=self._headers())
            except httpx.TimeoutException:
                logger.warning(f"Peer {self.base_url} timed out fetching {key}")
                raise LoadTimeout(key, f"peer {self.base_url} timed out") from None
            except httpx.RequestError as e:
                logger.warning(f"Peer {self.base_url} unreachable: {e}")
                raise LoadError(key, f"peer {self.base_url} unreachable: {e}") from e

            span.set_attribute("http.status_code", response.status_code)

        if response.status_code == httpx.codes.OK:
            return response.content
        if response.status_code == httpx.codes.NOT_FOUND:
            raise NotFound(key)
        if response.status_code == httpx.codes.GATEWAY_TIMEOUT:
            raise LoadTimeout(key, f"peer {self.base_url} timed out loading '{key}'")
        raise LoadError(
            key,
            f"peer {self.base_url} returned {response.status_code}: {response.text[:200]}",
        )

    def _headers(self) -> dict[str, str]:
        correlation_id = correlation_id_var.get()
        return {"x-correlation-id": correlation_id} if correlation_id else {}

    def __repr__(self) -> str:
        return f"PeerClient({self.base_url!r})"


class HTTPPool:
    """The static peer set of this instance.

    `pick_peer` returns None when this instance owns the key, otherwise the
    client for the owning peer.
    """

    def __init__(
        self,
        self_url: str,
        peers: Iterable[str] = (),
        replicas: int = DEFAULT_REPLICAS,
        base_path: str = DEFAULT_BASE_PATH,
        timeout: float = DEFAULT_PEER_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.self_url = self_url.rstrip("/")
        self.base_path = base_path
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

        urls = [p.rstrip("/") for p in peers]
        if self.self_url not in urls:
            urls.insert(0, self.self_url)
        self.peers: tuple[str, ...] = tuple(dict.fromkeys(urls))

        self.ring = HashRing(replicas=replicas)
        self.ring.add(*self.peers)
        self._clients = {
            url: PeerClient(url, self._client, base_path)
            for url in self.peers
            if url != self.self_url
        }
        logger.info(f"Peer pool for {self.self_url} with {len(self.peers)} peers")

    def owner(self, key: str) -> str:
        return self.ring.owner(key)

    def pick_peer(self, key: str) -> PeerClient | None:
        """Client for the remote owner of key, or None when we own it."""
        owner = self.ring.owner(key)
        if owner == self.self_url:
            return None
        return self._clients[owner]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
