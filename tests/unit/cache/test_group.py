"""Tests for the read-through cache group."""

import asyncio

import httpx
import pytest

from observer.cache.errors import LoadError, LoadTimeout, NotFound
from observer.cache.group import CacheType, FetcherFunc, Group
from observer.cache.peers import HTTPPool

P1 = "http://p1:8080"
P2 = "http://p2:8080"


class CountingFetcher:
    """Fetcher double serving values from a dict."""

    def __init__(self, values: dict[str, bytes] | None = None):
        self.values = values or {}
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None

    async def fetch(self, key: str) -> bytes:
        self.calls.append(key)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if key not in self.values:
            raise NotFound(key)
        return self.values[key]


class RaisingPicker:
    """Picker that fails the test if a peer is ever consulted."""

    def pick_peer(self, key: str):
        raise AssertionError(f"peer consulted for {key}")


class TestGroupLocalLoads:
    """Test lookups owned by this instance."""

    @pytest.mark.asyncio
    async def test_hit_after_load(self) -> None:
        """The second get is a main cache hit with no new load."""
        fetcher = CountingFetcher({"doc-1": b'{"_id":"doc-1"}'})
        group = Group("observer", fetcher)

        assert await group.get("doc-1") == b'{"_id":"doc-1"}'
        assert await group.get("doc-1") == b'{"_id":"doc-1"}'

        assert fetcher.calls == ["doc-1"]
        stats = group.stats.snapshot()
        assert stats["gets"] == 2
        assert stats["main_hits"] == 1
        assert stats["loads"] == 1
        assert stats["local_loads"] == 1
        assert "doc-1" in group.main_cache

    @pytest.mark.asyncio
    async def test_concurrent_gets_fetch_once(self) -> None:
        fetcher = CountingFetcher({"doc-1": b"v"})
        fetcher.gate = asyncio.Event()
        group = Group("observer", fetcher)

        tasks = [asyncio.create_task(group.get("doc-1")) for _ in range(10)]
        await asyncio.sleep(0)
        fetcher.gate.set()
        results = await asyncio.gather(*tasks)

        assert results == [b"v"] * 10
        assert fetcher.calls == ["doc-1"]
        stats = group.stats.snapshot()
        assert stats["loads"] == 10
        assert stats["loads_deduped"] == 9

    @pytest.mark.asyncio
    async def test_reload_after_ttl(self, clock) -> None:
        """An expired entry is a miss that triggers exactly one new load."""
        fetcher = CountingFetcher({"doc-1": b"v"})
        group = Group("observer", fetcher, ttl=60, clock=clock)

        await group.get("doc-1")
        clock.advance(59)
        await group.get("doc-1")
        assert len(fetcher.calls) == 1

        clock.advance(1)
        await group.get("doc-1")

        assert len(fetcher.calls) == 2
        assert group.cache_stats(CacheType.MAIN).expirations == 1
        assert group.stats.snapshot()["loads"] == 2

    @pytest.mark.asyncio
    async def test_not_found_is_not_cached(self) -> None:
        fetcher = CountingFetcher()
        group = Group("observer", fetcher)

        for _ in range(2):
            with pytest.raises(NotFound):
                await group.get("missing")

        assert fetcher.calls == ["missing", "missing"]
        assert group.stats.snapshot()["local_load_errors"] == 2
        assert len(group.main_cache) == 0

    @pytest.mark.asyncio
    async def test_fetcher_failure_becomes_load_error(self) -> None:
        fetcher = CountingFetcher({"doc-1": b"v"})
        fetcher.error = RuntimeError("connection refused")
        group = Group("observer", fetcher)

        with pytest.raises(LoadError) as exc_info:
            await group.get("doc-1")

        assert exc_info.value.key == "doc-1"
        assert "connection refused" in exc_info.value.message
        assert len(group.main_cache) == 0

    @pytest.mark.asyncio
    async def test_fetcher_timeout_becomes_load_timeout(self) -> None:
        fetcher = CountingFetcher({"doc-1": b"v"})
        fetcher.error = TimeoutError()
        group = Group("observer", fetcher)

        with pytest.raises(LoadTimeout):
            await group.get("doc-1")

    @pytest.mark.asyncio
    async def test_wait_timeout(self) -> None:
        """A bounded wait fails the caller; the load still fills the cache."""
        fetcher = CountingFetcher({"doc-1": b"v"})
        fetcher.gate = asyncio.Event()
        group = Group("observer", fetcher, wait_timeout=0.01)

        with pytest.raises(LoadTimeout):
            await group.get("doc-1")

        fetcher.gate.set()
        assert await group.get("doc-1", timeout=1.0) == b"v"
        assert fetcher.calls == ["doc-1"]

    @pytest.mark.asyncio
    async def test_fetcher_func_adapter(self) -> None:
        async def load(key: str) -> bytes:
            return key.upper().encode()

        group = Group("observer", FetcherFunc(load))

        assert await group.get("abc") == b"ABC"

    @pytest.mark.asyncio
    async def test_get_local_never_consults_peers(self) -> None:
        fetcher = CountingFetcher({"doc-1": b"v"})
        group = Group("observer", fetcher, peers=RaisingPicker())

        assert await group.get_local("doc-1") == b"v"
        assert await group.get_local("doc-1") == b"v"

        stats = group.stats.snapshot()
        assert stats["server_requests"] == 2
        assert stats["main_hits"] == 1
        assert fetcher.calls == ["doc-1"]


def _key_owned_by(pool: HTTPPool, peer: str) -> str:
    for i in range(1000):
        key = f"doc-{i}"
        if pool.owner(key) == peer:
            return key
    raise AssertionError(f"no key owned by {peer}")


class TestGroupPeerLoads:
    """Test lookups owned by another peer."""

    @pytest.fixture
    def requests(self) -> list[httpx.Request]:
        return []

    def _pool(self, requests: list[httpx.Request], status_code: int = 200) -> HTTPPool:
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(status_code, content=b"from-p1")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return HTTPPool(P2, peers=[P1, P2], client=client)

    @pytest.mark.asyncio
    async def test_remote_key_goes_to_hot_cache(self, requests) -> None:
        """A get on P2 for a key owned by P1 makes one peer request and fills
        the hot cache on P2 only."""
        pool = self._pool(requests)
        fetcher = CountingFetcher()
        group = Group("observer", fetcher, peers=pool)
        key = _key_owned_by(pool, P1)

        assert await group.get(key) == b"from-p1"

        assert len(requests) == 1
        assert requests[0].url.host == "p1"
        assert requests[0].url.path == f"/_internal/cache/observer/{key}"
        assert key in group.hot_cache
        assert key not in group.main_cache
        assert fetcher.calls == []

        assert await group.get(key) == b"from-p1"
        assert len(requests) == 1
        assert group.stats.snapshot()["hot_hits"] == 1
        assert group.stats.snapshot()["peer_loads"] == 1

    @pytest.mark.asyncio
    async def test_concurrent_remote_gets_send_one_request(self, requests) -> None:
        pool = self._pool(requests)
        group = Group("observer", CountingFetcher(), peers=pool)
        key = _key_owned_by(pool, P1)

        results = await asyncio.gather(*(group.get(key) for _ in range(5)))

        assert results == [b"from-p1"] * 5
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_peer_failure_has_no_local_fallback(self, requests) -> None:
        pool = self._pool(requests, status_code=500)
        fetcher = CountingFetcher({"doc-1": b"local"})
        group = Group("observer", fetcher, peers=pool)
        key = _key_owned_by(pool, P1)

        with pytest.raises(LoadError):
            await group.get(key)

        assert fetcher.calls == []
        assert group.stats.snapshot()["peer_errors"] == 1
        assert len(group.hot_cache) == 0

    @pytest.mark.asyncio
    async def test_peer_not_found_propagates(self, requests) -> None:
        pool = self._pool(requests, status_code=404)
        group = Group("observer", CountingFetcher(), peers=pool)
        key = _key_owned_by(pool, P1)

        with pytest.raises(NotFound):
            await group.get(key)

    @pytest.mark.asyncio
    async def test_own_key_loads_locally(self, requests) -> None:
        pool = self._pool(requests)
        group = Group("observer", CountingFetcher(), peers=pool)
        key = _key_owned_by(pool, P2)
        group.fetcher.values[key] = b"local"

        assert await group.get(key) == b"local"

        assert requests == []
        assert key in group.main_cache
        assert key not in group.hot_cache
