"""Tests for the internal peer fetch endpoint."""

from __future__ import annotations

from fastapi.testclient import TestClient


class TestPeerFetchEndpoint:
    """Test GET /_internal/cache/{group}/{key}."""

    def test_serves_raw_bytes(self, client: TestClient, fetcher, cache) -> None:
        fetcher.values["doc-1"] = b"\x00raw\xff"

        response = client.get("/_internal/cache/observer/doc-1")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/octet-stream"
        assert response.content == b"\x00raw\xff"
        group = cache.get_group("observer")
        assert "doc-1" in group.main_cache
        assert group.stats.snapshot()["server_requests"] == 1

    def test_escaped_key(self, client: TestClient, fetcher) -> None:
        fetcher.values["a/b c"] = b"v"

        response = client.get("/_internal/cache/observer/a%2Fb%20c")

        assert response.status_code == 200
        assert fetcher.calls == ["a/b c"]

    def test_unknown_group_is_404(self, client: TestClient) -> None:
        response = client.get("/_internal/cache/other/doc-1")

        assert response.status_code == 404
        assert "other" in response.json()["messages"][0]["text"]

    def test_missing_key_is_404(self, client: TestClient) -> None:
        assert client.get("/_internal/cache/observer/nope").status_code == 404

    def test_load_failure_is_502(self, client: TestClient, fetcher) -> None:
        fetcher.errors["doc-1"] = RuntimeError("boom")

        assert client.get("/_internal/cache/observer/doc-1").status_code == 502

    def test_not_in_openapi(self, client: TestClient) -> None:
        paths = client.get("/openapi.json").json()["paths"]

        assert not any(path.startswith("/_internal") for path in paths)
        assert "/document/{document_id}" in paths
