"""Tests for the document endpoints."""

from __future__ import annotations

import orjson
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from observer.cache import LoadError


class TestGetDocument:
    """Test GET /document/{id} through the cache."""

    def test_returns_cached_bytes(self, client: TestClient, fetcher) -> None:
        fetcher.values["doc-1"] = b'{"Content":"body","Title":"t","_id":"doc-1"}'

        first = client.get("/document/doc-1")
        second = client.get("/document/doc-1")

        assert first.status_code == 200
        assert first.headers["content-type"] == "application/json"
        assert first.json() == {"_id": "doc-1", "Title": "t", "Content": "body"}
        assert second.content == first.content
        assert fetcher.calls == ["doc-1"]

    def test_missing_document_is_404(self, client: TestClient) -> None:
        response = client.get("/document/nope")

        assert response.status_code == 404
        message = response.json()["messages"][0]
        assert message["code"] == "NotFound"
        assert message["messageType"] == "Error"
        assert "nope" in message["text"]

    def test_load_error_is_502(self, client: TestClient, fetcher) -> None:
        fetcher.errors["doc-1"] = LoadError("doc-1", "database unavailable")

        response = client.get("/document/doc-1")

        assert response.status_code == 502
        assert response.json()["messages"][0]["code"] == "BadGateway"

    def test_unexpected_fetcher_error_is_502(self, client: TestClient, fetcher) -> None:
        fetcher.errors["doc-1"] = RuntimeError("boom")

        response = client.get("/document/doc-1")

        assert response.status_code == 502

    def test_timeout_is_504(self, client: TestClient, fetcher) -> None:
        fetcher.errors["doc-1"] = TimeoutError()

        response = client.get("/document/doc-1")

        assert response.status_code == 504
        assert response.json()["messages"][0]["code"] == "GatewayTimeout"

    def test_failures_are_not_cached(self, client: TestClient, fetcher) -> None:
        fetcher.errors["doc-1"] = RuntimeError("boom")
        assert client.get("/document/doc-1").status_code == 502

        del fetcher.errors["doc-1"]
        fetcher.values["doc-1"] = b"{}"

        assert client.get("/document/doc-1").status_code == 200
        assert fetcher.calls == ["doc-1", "doc-1"]

    def test_correlation_headers(self, client: TestClient, fetcher) -> None:
        fetcher.values["doc-1"] = b"{}"

        response = client.get("/document/doc-1", headers={"x-request-id": "req-1"})

        assert response.headers["x-request-id"] == "req-1"
        assert response.headers["x-correlation-id"] == "req-1"


class TestInsertDocument:
    """Test POST /document."""

    def test_insert_returns_id(self, client: TestClient, repository) -> None:
        response = client.post("/document", json={"Title": "Hello", "Content": "World"})

        assert response.status_code == 200
        assert response.json() == {"InsertedID": "doc-1"}
        assert repository.committed
        assert repository.documents[0].title == "Hello"

    def test_unknown_field_is_400(self, client: TestClient) -> None:
        response = client.post("/document", json={"Title": "x", "Author": "y"})

        assert response.status_code == 400
        assert response.json()["messages"][0]["code"] == "BadRequest"

    def test_malformed_body_is_400(self, client: TestClient) -> None:
        response = client.post(
            "/document",
            content=b"not json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400

    def test_database_error_is_500(self, client: TestClient, repository) -> None:
        async def failing_commit() -> None:
            raise OperationalError("INSERT", {}, Exception("connection lost"))

        repository.commit = failing_commit

        response = client.post("/document", json={"Title": "x"})

        assert response.status_code == 500
        assert response.json()["messages"][0]["code"] == "InternalServerError"


class TestListDocuments:
    """Test GET /documents."""

    def test_lists_from_store(self, client: TestClient) -> None:
        client.post("/document", json={"Title": "a", "Content": "1"})
        client.post("/document", json={"Title": "b"})

        response = client.get("/documents")

        assert response.status_code == 200
        assert orjson.loads(response.content) == [
            {"_id": "doc-1", "Title": "a", "Content": "1"},
            {"_id": "doc-2", "Title": "b"},
        ]

    def test_empty_list(self, client: TestClient) -> None:
        assert client.get("/documents").json() == []

    def test_list_timeout_is_504(self, client: TestClient, repository, settings) -> None:
        settings.db_list_timeout = 0.01
        repository.list_delay = 1.0

        response = client.get("/documents")

        assert response.status_code == 504
