"""Global pytest configuration and fixtures."""

from __future__ import annotations

import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from observer.api.app import create_app
from observer.api.deps import get_document_repository
from observer.cache import CacheContext, NotFound
from observer.config import Settings
from observer.core.model import Document, DocumentCreate


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    """Single-peer settings with the optional middleware switched off."""
    return Settings(
        cache_self="http://p1:8080",
        cache_peers="",
        cache_group="observer",
        enable_metrics=False,
        enable_tracing=False,
        enable_fault_injection=False,
        db_list_timeout=1.0,
    )


class FakeFetcher:
    """Fetcher serving canned values or failures per key."""

    def __init__(self) -> None:
        self.values: dict[str, bytes] = {}
        self.errors: dict[str, BaseException] = {}
        self.calls: list[str] = []

    async def fetch(self, key: str) -> bytes:
        self.calls.append(key)
        if key in self.errors:
            raise self.errors[key]
        if key not in self.values:
            raise NotFound(key, f"document '{key}' not found")
        return self.values[key]


class FakeRepository:
    """In-memory stand-in for DocumentRepository."""

    def __init__(self) -> None:
        self.documents: list[Document] = []
        self.committed = False
        self.list_delay = 0.0

    async def create(self, data: DocumentCreate) -> str:
        document_id = f"doc-{len(self.documents) + 1}"
        self.documents.append(Document(id=document_id, title=data.title, content=data.content))
        return document_id

    async def list_models(self) -> list[Document]:
        if self.list_delay:
            await asyncio.sleep(self.list_delay)
        return list(self.documents)

    async def commit(self) -> None:
        self.committed = True


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def cache(settings: Settings, fetcher: FakeFetcher) -> CacheContext:
    context = CacheContext(settings)
    context.new_group(settings.cache_group, fetcher)
    return context


@pytest.fixture
def app(settings: Settings, cache: CacheContext, repository: FakeRepository) -> FastAPI:
    app = create_app(settings, cache)
    app.dependency_overrides[get_document_repository] = lambda: repository
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)
