"""Cache fetcher backed by the documents table."""

from __future__ import annotations

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from observer.cache.errors import NotFound
from observer.persistence.repositories import DocumentRepository


class DocumentLoader:
    """Loads a document's stored bytes by identifier.

    Each fetch runs in its own session and is bounded by `timeout` seconds;
    a timeout surfaces as TimeoutError.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], timeout: float = 5.0):
        self.session_factory = session_factory
        self.timeout = timeout

    async def fetch(self, key: str) -> bytes:
        doc_bytes = await asyncio.wait_for(self._find(key), timeout=self.timeout)
        if doc_bytes is None:
            raise NotFound(key, f"document '{key}' not found")
        return doc_bytes

    async def _find(self, key: str) -> bytes | None:
        async with self.session_factory() as session:
            return await DocumentRepository(session).get_bytes(key)
