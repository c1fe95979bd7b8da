"""Repository for the documents collection.

Provides fast/slow path methods:
- Fast path: get_bytes() returns the stored document bytes (no model hydration)
- Slow path: list_models() returns Pydantic models
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from observer.core.model import Document, DocumentCreate
from observer.persistence.tables import DocumentTable, new_document_id


class DocumentRepository:
    """CRUD operations on documents. Writes never touch the cache."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, data: DocumentCreate) -> str:
        """Insert a document and return its generated identifier.

        The caller commits the session.
        """
        document = Document(id=new_document_id(), title=data.title, content=data.content)
        row = DocumentTable(
            id=document.id,
            doc=document.to_wire(),
            doc_bytes=document.to_bytes(),
        )
        self.session.add(row)
        await self.session.flush()
        return row.id

    async def get_bytes(self, document_id: str) -> bytes | None:
        """Fast path: stored document bytes, or None if not found."""
        stmt = select(DocumentTable.doc_bytes).where(DocumentTable.id == document_id)
        result = await self.session.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return row.doc_bytes

    async def list_models(self) -> list[Document]:
        """Slow path: all documents, oldest first."""
        stmt = select(DocumentTable.doc).order_by(DocumentTable.created_at, DocumentTable.id)
        result = await self.session.execute(stmt)
        return [Document.model_validate(doc) for doc in result.scalars()]

    async def commit(self) -> None:
        await self.session.commit()
