"""SQLAlchemy ORM models for the document store.

Documents are stored both as JSON (for listing) and as serialized bytes, so
the cache loader can return a stored document without re-serializing it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, DateTime, LargeBinary, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def new_document_id() -> str:
    return uuid4().hex


class DocumentTable(Base):
    """Documents collection."""

    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_document_id)

    # JSON document for listing; JSONB on PostgreSQL
    doc: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False
    )

    # Canonical JSON bytes served by the cache
    doc_bytes: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<DocumentTable(id={self.id!r})>"
