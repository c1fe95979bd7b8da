"""Tests for persistence table definitions."""

from observer.persistence.tables import Base, DocumentTable, new_document_id


class TestNewDocumentId:
    """Test identifier generation."""

    def test_hex_identifier(self) -> None:
        document_id = new_document_id()

        assert len(document_id) == 32
        int(document_id, 16)

    def test_unique(self) -> None:
        assert new_document_id() != new_document_id()


class TestDocumentTable:
    """Test table schema definition."""

    def test_registered_on_base(self) -> None:
        assert "documents" in Base.metadata.tables

    def test_columns(self) -> None:
        columns = DocumentTable.__table__.columns

        assert columns["id"].primary_key
        assert not columns["doc"].nullable
        assert not columns["doc_bytes"].nullable
        assert columns["created_at"].server_default is not None
