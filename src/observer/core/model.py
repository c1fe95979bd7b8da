"""Document models.

Field names on the wire follow the document store's original casing:
`_id`, `Title` and `Content`. A stored document is also kept as its
serialized bytes, which is the value the cache holds and serves.
"""

from __future__ import annotations

import orjson
from pydantic import BaseModel, Field

# Sorted keys make the bytes of equal documents identical on every peer
_DUMPS_OPTIONS = orjson.OPT_SORT_KEYS | orjson.OPT_UTC_Z


class StrictModel(BaseModel):
    """Base model rejecting unknown fields."""

    model_config = {
        "extra": "forbid",
        "populate_by_name": True,
    }


class DocumentCreate(StrictModel):
    """Body of POST /document."""

    title: str | None = Field(default=None, alias="Title")
    content: str | None = Field(default=None, alias="Content")


class Document(StrictModel):
    """A stored document."""

    id: str = Field(alias="_id")
    title: str | None = Field(default=None, alias="Title")
    content: str | None = Field(default=None, alias="Content")

    def to_wire(self) -> dict[str, str]:
        """JSON object as served to clients; absent fields are omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_bytes(self) -> bytes:
        return orjson.dumps(self.to_wire(), option=_DUMPS_OPTIONS)


class InsertResult(StrictModel):
    """Response of POST /document."""

    inserted_id: str = Field(alias="InsertedID")
