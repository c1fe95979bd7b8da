"""Document endpoints.

- POST /document       insert into the store (bypasses the cache)
- GET  /document/{id}  read through the peer cache
- GET  /documents      list straight from the store (bypasses the cache)

Writes do not invalidate cached entries; a cached document stays visible
until its TTL expires.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import ORJSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.responses import Response

from observer.api.deps import get_document_group, get_document_repository, get_settings
from observer.api.errors import ApiError, MessageType
from observer.cache import Group
from observer.config import Settings
from observer.core.model import DocumentCreate, InsertResult
from observer.persistence.repositories import DocumentRepository

logger = logging.getLogger(__name__)

router = APIRouter(tags=["documents"])


@router.post("/document", response_model=InsertResult)
async def insert_document(
    body: DocumentCreate,
    repo: DocumentRepository = Depends(get_document_repository),
) -> ORJSONResponse:
    """Insert a document and return its identifier."""
    try:
        document_id = await repo.create(body)
        await repo.commit()
    except SQLAlchemyError as e:
        logger.error(f"Inserting document failed: {e}")
        raise ApiError(500, "InternalServerError", str(e), MessageType.EXCEPTION) from e
    return ORJSONResponse(
        content=InsertResult(inserted_id=document_id).model_dump(by_alias=True)
    )


@router.get("/document/{document_id}")
async def get_document(
    document_id: str,
    group: Group = Depends(get_document_group),
) -> Response:
    """Return a document through the cache.

    Cache failures are translated by the registered exception handlers.
    """
    value = await group.get(document_id)
    return Response(content=value, media_type="application/json")


@router.get("/documents")
async def list_documents(
    repo: DocumentRepository = Depends(get_document_repository),
    settings: Settings = Depends(get_settings),
) -> ORJSONResponse:
    """Return every document from the store."""
    try:
        documents = await asyncio.wait_for(repo.list_models(), timeout=settings.db_list_timeout)
    except TimeoutError:
        raise ApiError(
            504, "GatewayTimeout", "Listing documents timed out", MessageType.EXCEPTION
        ) from None
    except SQLAlchemyError as e:
        logger.error(f"Listing documents failed: {e}")
        raise ApiError(500, "InternalServerError", str(e), MessageType.EXCEPTION) from e
    return ORJSONResponse(
        content=[d.to_wire() for d in documents]
    )
