"""Shared FastAPI dependencies for Observer routers."""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from observer.api.errors import NotFoundError
from observer.cache import CacheContext, Group
from observer.config import Settings
from observer.persistence.db import get_session
from observer.persistence.repositories import DocumentRepository


def get_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_cache(request: Request) -> CacheContext:
    """The cache context owned by this process."""
    return request.app.state.cache


def get_document_group(
    cache: CacheContext = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> Group:
    """The cache group serving GET /document/{id}."""
    group = cache.get_group(settings.cache_group)
    if group is None:
        raise NotFoundError("Cache group", settings.cache_group)
    return group


async def get_document_repository(
    session: AsyncSession = Depends(get_session),
) -> DocumentRepository:
    return DocumentRepository(session)
