"""Cache statistics endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from observer.api.deps import get_document_group
from observer.cache import CacheType, Group

router = APIRouter(tags=["observability"])


@router.get("/stats")
async def get_stats(group: Group = Depends(get_document_group)) -> dict[str, Any]:
    """Point-in-time counters of the document cache group."""
    return {
        "Group": group.stats.to_dict(),
        "MainCache": group.cache_stats(CacheType.MAIN).to_dict(),
        "HotCache": group.cache_stats(CacheType.HOT).to_dict(),
    }
