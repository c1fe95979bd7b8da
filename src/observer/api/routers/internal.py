"""Internal peer protocol endpoint.

Peers fetch values they do not own from this instance with
GET /_internal/cache/{group}/{key}. The response body is the raw value.
Requests are served from the main cache or the local fetcher only and are
never forwarded to another peer.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from starlette.responses import Response

from observer.api.deps import get_cache
from observer.api.errors import NotFoundError
from observer.cache import CacheContext

router = APIRouter(prefix="/_internal/cache", tags=["internal"], include_in_schema=False)


@router.get("/{group_name}/{key:path}")
async def serve_peer_fetch(
    group_name: str,
    key: str,
    cache: CacheContext = Depends(get_cache),
) -> Response:
    """Serve a value this instance owns to a peer."""
    group = cache.get_group(group_name)
    if group is None:
        raise NotFoundError("Cache group", group_name)
    value = await group.get_local(key)
    return Response(content=value, media_type="application/octet-stream")
