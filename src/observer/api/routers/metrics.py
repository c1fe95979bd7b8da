"""GET /metrics for Prometheus scrapes.

Cache counters are read from the live group stats at scrape time, so the
endpoint always agrees with /stats. `name[]` restricts the output to the
given metric names, as the Prometheus federation endpoint does.
"""

from __future__ import annotations

from fastapi import APIRouter, Query
from prometheus_client import CONTENT_TYPE_LATEST
from starlette.responses import Response

from observer.observability.metrics import get_metrics

router = APIRouter(tags=["observability"])


@router.get("/metrics", response_class=Response, include_in_schema=False)
async def scrape(names: list[str] = Query(default=[], alias="name[]")) -> Response:
    content = get_metrics().generate_latest(names or None)
    return Response(content=content, media_type=CONTENT_TYPE_LATEST)
