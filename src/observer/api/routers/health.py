"""Liveness and readiness probes.

- GET /health        the process is up and serving requests
- GET /health/ready  the document store answers; also reports this peer's
                     view of the peer set, which must be identical on every
                     peer for keys to have a single owner
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from observer.api.deps import get_cache
from observer.cache import CacheContext
from observer.persistence.db import health_check as db_health_check

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

DB_CHECK_TIMEOUT = 5.0


async def probe_database(timeout: float = DB_CHECK_TIMEOUT) -> dict[str, Any]:
    """Run the database check and describe the outcome."""
    started = time.perf_counter()
    try:
        ok = await asyncio.wait_for(db_health_check(), timeout=timeout)
        problem = None if ok else "query failed"
    except TimeoutError:
        ok, problem = False, f"no answer within {timeout:g}s"

    result: dict[str, Any] = {
        "name": "database",
        "status": "healthy" if ok else "unhealthy",
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
    }
    if problem:
        result["message"] = problem
        logger.warning(f"Readiness: database {problem}")
    return result


@router.get("/health")
async def live() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/health/ready")
async def ready(cache: CacheContext = Depends(get_cache)) -> JSONResponse:
    """200 when the database is reachable, 503 otherwise."""
    database = await probe_database(DB_CHECK_TIMEOUT)
    healthy = database["status"] == "healthy"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": database["status"],
            "components": [database],
            "self": cache.pool.self_url,
            "peers": list(cache.pool.peers),
            "groups": [group.name for group in cache.groups()],
        },
    )
