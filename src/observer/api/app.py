"""FastAPI application factory for Observer.

Creates the application with:
- Document endpoints served through the peer cache
- The internal peer fetch endpoint
- Health, cache statistics and Prometheus metrics endpoints
- Latency/error injection on the document routes
- Lifecycle management for the database and the peer pool
- ORJSON for fast JSON serialization
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from observer.api.errors import install_exception_handlers
from observer.api.middleware import CorrelationMiddleware, FaultInjectionMiddleware
from observer.api.routers import documents, health, internal, stats
from observer.api.routers import metrics as metrics_router
from observer.cache import CacheContext
from observer.config import Settings
from observer.config import settings as default_settings
from observer.observability import configure_logging, setup_tracing, shutdown_tracing
from observer.observability.metrics import MetricsMiddleware, get_metrics
from observer.observability.tracing import TracingMiddleware
from observer.persistence.db import (
    close_db,
    configure_database,
    get_session_factory,
    init_db,
)
from observer.persistence.loader import DocumentLoader

logger = logging.getLogger(__name__)


def build_cache(settings: Settings) -> CacheContext:
    """Create the cache context with the document group registered."""
    cache = CacheContext(settings)
    cache.new_group(
        settings.cache_group,
        DocumentLoader(get_session_factory(), timeout=settings.db_query_timeout),
    )
    return cache


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    On startup:
    - Configure structured logging
    - Initialize tracing and metrics
    - Point the database at the configured URL and create the documents table
    - Create the cache context (unless one was injected)

    On shutdown:
    - Close the peer pool
    - Close database connections
    - Shutdown tracing
    """
    settings: Settings = app.state.settings

    # JSON in production, console in dev
    configure_logging(
        json_format=settings.env != "dev",
        level=settings.log_level,
    )
    setup_tracing(settings)
    metrics = get_metrics()

    logger.info(f"Starting Observer ({settings.env}) as {settings.cache_self}")
    configure_database(settings)
    await init_db()

    if getattr(app.state, "cache", None) is None:
        app.state.cache = build_cache(settings)
    if settings.enable_metrics:
        metrics.attach_cache(app.state.cache)

    logger.info("Serving...")

    yield

    logger.info("Shutting down Observer")
    await app.state.cache.aclose()
    await close_db()
    shutdown_tracing()
    logger.info("Observer shutdown complete")


def create_app(
    settings: Settings | None = None,
    cache: CacheContext | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    A prebuilt cache context may be passed in (tests, embedding); otherwise
    one is created at startup from the settings.
    """
    settings = settings or default_settings

    app = FastAPI(
        title="Observer",
        description="Document service with a distributed read-through cache",
        version="0.1.0",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings
    app.state.cache = cache
    if cache is not None and settings.enable_metrics:
        get_metrics().attach_cache(cache)

    # Order: Tracing (outer) -> Metrics -> Correlation -> Fault injection (inner)
    if settings.enable_fault_injection:
        app.add_middleware(FaultInjectionMiddleware)
    app.add_middleware(CorrelationMiddleware)
    if settings.enable_metrics:
        app.add_middleware(MetricsMiddleware)
    if settings.enable_tracing:
        app.add_middleware(TracingMiddleware)

    install_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(stats.router)
    app.include_router(documents.router)
    app.include_router(internal.router)
    if settings.enable_metrics:
        app.include_router(metrics_router.router)

    return app


app = create_app()
