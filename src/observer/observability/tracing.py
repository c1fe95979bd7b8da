"""OpenTelemetry tracing for Observer.

Request spans come from TracingMiddleware; the cache opens child spans for
local loads ("cache.load_local") and peer fetches ("cache.peer_fetch"), so a
trace of GET /document/{id} shows which peer served the key and whether the
document store was hit.

Tracers obtained before setup_tracing() runs are proxies; they start
recording once the provider is installed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import SpanKind, StatusCode
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

if TYPE_CHECKING:
    from starlette.types import ASGIApp

    from observer.config import Settings

logger = logging.getLogger(__name__)

UNTRACED_PATHS = frozenset({"/health", "/health/ready", "/metrics"})

_provider: TracerProvider | None = None


def setup_tracing(settings: Settings) -> TracerProvider | None:
    """Install the global tracer provider once per process.

    Without OTLP_ENDPOINT spans are still created (trace ids show up in logs
    and the x-trace-id header) but nothing is exported.
    """
    global _provider
    if _provider is not None or not settings.enable_tracing:
        return _provider

    _provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.app_name,
                "service.instance.id": settings.instance_id,
                "deployment.environment": settings.env,
                "observer.peer": settings.cache_self,
            }
        )
    )
    if settings.otlp_endpoint:
        _provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint))
        )
        logger.info(f"Exporting spans to {settings.otlp_endpoint}")

    trace.set_tracer_provider(_provider)
    return _provider


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)


def shutdown_tracing() -> None:
    """Flush pending spans and drop the provider."""
    global _provider
    if _provider is None:
        return
    try:
        _provider.shutdown()
    except Exception as e:
        logger.warning(f"Error shutting down tracing: {e}")
    _provider = None


class TracingMiddleware(BaseHTTPMiddleware):
    """One server span per request, named after the matched route.

    The span starts under the path and is renamed to the route template
    (GET /document/{document_id}) once routing has happened, keeping span
    names low-cardinality.
    """

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)
        self.tracer = get_tracer("observer.api")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in UNTRACED_PATHS:
            return await call_next(request)

        with self.tracer.start_as_current_span(
            f"{request.method} {request.url.path}", kind=SpanKind.SERVER
        ) as span:
            span.set_attribute("http.method", request.method)
            span.set_attribute("http.target", request.url.path)
            if request.client:
                span.set_attribute("net.peer.ip", request.client.host)

            try:
                response = await call_next(request)
            except Exception as e:
                span.record_exception(e)
                span.set_status(StatusCode.ERROR, str(e))
                raise

            route = request.scope.get("route")
            path_format = getattr(route, "path_format", None)
            if path_format:
                span.update_name(f"{request.method} {path_format}")
                span.set_attribute("http.route", path_format)
            span.set_attribute("http.status_code", response.status_code)
            if response.status_code >= 500:
                span.set_status(StatusCode.ERROR)
            return response
