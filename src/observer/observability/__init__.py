"""Observability module for Observer.

Provides tracing, metrics, and structured logging:
- OpenTelemetry tracing with OTLP export
- Prometheus metrics (observer.observability.metrics)
- JSON structured logging with correlation IDs
"""

from observer.observability.logging import (
    configure_logging,
    correlation_id_var,
    request_id_var,
)
from observer.observability.tracing import (
    TracingMiddleware,
    get_tracer,
    setup_tracing,
    shutdown_tracing,
)

__all__ = [
    # Logging
    "configure_logging",
    "request_id_var",
    "correlation_id_var",
    # Tracing
    "setup_tracing",
    "shutdown_tracing",
    "get_tracer",
    "TracingMiddleware",
]
