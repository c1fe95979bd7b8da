"""Middleware for the Observer API.

- Correlation context for request tracing
- Latency and error injection for client resilience testing
"""

from observer.api.middleware.correlation import CorrelationMiddleware
from observer.api.middleware.fault_injection import FaultInjectionMiddleware

__all__ = [
    "CorrelationMiddleware",
    "FaultInjectionMiddleware",
]
