"""Prometheus metrics for Observer.

- HTTP request count, latency and in-flight gauge, labelled by route
- Cache group counters and per-tier gauges. These are not updated on the
  request path; GroupStatsCollector reads the live group stats at scrape time.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram
from prometheus_client import generate_latest as prometheus_generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
from prometheus_client.registry import Collector
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from observer.cache.group import CacheType

if TYPE_CHECKING:
    from starlette.types import ASGIApp

    from observer.cache.context import CacheContext

logger = logging.getLogger(__name__)

UNMETERED_PATHS = frozenset({"/health", "/health/ready", "/metrics"})

# GroupStats field -> (metric suffix, help text)
GROUP_COUNTERS = {
    "gets": ("gets", "Get requests, including from peers"),
    "main_hits": ("main_cache_hits", "Gets served from the main cache"),
    "hot_hits": ("hot_cache_hits", "Gets served from the hot cache"),
    "loads": ("loads", "Gets that missed both cache tiers"),
    "loads_deduped": ("loads_deduped", "Loads that joined an in-flight load"),
    "local_loads": ("local_loads", "Loads served by the local fetcher"),
    "local_load_errors": ("local_load_errors", "Failed local loads"),
    "peer_loads": ("peer_loads", "Fetches sent to remote peers"),
    "peer_errors": ("peer_errors", "Failed fetches from remote peers"),
    "server_requests": ("server_requests", "Fetches received from remote peers"),
}


class GroupStatsCollector(Collector):
    """Exports the counters of every group of the attached cache context."""

    def __init__(self) -> None:
        self.context: CacheContext | None = None

    def _families(self) -> tuple[dict[str, Any], dict[str, Any], dict[str, Any]]:
        counters = {
            name: CounterMetricFamily(
                f"observer_cache_{suffix}", help_text, labels=["group"]
            )
            for name, (suffix, help_text) in GROUP_COUNTERS.items()
        }
        tier_gauges = {
            attr: GaugeMetricFamily(
                f"observer_cache_{attr}", f"Cache tier {attr}", labels=["group", "tier"]
            )
            for attr in ("items", "bytes")
        }
        tier_counters = {
            attr: CounterMetricFamily(
                f"observer_cache_{attr}", f"Cache tier {attr}", labels=["group", "tier"]
            )
            for attr in ("evictions", "expirations")
        }

        return counters, tier_gauges, tier_counters

    def describe(self) -> Iterator[Any]:
        # Registers the metric names up front, so name[] filtering finds them
        for families in self._families():
            yield from families.values()

    def collect(self) -> Iterator[Any]:
        if self.context is None:
            return

        counters, tier_gauges, tier_counters = self._families()
        for group in self.context.groups():
            snapshot = group.stats.snapshot()
            for name, family in counters.items():
                family.add_metric([group.name], snapshot[name])
            for tier in CacheType:
                stats = group.cache_stats(tier)
                for attr, family in tier_gauges.items():
                    family.add_metric([group.name, tier.value], getattr(stats, attr))
                for attr, family in tier_counters.items():
                    family.add_metric([group.name, tier.value], getattr(stats, attr))

        yield from counters.values()
        yield from tier_gauges.values()
        yield from tier_counters.values()


class MetricsRegistry:
    """HTTP instruments plus the cache collector, bound to one registry.

    Instruments are created by initialize(); tests pass a fresh
    CollectorRegistry to avoid clashing with the process-wide one.
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        self.registry = registry
        self.cache_collector = GroupStatsCollector()
        self.initialized = False

    def initialize(self) -> None:
        if self.initialized:
            return

        self.http_requests_total = Counter(
            "observer_http_requests_total",
            "HTTP requests by method, route and status",
            ["method", "path", "status"],
            registry=self.registry,
        )
        # Buckets span cache hits (sub-millisecond) to peer and store timeouts
        self.http_request_duration_seconds = Histogram(
            "observer_http_request_duration_seconds",
            "HTTP request latency in seconds",
            ["method", "path"],
            buckets=(
                0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10,
            ),
            registry=self.registry,
        )
        self.http_requests_in_progress = Gauge(
            "observer_http_requests_in_progress",
            "HTTP requests being handled",
            ["method"],
            registry=self.registry,
        )
        self.registry.register(self.cache_collector)

        self.initialized = True
        logger.debug("Prometheus metrics initialized")

    def attach_cache(self, context: CacheContext) -> None:
        """Export the groups of context from the next scrape on."""
        self.cache_collector.context = context

    def generate_latest(self, names: list[str] | None = None) -> bytes:
        """Exposition-format output, optionally restricted to names."""
        registry = self.registry.restricted_registry(names) if names else self.registry
        return prometheus_generate_latest(registry)


metrics_registry = MetricsRegistry()


def get_metrics() -> MetricsRegistry:
    """The process-wide registry, initialized on first use."""
    metrics_registry.initialize()
    return metrics_registry


class MetricsMiddleware(BaseHTTPMiddleware):
    """Counts and times requests per method, route and status.

    Requests are labelled with the route template when one matched, so
    /document/{document_id} is one series regardless of the id.
    """

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)
        self.metrics = get_metrics()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in UNMETERED_PATHS:
            return await call_next(request)

        in_progress = self.metrics.http_requests_in_progress.labels(method=request.method)
        in_progress.inc()
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            path = route_label(request)
            self.metrics.http_requests_total.labels(
                method=request.method, path=path, status=status_code
            ).inc()
            self.metrics.http_request_duration_seconds.labels(
                method=request.method, path=path
            ).observe(time.perf_counter() - started)
            in_progress.dec()


def route_label(request: Request) -> str:
    """Route template of the matched route, else the normalized path."""
    path_format = getattr(request.scope.get("route"), "path_format", None)
    return path_format or normalize_path(request.url.path)


def normalize_path(path: str) -> str:
    """Collapse identifiers in paths no route matched.

        /document/65f1c0                 -> /document/{id}
        /_internal/cache/observer/65f1c0 -> /_internal/cache/{group}/{key}
    """
    parts = path.strip("/").split("/")
    if len(parts) == 2 and parts[0] == "document":
        return "/document/{id}"
    if len(parts) >= 3 and parts[:2] == ["_internal", "cache"]:
        return "/_internal/cache/{group}/{key}"
    return path
