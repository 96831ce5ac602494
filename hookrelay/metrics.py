"""Prometheus instrumentation for the responder's HTTP surface.

Each route is tagged with a handler label (``callback``, ``metrics`` or
``default``) and observed through a request counter, a duration histogram
and an in-flight gauge. Metrics live in their own registry so several apps
can coexist in one process, which the tests rely on.
"""

from __future__ import annotations

import typing as typ

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

NAMESPACE = "hookrelay"

_DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)


class HttpMetrics:
    """Request metrics for one application instance."""

    content_type: typ.ClassVar[str] = CONTENT_TYPE_LATEST

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Create the metric families on ``registry`` (a fresh one by default)."""
        self.registry = registry or CollectorRegistry()
        self.requests = Counter(
            "http_requests_total",
            "HTTP requests handled, by handler, code and method",
            ("handler", "code", "method"),
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request latency, by handler and method",
            ("handler", "method"),
            namespace=NAMESPACE,
            buckets=_DURATION_BUCKETS,
            registry=self.registry,
        )
        self.in_flight = Gauge(
            "http_requests_in_flight",
            "HTTP requests currently being served, by handler",
            ("handler",),
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.deliveries = Counter(
            "webhook_deliveries_total",
            "Verified webhook deliveries, by event type",
            ("event_type",),
            namespace=NAMESPACE,
            registry=self.registry,
        )

    def request_started(self, handler: str) -> None:
        """Record a request entering ``handler``."""
        self.in_flight.labels(handler=handler).inc()

    def request_finished(
        self,
        handler: str,
        method: str,
        status: int,
        duration_s: float,
        *,
        was_in_flight: bool = True,
    ) -> None:
        """Record a completed request.

        ``was_in_flight`` is false for requests that never reached a routed
        resource, so :meth:`request_started` was not called for them.
        """
        if was_in_flight:
            self.in_flight.labels(handler=handler).dec()
        self.requests.labels(handler=handler, code=str(status), method=method).inc()
        self.duration.labels(handler=handler, method=method).observe(duration_s)

    def delivery_received(self, event_type: str) -> None:
        """Count a delivery that passed signature verification."""
        self.deliveries.labels(event_type=event_type).inc()

    def render(self) -> bytes:
        """Return the registry in the Prometheus text exposition format."""
        return generate_latest(self.registry)


__all__ = ["NAMESPACE", "HttpMetrics"]
