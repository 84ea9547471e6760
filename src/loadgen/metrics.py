#!/usr/bin/env python3
"""
Mock Responder Metrics

Every request handled by the responder is counted and timed in Prometheus
metrics, labeled by handler name, HTTP method and response status.
"""
from prometheus_client import Counter, Histogram


REQUEST_COUNT = Counter(
    "mock_http_requests_total",
    "Total HTTP requests handled by the mock responder",
    ["handler", "method", "status"],
)

REQUEST_DURATION = Histogram(
    "mock_http_request_duration_seconds",
    "Mock responder request duration in seconds",
    ["handler", "method", "status"],
    buckets=[0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)


def observe_request(handler: str, method: str, status: int, duration_s: float) -> None:
    """Record one handled request."""
    labels = (handler, method, str(status))
    REQUEST_COUNT.labels(*labels).inc()
    REQUEST_DURATION.labels(*labels).observe(duration_s)
