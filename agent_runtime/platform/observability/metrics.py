"""Prometheus HTTP metrics and the shared bucket layout.

Agent endpoints answer slowly (a run spans several model completions and tool
calls) and ``/agent/stream`` keeps the connection open for the whole run, so
requests are also tracked while in flight.
"""

from time import monotonic
from typing import NamedTuple

import prometheus_client
from starlette.routing import Match


class HTTPLabels(NamedTuple):
    method: str
    path: str
    http_status: str


_NXX_LUT = ["1XX", "2XX", "3XX", "4XX", "5XX"]


def http_status_nxx(status: int) -> str:
    """A coarser 2XX, 4XX, 5XX"""
    return _NXX_LUT[status // 100 - 1]


BUCKETS = (
    # log spaced with 1 sig-fig rounding, 3 per decade up to 20s
    0.0002,  # 200 μs
    0.0005,
    0.001,  # 1 ms
    0.002,
    0.005,
    0.01,
    0.02,
    0.05,
    0.1,
    0.2,
    0.5,
    1,
    2,
    5,
    10,
    20,
    60,  # MCP tool timeout
    120,
    300,  # long multi-step runs
    float("inf"),
)

UNMATCHED_PATH = "path-not-found"


def get_path(routes, scope) -> str:
    """Route path template of the first route fully matching ``scope``."""
    for route in routes:
        match, _ = route.matches(scope)
        if match == Match.FULL:
            return route.path
    return UNMATCHED_PATH


def setup_http_metrics(registry) -> tuple[prometheus_client.Histogram, prometheus_client.Gauge]:
    """Create the HTTP duration histogram and the in-flight gauge.

    Args:
        registry: Prometheus registry to register the metrics with

    Returns:
        Tuple of (request duration histogram, requests in progress gauge)
    """
    histogram = prometheus_client.Histogram(
        name="http_request_duration_seconds",
        documentation="Time until response headers were sent (seconds)",
        labelnames=HTTPLabels._fields,
        registry=registry,
        buckets=BUCKETS,
    )
    in_progress = prometheus_client.Gauge(
        name="http_requests_in_progress",
        documentation="HTTP requests currently being handled",
        labelnames=["method", "path"],
        registry=registry,
    )
    return histogram, in_progress


http_histogram, http_in_progress = setup_http_metrics(registry=prometheus_client.REGISTRY)


async def prometheus_middleware(request, call_next):
    """Record request duration by method, route template and status class."""
    path = get_path(request.app.routes, request.scope)
    start_time = monotonic()
    with http_in_progress.labels(request.method, path).track_inprogress():
        response = await call_next(request)
    labels = HTTPLabels(
        method=request.method,
        path=path,
        http_status=http_status_nxx(response.status_code),
    )
    http_histogram.labels(*labels).observe(monotonic() - start_time)
    return response


def metrics() -> tuple[bytes, str]:
    """Body and content type for the /metrics endpoint."""
    return (
        prometheus_client.generate_latest(prometheus_client.REGISTRY),
        prometheus_client.CONTENT_TYPE_LATEST,
    )
