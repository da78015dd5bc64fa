# This file declares the Prometheus series the API exports and the helpers that update them.
# Path labels use the matched route template, so request ids in URLs never become label values.

from __future__ import annotations

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

HTTP_REQUESTS_TOTAL = Counter(
    "marketplace_http_requests_total",
    "HTTP requests handled, by route template and status code.",
    ["method", "path", "status_code"],
)
HTTP_REQUEST_SECONDS = Histogram(
    "marketplace_http_request_seconds",
    "Wall time spent handling a request.",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)
HTTP_INFLIGHT = Gauge(
    "marketplace_http_inflight_requests",
    "Requests currently inside the middleware.",
    ["method"],
)


def route_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def observe_request(request: Request, *, status_code: int, seconds: float) -> None:
    path = route_label(request)
    HTTP_REQUESTS_TOTAL.labels(method=request.method, path=path, status_code=str(status_code)).inc()
    HTTP_REQUEST_SECONDS.labels(method=request.method, path=path).observe(seconds)


def metrics_response() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
