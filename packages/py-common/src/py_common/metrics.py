"""Prometheus metrics for the moderation service.

HTTP timings are labelled with the matched route template
(``/v1/content/{content_id}``) rather than the raw path, so content and
user ids never create new series.
"""

import time

from fastapi import Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.routing import Match


UNTIMED_PATHS = {"/metrics", "/v1/health", "/v1/ready"}

REQUEST_DURATION = Histogram(
    "moderation_http_request_duration_seconds",
    "HTTP request duration by route template",
    ["method", "route", "status_class"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

# Decision time per strategy, including any simulated delay
CLASSIFICATION_SECONDS = Histogram(
    "moderation_classification_seconds",
    "Time to produce a classification",
    ["strategy"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

CLASSIFICATIONS = Counter(
    "moderation_classifications_total",
    "Classifications by strategy and outcome (a status, or error)",
    ["strategy", "outcome"],
)

CONTENT_RECORDED = Counter(
    "moderation_content_recorded_total",
    "Content items recorded by the dashboard",
    ["status", "fallback"],
)


def observe_classification(strategy: str, outcome: str, seconds: float) -> None:
    CLASSIFICATION_SECONDS.labels(strategy=strategy).observe(seconds)
    CLASSIFICATIONS.labels(strategy=strategy, outcome=outcome).inc()


def route_template(request) -> str:
    """Path template of the route serving ``request``."""
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", "unmatched")
    return "unmatched"


def setup_metrics(app):
    """Expose /metrics and time every other request by route template."""

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.middleware("http")
    async def time_requests(request, call_next):
        if request.url.path in UNTIMED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)

        REQUEST_DURATION.labels(
            method=request.method,
            route=route_template(request),
            status_class=f"{response.status_code // 100}xx",
        ).observe(time.perf_counter() - started)

        return response
