from __future__ import annotations

import time
from typing import Callable, Optional

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, Info, generate_latest

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "Total HTTP requests resulting in server errors",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)
REQUEST_SIZE = Histogram(
    "http_request_size_bytes",
    "HTTP request size in bytes",
    ["method", "path"],
    buckets=(0, 100, 500, 1_000, 5_000, 10_000, 50_000, 100_000),
)
IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "In-progress HTTP requests",
    ["method", "path"],
)
INVOICES_CREATED = Counter(
    "invoices_created_total",
    "Invoices created with a payment provider",
    ["provider"],
)
FREE_SUBSCRIPTIONS = Counter(
    "free_subscriptions_granted_total",
    "Subscriptions granted without payment because the discount reached the threshold",
)
TRIALS_GRANTED = Counter(
    "trials_granted_total",
    "Trial subscriptions granted",
)
CALLBACKS = Counter(
    "payment_callbacks_total",
    "Payment provider callbacks by outcome",
    ["provider", "outcome"],
)
PROMO_EVENTS = Counter(
    "promo_usage_events_total",
    "Promo code usage counter changes",
    ["action"],
)
UPSTREAM_FAILURES = Counter(
    "payment_provider_failures_total",
    "Failed calls to payment provider APIs",
    ["provider"],
)
UPTIME_SECONDS = Gauge(
    "app_uptime_seconds",
    "Application uptime in seconds",
)
APP_INFO = Info(
    "app",
    "Application metadata",
)

_START_TIME = time.monotonic()


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    if route and getattr(route, "path", None):
        return route.path
    return request.url.path


def _get_content_length(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def record_invoice_created(provider: str) -> None:
    INVOICES_CREATED.labels(provider=provider).inc()


def record_free_subscription() -> None:
    FREE_SUBSCRIPTIONS.inc()


def record_trial_granted() -> None:
    TRIALS_GRANTED.inc()


def record_callback(provider: str, outcome: str) -> None:
    CALLBACKS.labels(provider=provider, outcome=outcome).inc()


def record_promo_event(action: str) -> None:
    PROMO_EVENTS.labels(action=action).inc()


def record_upstream_failure(provider: str) -> None:
    UPSTREAM_FAILURES.labels(provider=provider).inc()


async def metrics_middleware(request: Request, call_next: Callable[[Request], Response]) -> Response:
    path = _route_path(request)
    method = request.method
    request_size = _get_content_length(request.headers.get("content-length"))
    start = time.perf_counter()
    IN_PROGRESS.labels(method=method, path=path).inc()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        IN_PROGRESS.labels(method=method, path=path).dec()
        REQUEST_LATENCY.labels(method=method, path=path).observe(time.perf_counter() - start)
        REQUEST_COUNT.labels(method=method, path=path, status=str(status_code)).inc()
        if request_size is not None:
            REQUEST_SIZE.labels(method=method, path=path).observe(request_size)
        if status_code >= 500:
            REQUEST_ERRORS.labels(method=method, path=path, status=str(status_code)).inc()


def set_app_info(name: str, version: str) -> None:
    APP_INFO.info({"name": name, "version": version})


def metrics_endpoint() -> Response:
    UPTIME_SECONDS.set(time.monotonic() - _START_TIME)
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
