"""
Prometheus instrumentation for the AdminHub API.

This module sets up:
- HTTP request/latency/exception metrics via middleware
- Workflow transition counters for leave, overtime and material requests
- Depreciation outcome counters for batch runs
"""

from __future__ import annotations

import re
import time

from fastapi import Request, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

http_requests_total = Counter(
    "http_server_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"]
)

http_request_duration_seconds = Histogram(
    "http_server_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

http_exceptions_total = Counter(
    "http_server_exceptions_total",
    "Total unhandled exceptions",
    ["method", "path", "exception_type"]
)

workflow_transitions_total = Counter(
    "adminhub_workflow_transitions_total",
    "Status transitions applied to workflow entities",
    ["entity", "to_status"]
)

depreciation_assets_total = Counter(
    "adminhub_depreciation_assets_total",
    "Assets handled by depreciation runs",
    ["outcome"]
)

depreciation_amount_total = Counter(
    "adminhub_depreciation_amount_total",
    "Sum of depreciation amounts posted"
)


def record_transition(entity: str, to_status) -> None:
    workflow_transitions_total.labels(entity=entity, to_status=str(getattr(to_status, "value", to_status))).inc()


def record_depreciation(outcome: str, amount: float = 0.0) -> None:
    depreciation_assets_total.labels(outcome=outcome).inc()
    if amount > 0:
        depreciation_amount_total.inc(amount)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for all requests."""

    async def dispatch(self, request: Request, call_next) -> Response:
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = self._normalize_path(request.url.path)

        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.perf_counter() - start_time
            http_exceptions_total.labels(
                method=method,
                path=path,
                exception_type=type(e).__name__
            ).inc()
            http_requests_total.labels(method=method, path=path, status=500).inc()
            http_request_duration_seconds.labels(method=method, path=path).observe(duration)
            raise

        duration = time.perf_counter() - start_time
        http_requests_total.labels(method=method, path=path, status=response.status_code).inc()
        http_request_duration_seconds.labels(method=method, path=path).observe(duration)
        return response

    def _normalize_path(self, path: str) -> str:
        """Replace numeric IDs in path with placeholder to reduce cardinality."""
        normalized = re.sub(r'/\d+', '/{id}', path)
        parts = normalized.split('/')[:6]
        return '/'.join(parts)


async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics endpoint handler."""
    return PlainTextResponse(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
