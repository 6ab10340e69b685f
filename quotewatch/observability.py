# quotewatch/observability.py
from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

# ---- Prometheus metrics (low-cardinality labels) ----
REQUEST_COUNT = Counter(
    "qw_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "qw_http_request_duration_seconds",
    "HTTP request latency (seconds)",
    buckets=(0.005, 0.01, 0.02, 0.05, 0.1, 0.2, 0.5, 1.0, 2.5, 5.0),
)

# outcome: "ok" or an ErrorCode value
QUOTE_FETCHES = Counter(
    "qw_quote_fetch_total",
    "Upstream quote lookups by outcome",
    ["outcome"],
)

TICKS = Counter(
    "qw_monitor_ticks_total",
    "Background monitoring ticks by outcome",
    ["outcome"],
)

ACTIVE_JOBS = Gauge(
    "qw_monitor_jobs_active",
    "Symbols with a live monitoring timer",
)


def metrics_endpoint():
    """Return Prometheus exposition format."""
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


# ---- Per-request timing + JSON request log ----
async def timing_middleware(request: Request, call_next: Callable):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - start

    path = request.url.path
    status = str(response.status_code)

    # Unknown paths would blow up label cardinality
    route = request.scope.get("route")
    path_label = getattr(route, "path", "<unmatched>")
    REQUEST_COUNT.labels(method=request.method, path=path_label, status=status).inc()
    REQUEST_LATENCY.observe(elapsed)

    logging.getLogger("request").info(
        json.dumps(
            {
                "method": request.method,
                "path": path,
                "status": status,
                "duration_s": round(elapsed, 6),
                "client": request.client.host if request.client else None,
            }
        )
    )
    return response
