# quotefeed/observability.py
from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# ---- Prometheus metrics (low-cardinality labels) ----
REQUEST_COUNT = Counter(
    "qf_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "qf_http_request_duration_seconds",
    "HTTP request latency (seconds)",
    buckets=(0.005, 0.01, 0.02, 0.05, 0.1, 0.2, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# outcome: fresh | simulated | fetched | fallback_simulated | fallback_mock
QUOTE_RESPONSES = Counter(
    "qf_quote_responses_total",
    "Quote sets served, by how they were produced",
    ["market", "outcome"],
)

# result: ok | rate_limited | failed | invalid_price | blocked
UPSTREAM_CALLS = Counter(
    "qf_upstream_calls_total",
    "Upstream provider calls by result",
    ["result"],
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

    # label by route template so unmatched paths don't explode label cardinality
    route = request.scope.get("route")
    path = getattr(route, "path", None) or "unmatched"
    status = str(response.status_code)

    REQUEST_COUNT.labels(method=request.method, path=path, status=status).inc()
    REQUEST_LATENCY.observe(elapsed)

    logging.getLogger("request").info(
        json.dumps(
            {
                "method": request.method,
                "path": request.url.path,
                "query": str(request.url.query) or None,
                "status": status,
                "duration_s": round(elapsed, 6),
            }
        )
    )
    return response
