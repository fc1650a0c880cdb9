"""Request tracing, access logging and latency metrics"""

import logging
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from settlement_gateway.infrastructure.observability.metrics import request_duration_histogram

REQUEST_ID_HEADER = "X-Request-ID"

# Health and scrape endpoints stay out of access logs and latency metrics
UNTRACKED_PATHS = ("/health", "/metrics")


def route_template(request: Request) -> str:
    """Matched route path (e.g. /v1/sessions/{session_id}); raw path when nothing matched"""
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's request id or assign one, echo it back and log the outcome"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        if request.url.path not in UNTRACKED_PATHS:
            logging.info(
                "Request completed",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "route": route_template(request),
                    "session_id": request.scope.get("path_params", {}).get("session_id"),
                    "status": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record HTTP latency per route template so session ids never become label values"""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in UNTRACKED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        request_duration_histogram.labels(
            method=request.method,
            endpoint=route_template(request),
            status=response.status_code,
        ).observe(time.perf_counter() - started)
        return response
