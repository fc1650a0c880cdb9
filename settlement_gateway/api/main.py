"""FastAPI application factory"""

import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from settlement_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from settlement_gateway.api.v1 import calculate, sessions, assistant, history
from settlement_gateway.infrastructure.observability.logging import setup_logging
from settlement_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render errors as {"error": ...}; dict details are passed through"""
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def malformed_body_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logging.warning(
        "Malformed request rejected",
        extra={"request_id": getattr(request.state, "request_id", "unknown"), "path": request.url.path},
    )
    return JSONResponse(status_code=400, content={"error": "Malformed request body"})


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Settlement Gateway",
        description="Structured-settlement offer calculation and guided intake service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Per-session turn locks, one registry per application
    app.state.session_locks = {}

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, malformed_body_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(calculate.router, prefix="/v1", tags=["offers"])
    app.include_router(history.router, prefix="/v1", tags=["offers"])
    app.include_router(sessions.router, prefix="/v1", tags=["sessions"])
    app.include_router(assistant.router, prefix="/v1", tags=["assistant"])

    return app


app = create_app()
