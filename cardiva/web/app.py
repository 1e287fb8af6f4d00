"""Cardiva API application."""

from __future__ import annotations

from contextlib import asynccontextmanager
from uuid import uuid4

import asyncpg
import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.middleware.base import BaseHTTPMiddleware

from cardiva import __version__
from cardiva.config import get_config
from cardiva.core.logging import configure_logging
from cardiva.db.connection import close_db
from cardiva.realtime.feed import get_change_feed
from cardiva.realtime.pg_listener import PostgresChangeListener, asyncpg_dsn
from cardiva.web.routes import (
    admin,
    auth,
    dashboard,
    events,
    exports,
    health,
    inventory,
    review,
    rfps,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    configure_logging(config)
    listener: PostgresChangeListener | None = None

    if config.realtime.enabled and config.db.url.startswith("postgresql"):
        listener = PostgresChangeListener(
            asyncpg_dsn(config.db.url), get_change_feed(), channel=config.realtime.channel
        )
        try:
            await listener.start()
        except (OSError, asyncpg.PostgresError) as exc:
            logger.error("change_listener_unavailable", error=str(exc))
            listener = None

    yield

    if listener is not None:
        await listener.stop()
    await close_db()


app = FastAPI(
    title="Cardiva RFP Matching",
    description="Review of tender items matched against the Cardiva inventory",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# Request Logging Middleware
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        structlog.contextvars.clear_contextvars()

        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)

            logger.info(
                "request_completed",
                status_code=response.status_code,
            )
            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as exc:
            logger.error("request_failed", error=str(exc))
            raise


app.add_middleware(RequestLoggingMiddleware)

# Prometheus Metrics
Instrumentator().instrument(app).expose(app)


# Exception Handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    if exc.status_code >= 500:
        logger.error("http_error", status_code=exc.status_code, detail=exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=exc.headers,
    )


# Include Routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(rfps.router)
app.include_router(review.router)
app.include_router(inventory.router)
app.include_router(exports.router)
app.include_router(dashboard.router)
app.include_router(admin.router)
app.include_router(events.router)
