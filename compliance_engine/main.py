"""Compliance Document Engine - FastAPI Application."""

import time
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import structlog
from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from compliance_engine.config import settings
from compliance_engine.database import engine as db_engine
from compliance_engine.database import get_db, init_db
from compliance_engine.logger import configure_logging, get_logger
from compliance_engine.routers import document_types, documents, notifications
from compliance_engine.services import ComplianceEngine, NotificationPoller

# Initialize logging early
configure_logging()
logger = get_logger(__name__)

APP_VERSION = "0.1.0"


def _init_otel_instrumentation() -> None:
    """Initialize OpenTelemetry auto-instrumentation for FastAPI, SQLAlchemy, and HTTPX."""
    if not settings.otel_exporter_otlp_endpoint:
        return

    try:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
        from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

        FastAPIInstrumentor.instrument()
        SQLAlchemyInstrumentor().instrument(engine=db_engine.sync_engine)
        # Outbound calls to the compliance backend
        HTTPXClientInstrumentor().instrument()

        logger.info(
            "OTEL instrumentation initialized",
            components=["fastapi", "sqlalchemy", "httpx"],
        )
    except ImportError:
        logger.warning("OTEL instrumentation not available", exc_info=True)


_init_otel_instrumentation()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan - create services and read-receipt table on startup."""
    await init_db()
    compliance = ComplianceEngine.create()
    app.state.engine = compliance

    poller: NotificationPoller | None = None
    if settings.admin_feed_poll_enabled:
        poller = NotificationPoller(
            compliance.notifications.fetch_review_items,
            compliance.notifications.remember_review_items,
            name="admin-review-queue",
        )
        poller.start()

    logger.info("Application started", version=APP_VERSION, backend=settings.backend_api_url)
    yield

    if poller is not None:
        await poller.stop()
    await compliance.aclose()
    logger.info("Application shutting down")


app = FastAPI(
    title="Compliance Document Engine API",
    description="Document lifecycle, expiry tracking and notifications for compliance documents",
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.middleware("http")
async def logging_middleware(request: Request, call_next: Any) -> Response:
    """Middleware to inject Request-ID and log request details."""
    request_id = request.headers.get("X-Request-ID", str(uuid4()))

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )

    start_time = time.perf_counter()
    try:
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        logger.info(
            "HTTP Request",
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )

        response.headers["X-Request-ID"] = request_id
        return response
    except Exception as exc:
        duration = time.perf_counter() - start_time
        logger.exception(
            "HTTP Request Failed",
            duration_ms=round(duration * 1000, 2),
            error=str(exc),
        )
        raise


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler to ensure JSON response."""
    if settings.debug:
        detail = str(exc)
        trace = traceback.format_exc()
    else:
        detail = "An internal server error occurred. Please try again later."
        trace = None

    return JSONResponse(
        status_code=500,
        content={
            "detail": detail,
            "trace": trace,
            "request_id": structlog.contextvars.get_contextvars().get("request_id"),
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-User-Id", "X-User-Role", "X-Request-ID"],
)

app.include_router(document_types.router)
app.include_router(documents.router)
app.include_router(notifications.router)
app.include_router(notifications.admin_router)


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)) -> Response:
    """Report database connectivity. Backend outages degrade to stale data, not 503."""
    checks: dict[str, bool] = {}
    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as exc:
        logger.error(
            "Health check: database unavailable",
            error=str(exc),
            error_type=type(exc).__name__,
        )
        checks["database"] = False

    healthy = all(checks.values())
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": checks,
            "version": APP_VERSION,
        },
    )
