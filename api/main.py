"""
FastAPI API Service Entry Point
"""

import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.routes import public, staff
from booking.services.notification_service import NotificationService, RedisNotificationSink
from booking.workers.reconciliation_worker import run_reconciliation_worker
from shared.config import get_settings
from shared.exceptions import BookingError
from shared.logging_config import configure_logging

# Configure structured JSON logging on startup
configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Chairbook API",
    version="1.0.0",
)

# Load settings for CORS configuration
settings = get_settings()
origins = settings.CORS_ORIGINS.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Public booking link (no auth)
app.include_router(public.router)

# Staff board (Bearer JWT)
app.include_router(staff.router)


# =========================================================================
# LIFECYCLE
# =========================================================================
@app.on_event("startup")
async def start_background_services():
    """
    Start the notification service and the reconciliation worker.

    Both live on app.state so route dependencies and shutdown can reach them.
    """
    sinks = [RedisNotificationSink()] if settings.NOTIFICATIONS_REDIS_ENABLED else []
    notifier = NotificationService(
        ttl_seconds=settings.NOTIFICATION_TTL_SECONDS,
        purge_interval_seconds=settings.NOTIFICATION_PURGE_INTERVAL_SECONDS,
        forward_to=sinks,
    )
    await notifier.start()
    app.state.notification_service = notifier

    app.state.reconciliation_task = None
    if settings.RECONCILIATION_ENABLED:
        app.state.reconciliation_task = asyncio.create_task(
            run_reconciliation_worker(notifier, settings.RECONCILIATION_INTERVAL_SECONDS)
        )
    logger.info(
        f"API started (redis_forwarding={settings.NOTIFICATIONS_REDIS_ENABLED}, "
        f"reconciliation={settings.RECONCILIATION_ENABLED})"
    )


@app.on_event("shutdown")
async def stop_background_services():
    task = getattr(app.state, "reconciliation_task", None)
    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    notifier = getattr(app.state, "notification_service", None)
    if notifier is not None:
        await notifier.stop()
    logger.info("API background services stopped")


# =========================================================================
# ERROR TRANSLATION
# =========================================================================
@app.exception_handler(BookingError)
async def booking_exception_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Map typed booking failures to their HTTP status."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        f"{exc.error_code}: {exc.message}",
        extra={"request_path": request.url.path},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Return 400 with validation error details."""
    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation error",
            "error_code": "VALIDATION_ERROR",
            "details": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: ValidationError | RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


@app.get("/health")
async def health_check() -> JSONResponse:
    """
    Health check endpoint for Docker health checks and monitoring.

    Checks:
    - Database connectivity (SELECT 1 query)
    - Redis connectivity (PING command), only when Redis forwarding is enabled

    Returns:
        200 OK if all systems healthy
        503 Service Unavailable if degraded
    """
    from sqlalchemy import text

    from database.connection import get_async_session
    from shared.redis_client import get_redis_client

    notifier = getattr(app.state, "notification_service", None)
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "redis": "disabled",
        "notifications": "running" if notifier and notifier.is_running else "stopped",
    }
    status_code = 200

    # Check database connectivity
    try:
        async with get_async_session() as session:
            await session.execute(text("SELECT 1"))
            health_status["database"] = "connected"
    except Exception:
        health_status["database"] = "disconnected"
        health_status["status"] = "degraded"
        status_code = 503

    # Check Redis connectivity
    if settings.NOTIFICATIONS_REDIS_ENABLED:
        try:
            redis_client = get_redis_client()
            await redis_client.ping()
            health_status["redis"] = "connected"
        except Exception:
            health_status["redis"] = "disconnected"
            health_status["status"] = "degraded"
            status_code = 503

    return JSONResponse(status_code=status_code, content=health_status)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint"""
    return {"message": "Chairbook API - Use /health for health checks"}
