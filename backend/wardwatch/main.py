"""
WardWatch Alerts API
====================

Periodic alert detection for municipal field-worker attendance.

Main Features:
- Scheduled rule checks over worker attendance and geo-fencing data
- One alert per worker/supervisor, rule and day
- Optional SMS delivery of new alerts
- Alert listing, dashboard counts and acknowledgment for EOs and admins
- Manual trigger of the checks for administrators
"""

import logging
import time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from wardwatch.api.v1.api import api_router
from wardwatch.core.config import settings
from wardwatch.core.database import SessionLocal, get_database_info, init_db
from wardwatch.core.error_handling import database_error_handler
from wardwatch.core.rate_limit import RATE_LIMITS, limiter, rate_limit_exceeded_handler
from wardwatch.services.alert_engine import AlertEngine
from wardwatch.services.notification_service import build_notifier
from wardwatch.services.scheduler import SchedulerService

logging.basicConfig(format="%(message)s", level=settings.LOG_LEVEL.upper())

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

VERSION = "1.0.0"


def build_scheduler() -> SchedulerService:
    """Wire the alert engine to the application database and notifier."""
    engine = AlertEngine(SessionLocal, notifier=build_notifier())
    return SchedulerService(engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle manager for FastAPI application.
    Handles startup and shutdown tasks.
    """
    logger.info("Starting WardWatch Alerts API")

    logger.info(
        "Configuration loaded",
        environment=settings.ENVIRONMENT,
        alert_timezone=settings.ALERT_TIMEZONE,
        schedule_minutes=settings.ALERT_SCHEDULE_MINUTES,
        cutoff_hour=settings.ALERT_CHECK_AFTER_HOUR,
        geo_threshold=settings.ALERT_GEO_VIOLATIONS_THRESHOLD,
        sms_enabled=bool(settings.SMS_GATEWAY_URL),
    )

    logger.info("Database configured", **get_database_info())

    if settings.AUTH_DISABLED:
        logger.critical(
            "⚠️  SECURITY WARNING: AUTH_DISABLED=true - every request is treated as admin. "
            "DO NOT use in production!"
        )

    # In production the tables are managed by migrations; this only fills gaps.
    try:
        await init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.warning(f"Database initialization skipped or failed: {e}")

    app.state.alert_scheduler = build_scheduler()
    if settings.ALERT_SCHEDULER_ENABLED:
        app.state.alert_scheduler.start()
        logger.info("Alert scheduler started")
    else:
        logger.info("Alert scheduler disabled (ALERT_SCHEDULER_ENABLED=false)")

    logger.info("WardWatch Alerts API started successfully")

    yield

    # Shutdown
    app.state.alert_scheduler.stop()
    logger.info("Shutting down WardWatch Alerts API")


app = FastAPI(
    title="WardWatch Alerts API",
    description=__doc__,
    version=VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_exception_handler(SQLAlchemyError, database_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.ENVIRONMENT.lower() in {"production", "prod"}:
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.ALLOWED_HOSTS
    )
else:
    logger.warning(
        "TrustedHostMiddleware disabled for %s environment",
        settings.ENVIRONMENT
    )


@app.middleware("http")
async def log_requests(request, call_next):
    """Log every request with its duration; the duration is also returned in X-Process-Time."""
    start_time = time.time()

    logger.info(
        "HTTP request started",
        method=request.method,
        path=request.url.path,
        query=request.url.query or None,
        client_ip=request.client.host if request.client else None,
    )

    response = await call_next(request)

    duration = time.time() - start_time
    response.headers["X-Process-Time"] = str(duration)
    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration=f"{duration:.4f}s",
    )

    return response


@app.get("/health")
@limiter.limit(RATE_LIMITS["health"])
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and monitoring.

    Returns:
        dict: Health status, database state and scheduler state
    """
    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
        database_status = "healthy"
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        database_status = "unhealthy"

    scheduler = getattr(request.app.state, "alert_scheduler", None)
    scheduler_status = "running" if scheduler is not None and scheduler.is_running else "stopped"
    last_run_at = scheduler.get_last_run_at() if scheduler is not None else None

    return {
        "status": "healthy" if database_status == "healthy" else "unhealthy",
        "timestamp": time.time(),
        "version": VERSION,
        "components": {
            "database": database_status,
            "scheduler": scheduler_status,
        },
        "last_alert_run_at": last_run_at.isoformat() if last_run_at else None,
    }


@app.get("/")
async def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "WardWatch Alerts API",
        "version": VERSION,
        "docs_url": "/docs" if settings.DEBUG else None,
        "health_url": "/health"
    }


app.include_router(api_router, prefix="/api/v1")


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """
    Global exception handler for unhandled errors.
    """
    logger.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        url=str(request.url),
        method=request.method,
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "timestamp": time.time()
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "wardwatch.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info"
    )
