"""
Main FastAPI application for the Sweepstakes Wager Ledger API.
"""
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import text

from wager_ledger.core.config import settings
from wager_ledger.core.database import get_session_factory, init_db, session_scope
from wager_ledger.core.exceptions import (
    CapacityExceeded,
    ConflictError,
    InsufficientFunds,
    InvalidInputError,
    LedgerError,
    NotFoundError,
    StorageFailure,
)
from wager_ledger.core.logging import configure_logging, get_logger
from wager_ledger.core.middleware import CorrelationIdMiddleware
from wager_ledger.core.rate_limit import limiter
from wager_ledger.core.scheduler import get_scheduler, start_scheduler, stop_scheduler
from wager_ledger.services.container import WagerServices, build_services
from wager_ledger.api.routes import ledger, poker, sports, sweepstakes

# Configure structured logging (JSON in deployed environments, colored locally)
configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)

# Most specific first
ERROR_STATUS = [
    (NotFoundError, 404),
    (InvalidInputError, 400),
    (InsufficientFunds, 400),
    (CapacityExceeded, 409),
    (ConflictError, 409),
    (StorageFailure, 503),
]


def status_for(exc: LedgerError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 400


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = status_for(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(
        f"{request.method} {request.url.path} failed: {exc.code}",
        extra={"error": exc.code, "status": status_code},
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    """
    Build the application.

    Services already attached to ``app.state.services`` before startup are
    used as-is. Otherwise the lifespan builds them from settings, creates the
    tables, loads the event catalog and starts the scheduler.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        owns_services = getattr(app.state, "services", None) is None

        if owns_services:
            init_db()
            catalog_path = settings.EVENT_CATALOG_PATH
            if catalog_path and not Path(catalog_path).exists():
                logger.warning(f"Event catalog {catalog_path} not found, serving events from the database only")
                catalog_path = None
            app.state.services = build_services(
                get_session_factory(),
                catalog_path=catalog_path,
                currency=settings.CURRENCY,
            )
            app.state.services.catalog.load_catalog()

            if settings.SCHEDULER_ENABLED:
                await start_scheduler(
                    app.state.services,
                    refresh_seconds=settings.EVENT_CACHE_REFRESH_SECONDS,
                    sweep_seconds=settings.RESOLUTION_SWEEP_SECONDS,
                )

        logger.info("Application started")

        yield

        if owns_services:
            if settings.SCHEDULER_ENABLED:
                await stop_scheduler()
            app.state.services = None
        logger.info("Shutting down application")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Sweeps-coin balance ledger for poker tables and sports parlays",
        lifespan=lifespan
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(LedgerError, ledger_error_handler)

    # Add correlation ID middleware (must be added before CORS for proper header handling)
    app.add_middleware(CorrelationIdMiddleware)

    # Initialize Prometheus metrics BEFORE including routes
    Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # API v1 - all routes use the /api/v1/ prefix for versioning
    app.include_router(ledger.router, prefix="/api/v1")
    app.include_router(poker.router, prefix="/api/v1")
    app.include_router(sports.router, prefix="/api/v1")
    app.include_router(sweepstakes.router, prefix="/api/v1")

    @app.get("/")
    @limiter.limit("60/minute")
    async def root(request: Request):
        """Root endpoint with API information."""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running",
            "currency": settings.CURRENCY,
            "endpoints": {
                "api_version": "v1",
                "ledger": "/api/v1/ledger",
                "poker": "/api/v1/poker",
                "sports": "/api/v1/sports",
                "sweepstakes": "/api/v1/sweepstakes",
                "docs": "/docs",
                "health": "/health",
                "metrics": "/metrics"
            }
        }

    @app.get("/health")
    @limiter.limit("120/minute")  # Higher limit for health checks
    async def health_check(request: Request):
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION
        }

    @app.get("/api/health")
    @limiter.limit("60/minute")
    def api_health(request: Request):
        """Detailed API health check with component-level status."""
        health_status = {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "components": {}
        }
        wager_services: WagerServices = request.app.state.services

        try:
            with session_scope(wager_services.session_factory) as db:
                db.execute(text("SELECT 1"))
            health_status["components"]["database"] = {"status": "connected"}
        except StorageFailure as e:
            logger.error(f"Database health check failed: {e}")
            health_status["components"]["database"] = {"status": "unhealthy", "error": e.message}
            health_status["status"] = "degraded"

        catalog = wager_services.catalog
        health_status["components"]["event_cache"] = {
            "status": "loaded" if catalog.refreshed_at else "empty",
            "refreshed_at": catalog.refreshed_at.isoformat() if catalog.refreshed_at else None,
        }

        scheduler = get_scheduler()
        if scheduler and scheduler.running:
            jobs = scheduler.scheduler.get_jobs() if scheduler.scheduler else []
            health_status["components"]["scheduler"] = {
                "status": "running",
                "jobs_count": len(jobs),
                "jobs": [{"id": j.id, "name": j.name} for j in jobs]
            }
        else:
            health_status["components"]["scheduler"] = {"status": "stopped"}

        return health_status

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("wager_ledger.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
