"""
Main FastAPI application for the Team Event Sync API.
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

from app.core.config import settings
from app.core.database import init_db, session_factory
from app.core.logging import configure_logging, get_logger
from app.core.middleware import CorrelationIdMiddleware
from app.core.rate_limit import HEALTH_LIMIT, PUBLIC_LIMIT, limiter
from app.core.scheduler import EventScheduler
from app.core import metrics
from app.api.routes import events, tba_stats
from app.services.tba.client import TbaApiClient

# Load environment variables from .env file
from dotenv import load_dotenv
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Configure structured logging (JSON by default, colored console when LOG_JSON=false)
configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    init_db()

    db = session_factory()
    try:
        client = TbaApiClient.from_config(db)
    finally:
        db.close()
    app.state.tba_client = client
    app.state.event_scheduler = None

    if settings.SCHEDULER_ENABLED:
        scheduler = EventScheduler(session_factory, client)
        app.state.event_scheduler = scheduler
        if await scheduler.start():
            logger.info("Event scheduler started")
        else:
            logger.info("Event scheduler idle (event tracking disabled or TBA API key not set)")
    else:
        logger.info("Event scheduler disabled by SCHEDULER_ENABLED=false")

    logger.info("Application started")

    yield

    # Shutdown
    if app.state.event_scheduler is not None:
        await app.state.event_scheduler.stop()
        logger.info("Event scheduler stopped")
    await client.close()
    logger.info("Shutting down application")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Live FRC event, match and team history data from The Blue Alliance for the team website",
    lifespan=lifespan
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add correlation ID middleware (must be added before CORS for proper header handling)
app.add_middleware(CorrelationIdMiddleware)

# Prometheus metrics must be set up before any routes are added
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API v1
app.include_router(events.router, prefix="/api/v1")
app.include_router(tba_stats.router, prefix="/api/v1")


@app.get("/")
@limiter.limit(PUBLIC_LIMIT)
async def root(request: Request):
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "endpoints": {
            "api_version": "v1",
            "events": {
                "summary": "/api/v1/events/summary",
                "matches": "/api/v1/events/matches",
                "status": "/api/v1/events/status",
                "webhook": "/api/v1/events/webhook/tba",
            },
            "tba_stats": "/api/v1/tba-stats",
            "docs": "/docs",
            "health": "/health",
            "metrics": "/metrics",
        }
    }


@app.get("/health")
@limiter.limit(HEALTH_LIMIT)
async def health_check(request: Request):
    """Health check with database and scheduler status."""
    health_status = {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "components": {}
    }

    try:
        db = session_factory()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
        health_status["components"]["database"] = {"status": "connected"}
        metrics.update_db_pool_metrics()
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health_status["components"]["database"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "degraded"

    scheduler = getattr(request.app.state, "event_scheduler", None)
    if scheduler is not None and scheduler.running:
        health_status["components"]["scheduler"] = {
            "status": "running",
            "jobs_count": len(scheduler.get_status()["jobs"]),
        }
    else:
        # Idle scheduler is expected outside competition season
        health_status["components"]["scheduler"] = {"status": "stopped"}

    client = getattr(request.app.state, "tba_client", None)
    health_status["components"]["tba"] = {
        "configured": bool(client and client.is_configured),
    }

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(status_code=status_code, content=health_status)


# Exception handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)}
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
