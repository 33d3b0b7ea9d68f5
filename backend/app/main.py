"""
Roll & Reserve API - Main Application Entry Point

Reservation core for board game shops:
- Reservations at shop tables and recurring shop events
- Players joining, confirming and leaving shared reservations, with push fan-out
- A scheduled job sending one "upcoming reservation" push per reservation
- Redis caching of the shop-events listing
- Structured logging with request and job correlation
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.errors import register_exception_handlers
from app.core.logging import setup_logging, get_logger
from app.core.metrics import metrics_endpoint
from app.api.router import api_router
from app.api.middleware import RequestLoggingMiddleware
from app.scheduler.upcoming_reservations_job import build_scheduler
from app.services.cache_service import get_redis, close_redis, get_cache_stats

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        timezone=settings.TIMEZONE,
    )

    # Initialize Redis connection
    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = build_scheduler(settings)
        scheduler.start()
        app.state.scheduler = scheduler
        logger.info(
            "scheduler_started",
            interval_minutes=settings.UPCOMING_INTERVAL_MINUTES,
            active_hours=settings.UPCOMING_ACTIVE_HOURS,
        )

    yield

    # Cleanup
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Reservations, shop events and player notifications for board game shops",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

# Routes
app.include_router(api_router)
app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], include_in_schema=False)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "scheduler": "enabled" if settings.SCHEDULER_ENABLED else "disabled",
        "cache": cache_stats,
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
