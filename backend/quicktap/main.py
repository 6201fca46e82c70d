"""
QuickTap Seat Reservations - Main Application Entry Point

Time-bounded seat leasing for the cafe floor:
- Atomic, all-or-nothing seat holds backed by a partial unique index
- Payment-gated confirmation (gateway HMAC signature or cash)
- Background reclamation of lapsed holds
- Structured logging with request correlation, Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quicktap.core.config import get_settings
from quicktap.core.logging import setup_logging, get_logger
from quicktap.core.metrics import metrics_endpoint
from quicktap.api.router import api_router
from quicktap.api.middleware import RequestLoggingMiddleware
from quicktap.db.session import SessionLocal
from quicktap.services.cache_service import get_redis, close_redis, get_cache_stats
from quicktap.services.sweeper import ReclamationSweeper

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
        seat_count=settings.SEAT_COUNT,
        hold_minutes=settings.HOLD_DURATION_MINUTES,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without seat status cache")

    sweeper = ReclamationSweeper(SessionLocal, interval_seconds=settings.SWEEP_INTERVAL_SECONDS)
    if settings.SWEEPER_ENABLED:
        sweeper.start()

    yield

    await sweeper.stop()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Seat reservation API with time-bounded holds and payment-gated confirmation",
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

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "seat_count": settings.SEAT_COUNT,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
