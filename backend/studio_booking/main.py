"""
Studio Booking API - Main Application Entry Point

A booking and payment service providing:
- Slot availability derived from weekly templates and live bookings
- Hosted checkout with webhook-driven, idempotent reconciliation
- Admin cancellation with processor refunds
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from studio_booking.core.config import get_settings
from studio_booking.core.exceptions import BookingServiceError
from studio_booking.core.logging import setup_logging, get_logger
from studio_booking.core.metrics import metrics_endpoint
from studio_booking.api.router import api_router
from studio_booking.api.middleware import RequestLoggingMiddleware
from studio_booking.db.session import AsyncSessionLocal
from studio_booking.services.auth_service import ensure_bootstrap_admin
from studio_booking.services.cache_service import get_redis, close_redis, get_cache_stats

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    if settings.BOOTSTRAP_ADMIN_EMAIL:
        async with AsyncSessionLocal() as db:
            await ensure_bootstrap_admin(db)
            await db.commit()

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Booking, hosted checkout and payment reconciliation API",
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


@app.exception_handler(BookingServiceError)
async def booking_service_error_handler(request: Request, exc: BookingServiceError):
    if exc.status_code >= 500:
        logger.error("request_error", error_type=type(exc).__name__, detail=exc.message)
    else:
        logger.info("request_rejected", error_type=type(exc).__name__, detail=exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
