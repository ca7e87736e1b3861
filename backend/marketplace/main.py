"""
Service Marketplace API - Main Application Entry Point

Clients find local businesses, book a time slot for one of their services
and review the visit afterwards. Businesses manage services, availability
and the bookings they receive.

- Slot reservation is atomic: two clients can never hold the same slot
- Listing cache in Redis, invalidated on every change that affects it
- Structured logging with request correlation, Prometheus metrics
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace.api.deps import close_dependencies
from marketplace.api.middleware import RequestLoggingMiddleware
from marketplace.api.router import api_router
from marketplace.core.config import get_settings
from marketplace.core.exceptions import MarketplaceError
from marketplace.core.logging import get_logger, setup_logging
from marketplace.core.metrics import metrics_endpoint
from marketplace.services.cache_service import close_redis, get_cache_stats, get_redis

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
        storage=settings.STORAGE_BACKEND,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    yield

    await close_redis()
    await close_dependencies()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Local services marketplace: catalog, slot booking and reviews",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    if exc.status_code >= 500:
        logger.error("request_error", error=exc.code, detail=exc.detail)
    else:
        logger.info("request_rejected", error=exc.code, status_code=exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.code},
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "storage": settings.STORAGE_BACKEND,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
