"""FastAPI application entry point."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from bikeshare_planner.api.v1.router import api_router
from bikeshare_planner.config import settings
from bikeshare_planner.core.exceptions import register_exception_handlers
from bikeshare_planner.db.session import dispose_engine, engine
from bikeshare_planner.middleware import RequestLoggingMiddleware, setup_logging
from bikeshare_planner.services.route_cache import RouteCache
from bikeshare_planner.services.routing.builder import RouteBuilder
from bikeshare_planner.services.routing.engine import RoutingEngine
from bikeshare_planner.services.routing.journey import JourneyPlanner
from bikeshare_planner.services.routing.optimizer import RouteOptimizer
from bikeshare_planner.services.stations import StationDirectory, StationLocator

# Setup logging early
setup_logging()
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


def validate_startup_settings() -> None:
    """
    Check configuration at startup.
    Exits with error in production if the configuration is unsafe.
    """
    errors = settings.validate_production_settings()

    if errors:
        logger.error("=" * 60)
        logger.error("CONFIGURATION ERRORS")
        logger.error("=" * 60)
        for error in errors:
            logger.error(f"  - {error}")
        logger.error("=" * 60)

        if settings.is_production():
            logger.critical("Refusing to start in production with insecure configuration!")
            sys.exit(1)

    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Routing engine: {settings.graphhopper_url}")
    logger.info(f"Route records expire after {settings.route_cache_ttl_seconds}s")
    logger.info(f"Debug Mode: {settings.debug}")


def attach_components(app: FastAPI) -> None:
    """Build the planning pipeline once and share it through ``app.state``."""
    routing_engine = RoutingEngine()
    route_cache = RouteCache()
    locator = StationLocator(StationDirectory())
    optimizer = RouteOptimizer(routing_engine)
    builder = RouteBuilder(routing_engine)

    app.state.engine = routing_engine
    app.state.route_cache = route_cache
    app.state.planner = JourneyPlanner(locator, routing_engine, optimizer, builder, cache=route_cache)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown."""
    logger.info(f"Starting {settings.app_name}...")
    validate_startup_settings()

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection established")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        if settings.is_production():
            sys.exit(1)

    attach_components(app)
    logger.info(f"{settings.app_name} started successfully")

    yield

    logger.info("Shutting down...")
    await app.state.route_cache.close()
    logger.info("Pending route records flushed, Redis connection closed")
    await app.state.engine.close()
    await dispose_engine()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.app_name,
    description="""
Bike-share trip planning API. Combines walking legs and bike legs between
rental stations into complete journeys.

## Journeys

- Point to point, optionally through up to three waypoints
- Round trips that return the bike to the starting station
- Circular courses of a requested length

Each search returns up to three itineraries: bike lane priority, shortest and
fastest. Full route records (with turn-by-turn instructions) can be fetched by
`route_id` for a few minutes after the search.

## Error Responses

All errors follow a consistent format:
```json
{
  "error": {
    "code": "ERROR_CODE",
    "message": "Human-readable message",
    "request_id": "abc123"
  }
}
```
    """,
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production() else None,
    redoc_url="/redoc" if not settings.is_production() else None,
    openapi_url="/openapi.json" if not settings.is_production() else None,
)

# ============================================================================
# Register Exception Handlers (before middleware)
# ============================================================================
register_exception_handlers(app)

# ============================================================================
# Middleware Stack (order matters - first added = last executed)
# ============================================================================

app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=["X-Request-ID"],
    max_age=600,
)

# ============================================================================
# API Routes
# ============================================================================

app.include_router(api_router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness probe."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint with API information.
    """
    response = {
        "name": settings.app_name,
        "version": API_VERSION,
        "health": "/health",
    }

    if not settings.is_production():
        response["docs"] = "/docs"

    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
