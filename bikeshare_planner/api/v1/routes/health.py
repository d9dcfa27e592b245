"""Health check endpoints."""

import httpx
from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from bikeshare_planner.api.deps import get_engine, get_route_cache
from bikeshare_planner.db.session import get_db
from bikeshare_planner.services.route_cache import RouteCache
from bikeshare_planner.services.routing.engine import RoutingEngine

router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness_check(
    response: Response,
    db: AsyncSession = Depends(get_db),
    engine: RoutingEngine = Depends(get_engine),
    cache: RouteCache = Depends(get_route_cache),
):
    """Readiness of the station database, the routing engine and Redis.

    Returns HTTP 503 if any of them is unavailable.
    """
    checks = {
        "database": False,
        "graphhopper": False,
        "redis": False,
    }
    errors = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as e:
        errors["database"] = str(e)

    try:
        engine_response = await engine.client.get(f"{engine.graphhopper_url}/health", timeout=5.0)
        checks["graphhopper"] = engine_response.status_code == 200
    except httpx.HTTPError as e:
        errors["graphhopper"] = str(e)

    try:
        checks["redis"] = await cache.ping()
    except Exception as e:
        errors["redis"] = str(e)

    all_healthy = all(checks.values())
    if not all_healthy:
        response.status_code = 503

    result = {
        "status": "ready" if all_healthy else "not_ready",
        "checks": checks,
    }
    if errors:
        result["errors"] = errors

    return result
