"""Journey search and route detail endpoints."""

import logging
from typing import Any, Awaitable, Dict

from fastapi import APIRouter, Depends, Request
from redis.exceptions import RedisError

from bikeshare_planner.api.deps import get_planner, get_route_cache
from bikeshare_planner.core.exceptions import (
    ResourceNotFoundException,
    RoutingException,
    ServiceUnavailableException,
    StationUnavailableException,
    ValidationException,
    get_request_id,
)
from bikeshare_planner.schemas.routing import (
    CircularRouteRequest,
    FullJourneyRequest,
    JourneyResult,
)
from bikeshare_planner.services.route_cache import RouteCache
from bikeshare_planner.services.routing.builder import without_instructions
from bikeshare_planner.services.routing.engine import NoRouteFound, RoutingEngineError
from bikeshare_planner.services.routing.journey import JourneyPlanner, JourneyValidationError
from bikeshare_planner.services.stations import StationUnavailable

logger = logging.getLogger(__name__)

router = APIRouter()


async def _respond(planning: Awaitable[JourneyResult], request_id: str) -> JourneyResult:
    """Await a planner call and translate domain failures into API errors."""
    try:
        result = await planning
    except JourneyValidationError as e:
        raise ValidationException(detail=str(e))
    except StationUnavailable as e:
        raise StationUnavailableException(detail=str(e))
    except NoRouteFound as e:
        raise RoutingException(detail=str(e))
    except RoutingEngineError as e:
        logger.error(f"[{request_id}] Routing engine failure: {e}")
        raise ServiceUnavailableException(service="Routing engine", reason=str(e))

    return result.model_copy(update={"routes": without_instructions(result.routes)})


@router.post("/full-journey", response_model=JourneyResult, response_model_exclude_none=True)
async def full_journey(
    journey_request: FullJourneyRequest,
    request: Request,
    planner: JourneyPlanner = Depends(get_planner),
) -> JourneyResult:
    """
    Plan a bike-share journey between two points.

    The request shape decides the journey:
    - no waypoints: walk, ride between the nearest stations, walk
    - waypoints: ride through them in order
    - end equal to start: round trip through the waypoints (at least one)

    Returns up to three itineraries: bike lane priority, shortest, fastest.
    """
    return await _respond(
        planner.plan(journey_request.to_journey_request()),
        get_request_id(request),
    )


@router.post("/round-trip/search", response_model=JourneyResult, response_model_exclude_none=True)
async def search_round_trip(
    journey_request: FullJourneyRequest,
    request: Request,
    planner: JourneyPlanner = Depends(get_planner),
) -> JourneyResult:
    """
    Ride from the station nearest ``start`` to ``end`` and back again.

    Waypoints, when given, are visited on the way out.
    """
    return await _respond(
        planner.plan_out_and_back(
            journey_request.start, journey_request.end, journey_request.waypoints
        ),
        get_request_id(request),
    )


@router.post("/round-trip/recommend", response_model=JourneyResult, response_model_exclude_none=True)
async def recommend_circular_route(
    circular_request: CircularRouteRequest,
    request: Request,
    planner: JourneyPlanner = Depends(get_planner),
) -> JourneyResult:
    """
    Suggest loops of roughly ``target_distance`` meters from the nearest station.

    Loop lengths stay within 10% of the target; fewer than three loops may
    come back when the area offers little variety.
    """
    return await _respond(
        planner.plan(circular_request.to_journey_request()),
        get_request_id(request),
    )


@router.get("/{route_id}")
async def get_route_detail(
    route_id: str,
    request: Request,
    cache: RouteCache = Depends(get_route_cache),
) -> Dict[str, Any]:
    """
    Full record of a route returned by a recent search, instructions included.

    Records expire a few minutes after the search; an expired id is a 404.
    """
    try:
        record = await cache.get(route_id)
    except RedisError as e:
        logger.error(f"[{get_request_id(request)}] Route cache read failed: {e}")
        raise ServiceUnavailableException(service="Route cache", reason=str(e))

    if record is None:
        raise ResourceNotFoundException(resource="Route", resource_id=route_id)
    return record
