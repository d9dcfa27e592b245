"""FastAPI dependencies exposing the components built at startup."""

from fastapi import Request

from bikeshare_planner.services.route_cache import RouteCache
from bikeshare_planner.services.routing.engine import RoutingEngine
from bikeshare_planner.services.routing.journey import JourneyPlanner


def get_planner(request: Request) -> JourneyPlanner:
    return request.app.state.planner


def get_route_cache(request: Request) -> RouteCache:
    return request.app.state.route_cache


def get_engine(request: Request) -> RoutingEngine:
    return request.app.state.engine
