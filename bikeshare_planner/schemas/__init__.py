# Pydantic schemas
from bikeshare_planner.schemas.common import BoundingBox, Coordinate, GeoJSONLineString
from bikeshare_planner.schemas.engine import EnginePath, EngineProfile, EngineResponse
from bikeshare_planner.schemas.routing import (
    CategorizedPath,
    CircularRouteRequest,
    FullJourneyRequest,
    Itinerary,
    JourneyRequest,
    JourneyResult,
    RouteCategory,
    RouteSegment,
    RouteSummary,
    SegmentType,
)
from bikeshare_planner.schemas.station import RouteStation, StationSnapshot, StationStatus

__all__ = [
    "BoundingBox",
    "Coordinate",
    "GeoJSONLineString",
    "EnginePath",
    "EngineProfile",
    "EngineResponse",
    "CategorizedPath",
    "CircularRouteRequest",
    "FullJourneyRequest",
    "Itinerary",
    "JourneyRequest",
    "JourneyResult",
    "RouteCategory",
    "RouteSegment",
    "RouteSummary",
    "SegmentType",
    "RouteStation",
    "StationSnapshot",
    "StationStatus",
]
