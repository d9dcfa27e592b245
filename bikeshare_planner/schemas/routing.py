"""Routing request and response schemas."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from bikeshare_planner.schemas.common import BoundingBox, Coordinate
from bikeshare_planner.schemas.engine import EngineInstruction, EnginePath
from bikeshare_planner.schemas.station import RouteStation


class RouteCategory(str, Enum):
    """Categories an itinerary can be ranked into, in presentation order."""

    BIKE_PRIORITY = "bike_priority"
    SHORTEST = "shortest"
    FASTEST = "fastest"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


CATEGORY_LABELS = {
    RouteCategory.BIKE_PRIORITY: "Bike lane priority",
    RouteCategory.SHORTEST: "Shortest distance",
    RouteCategory.FASTEST: "Fastest",
}

# Fixed order in which categories are selected and returned
CATEGORY_ORDER = (RouteCategory.BIKE_PRIORITY, RouteCategory.SHORTEST, RouteCategory.FASTEST)


class SegmentType(str, Enum):
    """Travel mode of an itinerary segment."""

    WALKING = "walking"
    BIKING = "biking"


class CategorizedPath(EnginePath):
    """Engine path selected as the representative of a category."""

    route_category: RouteCategory
    bike_road_ratio: float = Field(default=0, ge=0, le=100)
    route_id: str


class RouteSummary(BaseModel):
    """Summary statistics for a segment or a whole itinerary."""

    distance: float = Field(..., ge=0, description="Meters")
    time: int = Field(..., ge=0, description="Seconds")
    ascent: float = Field(default=0, ge=0, description="Meters climbed")
    descent: float = Field(default=0, ge=0, description="Meters descended")
    bike_road_ratio: Optional[float] = Field(
        default=None, ge=0, le=100, description="Percentage of bike distance on bike-friendly roads"
    )
    max_gradient: Optional[float] = Field(default=None, ge=0, description="Steepest uphill, percent")


class RouteGeometry(BaseModel):
    """Ordered [lng, lat, elevation?] points of a segment."""

    points: List[List[float]] = Field(default_factory=list)


class RouteSegment(BaseModel):
    """One leg of an itinerary."""

    type: SegmentType
    summary: RouteSummary
    bbox: BoundingBox
    geometry: RouteGeometry
    profile: Optional[str] = Field(None, description="Bike profile, biking segments only")
    start_station: Optional[RouteStation] = None
    end_station: Optional[RouteStation] = None
    instructions: Optional[List[EngineInstruction]] = None


class Itinerary(BaseModel):
    """Complete journey made of walking and biking segments."""

    route_category: RouteCategory
    route_label: str = Field(..., description="Display name of the category")
    route_id: Optional[str] = Field(None, description="Handle for the cached route record")
    summary: RouteSummary
    bbox: BoundingBox
    start_station: Optional[RouteStation] = None
    end_station: Optional[RouteStation] = None
    segments: List[RouteSegment] = Field(default_factory=list)


class JourneyRequest(BaseModel):
    """Planner input. Which fields are set decides the journey shape."""

    start: Coordinate
    end: Optional[Coordinate] = None
    waypoints: List[Coordinate] = Field(default_factory=list)
    target_distance: Optional[float] = Field(None, description="Meters, circular routes only")


class FullJourneyRequest(BaseModel):
    """Request body for point-to-point, multi-waypoint and round-trip search."""

    start: Coordinate = Field(..., description="Starting point")
    end: Coordinate = Field(..., description="Destination; equal to start for a round trip")
    waypoints: List[Coordinate] = Field(
        default_factory=list, max_length=3, description="Intermediate stops, in visiting order"
    )

    def to_journey_request(self) -> JourneyRequest:
        return JourneyRequest(start=self.start, end=self.end, waypoints=self.waypoints)


class CircularRouteRequest(BaseModel):
    """Request body for a distance-targeted circular course."""

    start: Coordinate = Field(..., description="Start and finish of the course")
    target_distance: float = Field(..., ge=100, le=50000, description="Desired course length in meters")

    def to_journey_request(self) -> JourneyRequest:
        return JourneyRequest(start=self.start, target_distance=self.target_distance)


class JourneyResult(BaseModel):
    """Planner output."""

    routes: List[Itinerary] = Field(default_factory=list)
    processing_time: float = Field(..., ge=0, description="Milliseconds")
