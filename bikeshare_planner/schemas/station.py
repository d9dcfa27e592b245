"""Bike-share station schemas."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from bikeshare_planner.schemas.common import Coordinate


class StationStatus(str, Enum):
    """Rental availability of a station."""

    AVAILABLE = "available"
    EMPTY = "empty"
    INACTIVE = "inactive"


class StationSnapshot(BaseModel):
    """Station row as read from the station directory."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    number: Optional[str] = None
    name: str
    latitude: float
    longitude: float
    current_bikes: int = 0
    status: StationStatus = StationStatus.AVAILABLE
    distance: Optional[float] = Field(None, description="Meters from the query point, when known")


class RouteStation(BaseModel):
    """Station attached to an itinerary. Read-only snapshot."""

    model_config = ConfigDict(frozen=True)

    id: str
    number: str
    name: str
    lat: float
    lng: float
    current_bikes: int = 0

    @classmethod
    def from_snapshot(cls, station: StationSnapshot) -> "RouteStation":
        return cls(
            id=station.id,
            number=station.number or station.id,
            name=station.name,
            lat=station.latitude,
            lng=station.longitude,
            current_bikes=station.current_bikes,
        )

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.lat, lng=self.lng)
