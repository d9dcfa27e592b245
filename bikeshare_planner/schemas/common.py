"""Common schemas used across the application."""

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class Coordinate(BaseModel):
    """Geographic coordinate."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    lng: float = Field(..., ge=-180, le=180, description="Longitude in degrees")

    def to_lng_lat(self) -> List[float]:
        """GraphHopper point order."""
        return [self.lng, self.lat]


class GeoJSONLineString(BaseModel):
    """GeoJSON LineString geometry."""

    type: str = "LineString"
    coordinates: List[List[float]] = Field(
        default_factory=list, description="Array of [longitude, latitude, elevation?] coordinates"
    )


class BoundingBox(BaseModel):
    """Bounding box of a route or segment."""

    min_lat: float = 0.0
    min_lng: float = 0.0
    max_lat: float = 0.0
    max_lng: float = 0.0

    @classmethod
    def from_engine_bbox(cls, bbox: List[float]) -> "BoundingBox":
        """Parse a GraphHopper bbox ``[minLng, minLat, maxLng, maxLat]``."""
        if len(bbox) != 4:
            raise ValueError("Bounding box must have 4 values: min_lng,min_lat,max_lng,max_lat")
        return cls(
            min_lng=bbox[0],
            min_lat=bbox[1],
            max_lng=bbox[2],
            max_lat=bbox[3],
        )
