"""GraphHopper request and response schemas.

Only the fields the planner consumes are declared; anything else the engine
sends back is dropped during validation.
"""

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from bikeshare_planner.schemas.common import GeoJSONLineString


class EngineProfile(str, Enum):
    """Routing profiles configured on the GraphHopper server."""

    FOOT = "foot"
    SAFE_BIKE = "safe_bike"
    FAST_BIKE = "fast_bike"


BIKE_PROFILES = (EngineProfile.SAFE_BIKE, EngineProfile.FAST_BIKE)

# [start point index, end point index, label]
DetailInterval = Tuple[int, int, Optional[str]]


class EngineInstruction(BaseModel):
    """Turn-by-turn step returned by the engine."""

    model_config = ConfigDict(extra="ignore")

    distance: float = 0
    time: int = 0
    text: str = ""
    sign: int = 0
    interval: List[int] = Field(default_factory=list)
    street_name: Optional[str] = None


class PathDetails(BaseModel):
    """Per-interval annotations requested with ``details``."""

    model_config = ConfigDict(extra="ignore")

    road_class: Optional[List[DetailInterval]] = None
    bike_network: Optional[List[DetailInterval]] = None


class EnginePath(BaseModel):
    """One alternative path from a routing response."""

    model_config = ConfigDict(extra="ignore")

    distance: float = Field(..., ge=0, description="Meters")
    time: int = Field(..., ge=0, description="Milliseconds")
    ascend: float = 0
    descend: float = 0
    points: GeoJSONLineString = Field(default_factory=GeoJSONLineString)
    bbox: Optional[List[float]] = None
    instructions: List[EngineInstruction] = Field(default_factory=list)
    details: PathDetails = Field(default_factory=PathDetails)
    profile: Optional[str] = None

    @property
    def coordinates(self) -> List[List[float]]:
        return self.points.coordinates


class EngineInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    took: Optional[float] = None


class EngineResponse(BaseModel):
    """Body of ``POST /route``."""

    model_config = ConfigDict(extra="ignore")

    paths: List[EnginePath] = Field(default_factory=list)
    info: EngineInfo = Field(default_factory=EngineInfo)
