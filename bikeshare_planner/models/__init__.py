# Database models
from bikeshare_planner.models.base import Base
from bikeshare_planner.models.station import Station

__all__ = ["Base", "Station"]
