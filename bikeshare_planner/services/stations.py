"""Station lookup for journey planning.

``StationDirectory`` reads the station inventory from PostGIS.
``StationLocator`` turns a coordinate into a usable rental station, falling
back to a plain inventory scan when the nearby search comes up empty or fails.
"""

import asyncio
import logging
from typing import Callable, List, Optional, Tuple

from geoalchemy2 import Geography, Geometry
from geoalchemy2.functions import ST_Distance, ST_MakePoint, ST_SetSRID, ST_X, ST_Y
from sqlalchemy import cast, select
from sqlalchemy.ext.asyncio import AsyncSession

from bikeshare_planner.config import settings
from bikeshare_planner.db.session import async_session_maker
from bikeshare_planner.models.station import Station
from bikeshare_planner.schemas.common import Coordinate
from bikeshare_planner.schemas.station import RouteStation, StationSnapshot, StationStatus
from bikeshare_planner.services.routing.geometry import haversine_distance

logger = logging.getLogger(__name__)


class StationUnavailable(Exception):
    """Raised when no usable station exists near a required coordinate."""

    def __init__(self, side: str, coordinate: Optional[Coordinate] = None):
        self.side = side
        self.coordinate = coordinate
        location = f" ({coordinate.lat}, {coordinate.lng})" if coordinate else ""
        super().__init__(f"No available bike-share station near {side}{location}")


class StationDirectory:
    """Read access to the station inventory."""

    def __init__(self, session_factory: Callable[[], AsyncSession] = async_session_maker):
        self._session_factory = session_factory

    def _base_query(self):
        geometry = cast(Station.location, Geometry)
        return select(
            Station.station_id,
            Station.station_number,
            Station.station_name,
            ST_Y(geometry).label("latitude"),
            ST_X(geometry).label("longitude"),
            Station.current_bikes,
            Station.status,
        )

    async def find_nearby_stations(
        self, latitude: float, longitude: float, limit: Optional[int] = None
    ) -> List[StationSnapshot]:
        """Closest available stations to a point, nearest first."""
        point = cast(ST_SetSRID(ST_MakePoint(longitude, latitude), 4326), Geography)
        distance = ST_Distance(Station.location, point).label("distance")

        query = (
            self._base_query()
            .add_columns(distance)
            .where(Station.status == StationStatus.AVAILABLE)
            .order_by(distance)
            .limit(limit or settings.nearby_station_limit)
        )

        async with self._session_factory() as session:
            result = await session.execute(query)
            return [self._to_snapshot(row) for row in result.mappings()]

    async def find_all(self) -> List[StationSnapshot]:
        """Every station in the inventory, regardless of status."""
        async with self._session_factory() as session:
            result = await session.execute(self._base_query())
            return [self._to_snapshot(row) for row in result.mappings()]

    @staticmethod
    def _to_snapshot(row) -> StationSnapshot:
        return StationSnapshot(
            id=row["station_id"],
            number=row["station_number"],
            name=row["station_name"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            current_bikes=row["current_bikes"] or 0,
            status=row["status"],
            distance=row.get("distance"),
        )


class StationLocator:
    """Resolves coordinates to nearby rental stations that have bikes."""

    def __init__(self, directory: StationDirectory):
        self.directory = directory

    async def find_nearest(self, coordinate: Coordinate) -> Optional[RouteStation]:
        """Nearest usable station, or ``None`` when there is none.

        Tiers:
        1. Nearby search in the directory.
        2. When that is empty, scan the whole inventory for available stations
           with bikes and take the closest.
        3. When the nearby search raises, log it and run the scan once.
        """
        try:
            nearby = await self.directory.find_nearby_stations(coordinate.lat, coordinate.lng)
        except Exception as e:
            logger.error(f"Nearby station search failed at ({coordinate.lat}, {coordinate.lng}): {e}")
            logger.warning("Retrying station lookup with a direct inventory scan")
            return await self._nearest_from_inventory(coordinate)

        if nearby:
            return RouteStation.from_snapshot(nearby[0])

        logger.warning(
            f"Nearby search found no station at ({coordinate.lat}, {coordinate.lng}), "
            f"scanning inventory"
        )
        station = await self._nearest_from_inventory(coordinate)
        if station is None:
            logger.warning(f"No available station near ({coordinate.lat}, {coordinate.lng})")
        return station

    async def find_pair(
        self, start: Coordinate, end: Coordinate
    ) -> Tuple[RouteStation, RouteStation]:
        """Stations for both ends of a journey, looked up concurrently.

        Returns ``(start_station, end_station)``.
        """
        start_station, end_station = await asyncio.gather(
            self.find_nearest(start),
            self.find_nearest(end),
        )

        if start_station is None:
            raise StationUnavailable("start", start)
        if end_station is None:
            raise StationUnavailable("end", end)

        return start_station, end_station

    async def find_single(self, coordinate: Coordinate, purpose: str = "route") -> RouteStation:
        """Station for round-trip and circular flows."""
        station = await self.find_nearest(coordinate)
        if station is None:
            raise StationUnavailable(purpose, coordinate)
        return station

    async def _nearest_from_inventory(self, coordinate: Coordinate) -> Optional[RouteStation]:
        candidates = await self.scan_inventory(coordinate)
        if not candidates:
            return None
        return RouteStation.from_snapshot(candidates[0])

    async def scan_inventory(self, coordinate: Coordinate) -> List[StationSnapshot]:
        """Available stations with bikes, nearest first, capped at the fallback limit."""
        try:
            stations = await self.directory.find_all()
        except Exception as e:
            logger.error(f"Station inventory scan failed: {e}")
            return []

        usable = [
            station.model_copy(update={
                "distance": haversine_distance(
                    coordinate.lat, coordinate.lng, station.latitude, station.longitude
                )
            })
            for station in stations
            if station.status == StationStatus.AVAILABLE and station.current_bikes > 0
        ]
        usable.sort(key=lambda s: s.distance)
        return usable[:settings.fallback_station_limit]
