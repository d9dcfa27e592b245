"""Journey planner - decides the journey shape and drives the routing pipeline.

Every journey runs the same way: station lookup, then engine calls, then
category selection, then itinerary assembly. What differs per shape is which
points are routed and how the legs are stitched together.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from bikeshare_planner.config import settings
from bikeshare_planner.schemas.common import Coordinate
from bikeshare_planner.schemas.engine import EnginePath, EngineProfile
from bikeshare_planner.schemas.routing import (
    CATEGORY_ORDER,
    CategorizedPath,
    Itinerary,
    JourneyRequest,
    JourneyResult,
    RouteCategory,
)
from bikeshare_planner.schemas.station import RouteStation
from bikeshare_planner.services.route_cache import RouteCache
from bikeshare_planner.services.routing.builder import RouteBuilder
from bikeshare_planner.services.routing.engine import NoRouteFound, RoutingEngine
from bikeshare_planner.services.routing.optimizer import RouteOptimizer
from bikeshare_planner.services.stations import StationLocator

logger = logging.getLogger(__name__)


class JourneyShape(str, Enum):
    """The four request shapes the planner understands."""

    DIRECT = "direct"
    MULTI_WAYPOINT = "multi_waypoint"
    ROUND_TRIP = "round_trip"
    CIRCULAR = "circular"


class JourneyValidationError(ValueError):
    """Raised when a journey request cannot be planned as given."""
    pass


def is_same_location(a: Coordinate, b: Coordinate, tolerance: Optional[float] = None) -> bool:
    """Whether two coordinates differ by less than ``tolerance`` degrees on both axes."""
    tolerance = settings.round_trip_tolerance_degrees if tolerance is None else tolerance
    return abs(a.lat - b.lat) < tolerance and abs(a.lng - b.lng) < tolerance


def classify_journey(
    start: Coordinate,
    end: Optional[Coordinate] = None,
    waypoints: Sequence[Coordinate] = (),
    target_distance: Optional[float] = None,
) -> JourneyShape:
    """Pick the journey shape from which inputs are present.

    - target distance and no end: circular
    - end at the start (within tolerance): round trip, waypoints required
    - waypoints: multi-waypoint
    - otherwise: direct
    """
    if len(waypoints) > settings.max_waypoints:
        raise JourneyValidationError(f"At most {settings.max_waypoints} waypoints are supported")

    if target_distance is not None:
        if end is not None:
            raise JourneyValidationError("A circular route takes a target distance, not an end point")
        if target_distance <= 0:
            raise JourneyValidationError("Target distance must be greater than zero")
        return JourneyShape.CIRCULAR

    if end is None:
        raise JourneyValidationError("Either an end point or a target distance is required")

    if is_same_location(start, end):
        if not waypoints:
            raise JourneyValidationError("A round trip needs at least one waypoint")
        return JourneyShape.ROUND_TRIP

    if waypoints:
        return JourneyShape.MULTI_WAYPOINT
    return JourneyShape.DIRECT


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class JourneyPlanner:
    """Entry point for every journey search."""

    def __init__(
        self,
        locator: StationLocator,
        engine: RoutingEngine,
        optimizer: RouteOptimizer,
        builder: RouteBuilder,
        cache: Optional[RouteCache] = None,
    ):
        self.locator = locator
        self.engine = engine
        self.optimizer = optimizer
        self.builder = builder
        self.cache = cache

    async def plan(self, request: JourneyRequest) -> JourneyResult:
        """Plan a journey and return up to one itinerary per category."""
        started = time.perf_counter()
        shape = classify_journey(
            request.start, request.end, request.waypoints, request.target_distance
        )
        logger.info(
            f"Planning {shape.value} journey from ({request.start.lat}, {request.start.lng}) "
            f"with {len(request.waypoints)} waypoint(s)"
        )

        if shape == JourneyShape.CIRCULAR:
            routes = await self._plan_circular(request.start, request.target_distance)
        elif shape == JourneyShape.ROUND_TRIP:
            routes = await self._plan_round_trip(request.start, request.waypoints)
        elif shape == JourneyShape.MULTI_WAYPOINT:
            routes = await self._plan_multi_waypoint(request.start, request.end, request.waypoints)
        else:
            routes = await self._plan_direct(request.start, request.end)

        self._cache_itineraries(routes)
        result = JourneyResult(routes=routes, processing_time=_elapsed_ms(started))
        logger.info(
            f"{shape.value} journey planned: {len(routes)} route(s) in {result.processing_time}ms"
        )
        return result

    def _cache_itineraries(self, itineraries: Sequence[Itinerary]) -> None:
        """Store each returned itinerary under its ``route_id`` for detail lookups."""
        if self.cache is None:
            return
        for itinerary in itineraries:
            if itinerary.route_id:
                self.cache.save_in_background(itinerary.route_id, itinerary)

    async def _walk(self, origin: Coordinate, destination: Coordinate) -> EnginePath:
        return await self.engine.single_route(origin, destination, EngineProfile.FOOT)

    async def _walk_legs(
        self,
        start: Coordinate,
        pickup: RouteStation,
        dropoff: RouteStation,
        end: Coordinate,
    ) -> Tuple[EnginePath, EnginePath]:
        """Walk to the pickup station and from the drop-off station, concurrently."""
        walk_to, walk_from = await asyncio.gather(
            self._walk(start, pickup.coordinate),
            self._walk(dropoff.coordinate, end),
        )
        return walk_to, walk_from

    async def _plan_direct(self, start: Coordinate, end: Coordinate) -> List[Itinerary]:
        start_station, end_station = await self.locator.find_pair(start, end)
        walk_to, walk_from = await self._walk_legs(start, start_station, end_station, end)

        paths = await self.optimizer.optimal_routes(start_station.coordinate, end_station.coordinate)
        if not paths:
            raise NoRouteFound(
                f"No bike route between stations {start_station.number} and {end_station.number}"
            )

        return [
            self.builder.build_three_leg_route(
                walk_to, path, walk_from, start_station, end_station,
                path.route_category, path.route_id,
            )
            for path in paths
        ]

    async def _plan_multi_waypoint(
        self, start: Coordinate, end: Coordinate, waypoints: Sequence[Coordinate]
    ) -> List[Itinerary]:
        """Ride through the waypoints between two stations.

        The displayed geometry comes from the per-leg build, while ``route_id``
        is taken from the direct station-to-station path of the same category.
        The record stored under that id is the itinerary shown here.
        """
        start_station, end_station = await self.locator.find_pair(start, end)
        walk_to, walk_from = await self._walk_legs(start, start_station, end_station, end)

        points = [start_station.coordinate, *waypoints, end_station.coordinate]
        leg_candidates, reference_paths = await asyncio.gather(
            self.builder.fetch_leg_candidates(points),
            self.optimizer.optimal_routes(start_station.coordinate, end_station.coordinate),
        )
        route_ids = _route_ids_by_category(reference_paths)

        itineraries = await asyncio.gather(*(
            self.builder.build_multi_leg_route(
                points,
                category,
                walk_to_start=walk_to,
                walk_from_end=walk_from,
                start_station=start_station,
                end_station=end_station,
                route_id=route_ids.get(category),
                leg_candidates=leg_candidates,
            )
            for category in CATEGORY_ORDER
        ))
        return list(itineraries)

    async def _plan_round_trip(
        self, start: Coordinate, waypoints: Sequence[Coordinate]
    ) -> List[Itinerary]:
        """Loop from one station through the waypoints and back to it.

        Each itinerary's ``route_id`` joins the per-leg category ids with ``-``.
        """
        station = await self.locator.find_single(start, "round-trip start")
        walk_to, walk_back = await self._walk_legs(start, station, station, start)

        points = [station.coordinate, *waypoints, station.coordinate]
        pairs = list(zip(points, points[1:]))

        leg_candidates, *per_leg_paths = await asyncio.gather(
            self.builder.fetch_leg_candidates(points),
            *(self.optimizer.optimal_routes(origin, destination) for origin, destination in pairs),
        )
        per_leg_ids = [_route_ids_by_category(paths) for paths in per_leg_paths]

        itineraries = []
        for category in CATEGORY_ORDER:
            leg_ids = [ids[category] for ids in per_leg_ids if category in ids]
            route_id = "-".join(leg_ids) if leg_ids else None

            itineraries.append(await self.builder.build_multi_leg_route(
                points,
                category,
                walk_to_start=walk_to,
                walk_from_end=walk_back,
                start_station=station,
                end_station=station,
                route_id=route_id,
                leg_candidates=leg_candidates,
            ))

        return itineraries

    async def _plan_circular(self, start: Coordinate, target_distance: float) -> List[Itinerary]:
        station = await self.locator.find_single(start, "circular route start")

        walk_to, walk_back, loops = await asyncio.gather(
            self._walk(start, station.coordinate),
            self._walk(station.coordinate, start),
            self.optimizer.optimal_circular_routes(station.coordinate, target_distance),
        )
        if not loops:
            raise NoRouteFound(f"No circular route close to {target_distance:.0f}m from {station.name}")

        return [
            self.builder.build_three_leg_route(
                walk_to, loop, walk_back, station, station,
                loop.route_category, loop.route_id,
            )
            for loop in loops
        ]

    async def plan_out_and_back(
        self,
        start: Coordinate,
        destination: Coordinate,
        waypoints: Sequence[Coordinate] = (),
    ) -> JourneyResult:
        """Ride from a station near ``start`` to ``destination`` and back to the same station.

        Without waypoints the outbound and return legs come from two optimizer
        searches and are paired by category; a category missing from either
        direction is left out. With waypoints each category is built leg by leg
        out through the waypoints and straight back, then merged.
        """
        started = time.perf_counter()
        if len(waypoints) > settings.max_waypoints:
            raise JourneyValidationError(f"At most {settings.max_waypoints} waypoints are supported")
        if is_same_location(start, destination):
            raise JourneyValidationError("Destination must differ from the start")

        station = await self.locator.find_single(start, "round-trip start")
        walk_to, walk_back = await self._walk_legs(start, station, station, start)

        if waypoints:
            routes = await self._out_and_back_through(
                station, destination, waypoints, walk_to, walk_back
            )
        else:
            routes = await self._out_and_back_direct(station, destination, walk_to, walk_back)

        self._cache_itineraries(routes)
        result = JourneyResult(routes=routes, processing_time=_elapsed_ms(started))
        logger.info(f"Out-and-back planned: {len(routes)} route(s) in {result.processing_time}ms")
        return result

    async def _out_and_back_direct(
        self,
        station: RouteStation,
        destination: Coordinate,
        walk_to: EnginePath,
        walk_back: EnginePath,
    ) -> List[Itinerary]:
        outbound, inbound = await asyncio.gather(
            self.optimizer.optimal_routes(station.coordinate, destination),
            self.optimizer.optimal_routes(destination, station.coordinate),
        )
        if not outbound or not inbound:
            raise NoRouteFound(f"No bike route between station {station.number} and the destination")

        inbound_by_category = {path.route_category: path for path in inbound}
        itineraries = []
        for out in outbound:
            back = inbound_by_category.get(out.route_category)
            if back is None:
                logger.debug(f"No return leg for category {out.route_category.value}")
                continue
            itineraries.append(self.builder.build_four_leg_round_trip(
                walk_to, out, back, walk_back, station,
                out.route_category, f"{out.route_id}-{back.route_id}",
            ))

        if not itineraries:
            raise NoRouteFound(f"No matching outbound and return categories for station {station.number}")
        return itineraries

    async def _out_and_back_through(
        self,
        station: RouteStation,
        destination: Coordinate,
        waypoints: Sequence[Coordinate],
        walk_to: EnginePath,
        walk_back: EnginePath,
    ) -> List[Itinerary]:
        outbound_points = [station.coordinate, *waypoints, destination]
        inbound_points = [destination, station.coordinate]

        outbound_legs, inbound_legs = await asyncio.gather(
            self.builder.fetch_leg_candidates(outbound_points),
            self.builder.fetch_leg_candidates(inbound_points),
        )

        itineraries = []
        for category in CATEGORY_ORDER:
            outbound = await self.builder.build_multi_leg_route(
                outbound_points, category,
                walk_to_start=walk_to, start_station=station,
                leg_candidates=outbound_legs,
            )
            inbound = await self.builder.build_multi_leg_route(
                inbound_points, category,
                walk_from_end=walk_back, end_station=station,
                leg_candidates=inbound_legs,
            )
            itineraries.append(self.builder.merge_round_trip(outbound, inbound))
        return itineraries


def _route_ids_by_category(paths: Sequence[CategorizedPath]) -> Dict[RouteCategory, str]:
    return {path.route_category: path.route_id for path in paths}
