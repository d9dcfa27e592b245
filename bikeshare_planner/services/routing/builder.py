"""Route builder - turns engine paths into walk/bike itineraries."""

import asyncio
import logging
from typing import Iterable, List, Optional, Sequence

from bikeshare_planner.config import settings
from bikeshare_planner.schemas.common import Coordinate
from bikeshare_planner.schemas.engine import EnginePath
from bikeshare_planner.schemas.routing import (
    CategorizedPath,
    Itinerary,
    RouteCategory,
    RouteGeometry,
    RouteSegment,
    RouteSummary,
    SegmentType,
)
from bikeshare_planner.schemas.station import RouteStation
from bikeshare_planner.services.routing.engine import NoRouteFound, RoutingEngine
from bikeshare_planner.services.routing.geometry import (
    bike_road_ratio,
    bounding_box,
    max_gradient,
    merge_bounding_boxes,
    path_bounding_box,
)
from bikeshare_planner.services.routing.optimizer import rank_for_category

logger = logging.getLogger(__name__)

# Candidate paths for each consecutive pair of route points
LegCandidates = List[List[EnginePath]]


def build_summary(path: EnginePath, segment_type: SegmentType) -> RouteSummary:
    """Per-segment summary. Only biking segments carry bike-road and gradient figures."""
    summary = RouteSummary(
        distance=round(path.distance),
        time=round(path.time / 1000),
        ascent=round(path.ascend),
        descent=round(path.descend),
    )
    if segment_type != SegmentType.BIKING:
        return summary

    if isinstance(path, CategorizedPath):
        ratio = path.bike_road_ratio
    else:
        ratio = bike_road_ratio(path)

    return summary.model_copy(update={
        "bike_road_ratio": round(ratio, 2),
        "max_gradient": max_gradient(path),
    })


def build_segment(
    segment_type: SegmentType,
    path: EnginePath,
    start_station: Optional[RouteStation] = None,
    end_station: Optional[RouteStation] = None,
) -> RouteSegment:
    """Convert one engine path into an itinerary segment."""
    is_biking = segment_type == SegmentType.BIKING
    return RouteSegment(
        type=segment_type,
        summary=build_summary(path, segment_type),
        bbox=path_bounding_box(path),
        geometry=RouteGeometry(points=path.coordinates),
        profile=path.profile if is_biking else None,
        start_station=start_station if is_biking else None,
        end_station=end_station if is_biking else None,
        instructions=list(path.instructions),
    )


def overall_bike_road_ratio(segments: Iterable[RouteSegment]) -> float:
    """Distance-weighted bike-road percentage over the biking segments."""
    bike_distance = 0.0
    bike_road_distance = 0.0
    for segment in segments:
        if segment.type != SegmentType.BIKING:
            continue
        bike_distance += segment.summary.distance
        if segment.summary.bike_road_ratio:
            bike_road_distance += segment.summary.distance * segment.summary.bike_road_ratio

    if bike_distance <= 0:
        return 0.0
    return round(bike_road_distance / bike_distance, 2)


def _steepest_climb(segments: Iterable[RouteSegment]) -> Optional[float]:
    gradients = [
        segment.summary.max_gradient
        for segment in segments
        if segment.type == SegmentType.BIKING and segment.summary.max_gradient is not None
    ]
    return max(gradients) if gradients else None


def journey_summary(legs: Sequence[EnginePath], segments: Sequence[RouteSegment]) -> RouteSummary:
    """Journey totals: raw leg sums, seconds for time, weighted bike ratio."""
    return RouteSummary(
        distance=round(sum(leg.distance for leg in legs), 1),
        time=round(sum(leg.time for leg in legs) / 1000),
        ascent=sum(leg.ascend for leg in legs),
        descent=sum(leg.descend for leg in legs),
        bike_road_ratio=overall_bike_road_ratio(segments),
        max_gradient=_steepest_climb(segments),
    )


def select_route_by_category(paths: Sequence[EnginePath], category: RouteCategory) -> EnginePath:
    """Single best path for a category; no similarity exclusion."""
    if not paths:
        raise NoRouteFound(f"No candidate paths for category {category.value}")
    return rank_for_category(paths, category)[0]


def without_instructions(itineraries: Iterable[Itinerary]) -> List[Itinerary]:
    """Copies of the itineraries with turn-by-turn steps stripped from every segment."""
    return [
        itinerary.model_copy(update={
            "segments": [
                segment.model_copy(update={"instructions": None})
                for segment in itinerary.segments
            ]
        })
        for itinerary in itineraries
    ]


class RouteBuilder:
    """Assembles walking and biking legs into itineraries."""

    def __init__(self, engine: RoutingEngine):
        self.engine = engine

    def build_three_leg_route(
        self,
        walk_to_start: EnginePath,
        bike_leg: EnginePath,
        walk_from_end: EnginePath,
        start_station: RouteStation,
        end_station: RouteStation,
        category: RouteCategory,
        route_id: Optional[str] = None,
    ) -> Itinerary:
        """Walk to a station, ride, walk from the drop-off station."""
        legs = [walk_to_start, bike_leg, walk_from_end]
        segments = [
            build_segment(SegmentType.WALKING, walk_to_start),
            build_segment(SegmentType.BIKING, bike_leg, start_station, end_station),
            build_segment(SegmentType.WALKING, walk_from_end),
        ]
        return Itinerary(
            route_category=category,
            route_label=category.label,
            route_id=route_id,
            summary=journey_summary(legs, segments),
            bbox=bounding_box(legs),
            start_station=start_station,
            end_station=end_station,
            segments=segments,
        )

    def build_four_leg_round_trip(
        self,
        walk_to_station: EnginePath,
        bike_out: EnginePath,
        bike_back: EnginePath,
        walk_to_start: EnginePath,
        station: RouteStation,
        category: RouteCategory,
        route_id: Optional[str] = None,
    ) -> Itinerary:
        """Walk to a station, ride out, ride back, walk home.

        The bike is picked up and returned at the same station.
        """
        legs = [walk_to_station, bike_out, bike_back, walk_to_start]
        segments = [
            build_segment(SegmentType.WALKING, walk_to_station),
            build_segment(SegmentType.BIKING, bike_out, start_station=station),
            build_segment(SegmentType.BIKING, bike_back, end_station=station),
            build_segment(SegmentType.WALKING, walk_to_start),
        ]
        return Itinerary(
            route_category=category,
            route_label=category.label,
            route_id=route_id,
            summary=journey_summary(legs, segments),
            bbox=bounding_box(legs),
            start_station=station,
            end_station=station,
            segments=segments,
        )

    async def fetch_leg_candidates(self, points: Sequence[Coordinate]) -> LegCandidates:
        """Bike alternatives for every consecutive pair of points, in leg order.

        Legs are independent, so they are requested concurrently under a
        semaphore of ``max_concurrent_legs``.
        """
        if len(points) < 2:
            raise ValueError("A multi-leg route needs at least two points")

        semaphore = asyncio.Semaphore(settings.max_concurrent_legs)

        async def fetch(index: int) -> List[EnginePath]:
            origin, destination = points[index], points[index + 1]
            async with semaphore:
                candidates = await self.engine.multiple_profile_routes(origin, destination)
            if not candidates:
                raise NoRouteFound(
                    f"No bike path for leg {index + 1}: "
                    f"({origin.lat}, {origin.lng}) -> ({destination.lat}, {destination.lng})"
                )
            return candidates

        return list(await asyncio.gather(*(fetch(i) for i in range(len(points) - 1))))

    async def build_multi_leg_route(
        self,
        points: Sequence[Coordinate],
        category: RouteCategory,
        walk_to_start: Optional[EnginePath] = None,
        walk_from_end: Optional[EnginePath] = None,
        start_station: Optional[RouteStation] = None,
        end_station: Optional[RouteStation] = None,
        route_id: Optional[str] = None,
        leg_candidates: Optional[LegCandidates] = None,
    ) -> Itinerary:
        """Itinerary riding through ``points`` in order.

        Each leg picks its own path by the category rule. Pass
        ``leg_candidates`` from :meth:`fetch_leg_candidates` to build several
        categories from a single round of engine calls.
        """
        if leg_candidates is None:
            leg_candidates = await self.fetch_leg_candidates(points)

        bike_legs = [select_route_by_category(candidates, category) for candidates in leg_candidates]
        last = len(bike_legs) - 1

        legs: List[EnginePath] = []
        segments: List[RouteSegment] = []

        if walk_to_start is not None:
            legs.append(walk_to_start)
            segments.append(build_segment(SegmentType.WALKING, walk_to_start))

        for index, leg in enumerate(bike_legs):
            legs.append(leg)
            segments.append(build_segment(
                SegmentType.BIKING,
                leg,
                start_station=start_station if index == 0 else None,
                end_station=end_station if index == last else None,
            ))

        if walk_from_end is not None:
            legs.append(walk_from_end)
            segments.append(build_segment(SegmentType.WALKING, walk_from_end))

        logger.debug(f"Built {category.value} itinerary with {len(bike_legs)} bike leg(s)")

        return Itinerary(
            route_category=category,
            route_label=category.label,
            route_id=route_id,
            summary=journey_summary(legs, segments),
            bbox=bounding_box(legs),
            start_station=start_station,
            end_station=end_station,
            segments=segments,
        )

    def merge_round_trip(self, outbound: Itinerary, inbound: Itinerary) -> Itinerary:
        """Join an outbound and a return itinerary into one round trip."""
        segments = list(outbound.segments) + list(inbound.segments)
        climbs = [
            gradient
            for gradient in (outbound.summary.max_gradient, inbound.summary.max_gradient)
            if gradient is not None
        ]

        summary = RouteSummary(
            distance=round(outbound.summary.distance + inbound.summary.distance, 1),
            time=outbound.summary.time + inbound.summary.time,
            ascent=outbound.summary.ascent + inbound.summary.ascent,
            descent=outbound.summary.descent + inbound.summary.descent,
            bike_road_ratio=overall_bike_road_ratio(segments),
            max_gradient=max(climbs) if climbs else None,
        )

        return Itinerary(
            route_category=outbound.route_category,
            route_label=outbound.route_category.label,
            route_id=outbound.route_id,
            summary=summary,
            bbox=merge_bounding_boxes([outbound.bbox, inbound.bbox]),
            start_station=outbound.start_station,
            end_station=inbound.end_station,
            segments=segments,
        )
