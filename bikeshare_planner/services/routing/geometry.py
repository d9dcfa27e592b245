"""Geometry and route metric helpers.

Pure functions over engine paths: haversine distances, bounding boxes,
bike-road coverage and gradient estimation. Points follow the GraphHopper
order ``[lng, lat, elevation?]`` throughout.
"""

import math
from collections import deque
from typing import Iterable, List, NamedTuple, Optional, Sequence

from bikeshare_planner.schemas.common import BoundingBox, Coordinate
from bikeshare_planner.schemas.engine import DetailInterval, EnginePath

EARTH_RADIUS_METERS = 6371000.0

# Road classes treated as bike-friendly when computing bike-road coverage
BIKE_ROAD_CLASSES = frozenset({
    "cycleway",
    "path",
    "track",
    "living_street",
    "service",
    "residential",
})

MIN_GRADIENT_SEGMENT_METERS = 10.0
MAX_REALISTIC_GRADIENT = 15.0  # percent
ELEVATION_SMOOTHING_WINDOW = 5

SIMILAR_DISTANCE_METERS = 10.0
SIMILAR_TIME_MS = 5000


class GradientProfile(NamedTuple):
    """Steepest climb and descent of a path, in percent."""

    max_uphill: float
    max_downhill: float


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance in meters between two points."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def distance(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two coordinates, in meters."""
    return haversine_distance(a.lat, a.lng, b.lat, b.lng)


def point_distance(p: Sequence[float], q: Sequence[float]) -> float:
    """Distance between two ``[lng, lat, ...]`` points, in meters."""
    return haversine_distance(p[1], p[0], q[1], q[0])


def cumulative_distances(points: Sequence[Sequence[float]]) -> List[float]:
    """Distance from the first point to every point along the line."""
    if not points:
        return []
    totals = [0.0]
    for i in range(1, len(points)):
        totals.append(totals[-1] + point_distance(points[i - 1], points[i]))
    return totals


def bounding_box(paths: Iterable[EnginePath]) -> BoundingBox:
    """Smallest box containing every point of every path.

    Returns an all-zero box when the paths carry no points.
    """
    lngs: List[float] = []
    lats: List[float] = []
    for path in paths:
        for point in path.coordinates:
            lngs.append(point[0])
            lats.append(point[1])

    if not lngs:
        return BoundingBox()

    return BoundingBox(
        min_lat=min(lats),
        min_lng=min(lngs),
        max_lat=max(lats),
        max_lng=max(lngs),
    )


def path_bounding_box(path: EnginePath) -> BoundingBox:
    """Box reported by the engine, or computed from the points when absent."""
    if path.bbox and len(path.bbox) == 4:
        return BoundingBox.from_engine_bbox(path.bbox)
    return bounding_box([path])


def merge_bounding_boxes(boxes: Iterable[BoundingBox]) -> BoundingBox:
    """Union of several boxes; all-zero box when there are none."""
    boxes = list(boxes)
    if not boxes:
        return BoundingBox()
    return BoundingBox(
        min_lat=min(b.min_lat for b in boxes),
        min_lng=min(b.min_lng for b in boxes),
        max_lat=max(b.max_lat for b in boxes),
        max_lng=max(b.max_lng for b in boxes),
    )


def _interval_distance(cumulative: List[float], start: int, end: int) -> float:
    last = len(cumulative) - 1
    start = min(max(start, 0), last)
    end = min(max(end, 0), last)
    return max(cumulative[end] - cumulative[start], 0.0)


def _is_bike_road(label: Optional[str]) -> bool:
    return label in BIKE_ROAD_CLASSES


def bike_road_ratio(path: EnginePath) -> float:
    """Share of the path, in percent, that runs on bike-friendly roads.

    Road-class intervals in :data:`BIKE_ROAD_CLASSES` count fully. Intervals
    tagged with any bike network count too, unless a bike road-class interval
    already covers them. The result is clamped to ``[0, 100]``.
    """
    road_class = path.details.road_class
    points = path.coordinates
    if not road_class or not points or path.distance <= 0:
        return 0.0

    cumulative = cumulative_distances(points)
    bike_distance = 0.0

    for start, end, label in road_class:
        if _is_bike_road(label):
            bike_distance += _interval_distance(cumulative, start, end)

    bike_distance += _bike_network_distance(path.details.bike_network or [], road_class, cumulative)

    ratio = bike_distance / path.distance * 100
    return min(max(ratio, 0.0), 100.0)


def _bike_network_distance(
    bike_network: List[DetailInterval],
    road_class: List[DetailInterval],
    cumulative: List[float],
) -> float:
    additional = 0.0
    for start, end, network in bike_network:
        if not network or network == "missing":
            continue
        already_counted = any(
            road_start <= start and road_end >= end and _is_bike_road(label)
            for road_start, road_end, label in road_class
        )
        if not already_counted:
            additional += _interval_distance(cumulative, start, end)
    return additional


def smooth_elevations(elevations: List[float], window_size: int = ELEVATION_SMOOTHING_WINDOW) -> List[float]:
    """Centered moving average; the window shrinks at both ends."""
    if window_size < 2:
        return list(elevations)

    half = window_size // 2
    smoothed = []
    for i in range(len(elevations)):
        lo = max(0, i - half)
        hi = min(len(elevations) - 1, i + half)
        window = elevations[lo:hi + 1]
        smoothed.append(sum(window) / len(window))
    return smoothed


def max_gradients(path: EnginePath) -> GradientProfile:
    """Steepest uphill and downhill gradients along the path.

    Elevations are smoothed first, then a window slides along the line and is
    evaluated whenever it spans at least :data:`MIN_GRADIENT_SEGMENT_METERS`.
    Gradients steeper than :data:`MAX_REALISTIC_GRADIENT` are treated as
    elevation-model noise and ignored.
    """
    points = path.coordinates
    if len(points) < 2:
        return GradientProfile(0.0, 0.0)

    elevations = [p[2] if len(p) > 2 and p[2] is not None else 0.0 for p in points]
    smoothed = smooth_elevations(elevations)

    max_uphill = 0.0
    max_downhill = 0.0
    window = deque()  # (start point index, length of the step after it)
    window_distance = 0.0

    for i in range(1, len(points)):
        step = point_distance(points[i - 1], points[i])
        window.append((i - 1, step))
        window_distance += step

        while window_distance >= MIN_GRADIENT_SEGMENT_METERS and len(window) > 1:
            start_idx = window[0][0]
            rise = smoothed[i] - smoothed[start_idx]
            horizontal = math.sqrt(max(window_distance ** 2 - rise ** 2, 0.0))

            if horizontal > 0:
                gradient = rise / horizontal * 100
                if 0 < gradient <= MAX_REALISTIC_GRADIENT:
                    max_uphill = max(max_uphill, gradient)
                elif gradient < 0 and abs(gradient) <= MAX_REALISTIC_GRADIENT:
                    max_downhill = max(max_downhill, abs(gradient))

            _, removed = window.popleft()
            window_distance -= removed

    return GradientProfile(round(max_uphill, 1), round(max_downhill, 1))


def max_gradient(path: EnginePath) -> float:
    """Steepest uphill gradient only."""
    return max_gradients(path).max_uphill


def are_similar_paths(a: EnginePath, b: EnginePath) -> bool:
    """Whether two alternatives are practically the same route."""
    return (
        abs(a.distance - b.distance) < SIMILAR_DISTANCE_METERS
        and abs(a.time - b.time) < SIMILAR_TIME_MS
    )
