"""Route optimizer - picks one representative path per route category."""

import hashlib
import json
import logging
import uuid
from typing import Callable, Dict, List, Sequence

from bikeshare_planner.config import settings
from bikeshare_planner.schemas.common import Coordinate
from bikeshare_planner.schemas.engine import EnginePath, EngineProfile
from bikeshare_planner.schemas.routing import CATEGORY_ORDER, CategorizedPath, RouteCategory
from bikeshare_planner.services.routing.engine import RoutingEngine
from bikeshare_planner.services.routing.geometry import are_similar_paths, bike_road_ratio

logger = logging.getLogger(__name__)

MAX_CATEGORIZED_PATHS = len(CATEGORY_ORDER)


def _bike_priority_key(path: EnginePath):
    # safe_bike paths first, fastest among them; others keep pool order
    is_safe = path.profile == EngineProfile.SAFE_BIKE.value
    return (not is_safe, path.time if is_safe else 0)


CATEGORY_SORT_KEYS: Dict[RouteCategory, Callable[[EnginePath], object]] = {
    RouteCategory.BIKE_PRIORITY: _bike_priority_key,
    RouteCategory.SHORTEST: lambda path: path.distance,
    RouteCategory.FASTEST: lambda path: path.time,
}


def rank_for_category(paths: Sequence[EnginePath], category: RouteCategory) -> List[EnginePath]:
    """Candidates ordered best-first for a category.

    The sort is stable, so ties keep the engine's order. For bike priority with
    no safe_bike candidates this leaves the pool untouched and the first path wins.
    """
    return sorted(paths, key=CATEGORY_SORT_KEYS[category])


def create_route_id(path: EnginePath) -> str:
    """Random token plus a short fingerprint of the path geometry and metrics."""
    fingerprint = json.dumps(
        [path.coordinates, path.distance, path.time, path.profile],
        separators=(",", ":"),
    )
    suffix = hashlib.sha1(fingerprint.encode("utf-8")).hexdigest()[:8]
    return f"{uuid.uuid4().hex}-{suffix}"


def within_distance_window(path: EnginePath, target_distance: float, tolerance: float) -> bool:
    """Whether a path length is within ``target * (1 ± tolerance)``, inclusive."""
    lower = target_distance * (1 - tolerance)
    upper = target_distance * (1 + tolerance)
    return lower <= path.distance <= upper


class RouteOptimizer:
    """Selects the category representatives of a path pool."""

    def __init__(self, engine: RoutingEngine):
        self.engine = engine

    async def optimal_routes(self, start: Coordinate, end: Coordinate) -> List[CategorizedPath]:
        """Search both bike profiles between two points and categorize the result."""
        paths = await self.engine.multiple_profile_routes(start, end)
        return self.select_optimal(paths)

    def select_optimal(self, paths: Sequence[EnginePath]) -> List[CategorizedPath]:
        """Pick at most one path per category, never the same route twice.

        Categories are filled in :data:`CATEGORY_ORDER`. Each takes its
        best-ranked candidate from the whole pool that is not similar to a path
        already chosen for an earlier category; a category with nothing left
        is omitted. Every pick gets a fresh ``route_id``.
        """
        if not paths:
            return []

        pool = [(path, bike_road_ratio(path)) for path in paths]
        selected: List[CategorizedPath] = []

        for category in CATEGORY_ORDER:
            sort_key = CATEGORY_SORT_KEYS[category]
            for path, ratio in sorted(pool, key=lambda item: sort_key(item[0])):
                if any(are_similar_paths(path, chosen) for chosen in selected):
                    continue
                selected.append(self._categorize(path, category, ratio))
                break
            else:
                logger.debug(f"No distinct path left for category {category.value}")

        logger.info(
            f"Selected {len(selected)} of {len(paths)} paths: "
            + ", ".join(f"{p.route_category.value}={p.distance:.0f}m/{p.time // 1000}s" for p in selected)
        )
        return selected

    def _categorize(self, path: EnginePath, category: RouteCategory, ratio: float) -> CategorizedPath:
        return CategorizedPath(
            **path.model_dump(),
            route_category=category,
            bike_road_ratio=ratio,
            route_id=create_route_id(path),
        )

    async def optimal_circular_routes(
        self, start: Coordinate, target_distance: float
    ) -> List[CategorizedPath]:
        """Categorized round trips whose length is close to ``target_distance``.

        Round-trip searches are repeated with fresh seeds until enough distinct
        in-window loops are collected or the attempts run out. Fewer
        than three results, even none, is a valid outcome.
        """
        tolerance = settings.circular_distance_tolerance
        kept: List[EnginePath] = []

        for attempt in range(1, settings.circular_max_attempts + 1):
            candidates = await self.engine.circular_routes(start, target_distance)
            for path in candidates:
                if not within_distance_window(path, target_distance, tolerance):
                    continue
                if any(are_similar_paths(path, other) for other in kept):
                    continue
                kept.append(path)
                if len(kept) >= MAX_CATEGORIZED_PATHS:
                    break

            logger.debug(
                f"Circular attempt {attempt}: {len(candidates)} candidates, {len(kept)} kept"
            )
            if len(kept) >= MAX_CATEGORIZED_PATHS:
                break

        if len(kept) < MAX_CATEGORIZED_PATHS:
            logger.info(
                f"Only {len(kept)} distinct loops within ±{tolerance:.0%} of {target_distance}m"
            )

        selected = self.select_optimal(kept)
        return selected[:MAX_CATEGORIZED_PATHS]
