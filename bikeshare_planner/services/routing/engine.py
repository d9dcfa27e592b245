"""Routing engine service - interfaces with GraphHopper."""

import asyncio
import logging
import random
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx

from bikeshare_planner.config import settings
from bikeshare_planner.schemas.common import Coordinate
from bikeshare_planner.schemas.engine import (
    BIKE_PROFILES,
    EnginePath,
    EngineProfile,
    EngineResponse,
)

logger = logging.getLogger(__name__)

PATH_DETAILS = ["road_class", "bike_network"]
ROUND_TRIP_POINTS = 2
MAX_ROUND_TRIP_SEED = 1000

ProfileLike = Union[EngineProfile, str]


class NoRouteFound(Exception):
    """Raised when the engine answered but has no path for the request."""
    pass


class RoutingEngineError(Exception):
    """Raised when the engine cannot be reached or rejects the request."""
    pass


def _profile_name(profile: ProfileLike) -> str:
    return EngineProfile(profile).value


class RoutingEngine:
    """Service for calculating paths using GraphHopper."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        rng: Optional[random.Random] = None,
    ):
        self.graphhopper_url = (base_url or settings.graphhopper_url).rstrip("/")
        self.client = client or httpx.AsyncClient(
            timeout=timeout or settings.engine_timeout_seconds
        )
        # Seeds for round-trip requests; inject a seeded Random for reproducible runs
        self._rng = rng or random.Random()

    async def single_route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        profile: ProfileLike,
    ) -> EnginePath:
        """Best path between two points for one profile."""
        name = _profile_name(profile)
        body = self._build_base_request([origin, destination], name)

        response = await self._post_route(body)
        if not response.paths:
            logger.warning(
                f"No path for profile={name} from ({origin.lat}, {origin.lng}) "
                f"to ({destination.lat}, {destination.lng})"
            )
            raise NoRouteFound(f"No route found for profile {name}")

        return response.paths[0].model_copy(update={"profile": name})

    async def alternative_routes(
        self,
        origin: Coordinate,
        destination: Coordinate,
        profile: ProfileLike,
        max_paths: int = 3,
    ) -> List[EnginePath]:
        """Up to ``max_paths`` alternatives for one profile.

        Contraction hierarchies are disabled so the engine explores a wider set
        of alternatives instead of the single fastest corridor.
        """
        name = _profile_name(profile)
        body = self._build_base_request([origin, destination], name)
        body["alternative_route.max_paths"] = max_paths
        body["ch.disable"] = True

        response = await self._post_route(body)
        if not response.paths:
            logger.warning(f"No alternative paths for profile={name}")
            raise NoRouteFound(f"No route found for profile {name}")

        return [path.model_copy(update={"profile": name}) for path in response.paths]

    async def multiple_profile_routes(
        self,
        origin: Coordinate,
        destination: Coordinate,
    ) -> List[EnginePath]:
        """Alternatives from every bike profile, concatenated in profile order.

        A profile that fails is logged and skipped; the other profiles still
        contribute their paths.
        """
        results = await asyncio.gather(*(
            self._alternatives_or_empty(origin, destination, profile)
            for profile in BIKE_PROFILES
        ))
        paths = [path for profile_paths in results for path in profile_paths]
        logger.debug(f"Multi-profile search returned {len(paths)} paths")
        return paths

    async def _alternatives_or_empty(
        self,
        origin: Coordinate,
        destination: Coordinate,
        profile: EngineProfile,
    ) -> List[EnginePath]:
        try:
            return await self.alternative_routes(
                origin, destination, profile, settings.max_alternative_paths
            )
        except (NoRouteFound, RoutingEngineError) as e:
            logger.error(f"Profile {profile.value} search failed, skipping: {e}")
            return []

    async def circular_routes(
        self,
        start: Coordinate,
        target_distance: float,
    ) -> List[EnginePath]:
        """Round-trip alternatives from every bike profile.

        Each profile gets its own random seed so repeated calls explore
        different loops.
        """
        results = await asyncio.gather(*(
            self._circular_or_empty(start, profile, target_distance)
            for profile in BIKE_PROFILES
        ))
        paths = [path for profile_paths in results for path in profile_paths]
        logger.debug(f"Round-trip search for {target_distance}m returned {len(paths)} paths")
        return paths

    async def _circular_or_empty(
        self,
        start: Coordinate,
        profile: EngineProfile,
        target_distance: float,
    ) -> List[EnginePath]:
        body = self._build_round_trip_request(start, profile.value, target_distance)
        body["alternative_route.max_paths"] = settings.max_alternative_paths

        try:
            response = await self._post_route(body)
        except RoutingEngineError as e:
            logger.error(
                f"Round-trip search failed for profile={profile.value}, "
                f"distance={target_distance}m, skipping: {e}"
            )
            return []

        return [path.model_copy(update={"profile": profile.value}) for path in response.paths]

    async def single_circular_route(
        self,
        start: Coordinate,
        profile: ProfileLike,
        target_distance: float,
    ) -> EnginePath:
        """One round trip for a single profile."""
        name = _profile_name(profile)
        body = self._build_round_trip_request(start, name, target_distance)

        response = await self._post_route(body)
        if not response.paths:
            logger.warning(f"No round trip for profile={name}, distance={target_distance}m")
            raise NoRouteFound(f"No round trip found for profile {name}")

        return response.paths[0].model_copy(update={"profile": name})

    def _build_base_request(self, points: Sequence[Coordinate], profile: str) -> Dict[str, Any]:
        """Build a basic GraphHopper request body."""
        return {
            "points": [point.to_lng_lat() for point in points],
            "profile": profile,
            "elevation": True,
            "points_encoded": False,
            "details": list(PATH_DETAILS),
        }

    def _build_round_trip_request(
        self, start: Coordinate, profile: str, target_distance: float
    ) -> Dict[str, Any]:
        body = self._build_base_request([start], profile)
        body.update({
            "algorithm": "round_trip",
            "ch.disable": True,
            "round_trip.distance": target_distance,
            "round_trip.seed": self._rng.randrange(MAX_ROUND_TRIP_SEED),
            "round_trip.points": ROUND_TRIP_POINTS,
        })
        return body

    async def _post_route(self, body: Dict[str, Any]) -> EngineResponse:
        """Send a routing request and validate the response.

        Transport failures, timeouts, non-2xx answers and malformed bodies are
        all reported as :class:`RoutingEngineError`.
        """
        try:
            response = await self.client.post(f"{self.graphhopper_url}/route", json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = _error_message(e.response)
            logger.error(
                f"GraphHopper HTTP {e.response.status_code} for profile={body.get('profile')}: {detail}"
            )
            raise RoutingEngineError(
                f"Routing engine returned HTTP {e.response.status_code}: {detail}"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"GraphHopper request failed for profile={body.get('profile')}: {e!r}")
            raise RoutingEngineError(f"Routing engine unavailable: {e}") from e

        try:
            parsed = EngineResponse.model_validate(response.json())
        except ValueError as e:
            raise RoutingEngineError(f"Malformed routing engine response: {e}") from e

        if parsed.info.took is not None:
            logger.debug(f"GraphHopper took {parsed.info.took}ms, {len(parsed.paths)} path(s)")
        return parsed

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()


def _error_message(response: httpx.Response) -> str:
    """Extract GraphHopper's ``message`` field, falling back to raw text."""
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.text[:200]
