"""Tests for station lookup and its fallbacks."""

from unittest.mock import AsyncMock

import pytest

from bikeshare_planner.schemas.station import StationStatus
from bikeshare_planner.services.stations import StationLocator, StationUnavailable
from tests.factories import coordinate, snapshot

HERE = coordinate(37.5665, 126.9780)


def make_locator(nearby=None, inventory=None):
    directory = AsyncMock()
    if isinstance(nearby, Exception):
        directory.find_nearby_stations.side_effect = nearby
    else:
        directory.find_nearby_stations.return_value = nearby or []
    if isinstance(inventory, Exception):
        directory.find_all.side_effect = inventory
    else:
        directory.find_all.return_value = inventory or []
    return StationLocator(directory), directory


# =============================================================================
# Nearest Station Tests
# =============================================================================

class TestFindNearest:
    """Tests for the three-tier nearest-station lookup."""

    @pytest.mark.asyncio
    async def test_nearby_search_result_is_used(self):
        """Tier 1: the first nearby station wins and the inventory is untouched."""
        locator, directory = make_locator(nearby=[
            snapshot("101", 37.5666, 126.9781),
            snapshot("102", 37.5670, 126.9790),
        ])

        station = await locator.find_nearest(HERE)

        assert station.id == "101"
        assert station.lat == 37.5666
        directory.find_all.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_nearby_falls_back_to_inventory(self):
        """Tier 2: an empty nearby search scans the inventory before giving up."""
        locator, directory = make_locator(nearby=[], inventory=[
            snapshot("far", 37.60, 127.05),
            snapshot("near", 37.567, 126.979),
        ])

        station = await locator.find_nearest(HERE)

        assert station.id == "near"
        directory.find_all.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_inventory_scan_skips_unusable_stations(self):
        locator, _ = make_locator(nearby=[], inventory=[
            snapshot("inactive", 37.5665, 126.9780, status=StationStatus.INACTIVE),
            snapshot("no-bikes", 37.5666, 126.9781, bikes=0),
            snapshot("empty", 37.5667, 126.9782, status=StationStatus.EMPTY),
            snapshot("usable", 37.5700, 126.9800),
        ])

        station = await locator.find_nearest(HERE)

        assert station.id == "usable"

    @pytest.mark.asyncio
    async def test_nearby_failure_runs_inventory_scan(self):
        """Tier 3: a failing nearby search is logged and the scan runs once."""
        locator, directory = make_locator(
            nearby=ConnectionError("database unreachable"),
            inventory=[snapshot("201", 37.567, 126.979)],
        )

        station = await locator.find_nearest(HERE)

        assert station.id == "201"
        directory.find_all.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_nothing_found_returns_none(self):
        """No station anywhere is a normal outcome, not an exception."""
        locator, _ = make_locator(nearby=[], inventory=[])
        assert await locator.find_nearest(HERE) is None

    @pytest.mark.asyncio
    async def test_every_tier_failing_returns_none(self):
        locator, _ = make_locator(
            nearby=ConnectionError("database unreachable"),
            inventory=ConnectionError("database unreachable"),
        )
        assert await locator.find_nearest(HERE) is None

    @pytest.mark.asyncio
    async def test_scan_is_sorted_and_capped(self):
        inventory = [snapshot(f"S{i}", 37.5665 + i * 0.001, 126.9780) for i in range(15, 0, -1)]
        locator, _ = make_locator(inventory=inventory)

        candidates = await locator.scan_inventory(HERE)

        assert len(candidates) == 10
        assert [c.id for c in candidates[:3]] == ["S1", "S2", "S3"]
        distances = [c.distance for c in candidates]
        assert distances == sorted(distances)


# =============================================================================
# Pair and Single Lookup Tests
# =============================================================================

class TestFindPairAndSingle:
    """Tests for the wrappers used by the journey planner."""

    @pytest.mark.asyncio
    async def test_pair_resolves_both_sides(self):
        locator, directory = make_locator()

        async def nearby(lat, lng, limit=None):
            return [snapshot("start" if lat < 37.55 else "end", lat, lng)]

        directory.find_nearby_stations.side_effect = nearby

        start_station, end_station = await locator.find_pair(
            coordinate(37.50, 127.0), coordinate(37.60, 127.0)
        )

        assert start_station.id == "start"
        assert end_station.id == "end"

    @pytest.mark.asyncio
    async def test_pair_names_the_failing_side(self):
        locator, directory = make_locator()

        async def nearby(lat, lng, limit=None):
            return [snapshot("start", lat, lng)] if lat < 37.55 else []

        directory.find_nearby_stations.side_effect = nearby

        with pytest.raises(StationUnavailable) as exc_info:
            await locator.find_pair(coordinate(37.50, 127.0), coordinate(37.60, 127.0))

        assert exc_info.value.side == "end"

    @pytest.mark.asyncio
    async def test_single_raises_with_purpose(self):
        locator, _ = make_locator()

        with pytest.raises(StationUnavailable) as exc_info:
            await locator.find_single(HERE, "round-trip start")

        assert exc_info.value.side == "round-trip start"
        assert "round-trip start" in str(exc_info.value)


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
