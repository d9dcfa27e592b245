"""Tests for the HTTP surface: routing endpoints, error mapping and health."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from bikeshare_planner.api.deps import get_engine, get_planner, get_route_cache
from bikeshare_planner.core.exceptions import (
    ResourceNotFoundException,
    RoutingException,
    ServiceUnavailableException,
    StationUnavailableException,
    sanitize_error_message,
)
from bikeshare_planner.db.session import get_db
from bikeshare_planner.main import app
from bikeshare_planner.schemas.routing import JourneyResult, RouteCategory
from bikeshare_planner.services.routing.builder import RouteBuilder
from bikeshare_planner.services.routing.engine import NoRouteFound, RoutingEngineError
from bikeshare_planner.services.routing.journey import JourneyValidationError
from bikeshare_planner.services.stations import StationUnavailable
from tests.factories import coordinate, make_path, route_station, walk_path

JOURNEY_BODY = {
    "start": {"lat": 37.5665, "lng": 126.9780},
    "end": {"lat": 37.5511, "lng": 126.9882},
}


def sample_result():
    itinerary = RouteBuilder(MagicMock()).build_three_leg_route(
        walk_path(),
        make_path(3000, 700000, "safe_bike"),
        walk_path(),
        route_station("A"),
        route_station("B"),
        RouteCategory.BIKE_PRIORITY,
        "abc-12345678",
    )
    return JourneyResult(routes=[itinerary], processing_time=12.5)


@pytest.fixture
def planner():
    planner = MagicMock()
    planner.plan = AsyncMock(return_value=sample_result())
    planner.plan_out_and_back = AsyncMock(return_value=sample_result())
    return planner


@pytest.fixture
def cache():
    cache = MagicMock()
    cache.get = AsyncMock(return_value=None)
    cache.ping = AsyncMock(return_value=True)
    return cache


@pytest.fixture
def engine():
    engine = MagicMock()
    engine.graphhopper_url = "http://graphhopper.test"
    engine.client.get = AsyncMock(return_value=MagicMock(status_code=200))
    return engine


@pytest.fixture
def db_session():
    return AsyncMock()


@pytest.fixture
def client(planner, cache, engine, db_session):
    async def override_db():
        yield db_session

    app.dependency_overrides[get_planner] = lambda: planner
    app.dependency_overrides[get_route_cache] = lambda: cache
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_db] = override_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# =============================================================================
# Journey Endpoint Tests
# =============================================================================

class TestJourneyEndpoints:
    """Tests for the three search endpoints."""

    def test_full_journey_returns_routes_without_instructions(self, client, planner):
        response = client.post("/api/v1/routes/full-journey", json=JOURNEY_BODY)

        assert response.status_code == 200
        data = response.json()
        assert data["processing_time"] == 12.5
        route = data["routes"][0]
        assert route["route_id"] == "abc-12345678"
        assert route["route_category"] == "bike_priority"
        assert route["route_label"] == "Bike lane priority"
        assert all("instructions" not in segment for segment in route["segments"])
        # walking segments carry no bike figures
        assert "bike_road_ratio" not in route["segments"][0]["summary"]
        planner.plan.assert_awaited_once()

    def test_request_is_forwarded_to_planner(self, client, planner):
        body = dict(JOURNEY_BODY, waypoints=[{"lat": 37.56, "lng": 126.98}])

        client.post("/api/v1/routes/full-journey", json=body)

        journey_request = planner.plan.await_args.args[0]
        assert journey_request.end == coordinate(37.5511, 126.9882)
        assert journey_request.waypoints == [coordinate(37.56, 126.98)]
        assert journey_request.target_distance is None

    def test_round_trip_search(self, client, planner):
        response = client.post("/api/v1/routes/round-trip/search", json=JOURNEY_BODY)

        assert response.status_code == 200
        start, destination, waypoints = planner.plan_out_and_back.await_args.args
        assert start == coordinate(37.5665, 126.9780)
        assert destination == coordinate(37.5511, 126.9882)
        assert waypoints == []

    def test_round_trip_recommend(self, client, planner):
        response = client.post(
            "/api/v1/routes/round-trip/recommend",
            json={"start": JOURNEY_BODY["start"], "target_distance": 5000},
        )

        assert response.status_code == 200
        journey_request = planner.plan.await_args.args[0]
        assert journey_request.target_distance == 5000
        assert journey_request.end is None

    def test_request_id_header_is_returned(self, client):
        response = client.post(
            "/api/v1/routes/full-journey", json=JOURNEY_BODY, headers={"X-Request-ID": "trace-1"}
        )
        assert response.headers["X-Request-ID"] == "trace-1"


# =============================================================================
# Request Validation Tests
# =============================================================================

class TestRequestValidation:
    """Tests for schema-level rejection of bad bodies."""

    def test_too_many_waypoints(self, client, planner):
        body = dict(JOURNEY_BODY, waypoints=[{"lat": 37.56, "lng": 126.98}] * 4)

        response = client.post("/api/v1/routes/full-journey", json=body)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        planner.plan.assert_not_awaited()

    def test_target_distance_out_of_range(self, client):
        response = client.post(
            "/api/v1/routes/round-trip/recommend",
            json={"start": JOURNEY_BODY["start"], "target_distance": 50},
        )
        assert response.status_code == 422

    def test_latitude_out_of_range(self, client):
        body = {"start": {"lat": 100, "lng": 126.9}, "end": JOURNEY_BODY["end"]}
        response = client.post("/api/v1/routes/full-journey", json=body)
        assert response.status_code == 422

    def test_missing_end(self, client):
        response = client.post("/api/v1/routes/full-journey", json={"start": JOURNEY_BODY["start"]})
        assert response.status_code == 422


# =============================================================================
# Error Mapping Tests
# =============================================================================

class TestErrorMapping:
    """Planner failures become consistent error responses."""

    @pytest.mark.parametrize("error, status, code", [
        (JourneyValidationError("A round trip needs at least one waypoint"), 422, "VALIDATION_ERROR"),
        (StationUnavailable("start"), 422, "NO_STATION_NEARBY"),
        (NoRouteFound("No bike route between stations"), 422, "ROUTING_ERROR"),
        (RoutingEngineError("Connection refused"), 503, "SERVICE_UNAVAILABLE"),
    ])
    def test_domain_errors(self, client, planner, error, status, code):
        planner.plan.side_effect = error

        response = client.post("/api/v1/routes/full-journey", json=JOURNEY_BODY)

        assert response.status_code == status
        body = response.json()["error"]
        assert body["code"] == code
        assert body["request_id"]

    def test_engine_failure_hides_reason(self, client, planner):
        planner.plan.side_effect = RoutingEngineError("http://graphhopper:8989 refused connection")

        response = client.post("/api/v1/routes/full-journey", json=JOURNEY_BODY)

        assert "graphhopper" not in response.json()["error"]["message"]

    def test_station_error_names_the_side(self, client, planner):
        planner.plan_out_and_back.side_effect = StationUnavailable("round-trip start")

        response = client.post("/api/v1/routes/round-trip/search", json=JOURNEY_BODY)

        assert response.status_code == 422
        assert "round-trip start" in response.json()["error"]["message"]

    def test_exception_status_codes(self):
        assert StationUnavailableException().status_code == 422
        assert RoutingException().status_code == 422
        assert ServiceUnavailableException(service="Routing engine").status_code == 503
        assert ResourceNotFoundException("Route", "abc").status_code == 404

    def test_sanitize_error_message(self):
        assert "postgresql" not in sanitize_error_message("postgresql+asyncpg://user@db failed")
        assert sanitize_error_message("Route not found") == "Route not found"
        assert len(sanitize_error_message("x" * 500)) == 203


# =============================================================================
# Route Detail Tests
# =============================================================================

class TestRouteDetail:
    """Tests for fetching a cached route record."""

    def test_cached_record_is_returned(self, client, cache):
        record = {"route_id": "abc-12345678", "distance": 3000.0, "instructions": []}
        cache.get.return_value = record

        response = client.get("/api/v1/routes/abc-12345678")

        assert response.status_code == 200
        assert response.json() == record
        cache.get.assert_awaited_once_with("abc-12345678")

    def test_expired_record_is_404(self, client, cache):
        cache.get.return_value = None

        response = client.get("/api/v1/routes/expired")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_redis_outage_is_503(self, client, cache):
        cache.get.side_effect = RedisConnectionError("Connection refused")

        response = client.get("/api/v1/routes/abc")

        assert response.status_code == 503


# =============================================================================
# Health Endpoint Tests
# =============================================================================

class TestHealthEndpoints:
    """Tests for liveness and readiness probes."""

    def test_liveness(self, client):
        assert client.get("/health").json()["status"] == "healthy"
        assert client.get("/api/v1/health").json() == {"status": "healthy"}

    def test_ready_when_all_dependencies_answer(self, client):
        response = client.get("/api/v1/health/ready")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ready",
            "checks": {"database": True, "graphhopper": True, "redis": True},
        }

    def test_not_ready_when_engine_is_down(self, client, engine):
        engine.client.get.side_effect = httpx.ConnectError("Connection refused")

        response = client.get("/api/v1/health/ready")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "not_ready"
        assert data["checks"]["graphhopper"] is False
        assert "graphhopper" in data["errors"]

    def test_not_ready_when_database_fails(self, client, db_session):
        db_session.execute.side_effect = ConnectionError("database unreachable")

        response = client.get("/api/v1/health/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["database"] is False

    def test_not_ready_when_redis_fails(self, client, cache):
        cache.ping.side_effect = RedisConnectionError("Connection refused")

        response = client.get("/api/v1/health/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["redis"] is False


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
