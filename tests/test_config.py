"""Tests for application settings."""

import pytest
from pydantic import ValidationError

from bikeshare_planner.config import Settings


# =============================================================================
# Production Validation Tests
# =============================================================================

class TestProductionValidation:
    """Tests for the startup configuration check."""

    def test_default_settings_not_production_safe(self):
        """Default settings should fail production validation."""
        settings = Settings(app_env="production")
        errors = settings.validate_production_settings()

        assert any("devpassword" in e or "default password" in e for e in errors)
        assert any("localhost" in e for e in errors)

    def test_development_settings_allow_defaults(self):
        """Development mode should allow default values."""
        settings = Settings(app_env="development")
        assert settings.validate_production_settings() == []

    def test_production_rejects_debug(self):
        settings = Settings(
            app_env="production",
            debug=True,
            database_url="postgresql+asyncpg://planner:s3cure@db:5432/bikeshare",
            cors_origins=["https://planner.example.org"],
        )
        errors = settings.validate_production_settings()

        assert errors == ["DEBUG must be False in production"]

    def test_secure_production_settings_pass(self):
        settings = Settings(
            app_env="Production",
            database_url="postgresql+asyncpg://planner:s3cure@db:5432/bikeshare",
            cors_origins=["https://planner.example.org"],
        )
        assert settings.is_production()
        assert settings.validate_production_settings() == []


# =============================================================================
# Field Tests
# =============================================================================

class TestFields:
    """Tests for defaults and field validators."""

    def test_routing_defaults(self):
        settings = Settings()

        assert settings.round_trip_tolerance_degrees == 0.0001
        assert settings.circular_distance_tolerance == 0.1
        assert settings.circular_max_attempts == 10
        assert settings.route_cache_ttl_seconds == 180
        assert settings.max_waypoints == 3

    def test_engine_url_trailing_slash_is_stripped(self):
        settings = Settings(graphhopper_url="http://graphhopper:8989/")
        assert settings.graphhopper_url == "http://graphhopper:8989"

    def test_log_level_is_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(log_level="verbose")

    @pytest.mark.parametrize("field, value", [
        ("circular_distance_tolerance", 1.5),
        ("circular_max_attempts", 0),
        ("route_cache_ttl_seconds", 0),
    ])
    def test_out_of_range_tunables_rejected(self, field, value):
        with pytest.raises(ValidationError):
            Settings(**{field: value})


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
