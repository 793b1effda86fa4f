"""
Tests for Status API Routes.

Tests status rendering from service health and the short response cache.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from auraflow.api import status_routes
from auraflow.api.status_routes import StatusLevel, build_status_response
from auraflow.config import settings
from auraflow.main import app
from auraflow.models.domain import AIHealthStatus, HealthLevel, ProviderHealth, ServiceHealth


def _health(
    status: HealthLevel = HealthLevel.HEALTHY,
    openai_ok: bool = True,
    anthropic_ok: bool = True,
    database_ok: bool = True,
) -> ServiceHealth:
    return ServiceHealth(
        status=status,
        ai=AIHealthStatus(
            status=HealthLevel.HEALTHY,
            providers=(
                ProviderHealth(name="openai", healthy=openai_ok),
                ProviderHealth(name="anthropic", healthy=anthropic_ok),
            ),
            preferred_provider="openai",
            fallback_enabled=True,
        ),
        database_healthy=database_ok,
    )


class TestStatusLevel:
    """Tests for StatusLevel enum."""

    def test_status_levels_exist(self):
        """StatusLevel has expected values."""
        assert StatusLevel.OPERATIONAL == "operational"
        assert StatusLevel.DEGRADED == "degraded"
        assert StatusLevel.OUTAGE == "outage"


class TestBuildStatusResponse:
    """Tests for build_status_response."""

    @pytest.mark.parametrize(
        ("level", "expected"),
        [
            (HealthLevel.HEALTHY, StatusLevel.OPERATIONAL),
            (HealthLevel.DEGRADED, StatusLevel.DEGRADED),
            (HealthLevel.UNHEALTHY, StatusLevel.OUTAGE),
        ],
    )
    def test_overall_level(self, level, expected):
        """Health levels map onto status page levels."""
        now = datetime(2025, 3, 14, tzinfo=UTC)
        response = build_status_response(_health(level), "auraflow-core", "0.1.0", now)

        assert response.status == expected
        assert response.timestamp == now.isoformat()

    def test_lists_providers_and_database(self):
        """Each provider and the datastore are listed."""
        response = build_status_response(
            _health(HealthLevel.UNHEALTHY, anthropic_ok=False, database_ok=False),
            "auraflow-core",
            "0.1.0",
            datetime.now(UTC),
        )

        assert [(p.name, p.status) for p in response.providers] == [
            ("openai", StatusLevel.OPERATIONAL),
            ("anthropic", StatusLevel.OUTAGE),
            ("postgresql", StatusLevel.OUTAGE),
        ]
        assert response.preferred_provider == "openai"
        assert response.fallback_enabled is True


class TestStatusEndpoint:
    """Tests for GET /v1/status."""

    @pytest.fixture
    def messages(self):
        status_routes._status_cache.clear()
        messages = MagicMock()
        messages.get_health_status = AsyncMock(return_value=_health(HealthLevel.DEGRADED))
        app.state.services = MagicMock(messages=messages, settings=settings)
        yield messages
        del app.state.services
        status_routes._status_cache.clear()

    def test_status(self, messages):
        """Status is public and reflects current health."""
        response = TestClient(app).get("/v1/status")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "degraded"
        assert body["service"] == settings.service_name
        assert body["version"] == settings.api_version
        assert len(body["providers"]) == 3

    def test_cached_between_polls(self, messages):
        """Repeated polls inside the cache window check once."""
        client = TestClient(app)
        client.get("/v1/status")
        client.get("/v1/status")

        assert messages.get_health_status.await_count == 1
