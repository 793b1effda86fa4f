"""
Tests for API Dependencies.

Tests service wiring from settings and caller identity.
"""

from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException

from auraflow.api.dependencies import build_services, get_services, get_user_id
from auraflow.config import settings
from auraflow.services.cache import NullDailyDropCache, TTLDailyDropCache


class TestGetUserId:
    """Tests for get_user_id."""

    @pytest.mark.asyncio
    async def test_header_value_stripped(self):
        """The caller id is returned trimmed."""
        assert await get_user_id("  user-1 ") == "user-1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [None, "", "   "])
    async def test_missing_or_blank(self, value):
        """Missing or blank ids are 401."""
        with pytest.raises(HTTPException) as exc_info:
            await get_user_id(value)
        assert exc_info.value.status_code == 401


class TestBuildServices:
    """Tests for build_services."""

    @pytest.mark.asyncio
    async def test_wiring_follows_settings(self):
        """Providers, dedup and caches are configured from settings."""
        services = build_services(settings, MagicMock())
        try:
            assert services.settings is settings
            assert services.orchestrator.preferred_provider == settings.preferred_ai_provider
            assert services.orchestrator.fallback_enabled == settings.enable_ai_fallback
            assert services.messages.max_attempts == settings.message_max_retries
            assert services.messages.deduplication.source == "generated_messages"
            assert services.daily_drops.deduplication.source == "daily_drops"
            assert services.daily_drops.retry_policy.max_attempts == settings.daily_drop_max_retries
            assert services.daily_drops.supported_locales == settings.supported_locale_list
            expected_cache = (
                TTLDailyDropCache if settings.daily_drop_cache_enabled else NullDailyDropCache
            )
            assert isinstance(services.daily_drops.cache, expected_cache)
            assert services.payments.sources == [services.revenuecat, services.stripe]
            assert services.entitlements.payments is services.payments
            assert services.achievements.wisdom_points is services.wisdom_points
        finally:
            await services.aclose()

    def test_get_services_reads_app_state(self):
        """The container comes from application state."""
        request = MagicMock()
        assert get_services(request) is request.app.state.services
