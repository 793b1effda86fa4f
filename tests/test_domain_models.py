"""
Tests for Domain Models.

Tests validation in frozen dataclasses and the API request models.
"""

from dataclasses import FrozenInstanceError, replace
from datetime import date

import pytest
from pydantic import ValidationError as PydanticValidationError

from auraflow.models.api import (
    AchievementMetric,
    AwardPointsRequest,
    EntitlementType,
    GenerateMessageRequest,
    MessageCategory,
    Platform,
    PointsAction,
    SubscriptionRequest,
)
from auraflow.models.domain import (
    Achievement,
    AchievementCondition,
    DailyDrop,
    Entitlement,
    GenerationRequest,
    UsageSnapshot,
    UserStats,
)
from tests.fakes import NOW, make_user


class TestUser:
    """Tests for User validation."""

    def test_immutable(self):
        """Users are frozen."""
        user = make_user("u1")
        with pytest.raises(FrozenInstanceError):
            user.wisdom_points = 99  # type: ignore[misc]

    @pytest.mark.parametrize(
        "changes", [{"id": ""}, {"wisdom_points": -1}, {"streak_count": -1}]
    )
    def test_invalid_state(self, changes):
        """Empty ids and negative counters are rejected."""
        with pytest.raises(ValueError):
            replace(make_user("u1"), **changes)


class TestGenerationRequest:
    """Tests for GenerationRequest validation."""

    def test_defaults(self):
        """Locale defaults to en-US with no overrides."""
        request = GenerationRequest(user_id="u1", category=MessageCategory.FITNESS)
        assert request.locale == "en-US"
        assert request.temperature is None
        assert request.prompt is None

    @pytest.mark.parametrize("temperature", [-0.1, 2.1])
    def test_temperature_bounds(self, temperature):
        """Temperature must be within [0, 2]."""
        with pytest.raises(ValueError):
            GenerationRequest(user_id="u1", category="fitness", temperature=temperature)

    def test_user_required(self):
        """An empty user id is rejected."""
        with pytest.raises(ValueError):
            GenerationRequest(user_id="", category=MessageCategory.FITNESS)


class TestSmallModels:
    """Tests for usage, entitlements and drops."""

    def test_negative_usage_rejected(self):
        """Usage counters cannot be negative."""
        with pytest.raises(ValueError):
            UsageSnapshot(messages_generated_today=-1, last_generated_at=None)

    def test_entitlement_without_expiry_never_lapses(self):
        """Active entitlements with no expiry are always current."""
        entitlement = Entitlement(
            type=EntitlementType.VOICE_PACK, platform=Platform.IOS, expires_at=None, is_active=True
        )
        assert entitlement.is_current(NOW)

    def test_fallback_drop(self):
        """Drops from the curated pool are flagged."""
        drop = DailyDrop(
            id="d1",
            date=date(2025, 3, 14),
            content="Breathe.",
            locale="en-US",
            model="fallback",
            tokens=0,
            created_at=NOW,
        )
        assert drop.is_fallback
        assert not replace(drop, model="gpt-3.5-turbo").is_fallback


class TestRequestModels:
    """Tests for API request models."""

    def test_generate_request_rejects_unknown_category(self):
        """Categories are a closed set."""
        with pytest.raises(PydanticValidationError):
            GenerateMessageRequest(category="astrology")

    def test_subscription_product_id_trimmed(self):
        """Product ids are stored trimmed."""
        request = SubscriptionRequest(platform="web", product_id="  premium_core  ")
        assert request.product_id == "premium_core"

    def test_subscription_blank_product_rejected(self):
        """Whitespace-only product ids are rejected."""
        with pytest.raises(PydanticValidationError):
            SubscriptionRequest(platform="ios", product_id="   ")

    def test_achievement_points_not_claimable(self):
        """Achievement points are only granted by an unlock."""
        with pytest.raises(PydanticValidationError):
            AwardPointsRequest(action="achievement_unlock")
        assert AwardPointsRequest().action == PointsAction.DAILY_CHALLENGE_COMPLETE


class TestAchievementModels:
    """Tests for achievement catalog validation."""

    def test_threshold_must_be_positive(self):
        """A zero threshold would unlock for everyone."""
        with pytest.raises(ValueError, match="threshold"):
            AchievementCondition(AchievementMetric.SHARES_MADE, 0)

    def test_conditions_required(self):
        """Catalog entries need a key and at least one condition."""
        condition = AchievementCondition(AchievementMetric.SHARES_MADE, 1)
        fields = dict(
            name="Sharer",
            description="Share once",
            icon="🦋",
            badge_color="gold",
            points_required=3,
        )
        with pytest.raises(ValueError, match="no conditions"):
            Achievement(key="sharer", conditions=(), **fields)
        with pytest.raises(ValueError, match="key"):
            Achievement(key="", conditions=(condition,), **fields)

    def test_stats_value_by_metric(self):
        """Each metric reads the matching counter."""
        stats = UserStats(
            wisdom_points=1,
            streak_days=2,
            messages_generated=3,
            challenges_completed=4,
            shares_made=5,
        )
        assert [stats.value(m) for m in AchievementMetric] == [1, 2, 3, 4, 5]
