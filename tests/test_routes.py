"""
Tests for API Routes.

Runs the FastAPI app against a service container wired over in-memory
fakes. The lifespan is not entered, so no database or provider is touched.
"""

from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from auraflow.api.dependencies import ServiceContainer
from auraflow.config import settings
from auraflow.main import app
from auraflow.models.api import EntitlementType, Platform
from auraflow.models.domain import Entitlement, SubscriptionResult
from auraflow.services.achievements import AchievementService
from auraflow.services.daily_drop import DailyDropService
from auraflow.services.deduplication import DeduplicationService
from auraflow.services.entitlements import EntitlementValidator
from auraflow.services.message_generation import MessageGenerationService
from auraflow.services.orchestrator import AIOrchestrator
from auraflow.services.payments import PaymentService
from auraflow.services.retry import RetryPolicy
from auraflow.services.revenuecat_provider import RevenueCatProvider
from auraflow.services.stripe_provider import StripeProvider
from auraflow.services.wisdom_points import WisdomPointsService
from tests.fakes import (
    NOW,
    FakeAchievementRepository,
    FakeEntitlementSource,
    FakeProvider,
    FakeUserRepository,
    make_user,
)

DAY = date(2025, 3, 14)


def _premium() -> Entitlement:
    return Entitlement(
        type=EntitlementType.PREMIUM_CORE,
        platform=Platform.WEB,
        expires_at=NOW + timedelta(days=30),
        is_active=True,
    )


def build_container(
    clock,
    sleep,
    users: FakeUserRepository,
    message_repository,
    drop_repository,
    entitlements: list[Entitlement] | None = None,
) -> ServiceContainer:
    """Real services over fakes, wired the way build_services wires them."""
    orchestrator = AIOrchestrator(
        [FakeProvider("openai"), FakeProvider("anthropic")], preferred_provider="openai"
    )
    revenuecat = RevenueCatProvider(api_key="rc_test", clock=clock)
    stripe_provider = StripeProvider(api_key="sk_test", webhook_secret="whsec_test")
    payments = PaymentService(
        revenuecat=revenuecat,
        stripe_provider=stripe_provider,
        users=users,
        sources=[FakeEntitlementSource("stripe", entitlements or [])],
        clock=clock,
    )
    validator = EntitlementValidator(payments, clock=clock)
    wisdom_points = WisdomPointsService(users)
    return ServiceContainer(
        settings=settings,
        session_factory=MagicMock(),
        users=users,
        orchestrator=orchestrator,
        anthropic=MagicMock(),
        revenuecat=revenuecat,
        stripe=stripe_provider,
        payments=payments,
        entitlements=validator,
        messages=MessageGenerationService(
            users=users,
            messages=message_repository,
            validator=validator,
            orchestrator=orchestrator,
            deduplication=DeduplicationService(
                message_repository, source="generated_messages", clock=clock
            ),
            database_check=AsyncMock(return_value=True),
            clock=clock,
        ),
        daily_drops=DailyDropService(
            orchestrator=orchestrator,
            repository=drop_repository,
            deduplication=DeduplicationService(drop_repository, source="daily_drops", clock=clock),
            retry_policy=RetryPolicy(max_attempts=3, sleep=sleep),
            clock=clock,
        ),
        wisdom_points=wisdom_points,
        achievements=AchievementService(FakeAchievementRepository(users), wisdom_points),
    )


@pytest.fixture
def users() -> FakeUserRepository:
    return FakeUserRepository([make_user("user-1", wisdom_points=10)])


@pytest.fixture
def client(clock, sleep, users, message_repository, drop_repository):
    app.state.services = build_container(clock, sleep, users, message_repository, drop_repository)
    yield TestClient(app)
    del app.state.services


HEADERS = {"X-User-ID": "user-1"}


class TestIdentity:
    """Tests for the X-User-ID requirement."""

    def test_missing_user_id(self, client):
        """Authenticated routes reject a missing caller id."""
        response = client.get("/v1/quota")
        assert response.status_code == 401
        assert response.json() == {"detail": "X-User-ID header required"}


class TestGenerateMessageRoute:
    """Tests for POST /v1/messages/generate."""

    def test_generate(self, client, message_repository):
        """A free user's first message is created."""
        response = client.post(
            "/v1/messages/generate",
            json={"category": "motivational", "time_of_day": "morning"},
            headers=HEADERS,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["content"] == "Every step forward counts."
        assert body["cached"] is False
        assert body["remaining_messages"] == 0
        assert body["time_of_day"] == "morning"
        assert len(message_repository.messages) == 1

    def test_premium_category_is_402(self, client):
        """Free users get PREMIUM_REQUIRED for premium categories."""
        response = client.post(
            "/v1/messages/generate", json={"category": "fitness"}, headers=HEADERS
        )

        assert response.status_code == 402
        assert response.json() == {
            "error": "PREMIUM_REQUIRED",
            "message": "Category 'fitness' requires premium_core",
            "category": "fitness",
        }

    def test_quota_exceeded_is_429(self, client):
        """A second free message inside the window is 429 with the cooldown."""
        client.post("/v1/messages/generate", json={"category": "philosophy"}, headers=HEADERS)
        response = client.post(
            "/v1/messages/generate", json={"category": "philosophy"}, headers=HEADERS
        )

        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "QUOTA_EXCEEDED"
        assert body["remaining_messages"] == 0
        assert body["cooldown_ends_at"] == (NOW + timedelta(hours=24)).isoformat()

    def test_unknown_user_is_404(self, client):
        """Unknown callers are NOT_FOUND."""
        response = client.post(
            "/v1/messages/generate",
            json={"category": "motivational"},
            headers={"X-User-ID": "ghost"},
        )
        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"

    def test_invalid_body_is_422(self, client):
        """Schema violations use the validation envelope."""
        response = client.post(
            "/v1/messages/generate",
            json={"category": "astrology", "temperature": 9},
            headers=HEADERS,
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert {tuple(e["loc"])[-1] for e in body["detail"]} == {"category", "temperature"}


class TestQuotaAndEntitlementRoutes:
    """Tests for GET /v1/quota and GET /v1/entitlements."""

    def test_quota(self, client):
        """A fresh free user may generate one message."""
        response = client.get("/v1/quota", headers=HEADERS)

        assert response.status_code == 200
        assert response.json() == {
            "can_generate": True,
            "remaining_messages": 1,
            "cooldown_ends_at": None,
            "tier": "free",
        }

    def test_entitlements(self, clock, sleep, users, message_repository, drop_repository):
        """Merged entitlements are listed."""
        app.state.services = build_container(
            clock, sleep, users, message_repository, drop_repository, entitlements=[_premium()]
        )
        try:
            response = TestClient(app).get("/v1/entitlements", headers=HEADERS)
        finally:
            del app.state.services

        assert response.status_code == 200
        body = response.json()
        assert body["has_premium_core"] is True
        assert body["has_voice_pack"] is False
        assert body["entitlements"][0]["platform"] == "web"


class TestDailyDropRoutes:
    """Tests for the daily drop endpoints."""

    def test_get_daily_drop(self, client):
        """The drop and its challenge are returned for the date."""
        response = client.get("/v1/daily-drop", params={"date": DAY.isoformat()})

        assert response.status_code == 200
        body = response.json()
        assert body["date"] == "2025-03-14"
        assert body["locale"] == "en-US"
        assert body["was_generated"] is True
        assert body["daily_challenge"]["points"] == 5

    def test_history(self, client, drop_repository):
        """History returns drops in range with the total."""
        client.get("/v1/daily-drop", params={"date": DAY.isoformat()})
        response = client.get(
            "/v1/daily-drop/history",
            params={"start": "2025-03-01", "end": "2025-03-31", "limit": 10},
        )

        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert response.json()["drops"][0]["date"] == "2025-03-14"

    def test_history_inverted_range(self, client):
        """An inverted range is a VALIDATION_ERROR."""
        response = client.get(
            "/v1/daily-drop/history", params={"start": "2025-03-31", "end": "2025-03-01"}
        )
        assert response.status_code == 400
        assert response.json()["field"] == "start"


class TestSubscriptionRoutes:
    """Tests for subscriptions and webhooks."""

    def test_web_subscription(self, client):
        """Web purchases are routed to Stripe."""
        app.state.services.stripe.create_subscription = AsyncMock(
            return_value=SubscriptionResult(
                success=True, subscription_id="sub_123", entitlements=()
            )
        )
        response = client.post(
            "/v1/subscriptions",
            json={"platform": "web", "product_id": "premium_core", "payment_method_id": "pm_1"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["subscription_id"] == "sub_123"

    def test_revenuecat_webhook(self, client, users):
        """RevenueCat events are applied to the user."""
        response = client.post(
            "/v1/webhooks/revenuecat",
            json={
                "event": {
                    "type": "INITIAL_PURCHASE",
                    "app_user_id": "user-1",
                    "entitlement_ids": ["premium"],
                    "expiration_at_ms": 1745000000000,
                }
            },
        )

        assert response.status_code == 200
        assert response.json() == {"received": True, "handled": True}
        assert users.subscription_changes[0][1] == EntitlementType.PREMIUM_CORE

    def test_revenuecat_webhook_not_object(self, client):
        """Non-object bodies are rejected."""
        response = client.post("/v1/webhooks/revenuecat", json=[1, 2, 3])
        assert response.status_code == 400
        assert response.json()["error"] == "WEBHOOK_ERROR"

    def test_stripe_webhook_bad_signature(self, client):
        """Unverifiable Stripe payloads are rejected."""
        response = client.post(
            "/v1/webhooks/stripe",
            content=b'{"id": "evt_1"}',
            headers={"stripe-signature": "t=1,v1=bogus"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "WEBHOOK_ERROR"


class TestPointsRoute:
    """Tests for POST /v1/points/challenge and GET /v1/achievements."""

    def test_award_default_action(self, client):
        """The default action is challenge completion; qualifying achievements unlock."""
        response = client.post("/v1/points/challenge", json={}, headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == "user-1"
        assert body["points_awarded"] == 5
        assert [a["key"] for a in body["achievements_unlocked"]] == [
            "first_steps",
            "challenge_accepted",
        ]
        # 10 + 5 for the challenge + 10 per unlock
        assert body["wisdom_points"] == 35

    def test_no_unlock_keeps_award_total(self, client):
        """Without a new unlock the balance is the award total."""
        client.post("/v1/points/challenge", json={}, headers=HEADERS)
        client.post("/v1/points/challenge", json={}, headers=HEADERS)

        response = client.post(
            "/v1/points/challenge", json={"action": "app_open"}, headers=HEADERS
        )

        body = response.json()
        assert body["achievements_unlocked"] == []
        assert body["points_awarded"] == 1

    def test_achievement_points_cannot_be_claimed(self, client, users):
        """achievement_unlock is rejected before any award."""
        response = client.post(
            "/v1/points/challenge", json={"action": "achievement_unlock"}, headers=HEADERS
        )

        assert response.status_code == 422
        assert users.transactions == []

    def test_list_achievements(self, client):
        """Earned achievements are listed apart from the locked ones."""
        client.post("/v1/points/challenge", json={}, headers=HEADERS)

        response = client.get("/v1/achievements", headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert [a["key"] for a in body["earned"]] == ["challenge_accepted", "first_steps"]
        assert all(a["earned_at"] for a in body["earned"])
        available = [a["key"] for a in body["available"]]
        assert "first_steps" not in available
        assert available[0] == "daily_visitor"
        assert len(body["earned"]) + len(available) == 15

    def test_achievements_unknown_user(self, client):
        """Unknown users get 404."""
        response = client.get("/v1/achievements", headers={"X-User-ID": "nobody"})
        assert response.status_code == 404


class TestRootRoutes:
    """Tests for root and metrics endpoints."""

    def test_root(self, client):
        """Root reports the service."""
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_metrics(self, client):
        """Prometheus text exposition is served."""
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "auraflow" in response.text
