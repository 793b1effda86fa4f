"""
Tests for the exception hierarchy.

Every error carries a stable code, an HTTP status and typed details.
"""

from datetime import UTC, datetime

import pytest

from auraflow.exceptions import (
    AllProvidersFailedError,
    AuraFlowError,
    AuthenticationError,
    ContentGenerationError,
    DatabaseError,
    EntitlementError,
    ExternalServiceError,
    InvalidCategoryError,
    InvalidResponseError,
    NotFoundError,
    PaymentProviderError,
    ProviderAuthError,
    ProviderServerError,
    QuotaExceededError,
    RateLimitError,
    ValidationError,
    WebhookError,
)


class TestCodesAndStatuses:
    """Tests for the code and status table."""

    @pytest.mark.parametrize(
        ("error", "code", "status"),
        [
            (ValidationError("bad"), "VALIDATION_ERROR", 400),
            (InvalidCategoryError("astrology"), "INVALID_CATEGORY", 400),
            (NotFoundError("User", "u1"), "NOT_FOUND", 404),
            (EntitlementError("nope", user_id="u1"), "PREMIUM_REQUIRED", 402),
            (QuotaExceededError("u1", 0, None), "QUOTA_EXCEEDED", 429),
            (ProviderAuthError("openai"), "PROVIDER_AUTH_FAILED", 502),
            (RateLimitError("openai", 5), "RATE_LIMITED", 429),
            (ProviderServerError("openai", "boom"), "PROVIDER_SERVER_ERROR", 502),
            (InvalidResponseError("openai", "empty"), "PROVIDER_INVALID_RESPONSE", 502),
            (PaymentProviderError("stripe", "down"), "PAYMENT_PROVIDER_ERROR", 502),
            (DatabaseError("gone"), "DATABASE_ERROR", 500),
            (ContentGenerationError("failed"), "CONTENT_GENERATION_FAILED", 503),
            (AllProvidersFailedError("a", "b"), "AI_PROVIDERS_FAILED", 503),
            (WebhookError("bad sig"), "WEBHOOK_ERROR", 400),
        ],
    )
    def test_code_and_status(self, error, code, status):
        """Each error maps to its code and status."""
        assert isinstance(error, AuraFlowError)
        assert error.code == code
        assert error.status_code == status

    def test_hierarchy(self):
        """Specialized errors stay catchable through their families."""
        assert isinstance(InvalidCategoryError("x"), ValidationError)
        assert isinstance(ProviderAuthError("openai"), AuthenticationError)
        assert isinstance(ProviderServerError("openai", "x"), ExternalServiceError)
        assert isinstance(AllProvidersFailedError("a", "b"), ContentGenerationError)


class TestMessagesAndDetails:
    """Tests for messages and rendered details."""

    def test_not_found_message(self):
        """The message names the resource and identifier."""
        error = NotFoundError("User", "u1")
        assert error.message == "User not found: u1"
        assert str(error) == error.message
        assert error.details() == {}

    def test_validation_field(self):
        """The offending field is rendered when known."""
        assert ValidationError("bad", field="limit").details() == {"field": "limit"}
        assert ValidationError("bad").details() == {}

    def test_quota_details(self):
        """Quota errors report remaining messages and the cooldown end."""
        ends = datetime(2025, 3, 15, tzinfo=UTC)
        error = QuotaExceededError("u1", 0, ends)
        assert error.details() == {
            "remaining_messages": 0,
            "cooldown_ends_at": "2025-03-15T00:00:00+00:00",
        }
        assert QuotaExceededError("u1", 3, None).details()["cooldown_ends_at"] is None

    def test_entitlement_details(self):
        """Entitlement errors report the category."""
        error = EntitlementError("premium only", user_id="u1", category="fitness")
        assert error.details() == {"category": "fitness"}

    def test_provider_failures_carry_both_errors(self):
        """Both provider errors are kept and rendered."""
        error = AllProvidersFailedError("openai down", "anthropic down")
        assert "openai down" in error.message
        assert error.details() == {
            "primary_error": "openai down",
            "fallback_error": "anthropic down",
        }

    def test_rate_limit_retry_after(self):
        """Retry-after is rendered."""
        assert RateLimitError("anthropic", 12.0).details() == {"retry_after": 12.0}

    def test_external_service_message(self):
        """Upstream messages are prefixed with the service."""
        assert PaymentProviderError("stripe", "timeout").message == "stripe service error: timeout"
