"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
Every exception carries a stable machine-readable code and an HTTP status.
"""

from datetime import datetime


class AuraFlowError(Exception):
    """Base exception for all AuraFlow errors."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def details(self) -> dict[str, object]:
        """Extra fields rendered next to code and message in API errors."""
        return {}


# ============================================================================
# Caller errors
# ============================================================================


class ValidationError(AuraFlowError):
    """Raised when input has a bad shape or enum value."""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)

    def details(self) -> dict[str, object]:
        return {"field": self.field} if self.field else {}


class InvalidCategoryError(ValidationError):
    """Raised when a category is not in the closed category set."""

    code = "INVALID_CATEGORY"

    def __init__(self, category: str) -> None:
        self.category = category
        super().__init__(f"Invalid message category: {category}", field="category")


class NotFoundError(AuraFlowError):
    """Raised when a referenced entity is absent."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier: str) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class EntitlementError(AuraFlowError):
    """Raised when the user lacks the entitlement for a capability."""

    code = "PREMIUM_REQUIRED"
    status_code = 402

    def __init__(self, message: str, user_id: str, category: str | None = None) -> None:
        self.user_id = user_id
        self.category = category
        super().__init__(message)

    def details(self) -> dict[str, object]:
        return {"category": self.category} if self.category else {}


class QuotaExceededError(AuraFlowError):
    """Raised when a user is out of messages or still in a cooldown window."""

    code = "QUOTA_EXCEEDED"
    status_code = 429

    def __init__(
        self, user_id: str, remaining_messages: int, cooldown_ends_at: datetime | None
    ) -> None:
        self.user_id = user_id
        self.remaining_messages = remaining_messages
        self.cooldown_ends_at = cooldown_ends_at
        super().__init__(f"Message generation quota exceeded for user {user_id}")

    def details(self) -> dict[str, object]:
        return {
            "remaining_messages": self.remaining_messages,
            "cooldown_ends_at": self.cooldown_ends_at.isoformat()
            if self.cooldown_ends_at
            else None,
        }


# ============================================================================
# Upstream errors
# ============================================================================


class AuthenticationError(AuraFlowError):
    """Raised when a credential is invalid or expired. Never retried."""

    code = "AUTHENTICATION_ERROR"
    status_code = 401


class ProviderAuthError(AuthenticationError):
    """Raised when an AI provider rejects our API key."""

    code = "PROVIDER_AUTH_FAILED"
    status_code = 502

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"{provider} authentication failed")


class RateLimitError(AuraFlowError):
    """Raised on provider-side throttling. Retryable after retry_after seconds."""

    code = "RATE_LIMITED"
    status_code = 429

    def __init__(self, provider: str, retry_after: float | None = None) -> None:
        self.provider = provider
        self.retry_after = retry_after
        super().__init__(f"{provider} rate limit exceeded")

    def details(self) -> dict[str, object]:
        return {"retry_after": self.retry_after}


class ExternalServiceError(AuraFlowError):
    """Raised on upstream 5xx or network failure."""

    code = "EXTERNAL_SERVICE_ERROR"
    status_code = 502

    def __init__(self, service: str, message: str) -> None:
        self.service = service
        super().__init__(f"{service} service error: {message}")


class ProviderServerError(ExternalServiceError):
    """Raised when an AI provider fails server-side. Retryable."""

    code = "PROVIDER_SERVER_ERROR"


class InvalidResponseError(ExternalServiceError):
    """Raised when an AI provider returns an empty or non-text payload."""

    code = "PROVIDER_INVALID_RESPONSE"


class PaymentProviderError(ExternalServiceError):
    """Raised when a payment back-end call fails."""

    code = "PAYMENT_PROVIDER_ERROR"


class DatabaseError(ExternalServiceError):
    """Raised when a datastore operation fails unexpectedly."""

    code = "DATABASE_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__("database", message)


class ContentGenerationError(AuraFlowError):
    """Raised when content could not be produced for a request."""

    code = "CONTENT_GENERATION_FAILED"
    status_code = 503

    def __init__(self, message: str, category: str | None = None) -> None:
        self.category = category
        super().__init__(message)


class AllProvidersFailedError(ContentGenerationError):
    """Raised when both the preferred and the fallback provider failed."""

    code = "AI_PROVIDERS_FAILED"

    def __init__(self, primary_error: str, fallback_error: str) -> None:
        self.primary_error = primary_error
        self.fallback_error = fallback_error
        super().__init__(
            f"All AI providers failed. Primary: {primary_error}; fallback: {fallback_error}"
        )

    def details(self) -> dict[str, object]:
        return {"primary_error": self.primary_error, "fallback_error": self.fallback_error}


class WebhookError(AuraFlowError):
    """Raised when a webhook cannot be verified or handled."""

    code = "WEBHOOK_ERROR"
    status_code = 400

    def __init__(self, message: str, webhook_type: str | None = None) -> None:
        self.webhook_type = webhook_type
        super().__init__(message)
