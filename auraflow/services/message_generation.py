"""
Message Generation Service - Personalized, entitlement-gated messages.

Pipeline: validate -> load user -> category access -> quota -> response cache
-> orchestrator with dedup retries -> word ceiling -> persist -> record activity.
"""

from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from structlog import get_logger

from auraflow.db.repositories import MessageRepository, UserRepository
from auraflow.exceptions import (
    ContentGenerationError,
    EntitlementError,
    InvalidCategoryError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from auraflow.models.api import MessageCategory, TimeOfDay, WeatherBucket
from auraflow.models.domain import (
    GeneratedMessage,
    GenerationRequest,
    HealthLevel,
    ProviderResponse,
    QuotaDecision,
    ServiceHealth,
)
from auraflow.observability.metrics import metrics
from auraflow.observability.tracing import trace_operation
from auraflow.services.deduplication import DeduplicationService
from auraflow.services.entitlements import EntitlementValidator
from auraflow.services.orchestrator import AIOrchestrator
from auraflow.services.prompts import enforce_word_limit, get_template

logger = get_logger(__name__)

GPT4_COST_PER_TOKEN = 0.00003
DEFAULT_COST_PER_TOKEN = 0.000002


def _utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def estimate_cost(tokens: int, model: str) -> float:
    """Approximate USD cost of a generation."""
    rate = GPT4_COST_PER_TOKEN if "gpt-4" in model else DEFAULT_COST_PER_TOKEN
    return tokens * rate


class MessageGenerationService:
    """Generates personalized messages for one user at a time."""

    def __init__(
        self,
        users: UserRepository,
        messages: MessageRepository,
        validator: EntitlementValidator,
        orchestrator: AIOrchestrator,
        deduplication: DeduplicationService,
        database_check: Callable[[], Awaitable[bool]],
        max_attempts: int = 3,
        cache_enabled: bool = True,
        cache_window_minutes: int = 60,
        max_words: int = 40,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """
        Initialize message generation service.

        Args:
            users: User storage
            messages: Generated message storage
            validator: Entitlement and quota decisions
            orchestrator: AI orchestrator
            deduplication: Dedup engine over prior generated messages
            database_check: Datastore liveness check for health reporting
            max_attempts: Generation attempts before a duplicate is fatal
            cache_enabled: Serve a recent message for the same category instead of generating
            cache_window_minutes: How recent a cached message must be
            max_words: Word ceiling applied to generated content
            clock: Current time provider
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1: {max_attempts}")
        self.users = users
        self.messages = messages
        self.validator = validator
        self.orchestrator = orchestrator
        self.deduplication = deduplication
        self.database_check = database_check
        self.max_attempts = max_attempts
        self.cache_enabled = cache_enabled
        self.cache_window = timedelta(minutes=cache_window_minutes)
        self.max_words = max_words
        self.clock = clock

    async def generate_message(
        self,
        user_id: str,
        category: MessageCategory | str,
        time_of_day: TimeOfDay | None = None,
        weather_context: WeatherBucket | None = None,
        temperature: float | None = None,
        locale: str = "en-US",
    ) -> GeneratedMessage:
        """
        Generate a message for a user.

        Raises:
            ValidationError: Bad category, temperature or locale
            NotFoundError: Unknown user
            EntitlementError: Category requires premium core
            QuotaExceededError: Out of messages or inside a cooldown
            ContentGenerationError: Providers failed, or every attempt was a duplicate
        """
        if not user_id:
            raise ValidationError("user_id is required", field="user_id")
        try:
            category = MessageCategory(category)
        except ValueError:
            raise InvalidCategoryError(str(category)) from None
        if temperature is not None and not 0.0 <= temperature <= 2.0:
            raise ValidationError("temperature must be between 0 and 2", field="temperature")
        if not locale:
            raise ValidationError("locale is required", field="locale")

        with trace_operation("message_generation", user_id=user_id, category=category.value):
            user = await self.users.get(user_id)
            if user is None:
                raise NotFoundError("User", user_id)

            summary = await self.validator.validate_user_entitlements(user)
            if not await self.validator.check_category_access(user, category, summary):
                logger.info(
                    "category_access_denied", user_id=user_id, category=category.value
                )
                raise EntitlementError(
                    f"Category '{category.value}' requires premium_core",
                    user_id=user_id,
                    category=category.value,
                )

            now = self.clock()
            usage = await self.messages.usage(user_id, now)
            quota = await self.validator.check_message_generation_quota(user, usage, summary)
            if not quota.can_generate:
                logger.info(
                    "message_quota_exceeded",
                    user_id=user_id,
                    tier=quota.tier.value,
                    remaining_messages=quota.remaining_messages,
                )
                raise QuotaExceededError(
                    user_id, quota.remaining_messages, quota.cooldown_ends_at
                )

            if self.cache_enabled:
                recent = await self.messages.find_recent(
                    user_id, category, now - self.cache_window
                )
                if recent is not None:
                    logger.info(
                        "message_cache_hit", user_id=user_id, message_id=recent.id
                    )
                    metrics.record_message(category.value, cached=True)
                    return replace(
                        recent, cached=True, remaining_messages=quota.remaining_messages
                    )

            request = GenerationRequest(
                user_id=user_id,
                category=category,
                locale=locale,
                time_of_day=time_of_day,
                weather_context=weather_context,
                temperature=temperature,
            )
            response = await self._generate_unique(request)
            content = enforce_word_limit(response.content, self.max_words)

            saved = await self.messages.save(
                user_id=user_id,
                content=content,
                category=category,
                tokens=response.tokens,
                cost=estimate_cost(response.tokens, response.model),
                temperature=(
                    temperature if temperature is not None else get_template(category).temperature
                ),
                model=response.model,
                locale=locale,
                time_of_day=time_of_day,
                weather_context=weather_context,
            )
            await self.users.record_activity(user_id, self.clock())

        metrics.record_message(category.value, cached=False)
        logger.info(
            "message_generated",
            user_id=user_id,
            message_id=saved.id,
            category=category.value,
            model=saved.model,
            tokens=saved.tokens,
        )

        return replace(
            saved, cached=False, remaining_messages=max(quota.remaining_messages - 1, 0)
        )

    async def get_quota(self, user_id: str) -> QuotaDecision:
        """Current quota for a user without generating anything."""
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        usage = await self.messages.usage(user_id, self.clock())
        return await self.validator.check_message_generation_quota(user, usage)

    async def _generate_unique(self, request: GenerationRequest) -> ProviderResponse:
        """Generate until the content is not a near-duplicate of the user's history."""
        for attempt in range(1, self.max_attempts + 1):
            response = await self.orchestrator.generate_message(request)
            if not await self.deduplication.is_duplicate(
                response.content, request.locale, request.category
            ):
                return response
            logger.warning(
                "message_duplicate_retry",
                user_id=request.user_id,
                attempt=attempt,
                max_attempts=self.max_attempts,
            )

        raise ContentGenerationError(
            f"Could not generate unique content after {self.max_attempts} attempts",
            category=request.category.value,
        )

    async def get_health_status(self) -> ServiceHealth:
        """AI provider health plus a datastore check. Never cached."""
        ai = await self.orchestrator.get_health_status()
        database_healthy = await self.database_check()

        if not database_healthy or ai.status == HealthLevel.UNHEALTHY:
            status = HealthLevel.UNHEALTHY
        elif ai.status == HealthLevel.DEGRADED:
            status = HealthLevel.DEGRADED
        else:
            status = HealthLevel.HEALTHY

        return ServiceHealth(status=status, ai=ai, database_healthy=database_healthy)
