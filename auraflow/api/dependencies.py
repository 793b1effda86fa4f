"""
FastAPI Dependencies - Service container and caller identity.

NO DICTIONARIES - All dependencies return typed objects.
"""

from dataclasses import dataclass

from fastapi import Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog import get_logger

from auraflow.config import Settings
from auraflow.db.repositories import (
    AchievementRepository,
    DailyDropRepository,
    MessageRepository,
    UserRepository,
)
from auraflow.db.session import ping_database
from auraflow.services.achievements import AchievementService
from auraflow.services.anthropic_provider import AnthropicProvider
from auraflow.services.cache import NullDailyDropCache, TTLDailyDropCache
from auraflow.services.daily_drop import DailyDropService
from auraflow.services.deduplication import DeduplicationService
from auraflow.services.entitlements import EntitlementValidator
from auraflow.services.message_generation import MessageGenerationService
from auraflow.services.openai_provider import OpenAIProvider
from auraflow.services.orchestrator import AIOrchestrator
from auraflow.services.payments import PaymentService
from auraflow.services.retry import RetryPolicy
from auraflow.services.revenuecat_provider import RevenueCatProvider
from auraflow.services.stripe_provider import StripeProvider
from auraflow.services.wisdom_points import WisdomPointsService

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Services built once at startup and shared by every request."""

    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    users: UserRepository
    orchestrator: AIOrchestrator
    anthropic: AnthropicProvider
    revenuecat: RevenueCatProvider
    stripe: StripeProvider
    payments: PaymentService
    entitlements: EntitlementValidator
    messages: MessageGenerationService
    daily_drops: DailyDropService
    wisdom_points: WisdomPointsService
    achievements: AchievementService

    async def aclose(self) -> None:
        """Release pooled HTTP connections."""
        await self.anthropic.aclose()
        await self.revenuecat.aclose()


def build_services(
    settings: Settings, session_factory: async_sessionmaker[AsyncSession]
) -> ServiceContainer:
    """Wire repositories, providers and services from settings."""
    users = UserRepository(session_factory)
    wisdom_points = WisdomPointsService(users)
    message_repository = MessageRepository(session_factory)
    drop_repository = DailyDropRepository(session_factory)

    openai_provider = OpenAIProvider(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout=settings.ai_request_timeout,
        max_retries=settings.ai_max_retries,
    )
    anthropic_provider = AnthropicProvider(
        api_key=settings.anthropic_api_key,
        model=settings.anthropic_model,
        base_url=settings.anthropic_api_url,
        timeout=settings.ai_request_timeout,
        max_retries=settings.ai_max_retries,
    )
    orchestrator = AIOrchestrator(
        providers=[openai_provider, anthropic_provider],
        preferred_provider=settings.preferred_ai_provider,
        fallback_enabled=settings.enable_ai_fallback,
    )

    revenuecat = RevenueCatProvider(
        api_key=settings.revenuecat_api_key,
        base_url=settings.revenuecat_api_url,
        timeout=settings.ai_request_timeout,
    )
    stripe_provider = StripeProvider(
        api_key=settings.stripe_api_key,
        webhook_secret=settings.stripe_webhook_secret,
        premium_core_price_id=settings.stripe_premium_core_price_id,
        voice_pack_price_id=settings.stripe_voice_pack_price_id,
    )
    payments = PaymentService(revenuecat, stripe_provider, users)
    validator = EntitlementValidator(payments)

    messages = MessageGenerationService(
        users=users,
        messages=message_repository,
        validator=validator,
        orchestrator=orchestrator,
        deduplication=DeduplicationService(
            message_repository,
            source="generated_messages",
            window_days=settings.dedup_window_days,
            max_records=settings.dedup_max_records,
            threshold=settings.dedup_similarity_threshold,
        ),
        database_check=lambda: ping_database(session_factory),
        max_attempts=settings.message_max_retries,
        cache_enabled=settings.message_cache_enabled,
        cache_window_minutes=settings.message_cache_window_minutes,
        max_words=settings.max_words_per_message,
    )

    cache = (
        TTLDailyDropCache(
            ttl_seconds=settings.daily_drop_cache_ttl_seconds,
            max_entries=settings.daily_drop_cache_max_entries,
        )
        if settings.daily_drop_cache_enabled
        else NullDailyDropCache()
    )
    daily_drops = DailyDropService(
        orchestrator=orchestrator,
        repository=drop_repository,
        deduplication=DeduplicationService(
            drop_repository,
            source="daily_drops",
            window_days=settings.dedup_window_days,
            max_records=settings.dedup_max_records,
            threshold=settings.dedup_similarity_threshold,
        ),
        retry_policy=RetryPolicy(max_attempts=settings.daily_drop_max_retries),
        cache=cache,
        supported_locales=settings.supported_locale_list,
        max_words=settings.max_words_per_message,
    )

    logger.info(
        "services_initialized",
        preferred_ai_provider=settings.preferred_ai_provider,
        ai_fallback_enabled=settings.enable_ai_fallback,
        daily_drop_cache_enabled=settings.daily_drop_cache_enabled,
        supported_locales=settings.supported_locale_list,
    )

    return ServiceContainer(
        settings=settings,
        session_factory=session_factory,
        users=users,
        orchestrator=orchestrator,
        anthropic=anthropic_provider,
        revenuecat=revenuecat,
        stripe=stripe_provider,
        payments=payments,
        entitlements=validator,
        messages=messages,
        daily_drops=daily_drops,
        wisdom_points=wisdom_points,
        achievements=AchievementService(AchievementRepository(session_factory), wisdom_points),
    )


def get_services(request: Request) -> ServiceContainer:
    """The container built in the application lifespan."""
    services: ServiceContainer = request.app.state.services
    return services


async def get_user_id(x_user_id: str | None = Header(None, alias="X-User-ID")) -> str:
    """
    Caller's user id, set by the upstream auth gateway.

    Raises:
        HTTPException 401 if the header is missing or blank
    """
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header required",
        )
    return x_user_id.strip()

