"""
Daily Drop Service - One shared, locale-scoped message per calendar date.

Terminal states per (date, locale): already_exists, succeeded, fallback_used.
The (date, locale) insert is the authority; the existence pre-check only
avoids paying for generation that would be discarded.
"""

import asyncio
from dataclasses import replace
from datetime import UTC, date, datetime, timedelta
from typing import Callable

from structlog import get_logger

from auraflow.db.repositories import DailyDropRepository
from auraflow.exceptions import ContentGenerationError, ValidationError
from auraflow.models.api import MessageCategory
from auraflow.models.domain import (
    FALLBACK_MODEL,
    DailyChallenge,
    DailyDrop,
    DailyDropResult,
    GenerationRequest,
    ProviderResponse,
)
from auraflow.observability.metrics import metrics
from auraflow.observability.tracing import trace_operation
from auraflow.services.cache import DailyDropCache, NullDailyDropCache, cache_key
from auraflow.services.deduplication import DeduplicationService
from auraflow.services.fallback_content import (
    get_fallback_challenge,
    get_fallback_content,
    pick_for_date,
)
from auraflow.services.orchestrator import AIOrchestrator
from auraflow.services.prompts import (
    build_challenge_prompt,
    build_daily_drop_prompt,
    enforce_word_limit,
)
from auraflow.services.retry import RetryPolicy

logger = get_logger(__name__)

SYSTEM_DAILY_DROP_USER = "system-daily-drop"
SYSTEM_DAILY_CHALLENGE_USER = "system-daily-challenge"
DAILY_DROP_TEMPERATURE = 0.9
CHALLENGE_TEMPERATURE = 0.8
CHALLENGE_POINTS = 5
CHALLENGE_MAX_WORDS = 25
MAX_HISTORY_LIMIT = 100


def _utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class DailyDropService:
    """Generates, persists and serves the Daily Drop and its challenge."""

    def __init__(
        self,
        orchestrator: AIOrchestrator,
        repository: DailyDropRepository,
        deduplication: DeduplicationService,
        retry_policy: RetryPolicy | None = None,
        cache: DailyDropCache | None = None,
        supported_locales: list[str] | None = None,
        max_words: int = 40,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """
        Initialize Daily Drop service.

        Args:
            orchestrator: AI orchestrator used for drops and challenges
            repository: Daily drop and challenge storage
            deduplication: Dedup engine over prior daily drops
            retry_policy: Attempt budget and backoff between attempts
            cache: Optional read-through cache; no-op when omitted
            supported_locales: Locales accepted; any locale when omitted
            max_words: Word ceiling applied to generated drops
            clock: Current time provider
        """
        self.orchestrator = orchestrator
        self.repository = repository
        self.deduplication = deduplication
        self.retry_policy = retry_policy or RetryPolicy()
        self.cache = cache if cache is not None else NullDailyDropCache()
        self.supported_locales = supported_locales
        self.max_words = max_words
        self.clock = clock

    def _validate_locale(self, locale: str) -> None:
        if self.supported_locales is not None and locale not in self.supported_locales:
            raise ValidationError(f"Unsupported locale: {locale}", field="locale")

    async def get_daily_drop(self, day: date, locale: str = "en-US") -> DailyDropResult:
        """Cached result for (date, locale), generating it on a miss."""
        self._validate_locale(locale)
        key = cache_key(day, locale)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("daily_drop_cache_hit", key=key)
            return replace(cached, was_generated=False)

        result = await self.generate_daily_drop(day, locale)
        self.cache.set(key, result)
        return result

    async def generate_daily_drop(
        self,
        day: date,
        locale: str = "en-US",
        category: MessageCategory = MessageCategory.MOTIVATIONAL,
        fallback_content: list[str] | None = None,
    ) -> DailyDropResult:
        """
        Return the drop for (date, locale), generating it if absent.

        Args:
            day: Calendar date of the drop
            locale: Audience locale
            category: Category used for the prompt and the curated pool
            fallback_content: Caller-supplied pool replacing the curated one

        Returns:
            DailyDropResult; was_generated is False when the row already
            existed or a concurrent writer inserted it first
        """
        self._validate_locale(locale)

        with trace_operation("daily_drop_generation", date=day.isoformat(), locale=locale):
            existing = await self.repository.get(day, locale)
            if existing is not None:
                challenge = await self.repository.get_challenge(day, locale)
                metrics.record_daily_drop("already_exists")
                logger.info("daily_drop_exists", date=day.isoformat(), locale=locale)
                return DailyDropResult(
                    daily_drop=existing,
                    daily_challenge=challenge,
                    was_generated=False,
                    used_fallback=existing.is_fallback,
                )

            challenge_task = asyncio.create_task(self._produce_challenge(day, locale))
            try:
                drop, created = await self._produce_drop(day, locale, category, fallback_content)
                challenge = await challenge_task
            finally:
                if not challenge_task.done():
                    challenge_task.cancel()

        if not created:
            metrics.record_daily_drop("already_exists")
        elif drop.is_fallback:
            metrics.record_daily_drop("fallback_used")
        else:
            metrics.record_daily_drop("succeeded")

        logger.info(
            "daily_drop_generated",
            date=day.isoformat(),
            locale=locale,
            created=created,
            model=drop.model,
            tokens=drop.tokens,
            has_challenge=challenge is not None,
        )

        return DailyDropResult(
            daily_drop=drop,
            daily_challenge=challenge,
            was_generated=created,
            used_fallback=drop.is_fallback,
        )

    async def _produce_drop(
        self,
        day: date,
        locale: str,
        category: MessageCategory,
        fallback_content: list[str] | None,
    ) -> tuple[DailyDrop, bool]:
        try:
            response = await self._generate_content(day, locale, category)
            content = enforce_word_limit(response.content, self.max_words)
            model, tokens = response.model, response.tokens
        except ContentGenerationError as exc:
            logger.warning(
                "daily_drop_using_fallback",
                date=day.isoformat(),
                locale=locale,
                error=str(exc),
            )
            if fallback_content:
                content = pick_for_date(fallback_content, day)
            else:
                content = get_fallback_content(category, day)
            model, tokens = FALLBACK_MODEL, 0

        return await self.repository.insert_or_get(day, locale, content, model, tokens)

    async def _generate_content(
        self, day: date, locale: str, category: MessageCategory
    ) -> ProviderResponse:
        """
        Generate with dedup re-checks under the retry policy.

        A duplicate on the final attempt is accepted rather than wasted.

        Raises:
            ContentGenerationError: Every attempt raised
        """
        request = GenerationRequest(
            user_id=SYSTEM_DAILY_DROP_USER,
            category=category,
            locale=locale,
            temperature=DAILY_DROP_TEMPERATURE,
            prompt=build_daily_drop_prompt(category, day),
        )
        policy = self.retry_policy
        last_error: Exception | None = None

        for attempt in range(1, policy.max_attempts + 1):
            try:
                response = await self.orchestrator.generate_message(request)
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "daily_drop_attempt_failed",
                    attempt=attempt,
                    max_attempts=policy.max_attempts,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                if policy.has_more(attempt):
                    await policy.wait(attempt)
                continue

            if await self.deduplication.is_duplicate(response.content, locale):
                if policy.has_more(attempt):
                    logger.warning(
                        "daily_drop_duplicate_retry",
                        attempt=attempt,
                        max_attempts=policy.max_attempts,
                        content=response.content[:50],
                    )
                    await policy.wait(attempt)
                    continue
                logger.warning("daily_drop_duplicate_accepted", attempt=attempt)

            return response

        raise ContentGenerationError(
            f"All {policy.max_attempts} daily drop attempts failed: {last_error}",
            category=category.value,
        ) from last_error

    async def _produce_challenge(self, day: date, locale: str) -> DailyChallenge | None:
        """Challenge sub-flow. Any failure leaves the drop intact and returns None."""
        try:
            existing = await self.repository.get_challenge(day, locale)
            if existing is not None:
                return existing

            try:
                response = await self.orchestrator.generate_message(
                    GenerationRequest(
                        user_id=SYSTEM_DAILY_CHALLENGE_USER,
                        category=MessageCategory.MINDFULNESS,
                        locale=locale,
                        temperature=CHALLENGE_TEMPERATURE,
                        prompt=build_challenge_prompt(),
                    )
                )
                task = enforce_word_limit(response.content, CHALLENGE_MAX_WORDS)
            except Exception as exc:
                logger.warning(
                    "daily_challenge_using_fallback",
                    date=day.isoformat(),
                    locale=locale,
                    error=str(exc),
                )
                task = get_fallback_challenge(day)

            return await self.repository.insert_or_get_challenge(
                day, locale, task, CHALLENGE_POINTS
            )
        except Exception as exc:
            logger.warning(
                "daily_challenge_failed",
                date=day.isoformat(),
                locale=locale,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return None

    async def get_historical_daily_drops(
        self,
        start: date,
        end: date,
        locale: str = "en-US",
        limit: int = 30,
    ) -> tuple[list[DailyDrop], int]:
        """Drops in [start, end], newest first, with the total in range."""
        if start > end:
            raise ValidationError("start must not be after end", field="start")
        if not 1 <= limit <= MAX_HISTORY_LIMIT:
            raise ValidationError(
                f"limit must be between 1 and {MAX_HISTORY_LIMIT}", field="limit"
            )
        self._validate_locale(locale)
        return await self.repository.history(start, end, locale, limit)

    async def cleanup_old_daily_drops(self, retention_days: int = 90) -> int:
        """Delete drops older than the retention window. Returns rows removed."""
        if retention_days < 1:
            raise ValidationError("retention_days must be at least 1", field="retention_days")
        cutoff = self.clock().date() - timedelta(days=retention_days)
        deleted = await self.repository.delete_older_than(cutoff)
        logger.info("daily_drops_cleaned_up", cutoff=cutoff.isoformat(), deleted=deleted)
        return deleted
