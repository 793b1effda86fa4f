"""
Deduplication Engine - Lexical near-duplicate detection against recent history.

The decision is lexical only: exact lowercase match, then whitespace token-set
overlap. Lookup failures fail open so deduplication never blocks generation.
"""

from datetime import UTC, datetime, timedelta
from typing import Callable, Protocol

from structlog import get_logger

from auraflow.models.api import MessageCategory
from auraflow.models.domain import DeduplicationResult
from auraflow.observability.metrics import metrics

logger = get_logger(__name__)

DEFAULT_WINDOW_DAYS = 90
DEFAULT_MAX_RECORDS = 50
DEFAULT_THRESHOLD = 0.7


class ContentHistory(Protocol):
    """Source of previously accepted content."""

    async def recent_contents(
        self,
        locale: str,
        since: datetime,
        limit: int,
        category: MessageCategory | None = None,
    ) -> list[str]:
        """Newest-first content for a locale created at or after `since`."""
        ...


def lexical_similarity(a: str, b: str) -> float:
    """
    Token-set overlap of two strings, case-insensitive.

    similarity = |A & B| / max(|A|, |B|) over whitespace tokens; identical
    strings (after lowercasing) score 1.0.
    """
    left, right = a.lower(), b.lower()
    if left == right:
        return 1.0
    left_tokens = set(left.split())
    right_tokens = set(right.split())
    largest = max(len(left_tokens), len(right_tokens))
    if largest == 0:
        return 0.0
    return len(left_tokens & right_tokens) / largest


def _utc_now() -> datetime:
    return datetime.now(UTC)


class DeduplicationService:
    """Checks new content against a bounded window of a ContentHistory."""

    def __init__(
        self,
        history: ContentHistory,
        source: str,
        window_days: int = DEFAULT_WINDOW_DAYS,
        max_records: int = DEFAULT_MAX_RECORDS,
        threshold: float = DEFAULT_THRESHOLD,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """
        Initialize deduplication service.

        Args:
            history: Where prior content is read from
            source: Label for logs and metrics (daily_drops, generated_messages)
            window_days: How far back to look
            max_records: Cap on records compared
            threshold: Similarity strictly above this is a duplicate
            clock: Current time provider
        """
        self.history = history
        self.source = source
        self.window_days = window_days
        self.max_records = max_records
        self.threshold = threshold
        self.clock = clock

    async def check(
        self, content: str, locale: str, category: MessageCategory | None = None
    ) -> DeduplicationResult:
        """Compare content against the window and report the closest match."""
        since = self.clock() - timedelta(days=self.window_days)
        try:
            recent = await self.history.recent_contents(
                locale, since, self.max_records, category=category
            )
        except Exception as exc:
            metrics.record_dedup_degraded(self.source)
            logger.warning(
                "deduplication_degraded",
                source=self.source,
                locale=locale,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return DeduplicationResult(is_duplicate=False, similarity=0.0)

        lowered = content.lower()
        best_score = 0.0
        best_match: str | None = None
        for existing in recent:
            score = lexical_similarity(content, existing)
            if score > best_score:
                best_score, best_match = score, existing
            if score > self.threshold or existing.lower() == lowered:
                metrics.record_dedup_rejection(self.source)
                logger.info(
                    "duplicate_content_detected",
                    source=self.source,
                    locale=locale,
                    similarity=round(score, 3),
                )
                return DeduplicationResult(
                    is_duplicate=True, similarity=score, matched_content=existing
                )

        return DeduplicationResult(
            is_duplicate=False, similarity=best_score, matched_content=best_match
        )

    async def is_duplicate(
        self, content: str, locale: str, category: MessageCategory | None = None
    ) -> bool:
        """Shorthand for check(...).is_duplicate."""
        result = await self.check(content, locale, category)
        return result.is_duplicate
