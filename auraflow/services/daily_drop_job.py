"""
Daily Drop Job - Scheduled pre-generation across locales and weekly cleanup.

NO DICTIONARIES - Each locale's outcome is a LocaleOutcome; the run is a
DailyDropJobReport.
"""

import asyncio
from dataclasses import dataclass
from datetime import date

from structlog import get_logger

from auraflow.models.api import MessageCategory
from auraflow.observability.logging import log_context
from auraflow.services.daily_drop import DailyDropService

logger = get_logger(__name__)

CLEANUP_WEEKDAY = 6  # Sunday


@dataclass(frozen=True)
class LocaleOutcome:
    """Result of pre-generating one locale's drop."""

    locale: str
    succeeded: bool
    was_generated: bool = False
    used_fallback: bool = False
    error: str | None = None


@dataclass(frozen=True)
class DailyDropJobReport:
    """Summary of one scheduled run."""

    day: date
    outcomes: tuple[LocaleOutcome, ...]
    cleaned_up: int | None
    cleanup_failed: bool = False

    @property
    def failed_locales(self) -> list[str]:
        return [o.locale for o in self.outcomes if not o.succeeded]

    @property
    def ok(self) -> bool:
        return not self.failed_locales and not self.cleanup_failed


def is_cleanup_day(day: date) -> bool:
    """Cleanup runs once a week."""
    return day.weekday() == CLEANUP_WEEKDAY


async def _generate_locale(
    service: DailyDropService, day: date, locale: str, category: MessageCategory
) -> LocaleOutcome:
    try:
        result = await service.generate_daily_drop(day, locale, category)
    except Exception as exc:
        logger.error(
            "daily_drop_job_locale_failed",
            date=day.isoformat(),
            locale=locale,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return LocaleOutcome(locale=locale, succeeded=False, error=str(exc))

    logger.info(
        "daily_drop_job_locale_done",
        date=day.isoformat(),
        locale=locale,
        daily_drop_id=result.daily_drop.id,
        was_generated=result.was_generated,
        used_fallback=result.used_fallback,
        has_challenge=result.daily_challenge is not None,
    )
    return LocaleOutcome(
        locale=locale,
        succeeded=True,
        was_generated=result.was_generated,
        used_fallback=result.used_fallback,
    )


async def run_daily_drop_job(
    service: DailyDropService,
    day: date,
    locales: list[str],
    category: MessageCategory = MessageCategory.MOTIVATIONAL,
    cleanup: bool = False,
    retention_days: int = 90,
) -> DailyDropJobReport:
    """
    Pre-generate the drop for every locale, then optionally prune old drops.

    A failing locale never stops the others, and a failing cleanup never
    hides the generation results.

    Args:
        service: Daily Drop service
        day: Date to generate for
        locales: Locales to generate; blanks and repeats are skipped
        category: Category used for every locale
        cleanup: Run retention cleanup after generation
        retention_days: Cleanup retention window

    Returns:
        DailyDropJobReport with one outcome per locale
    """
    unique_locales = list(dict.fromkeys(loc.strip() for loc in locales if loc.strip()))
    logger.info(
        "daily_drop_job_started",
        date=day.isoformat(),
        locales=unique_locales,
        category=category.value,
        cleanup=cleanup,
    )

    with log_context(job="daily_drop_pregeneration"):
        outcomes = await asyncio.gather(
            *(_generate_locale(service, day, locale, category) for locale in unique_locales)
        )

    cleaned_up: int | None = None
    cleanup_failed = False
    if cleanup:
        try:
            cleaned_up = await service.cleanup_old_daily_drops(retention_days)
        except Exception as exc:
            cleanup_failed = True
            logger.error(
                "daily_drop_job_cleanup_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )

    report = DailyDropJobReport(
        day=day,
        outcomes=tuple(outcomes),
        cleaned_up=cleaned_up,
        cleanup_failed=cleanup_failed,
    )
    log = logger.info if report.ok else logger.warning
    log(
        "daily_drop_job_finished",
        date=day.isoformat(),
        succeeded=len(unique_locales) - len(report.failed_locales),
        failed=report.failed_locales,
        cleaned_up=cleaned_up,
        cleanup_failed=cleanup_failed,
    )
    return report
