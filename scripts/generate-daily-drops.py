#!/usr/bin/env python3
"""
AuraFlow Daily Drop Pre-generation

Generates today's Daily Drop (and challenge) for every supported locale so
the first reader of the day never waits on an AI provider. On Sundays it also
deletes drops older than the retention window.

Usage:
    # Generate today's drops for SUPPORTED_LOCALES (default - for cron)
    python3 generate-daily-drops.py

    # Specific date and locales
    python3 generate-daily-drops.py --date 2025-03-14 --locales en-US,es-ES

    # Force or skip the weekly cleanup
    python3 generate-daily-drops.py --cleanup
    python3 generate-daily-drops.py --no-cleanup

    # Verbose logging
    LOG_LEVEL=DEBUG python3 generate-daily-drops.py
"""

import argparse
import asyncio
import sys
from datetime import UTC, date, datetime

from auraflow.api.dependencies import build_services
from auraflow.config import settings
from auraflow.db.session import close_engine, get_session_factory
from auraflow.models.api import MessageCategory
from auraflow.observability import get_logger, setup_logging
from auraflow.services.daily_drop_job import is_cleanup_day, run_daily_drop_job

logger = get_logger("generate_daily_drops")


async def run(day: date, locales: list[str], category: MessageCategory, cleanup: bool) -> bool:
    services = build_services(settings, get_session_factory())
    try:
        report = await run_daily_drop_job(
            services.daily_drops,
            day,
            locales,
            category=category,
            cleanup=cleanup,
            retention_days=settings.daily_drop_retention_days,
        )
    finally:
        await services.aclose()
        await close_engine()
    return report.ok


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Pre-generate AuraFlow Daily Drops",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        help="Date to generate (YYYY-MM-DD, default: today in UTC)",
    )
    parser.add_argument(
        "--locales",
        help="Comma-separated locales (default: SUPPORTED_LOCALES)",
    )
    parser.add_argument(
        "--category",
        type=MessageCategory,
        choices=list(MessageCategory),
        default=MessageCategory.MOTIVATIONAL,
        help="Message category (default: motivational)",
    )
    cleanup_group = parser.add_mutually_exclusive_group()
    cleanup_group.add_argument(
        "--cleanup", dest="cleanup", action="store_true", default=None, help="Always clean up"
    )
    cleanup_group.add_argument(
        "--no-cleanup", dest="cleanup", action="store_false", help="Never clean up"
    )
    args = parser.parse_args()

    setup_logging()

    day = args.date or datetime.now(UTC).date()
    locales = args.locales.split(",") if args.locales else settings.supported_locale_list
    cleanup = is_cleanup_day(day) if args.cleanup is None else args.cleanup

    ok = asyncio.run(run(day, locales, args.category, cleanup))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
