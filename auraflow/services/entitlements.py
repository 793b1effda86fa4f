"""
Entitlement Validator - Access, quota and cooldown decisions per user.

Fails closed for access (an expired local record grants nothing) but fails
open for availability (a payment outage still yields an answer).
"""

from datetime import UTC, datetime, timedelta
from typing import Callable

from structlog import get_logger

from auraflow.models.api import EntitlementType, MessageCategory, Platform, SubscriptionTier
from auraflow.models.domain import (
    Entitlement,
    EntitlementSummary,
    QuotaDecision,
    UsageSnapshot,
    User,
)
from auraflow.observability.metrics import metrics
from auraflow.services.payments import PaymentService

logger = get_logger(__name__)

FREE_TIER_CATEGORIES = frozenset({MessageCategory.MOTIVATIONAL, MessageCategory.PHILOSOPHY})
FREE_TIER_WINDOW = timedelta(hours=24)
PREMIUM_DAILY_LIMIT = 20
PREMIUM_COOLDOWN = timedelta(seconds=30)


def _utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def _next_utc_midnight(now: datetime) -> datetime:
    today = now.astimezone(UTC).replace(hour=0, minute=0, second=0, microsecond=0)
    return today + timedelta(days=1)


def has_current_entitlement(
    entitlements: list[Entitlement] | tuple[Entitlement, ...],
    entitlement_type: EntitlementType,
    now: datetime,
) -> bool:
    """True if an active, unexpired entitlement of that type exists."""
    return any(e.type == entitlement_type and e.is_current(now) for e in entitlements)


def compute_quota(
    has_premium_core: bool,
    last_activity_date: datetime | None,
    usage: UsageSnapshot | None,
    now: datetime,
) -> QuotaDecision:
    """
    Derive the quota decision from tier, activity and usage.

    Premium core: 20 per UTC day, and at least 30 seconds since the last
    generation. Free: one message per rolling 24 hours from last activity;
    eligible once exactly 24 hours have passed.
    """
    if has_premium_core:
        used = usage.messages_generated_today if usage else 0
        remaining = max(PREMIUM_DAILY_LIMIT - used, 0)
        last_generated = usage.last_generated_at if usage else None

        if last_generated is not None and now - last_generated < PREMIUM_COOLDOWN:
            return QuotaDecision(
                can_generate=False,
                remaining_messages=remaining,
                cooldown_ends_at=last_generated + PREMIUM_COOLDOWN,
                tier=SubscriptionTier.PREMIUM_CORE,
            )
        if remaining == 0:
            return QuotaDecision(
                can_generate=False,
                remaining_messages=0,
                cooldown_ends_at=_next_utc_midnight(now),
                tier=SubscriptionTier.PREMIUM_CORE,
            )
        return QuotaDecision(
            can_generate=True,
            remaining_messages=remaining,
            cooldown_ends_at=now + PREMIUM_COOLDOWN,
            tier=SubscriptionTier.PREMIUM_CORE,
        )

    if last_activity_date is None:
        return QuotaDecision(
            can_generate=True,
            remaining_messages=1,
            cooldown_ends_at=None,
            tier=SubscriptionTier.FREE,
        )

    can_generate = now - last_activity_date >= FREE_TIER_WINDOW
    return QuotaDecision(
        can_generate=can_generate,
        remaining_messages=1 if can_generate else 0,
        cooldown_ends_at=last_activity_date + FREE_TIER_WINDOW,
        tier=SubscriptionTier.FREE,
    )


class EntitlementValidator:
    """Per-user entitlement, quota, category and voice decisions."""

    def __init__(
        self,
        payments: PaymentService,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.payments = payments
        self.clock = clock

    async def validate_user_entitlements(self, user: User) -> EntitlementSummary:
        """Merged back-end entitlements, or the locally stored status if the merge fails."""
        try:
            entitlements = await self.payments.validate_entitlements(user.id)
        except Exception as exc:
            logger.error(
                "entitlement_validation_failed",
                user_id=user.id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return self._fallback_to_local_status(user)

        now = self.clock()
        summary = EntitlementSummary(
            has_premium_core=has_current_entitlement(
                entitlements, EntitlementType.PREMIUM_CORE, now
            ),
            has_voice_pack=has_current_entitlement(entitlements, EntitlementType.VOICE_PACK, now),
            entitlements=tuple(entitlements),
        )
        logger.debug(
            "entitlements_validated",
            user_id=user.id,
            has_premium_core=summary.has_premium_core,
            has_voice_pack=summary.has_voice_pack,
            entitlement_count=len(entitlements),
        )
        return summary

    def _fallback_to_local_status(self, user: User) -> EntitlementSummary:
        logger.info("entitlements_local_fallback", user_id=user.id)
        now = self.clock()
        entitlements: list[Entitlement] = []

        if (
            user.subscription_status == SubscriptionTier.PREMIUM_CORE
            and user.premium_expires_at is not None
            and user.premium_expires_at > now
        ):
            entitlements.append(
                Entitlement(
                    type=EntitlementType.PREMIUM_CORE,
                    platform=Platform.WEB,
                    expires_at=user.premium_expires_at,
                    is_active=True,
                )
            )

        if (
            user.subscription_status == SubscriptionTier.VOICE_PACK
            and user.voice_pack_expires_at is not None
            and user.voice_pack_expires_at > now
        ):
            entitlements.append(
                Entitlement(
                    type=EntitlementType.VOICE_PACK,
                    platform=Platform.WEB,
                    expires_at=user.voice_pack_expires_at,
                    is_active=True,
                )
            )

        return EntitlementSummary(
            has_premium_core=any(e.type == EntitlementType.PREMIUM_CORE for e in entitlements),
            has_voice_pack=any(e.type == EntitlementType.VOICE_PACK for e in entitlements),
            entitlements=tuple(entitlements),
        )

    async def check_message_generation_quota(
        self,
        user: User,
        usage: UsageSnapshot | None = None,
        summary: EntitlementSummary | None = None,
    ) -> QuotaDecision:
        """
        Whether the user may generate now.

        Args:
            user: The requesting user
            usage: Today's generation counters; premium limits assume none when omitted
            summary: Already-validated entitlements, to avoid a second back-end round-trip
        """
        summary = summary or await self.validate_user_entitlements(user)
        decision = compute_quota(
            summary.has_premium_core, user.last_activity_date, usage, self.clock()
        )
        if not decision.can_generate:
            metrics.record_quota_denial(decision.tier.value)
        return decision

    async def check_category_access(
        self,
        user: User,
        category: MessageCategory,
        summary: EntitlementSummary | None = None,
    ) -> bool:
        """Premium core unlocks every category; free users get motivational and philosophy."""
        summary = summary or await self.validate_user_entitlements(user)
        if summary.has_premium_core:
            return True
        return MessageCategory(category) in FREE_TIER_CATEGORIES

    async def check_voice_access(self, user: User) -> bool:
        """True iff a current voice_pack entitlement exists."""
        summary = await self.validate_user_entitlements(user)
        return summary.has_voice_pack
