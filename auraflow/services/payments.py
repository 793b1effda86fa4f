"""
Payment Service - Multi-back-end entitlement merge, subscriptions and webhooks.

NO DICTIONARIES - Webhooks arrive as a tagged union resolved by `type`.
"""

import asyncio
from datetime import UTC, datetime
from typing import Callable, Protocol

from structlog import get_logger

from auraflow.db.repositories import UserRepository
from auraflow.exceptions import AuraFlowError, PaymentProviderError
from auraflow.models.api import EntitlementType, Platform, RevenueCatEvent, StripeEvent
from auraflow.models.domain import Entitlement, SubscriptionIntent, SubscriptionResult
from auraflow.observability.metrics import metrics
from auraflow.services.revenuecat_provider import RevenueCatProvider, map_entitlement_id
from auraflow.services.stripe_provider import ACTIVE_STATUSES, StripeProvider

logger = get_logger(__name__)

REVENUECAT_ACTIVATION_EVENTS = frozenset(
    {"INITIAL_PURCHASE", "RENEWAL", "PRODUCT_CHANGE", "UNCANCELLATION"}
)
REVENUECAT_DEACTIVATION_EVENTS = frozenset({"CANCELLATION", "EXPIRATION"})
STRIPE_SUBSCRIPTION_EVENTS = frozenset(
    {"customer.subscription.created", "customer.subscription.updated"}
)


class EntitlementSource(Protocol):
    """A payment back-end that can report a user's entitlements."""

    name: str

    async def get_entitlements(self, user_id: str) -> list[Entitlement]:
        """Entitlements currently granted by this back-end."""
        ...


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _expiry_rank(entitlement: Entitlement) -> datetime:
    return entitlement.expires_at or datetime.max.replace(tzinfo=UTC)


def merge_entitlements(entitlements: list[Entitlement]) -> list[Entitlement]:
    """
    Keep one entitlement per type: the one with the latest expiry.

    A missing expiry outranks any date. Ties keep the first seen. Output
    preserves the order in which types first appeared.
    """
    merged: dict[EntitlementType, Entitlement] = {}
    for entitlement in entitlements:
        current = merged.get(entitlement.type)
        if current is None or _expiry_rank(entitlement) > _expiry_rank(current):
            merged[entitlement.type] = entitlement
    return list(merged.values())


class PaymentService:
    """Facade over RevenueCat (mobile) and Stripe (web)."""

    def __init__(
        self,
        revenuecat: RevenueCatProvider,
        stripe_provider: StripeProvider,
        users: UserRepository,
        sources: list[EntitlementSource] | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """
        Initialize payment service.

        Args:
            revenuecat: Mobile subscription provider
            stripe_provider: Web subscription provider
            users: Where webhook changes are mirrored
            sources: Entitlement sources to merge; both providers when omitted
            clock: Current time provider
        """
        self.revenuecat = revenuecat
        self.stripe = stripe_provider
        self.users = users
        self.sources: list[EntitlementSource] = sources or [revenuecat, stripe_provider]
        self.clock = clock

    async def validate_entitlements(self, user_id: str) -> list[Entitlement]:
        """
        Query every source concurrently and merge what answered.

        A failing source is logged and left out of the merge.

        Raises:
            PaymentProviderError: Every source failed
        """
        results = await asyncio.gather(
            *(source.get_entitlements(user_id) for source in self.sources),
            return_exceptions=True,
        )

        collected: list[Entitlement] = []
        failures: list[str] = []
        for source, result in zip(self.sources, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failures.append(source.name)
                metrics.record_entitlement_source_failure(source.name)
                logger.warning(
                    "entitlement_source_failed",
                    source=source.name,
                    user_id=user_id,
                    error=str(result),
                    error_type=type(result).__name__,
                )
                continue
            collected.extend(result)

        if self.sources and len(failures) == len(self.sources):
            raise PaymentProviderError("payments", f"All entitlement sources failed: {failures}")

        merged = merge_entitlements(collected)
        logger.debug(
            "entitlements_merged",
            user_id=user_id,
            collected=len(collected),
            merged=len(merged),
            failed_sources=failures,
        )
        return merged

    async def has_entitlement(self, user_id: str, entitlement_type: EntitlementType) -> bool:
        """True if a current entitlement of that type exists. False on any failure."""
        try:
            entitlements = await self.validate_entitlements(user_id)
        except AuraFlowError as exc:
            logger.warning("entitlement_check_failed", user_id=user_id, error=str(exc))
            return False
        now = self.clock()
        return any(e.type == entitlement_type and e.is_current(now) for e in entitlements)

    async def process_subscription(self, intent: SubscriptionIntent) -> SubscriptionResult:
        """Route web purchases to Stripe and mobile purchases to RevenueCat."""
        try:
            if intent.platform == Platform.WEB:
                return await self.stripe.create_subscription(intent)
            return await self.revenuecat.process_subscription(intent)
        except PaymentProviderError as exc:
            logger.error(
                "subscription_processing_failed",
                user_id=intent.user_id,
                platform=intent.platform.value,
                error=str(exc),
            )
            return SubscriptionResult(
                success=False, subscription_id=None, entitlements=(), error=exc.message
            )

    async def handle_webhook(self, envelope: RevenueCatEvent | StripeEvent) -> bool:
        """
        Apply a normalized webhook. Returns False for events we do not act on.
        """
        logger.info(
            "processing_webhook", webhook_type=envelope.type, webhook_event=envelope.event
        )
        if isinstance(envelope, RevenueCatEvent):
            return await self._handle_revenuecat(envelope)
        return await self._handle_stripe(envelope)

    async def _handle_revenuecat(self, envelope: RevenueCatEvent) -> bool:
        data = envelope.data
        if envelope.event == "BILLING_ISSUE":
            logger.warning(
                "revenuecat_billing_issue", user_id=data.app_user_id, product_id=data.product_id
            )
            return True

        if envelope.event in REVENUECAT_ACTIVATION_EVENTS:
            active = True
        elif envelope.event in REVENUECAT_DEACTIVATION_EVENTS:
            active = False
        else:
            logger.warning("unhandled_revenuecat_event", webhook_event=envelope.event)
            return False

        types = {t for t in (map_entitlement_id(e) for e in data.entitlement_ids) if t}
        if not types:
            logger.warning(
                "revenuecat_event_without_entitlements",
                webhook_event=envelope.event,
                user_id=data.app_user_id,
            )
            return False

        expires_at = data.expiration_at if active else (data.expiration_at or self.clock())
        for entitlement_type in sorted(types, key=lambda t: t.value):
            await self.users.apply_subscription_change(
                data.app_user_id, entitlement_type, expires_at, active
            )
        return True

    async def _handle_stripe(self, envelope: StripeEvent) -> bool:
        data = envelope.data
        if envelope.event == "invoice.payment_succeeded":
            logger.info("stripe_payment_succeeded", customer_id=data.customer_id)
            return True
        if envelope.event == "invoice.payment_failed":
            logger.warning(
                "stripe_payment_failed",
                customer_id=data.customer_id,
                subscription_id=data.subscription_id,
            )
            return True

        if envelope.event in STRIPE_SUBSCRIPTION_EVENTS:
            active = data.status in ACTIVE_STATUSES
        elif envelope.event == "customer.subscription.deleted":
            active = False
        else:
            logger.warning("unhandled_stripe_event", webhook_event=envelope.event)
            return False

        if not data.user_id:
            logger.warning(
                "stripe_subscription_missing_user", subscription_id=data.subscription_id
            )
            return False

        entitlement_type = self.stripe.map_price(data.price_id or "")
        if entitlement_type is None:
            return False

        expires_at = data.current_period_end if active else (
            data.current_period_end or self.clock()
        )
        return await self.users.apply_subscription_change(
            data.user_id, entitlement_type, expires_at, active
        )
