"""
Stripe Entitlement Provider - Web subscriptions.

NO DICTIONARIES - Stripe objects are mapped to Entitlement dataclasses.
"""

from datetime import UTC, datetime
from typing import Any

import stripe
from structlog import get_logger

from auraflow.exceptions import PaymentProviderError, WebhookError
from auraflow.models.api import EntitlementType, Platform, StripeEvent, StripeEventData
from auraflow.models.domain import Entitlement, SubscriptionIntent, SubscriptionResult

logger = get_logger(__name__)

SOURCE_NAME = "stripe"
ACTIVE_STATUSES = frozenset({"active", "trialing"})


def _from_epoch(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), UTC)


class StripeProvider:
    """
    Stripe subscription provider.

    Customers are linked to users through `metadata.user_id`.
    """

    name = SOURCE_NAME

    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        premium_core_price_id: str = "",
        voice_pack_price_id: str = "",
    ) -> None:
        """
        Initialize Stripe provider.

        Args:
            api_key: Stripe secret API key
            webhook_secret: Stripe webhook signing secret
            premium_core_price_id: Price that grants premium_core
            voice_pack_price_id: Price that grants voice_pack
        """
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.premium_core_price_id = premium_core_price_id
        self.voice_pack_price_id = voice_pack_price_id
        stripe.api_key = api_key

    def map_price(self, price_id: str) -> EntitlementType | None:
        """Entitlement granted by a price; configured ids first, then naming convention."""
        if price_id and price_id == self.premium_core_price_id:
            return EntitlementType.PREMIUM_CORE
        if price_id and price_id == self.voice_pack_price_id:
            return EntitlementType.VOICE_PACK
        if "premium" in price_id or "core" in price_id:
            return EntitlementType.PREMIUM_CORE
        if "voice" in price_id:
            return EntitlementType.VOICE_PACK
        logger.warning("stripe_unknown_price", price_id=price_id)
        return None

    def price_for_product(self, product_id: str) -> str:
        """Price id for an internal product id; unknown ids pass through as prices."""
        if product_id == EntitlementType.PREMIUM_CORE.value and self.premium_core_price_id:
            return self.premium_core_price_id
        if product_id == EntitlementType.VOICE_PACK.value and self.voice_pack_price_id:
            return self.voice_pack_price_id
        return product_id

    def subscription_entitlements(self, subscription: Any) -> list[Entitlement]:
        """Entitlements carried by one Stripe subscription object."""
        is_active = subscription["status"] in ACTIVE_STATUSES
        period_end = subscription.get("current_period_end")
        entitlements: list[Entitlement] = []
        for item in subscription["items"]["data"]:
            entitlement_type = self.map_price(item["price"]["id"])
            if entitlement_type is None:
                continue
            entitlements.append(
                Entitlement(
                    type=entitlement_type,
                    platform=Platform.WEB,
                    expires_at=_from_epoch(item.get("current_period_end") or period_end),
                    is_active=is_active,
                )
            )
        return entitlements

    async def _find_customer(self, user_id: str) -> Any | None:
        result = await stripe.Customer.search_async(query=f"metadata['user_id']:'{user_id}'")
        return result.data[0] if result.data else None

    async def get_entitlements(self, user_id: str) -> list[Entitlement]:
        """
        Entitlements from the user's active Stripe subscriptions.

        Raises:
            PaymentProviderError: If a Stripe API call fails
        """
        try:
            customer = await self._find_customer(user_id)
            if customer is None:
                logger.debug("stripe_customer_not_found", user_id=user_id)
                return []

            subscriptions = await stripe.Subscription.list_async(
                customer=customer.id, status="active"
            )
        except stripe.StripeError as exc:
            logger.error("stripe_entitlements_failed", user_id=user_id, error=str(exc))
            raise PaymentProviderError(SOURCE_NAME, str(exc)) from exc

        entitlements: list[Entitlement] = []
        for subscription in subscriptions.data:
            entitlements.extend(self.subscription_entitlements(subscription))

        logger.debug("stripe_entitlements_fetched", user_id=user_id, count=len(entitlements))
        return entitlements

    async def create_subscription(self, intent: SubscriptionIntent) -> SubscriptionResult:
        """
        Create a subscription for the user's customer, creating the customer if needed.

        Raises:
            PaymentProviderError: If a Stripe API call fails
        """
        try:
            logger.info(
                "creating_stripe_subscription",
                user_id=intent.user_id,
                product_id=intent.product_id,
            )

            customer = await self._find_customer(intent.user_id)
            if customer is None:
                customer = await stripe.Customer.create_async(
                    email=intent.customer_email,
                    metadata={"user_id": intent.user_id},
                )

            params: dict[str, Any] = {
                "customer": customer.id,
                "items": [{"price": self.price_for_product(intent.product_id)}],
                "payment_behavior": "default_incomplete",
                "payment_settings": {"save_default_payment_method": "on_subscription"},
                "expand": ["latest_invoice.payment_intent"],
                "metadata": {"user_id": intent.user_id, "product_id": intent.product_id},
            }
            if intent.payment_method_id:
                params["default_payment_method"] = intent.payment_method_id

            subscription = await stripe.Subscription.create_async(**params)

            logger.info(
                "stripe_subscription_created",
                user_id=intent.user_id,
                subscription_id=subscription.id,
                status=subscription.status,
            )

            return SubscriptionResult(
                success=True,
                subscription_id=subscription.id,
                entitlements=tuple(self.subscription_entitlements(subscription)),
            )

        except stripe.StripeError as exc:
            logger.error(
                "stripe_subscription_failed",
                user_id=intent.user_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise PaymentProviderError(SOURCE_NAME, str(exc)) from exc

    def parse_webhook(self, payload: bytes, signature: str) -> StripeEvent:
        """
        Verify a webhook with the Stripe SDK and normalize it into the tagged envelope.

        Raises:
            WebhookError: Signature invalid or payload malformed
        """
        try:
            event = stripe.Webhook.construct_event(  # type: ignore[no-untyped-call]
                payload, signature, self.webhook_secret
            )
        except stripe.SignatureVerificationError as exc:
            logger.error("stripe_webhook_verification_failed", error=str(exc))
            raise WebhookError("Invalid Stripe webhook signature", webhook_type=SOURCE_NAME) from exc
        except ValueError as exc:
            logger.error("stripe_webhook_parsing_failed", error=str(exc))
            raise WebhookError(f"Failed to parse Stripe webhook: {exc}", webhook_type=SOURCE_NAME) from exc

        obj = event["data"]["object"]
        metadata = obj.get("metadata") or {}
        price_id = None
        period_end = obj.get("current_period_end")
        items = obj.get("items")
        if items and items.get("data"):
            first_item = items["data"][0]
            price_id = first_item["price"]["id"]
            period_end = first_item.get("current_period_end") or period_end

        if obj.get("object") == "subscription":
            subscription_id = obj.get("id")
        else:
            subscription_id = obj.get("subscription")

        logger.info("stripe_webhook_verified", event_id=event["id"], event_type=event["type"])

        return StripeEvent(
            event=event["type"],
            data=StripeEventData(
                customer_id=obj.get("customer"),
                subscription_id=subscription_id,
                status=obj.get("status"),
                price_id=price_id,
                current_period_end=_from_epoch(period_end),
                user_id=metadata.get("user_id"),
            ),
            timestamp=_from_epoch(event.get("created")) or datetime.now(UTC),
        )
