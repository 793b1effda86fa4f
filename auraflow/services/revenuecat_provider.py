"""
RevenueCat Entitlement Provider - Mobile (App Store / Play Store) subscriptions.

NO DICTIONARIES - Subscriber payloads are mapped to Entitlement dataclasses.
"""

from datetime import UTC, datetime, timedelta
from typing import Any, Callable

import httpx
from structlog import get_logger

from auraflow.exceptions import PaymentProviderError, WebhookError
from auraflow.models.api import EntitlementType, Platform, RevenueCatEvent, RevenueCatEventData
from auraflow.models.domain import Entitlement, SubscriptionIntent, SubscriptionResult

logger = get_logger(__name__)

SOURCE_NAME = "revenuecat"
LIFETIME_HORIZON = timedelta(days=365)

_ENTITLEMENT_IDS = {
    "premium_core": EntitlementType.PREMIUM_CORE,
    "premium": EntitlementType.PREMIUM_CORE,
    "voice_pack": EntitlementType.VOICE_PACK,
    "voice": EntitlementType.VOICE_PACK,
}

_STORES = {
    "APP_STORE": Platform.IOS,
    "MAC_APP_STORE": Platform.IOS,
    "PLAY_STORE": Platform.ANDROID,
}


def _utc_now() -> datetime:
    return datetime.now(UTC)


def map_entitlement_id(entitlement_id: str) -> EntitlementType | None:
    """Map a RevenueCat entitlement identifier to an internal type."""
    return _ENTITLEMENT_IDS.get(entitlement_id.lower())


def platform_for_store(store: str | None) -> Platform:
    """Platform for a RevenueCat store code; iOS when unknown."""
    return _STORES.get(store or "", Platform.IOS)


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class RevenueCatProvider:
    """
    RevenueCat REST API client.

    Purchases happen on-device; the server only reads subscriber state.
    """

    name = SOURCE_NAME

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.revenuecat.com/v1",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """
        Initialize RevenueCat provider.

        Args:
            api_key: RevenueCat secret API key
            base_url: REST API root
            timeout: Request timeout in seconds
            client: Pre-built client (tests)
            clock: Current time provider
        """
        self.api_key = api_key
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.clock = clock

    async def _get_subscriber(self, user_id: str) -> dict[str, Any] | None:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Platform": "server",
        }
        try:
            response = await self.client.get(f"/subscribers/{user_id}", headers=headers)
        except httpx.HTTPError as exc:
            logger.error("revenuecat_unreachable", user_id=user_id, error=str(exc))
            raise PaymentProviderError(SOURCE_NAME, str(exc) or type(exc).__name__) from exc

        if response.status_code == 404:
            logger.debug("revenuecat_subscriber_not_found", user_id=user_id)
            return None
        if response.status_code >= 400:
            logger.error(
                "revenuecat_api_error",
                user_id=user_id,
                status=response.status_code,
                error=response.text[:200],
            )
            raise PaymentProviderError(SOURCE_NAME, f"HTTP {response.status_code}")

        body: dict[str, Any] = response.json()
        subscriber: dict[str, Any] = body.get("subscriber") or {}
        return subscriber

    async def get_entitlements(self, user_id: str) -> list[Entitlement]:
        """
        Current entitlements for a user.

        A missing expires_date is a lifetime grant, reported as expiring one
        year out so it merges against dated grants.

        Raises:
            PaymentProviderError: RevenueCat unreachable or returned an error
        """
        subscriber = await self._get_subscriber(user_id)
        if subscriber is None:
            return []

        now = self.clock()
        platform = Platform.IOS
        for subscription in (subscriber.get("subscriptions") or {}).values():
            store = subscription.get("store")
            if store in _STORES:
                platform = _STORES[store]
                break

        entitlements: list[Entitlement] = []
        for entitlement_id, raw in (subscriber.get("entitlements") or {}).items():
            entitlement_type = map_entitlement_id(entitlement_id)
            if entitlement_type is None:
                logger.warning("revenuecat_unknown_entitlement", entitlement_id=entitlement_id)
                continue

            expires_raw = raw.get("expires_date")
            expires_at = _parse_timestamp(expires_raw) if expires_raw else now + LIFETIME_HORIZON
            entitlements.append(
                Entitlement(
                    type=entitlement_type,
                    platform=platform,
                    expires_at=expires_at,
                    is_active=expires_raw is None or expires_at > now,
                )
            )

        logger.debug(
            "revenuecat_entitlements_fetched", user_id=user_id, count=len(entitlements)
        )
        return entitlements

    async def process_subscription(self, intent: SubscriptionIntent) -> SubscriptionResult:
        """Confirm a device purchase by reading back the subscriber's entitlements."""
        logger.info(
            "processing_revenuecat_subscription",
            user_id=intent.user_id,
            product_id=intent.product_id,
            platform=intent.platform.value,
        )
        entitlements = await self.get_entitlements(intent.user_id)
        return SubscriptionResult(
            success=True,
            subscription_id=f"rc_{intent.user_id}_{int(self.clock().timestamp() * 1000)}",
            entitlements=tuple(entitlements),
        )

    def parse_webhook(self, payload: dict[str, Any]) -> RevenueCatEvent:
        """
        Normalize a RevenueCat webhook body into the tagged envelope.

        Raises:
            WebhookError: Body is not a RevenueCat event
        """
        event = payload.get("event")
        if not isinstance(event, dict) or not event.get("type") or not event.get("app_user_id"):
            raise WebhookError("Malformed RevenueCat webhook", webhook_type=SOURCE_NAME)

        expiration_ms = event.get("expiration_at_ms")
        event_ms = event.get("event_timestamp_ms")
        entitlement_ids = event.get("entitlement_ids") or []
        if not entitlement_ids and event.get("entitlement_id"):
            entitlement_ids = [event["entitlement_id"]]

        return RevenueCatEvent(
            event=str(event["type"]),
            data=RevenueCatEventData(
                app_user_id=str(event["app_user_id"]),
                product_id=event.get("product_id"),
                entitlement_ids=[str(e) for e in entitlement_ids],
                expiration_at=datetime.fromtimestamp(expiration_ms / 1000, UTC)
                if expiration_ms
                else None,
                store=event.get("store"),
            ),
            timestamp=datetime.fromtimestamp(event_ms / 1000, UTC) if event_ms else self.clock(),
        )

    async def aclose(self) -> None:
        """Release pooled connections."""
        await self.client.aclose()
