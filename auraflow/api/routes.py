"""
API Routes - FastAPI endpoints for messages, daily drops, entitlements and points.

NO DICTIONARIES - All requests/responses use Pydantic models.
Service errors propagate as AuraFlowError and are rendered by the app handler.
"""

from datetime import UTC, date, datetime, timedelta
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from structlog import get_logger

from auraflow.api.dependencies import ServiceContainer, get_services, get_user_id
from auraflow.exceptions import NotFoundError, WebhookError
from auraflow.models.api import (
    AchievementResponse,
    AchievementsResponse,
    AwardPointsRequest,
    DailyChallengeResponse,
    DailyDropHistoryItem,
    DailyDropHistoryResponse,
    DailyDropResponse,
    EntitlementResponse,
    EntitlementSummaryResponse,
    GeneratedMessageResponse,
    GenerateMessageRequest,
    PointsBalanceResponse,
    QuotaResponse,
    SubscriptionRequest,
    SubscriptionResponse,
    WebhookAck,
)
from auraflow.models.domain import Achievement, Entitlement, SubscriptionIntent, User

logger = get_logger(__name__)
router = APIRouter()


def _entitlement_response(entitlement: Entitlement) -> EntitlementResponse:
    return EntitlementResponse(
        type=entitlement.type,
        platform=entitlement.platform,
        expires_at=entitlement.expires_at,
        is_active=entitlement.is_active,
    )


def _achievement_response(
    achievement: Achievement, earned_at: datetime | None = None
) -> AchievementResponse:
    return AchievementResponse(
        key=achievement.key,
        name=achievement.name,
        description=achievement.description,
        icon=achievement.icon,
        badge_color=achievement.badge_color,
        points_required=achievement.points_required,
        earned_at=earned_at,
    )


async def _load_user(services: ServiceContainer, user_id: str) -> User:
    user = await services.users.get(user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


# ============================================================================
# Messages
# ============================================================================


@router.post(
    "/v1/messages/generate",
    response_model=GeneratedMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_message(
    request: GenerateMessageRequest,
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> GeneratedMessageResponse:
    """
    Generate a personalized message.

    Free users get motivational and philosophy once per 24 hours; premium
    core unlocks every category, 20 per day with a 30 second cooldown.
    """
    message = await services.messages.generate_message(
        user_id=user_id,
        category=request.category,
        time_of_day=request.time_of_day,
        weather_context=request.weather_context,
        temperature=request.temperature,
        locale=request.locale,
    )
    return GeneratedMessageResponse(
        id=message.id,
        content=message.content,
        category=message.category,
        tokens=message.tokens,
        cost=message.cost,
        model=message.model,
        locale=message.locale,
        time_of_day=message.time_of_day,
        weather_context=message.weather_context,
        created_at=message.created_at,
        cached=message.cached,
        remaining_messages=message.remaining_messages,
    )


# ============================================================================
# Daily Drop
# ============================================================================


@router.get("/v1/daily-drop", response_model=DailyDropResponse)
async def get_daily_drop(
    day: date | None = Query(None, alias="date"),
    locale: str | None = Query(None, min_length=2, max_length=10),
    services: ServiceContainer = Depends(get_services),
) -> DailyDropResponse:
    """The shared message for a date (UTC today by default) and its challenge."""
    result = await services.daily_drops.get_daily_drop(
        day or datetime.now(UTC).date(),
        locale or services.settings.default_locale,
    )
    drop, challenge = result.daily_drop, result.daily_challenge
    return DailyDropResponse(
        id=drop.id,
        date=drop.date,
        content=drop.content,
        locale=drop.locale,
        model=drop.model,
        tokens=drop.tokens,
        was_generated=result.was_generated,
        used_fallback=result.used_fallback,
        daily_challenge=DailyChallengeResponse(
            id=challenge.id,
            date=challenge.date,
            task=challenge.task,
            points=challenge.points,
            locale=challenge.locale,
        )
        if challenge
        else None,
    )


@router.get("/v1/daily-drop/history", response_model=DailyDropHistoryResponse)
async def get_daily_drop_history(
    start: date | None = Query(None),
    end: date | None = Query(None),
    locale: str | None = Query(None, min_length=2, max_length=10),
    limit: int = Query(30, ge=1, le=100),
    services: ServiceContainer = Depends(get_services),
) -> DailyDropHistoryResponse:
    """Past drops, newest first. Defaults to the last 30 days."""
    end = end or datetime.now(UTC).date()
    start = start or end - timedelta(days=30)
    drops, total = await services.daily_drops.get_historical_daily_drops(
        start, end, locale or services.settings.default_locale, limit
    )
    return DailyDropHistoryResponse(
        drops=[
            DailyDropHistoryItem(
                id=d.id, date=d.date, content=d.content, locale=d.locale, model=d.model
            )
            for d in drops
        ],
        total=total,
    )


# ============================================================================
# Entitlements and Quota
# ============================================================================


@router.get("/v1/entitlements", response_model=EntitlementSummaryResponse)
async def get_entitlements(
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> EntitlementSummaryResponse:
    """Merged entitlements across payment back-ends."""
    user = await _load_user(services, user_id)
    summary = await services.entitlements.validate_user_entitlements(user)
    return EntitlementSummaryResponse(
        has_premium_core=summary.has_premium_core,
        has_voice_pack=summary.has_voice_pack,
        entitlements=[_entitlement_response(e) for e in summary.entitlements],
    )


@router.get("/v1/quota", response_model=QuotaResponse)
async def get_quota(
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> QuotaResponse:
    """Whether the caller may generate now."""
    decision = await services.messages.get_quota(user_id)
    return QuotaResponse(
        can_generate=decision.can_generate,
        remaining_messages=decision.remaining_messages,
        cooldown_ends_at=decision.cooldown_ends_at,
        tier=decision.tier,
    )


# ============================================================================
# Subscriptions and Webhooks
# ============================================================================


@router.post("/v1/subscriptions", response_model=SubscriptionResponse)
async def create_subscription(
    request: SubscriptionRequest,
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> SubscriptionResponse:
    """Register a purchase. Web goes to Stripe, mobile to RevenueCat."""
    result = await services.payments.process_subscription(
        SubscriptionIntent(
            user_id=user_id,
            platform=request.platform,
            product_id=request.product_id,
            receipt_data=request.receipt_data,
            payment_method_id=request.payment_method_id,
            customer_email=request.customer_email,
        )
    )
    return SubscriptionResponse(
        success=result.success,
        subscription_id=result.subscription_id,
        entitlements=[_entitlement_response(e) for e in result.entitlements],
        error=result.error,
    )


@router.post("/v1/webhooks/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    services: ServiceContainer = Depends(get_services),
) -> WebhookAck:
    """Verify and apply a Stripe subscription event."""
    payload = await request.body()
    signature = request.headers.get("stripe-signature", "")
    envelope = services.stripe.parse_webhook(payload, signature)
    handled = await services.payments.handle_webhook(envelope)
    return WebhookAck(handled=handled)


@router.post("/v1/webhooks/revenuecat", response_model=WebhookAck)
async def revenuecat_webhook(
    request: Request,
    services: ServiceContainer = Depends(get_services),
) -> WebhookAck:
    """Apply a RevenueCat subscriber event."""
    try:
        payload: Any = await request.json()
    except ValueError as exc:
        raise WebhookError("RevenueCat webhook body is not JSON", webhook_type="revenuecat") from exc
    if not isinstance(payload, dict):
        raise WebhookError("RevenueCat webhook body must be an object", webhook_type="revenuecat")

    envelope = services.revenuecat.parse_webhook(payload)
    handled = await services.payments.handle_webhook(envelope)
    return WebhookAck(handled=handled)


# ============================================================================
# Wisdom Points
# ============================================================================


@router.post("/v1/points/challenge", response_model=PointsBalanceResponse)
async def award_points(
    request: AwardPointsRequest,
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> PointsBalanceResponse:
    """
    Award wisdom points, by default for completing the daily challenge.

    Achievements the award qualifies for are unlocked in the same request;
    wisdom_points is the balance after their bonuses.
    """
    points, total = await services.wisdom_points.award_points(
        user_id, request.action, request.description
    )
    unlocked = await services.achievements.check_and_unlock(user_id)
    if unlocked:
        total = await services.wisdom_points.get_points_balance(user_id)
    return PointsBalanceResponse(
        user_id=user_id,
        wisdom_points=total,
        points_awarded=points,
        achievements_unlocked=[_achievement_response(a) for a in unlocked],
    )


@router.get("/v1/achievements", response_model=AchievementsResponse)
async def list_achievements(
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> AchievementsResponse:
    """Earned achievements (most recent first) and the ones still locked."""
    await _load_user(services, user_id)
    earned = await services.achievements.get_user_achievements(user_id)
    earned_keys = {achievement.key for achievement, _ in earned}
    return AchievementsResponse(
        user_id=user_id,
        earned=[_achievement_response(a, e.earned_at) for a, e in earned],
        available=[
            _achievement_response(a)
            for a in services.achievements.available_achievements()
            if a.key not in earned_keys
        ],
    )
