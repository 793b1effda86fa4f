"""
API Models - Pydantic models for request/response validation.

NO DICTIONARIES - All data structures are strongly typed.
"""

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator


class MessageCategory(str, Enum):
    """Closed set of message categories."""

    MOTIVATIONAL = "motivational"
    MINDFULNESS = "mindfulness"
    FITNESS = "fitness"
    PHILOSOPHY = "philosophy"
    PRODUCTIVITY = "productivity"


class TimeOfDay(str, Enum):
    """Time-of-day context for prompt modifiers."""

    MORNING = "morning"
    EVENING = "evening"


class WeatherBucket(str, Enum):
    """Weather context for prompt modifiers."""

    SUNNY = "sunny"
    RAIN = "rain"
    COLD = "cold"
    HOT = "hot"


class SubscriptionTier(str, Enum):
    """Locally stored subscription status of a user."""

    FREE = "free"
    PREMIUM_CORE = "premium_core"
    VOICE_PACK = "voice_pack"


class EntitlementType(str, Enum):
    """Paid capabilities granted by a payment back-end."""

    PREMIUM_CORE = "premium_core"
    VOICE_PACK = "voice_pack"


class Platform(str, Enum):
    """Platform an entitlement or subscription originates from."""

    IOS = "ios"
    ANDROID = "android"
    WEB = "web"


class PointsAction(str, Enum):
    """Actions that earn wisdom points."""

    APP_OPEN = "app_open"
    DAILY_CHALLENGE_COMPLETE = "daily_challenge_complete"
    CONTENT_SHARE = "content_share"
    DAILY_STREAK = "daily_streak"
    ACHIEVEMENT_UNLOCK = "achievement_unlock"
    REFERRAL_SUCCESS = "referral_success"


class AchievementMetric(str, Enum):
    """User statistic an achievement condition is measured on."""

    WISDOM_POINTS = "wisdom_points"
    STREAK_DAYS = "streak_days"
    MESSAGES_GENERATED = "messages_generated"
    CHALLENGES_COMPLETED = "challenges_completed"
    SHARES_MADE = "shares_made"


# ============================================================================
# Message Generation Models
# ============================================================================


class GenerateMessageRequest(BaseModel):
    """POST /v1/messages/generate request body."""

    category: MessageCategory
    time_of_day: TimeOfDay | None = None
    weather_context: WeatherBucket | None = None
    temperature: float | None = Field(None, ge=0.0, le=2.0)
    locale: str = Field("en-US", min_length=2, max_length=10)


class GeneratedMessageResponse(BaseModel):
    """Generated message returned to the caller."""

    id: str
    content: str
    category: MessageCategory
    tokens: int
    cost: float
    model: str
    locale: str
    time_of_day: TimeOfDay | None
    weather_context: WeatherBucket | None
    created_at: datetime
    cached: bool
    remaining_messages: int


# ============================================================================
# Daily Drop Models
# ============================================================================


class DailyChallengeResponse(BaseModel):
    """The day's challenge."""

    id: str
    date: date
    task: str
    points: int
    locale: str


class DailyDropResponse(BaseModel):
    """GET /v1/daily-drop response."""

    id: str
    date: date
    content: str
    locale: str
    model: str
    tokens: int
    was_generated: bool
    used_fallback: bool
    daily_challenge: DailyChallengeResponse | None


class DailyDropHistoryItem(BaseModel):
    """Single row of the Daily Drop history."""

    id: str
    date: date
    content: str
    locale: str
    model: str


class DailyDropHistoryResponse(BaseModel):
    """GET /v1/daily-drop/history response."""

    drops: list[DailyDropHistoryItem]
    total: int


# ============================================================================
# Entitlement and Quota Models
# ============================================================================


class EntitlementResponse(BaseModel):
    """One merged entitlement."""

    type: EntitlementType
    platform: Platform
    expires_at: datetime | None
    is_active: bool


class EntitlementSummaryResponse(BaseModel):
    """GET /v1/entitlements response."""

    has_premium_core: bool
    has_voice_pack: bool
    entitlements: list[EntitlementResponse]


class QuotaResponse(BaseModel):
    """GET /v1/quota response."""

    can_generate: bool
    remaining_messages: int
    cooldown_ends_at: datetime | None
    tier: SubscriptionTier


# ============================================================================
# Subscription Models
# ============================================================================


class SubscriptionRequest(BaseModel):
    """POST /v1/subscriptions request body."""

    platform: Platform
    product_id: str = Field(..., min_length=1, max_length=255)
    receipt_data: str | None = Field(None, description="Store receipt for mobile purchases")
    payment_method_id: str | None = Field(None, description="Stripe payment method for web")
    customer_email: str | None = Field(None, max_length=255)

    @field_validator("product_id")
    @classmethod
    def validate_product_id(cls, v: str) -> str:
        """Product ids are stored trimmed."""
        v = v.strip()
        if not v:
            raise ValueError("product_id cannot be blank")
        return v


class SubscriptionResponse(BaseModel):
    """POST /v1/subscriptions response."""

    success: bool
    subscription_id: str | None
    entitlements: list[EntitlementResponse]
    error: str | None = None


# ============================================================================
# Webhook Models - tagged union discriminated by `type`
# ============================================================================


class RevenueCatEventData(BaseModel):
    """Normalized RevenueCat webhook payload."""

    app_user_id: str = Field(..., min_length=1)
    product_id: str | None = None
    entitlement_ids: list[str] = Field(default_factory=list)
    expiration_at: datetime | None = None
    store: str | None = None


class RevenueCatEvent(BaseModel):
    """RevenueCat webhook envelope."""

    type: Literal["revenuecat"] = "revenuecat"
    event: str = Field(..., min_length=1)
    data: RevenueCatEventData
    timestamp: datetime


class StripeEventData(BaseModel):
    """Normalized Stripe webhook payload."""

    customer_id: str | None = None
    subscription_id: str | None = None
    status: str | None = None
    price_id: str | None = None
    current_period_end: datetime | None = None
    user_id: str | None = None


class StripeEvent(BaseModel):
    """Stripe webhook envelope."""

    type: Literal["stripe"] = "stripe"
    event: str = Field(..., min_length=1)
    data: StripeEventData
    timestamp: datetime


WebhookEnvelope = Annotated[RevenueCatEvent | StripeEvent, Field(discriminator="type")]


class WebhookAck(BaseModel):
    """Acknowledgement returned to webhook senders."""

    received: bool = True
    handled: bool


# ============================================================================
# Wisdom Points Models
# ============================================================================


class AwardPointsRequest(BaseModel):
    """POST /v1/points/challenge request body."""

    action: PointsAction = PointsAction.DAILY_CHALLENGE_COMPLETE
    description: str | None = Field(None, max_length=255)

    @field_validator("action")
    @classmethod
    def validate_action(cls, v: PointsAction) -> PointsAction:
        """Achievement points are only granted when an achievement unlocks."""
        if v == PointsAction.ACHIEVEMENT_UNLOCK:
            raise ValueError("achievement_unlock points cannot be claimed directly")
        return v


class AchievementResponse(BaseModel):
    """One achievement from the catalog."""

    key: str
    name: str
    description: str
    icon: str
    badge_color: str
    points_required: int
    earned_at: datetime | None = None


class PointsBalanceResponse(BaseModel):
    """Wisdom point balance after an award."""

    user_id: str
    wisdom_points: int
    points_awarded: int
    achievements_unlocked: list[AchievementResponse] = Field(default_factory=list)


class AchievementsResponse(BaseModel):
    """GET /v1/achievements response."""

    user_id: str
    earned: list[AchievementResponse]
    available: list[AchievementResponse]


# ============================================================================
# Error Models
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    message: str
