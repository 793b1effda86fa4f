"""
Domain Models - Internal business logic models using dataclasses.

NO DICTIONARIES - All data structures are strongly typed immutable dataclasses.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from auraflow.models.api import (
    AchievementMetric,
    EntitlementType,
    MessageCategory,
    Platform,
    PointsAction,
    SubscriptionTier,
    TimeOfDay,
    WeatherBucket,
)

FALLBACK_MODEL = "fallback"


class HealthLevel(str, Enum):
    """Aggregate health of the AI provider pool."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass(frozen=True)
class User:
    """User state relevant to entitlement and quota decisions."""

    id: str
    email: str
    subscription_status: SubscriptionTier
    premium_expires_at: datetime | None
    voice_pack_expires_at: datetime | None
    wisdom_points: int
    streak_count: int
    last_activity_date: datetime | None
    preferred_categories: tuple[MessageCategory, ...]
    timezone: str

    def __post_init__(self) -> None:
        """Validate user state."""
        if not self.id:
            raise ValueError("User id cannot be empty")
        if self.wisdom_points < 0:
            raise ValueError(f"Wisdom points cannot be negative: {self.wisdom_points}")
        if self.streak_count < 0:
            raise ValueError(f"Streak count cannot be negative: {self.streak_count}")


@dataclass(frozen=True)
class Entitlement:
    """A time-bounded paid capability reported by a payment back-end."""

    type: EntitlementType
    platform: Platform
    expires_at: datetime | None
    is_active: bool

    def is_current(self, now: datetime) -> bool:
        """Active and not yet expired. A missing expiry never lapses."""
        if not self.is_active:
            return False
        return self.expires_at is None or self.expires_at > now


@dataclass(frozen=True)
class EntitlementSummary:
    """Result of entitlement validation for one user."""

    has_premium_core: bool
    has_voice_pack: bool
    entitlements: tuple[Entitlement, ...]


@dataclass(frozen=True)
class UsageSnapshot:
    """Per-user generation counters derived from message history."""

    messages_generated_today: int
    last_generated_at: datetime | None

    def __post_init__(self) -> None:
        """Validate counters."""
        if self.messages_generated_today < 0:
            raise ValueError(
                f"messages_generated_today cannot be negative: {self.messages_generated_today}"
            )


@dataclass(frozen=True)
class QuotaDecision:
    """Whether a user may generate now, and what the client needs to display."""

    can_generate: bool
    remaining_messages: int
    cooldown_ends_at: datetime | None
    tier: SubscriptionTier


@dataclass(frozen=True)
class PromptTemplate:
    """Static prompt pair and sampling parameters for one category."""

    category: MessageCategory
    system_prompt: str
    user_prompt: str
    max_tokens: int
    temperature: float


@dataclass(frozen=True)
class ContextualPrompt:
    """Prompt pair ready to send to a provider."""

    system_prompt: str
    user_prompt: str


@dataclass(frozen=True)
class GenerationRequest:
    """Provider-agnostic generation request."""

    user_id: str
    category: MessageCategory
    locale: str = "en-US"
    time_of_day: TimeOfDay | None = None
    weather_context: WeatherBucket | None = None
    temperature: float | None = None
    prompt: ContextualPrompt | None = None  # Overrides the category prompt

    def __post_init__(self) -> None:
        """Validate request fields."""
        if not self.user_id:
            raise ValueError("user_id cannot be empty")
        if self.temperature is not None and not 0.0 <= self.temperature <= 2.0:
            raise ValueError(f"Temperature must be between 0 and 2: {self.temperature}")


@dataclass(frozen=True)
class ProviderResponse:
    """Normalized provider output."""

    content: str
    tokens: int
    model: str
    finish_reason: str | None


@dataclass(frozen=True)
class ProviderHealth:
    """Live connection check result for one provider."""

    name: str
    healthy: bool


@dataclass(frozen=True)
class AIHealthStatus:
    """Aggregate AI health, recomputed on every call."""

    status: HealthLevel
    providers: tuple[ProviderHealth, ...]
    preferred_provider: str
    fallback_enabled: bool


@dataclass(frozen=True)
class DeduplicationResult:
    """Outcome of checking content against recent history."""

    is_duplicate: bool
    similarity: float
    matched_content: str | None = None


@dataclass(frozen=True)
class GeneratedMessage:
    """A persisted, user-facing generated message."""

    id: str
    user_id: str | None
    content: str
    category: MessageCategory
    tokens: int
    cost: float
    temperature: float
    model: str
    locale: str
    time_of_day: TimeOfDay | None
    weather_context: WeatherBucket | None
    created_at: datetime
    cached: bool = False
    remaining_messages: int = 0


@dataclass(frozen=True)
class DailyDrop:
    """The shared message for one (date, locale)."""

    id: str
    date: date
    content: str
    locale: str
    model: str
    tokens: int
    created_at: datetime

    @property
    def is_fallback(self) -> bool:
        """Content came from the curated pool."""
        return self.model == FALLBACK_MODEL


@dataclass(frozen=True)
class DailyChallenge:
    """The short task for one (date, locale)."""

    id: str
    date: date
    task: str
    points: int
    locale: str
    created_at: datetime


@dataclass(frozen=True)
class DailyDropResult:
    """Outcome of a Daily Drop request."""

    daily_drop: DailyDrop
    daily_challenge: DailyChallenge | None
    was_generated: bool
    used_fallback: bool


@dataclass(frozen=True)
class SubscriptionIntent:
    """A purchase or receipt to register with a payment back-end."""

    user_id: str
    platform: Platform
    product_id: str
    receipt_data: str | None = None
    payment_method_id: str | None = None
    customer_email: str | None = None


@dataclass(frozen=True)
class SubscriptionResult:
    """Outcome of registering a subscription."""

    success: bool
    subscription_id: str | None
    entitlements: tuple[Entitlement, ...]
    error: str | None = None


@dataclass(frozen=True)
class PointsTransaction:
    """Ledger entry for a wisdom point award."""

    id: str
    user_id: str
    action: PointsAction
    points: int
    description: str | None
    created_at: datetime


@dataclass(frozen=True)
class AchievementCondition:
    """Unlocks once the metric reaches the threshold."""

    metric: AchievementMetric
    threshold: int

    def __post_init__(self) -> None:
        """Validate threshold."""
        if self.threshold < 1:
            raise ValueError(f"Achievement threshold must be positive: {self.threshold}")


@dataclass(frozen=True)
class Achievement:
    """Catalog entry. Every condition must hold for it to unlock."""

    key: str
    name: str
    description: str
    icon: str
    badge_color: str
    points_required: int
    conditions: tuple[AchievementCondition, ...]

    def __post_init__(self) -> None:
        """Validate catalog entry."""
        if not self.key:
            raise ValueError("Achievement key cannot be empty")
        if not self.conditions:
            raise ValueError(f"Achievement {self.key} has no conditions")


@dataclass(frozen=True)
class UserStats:
    """Counters achievements are measured against."""

    wisdom_points: int
    streak_days: int
    messages_generated: int
    challenges_completed: int
    shares_made: int

    def value(self, metric: AchievementMetric) -> int:
        return int(getattr(self, metric.value))


@dataclass(frozen=True)
class UserAchievement:
    """An achievement a user has earned."""

    user_id: str
    achievement_key: str
    earned_at: datetime


@dataclass(frozen=True)
class ServiceHealth:
    """AI provider health combined with a datastore check."""

    status: HealthLevel
    ai: AIHealthStatus
    database_healthy: bool
