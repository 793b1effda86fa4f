"""
In-memory fakes for repositories, providers and payment sources.

- Users, generated messages, achievements, daily drops and challenges
- AI providers with scripted responses
- Payment sources with scripted entitlements
- A settable clock and a recording sleep
"""

from dataclasses import replace
from datetime import UTC, date, datetime, timedelta
from uuid import uuid4

from auraflow.exceptions import NotFoundError
from auraflow.models.api import (
    EntitlementType,
    MessageCategory,
    PointsAction,
    SubscriptionTier,
    TimeOfDay,
    WeatherBucket,
)
from auraflow.models.domain import (
    DailyChallenge,
    DailyDrop,
    Entitlement,
    GeneratedMessage,
    GenerationRequest,
    PointsTransaction,
    ProviderResponse,
    UsageSnapshot,
    User,
    UserAchievement,
    UserStats,
)

NOW = datetime(2025, 3, 14, 12, 0, 0, tzinfo=UTC)
TODAY = NOW.date()


# ============================================================================
# Clock and Sleep
# ============================================================================


class FakeClock:
    """Settable clock for services that take `clock=`."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# ============================================================================
# AI Providers
# ============================================================================


class FakeProvider:
    """
    AIProvider double.

    Each call pops the next scripted outcome: a string becomes the content,
    an exception is raised. The last outcome repeats once the script runs out.
    """

    def __init__(
        self,
        name: str,
        outcomes: list[str | Exception] | None = None,
        model: str | None = None,
        tokens: int = 42,
        healthy: bool = True,
    ) -> None:
        self.name = name
        self.outcomes = list(outcomes or ["Every step forward counts."])
        self.model = model or f"{name}-model"
        self.tokens = tokens
        self.healthy = healthy
        self.requests: list[GenerationRequest] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def generate(self, request: GenerationRequest) -> ProviderResponse:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return ProviderResponse(
            content=outcome, tokens=self.tokens, model=self.model, finish_reason="stop"
        )

    async def test_connection(self) -> bool:
        return self.healthy


# ============================================================================
# Repositories
# ============================================================================


def make_user(
    user_id: str | None = None,
    tier: SubscriptionTier = SubscriptionTier.FREE,
    premium_expires_at: datetime | None = None,
    voice_pack_expires_at: datetime | None = None,
    last_activity_date: datetime | None = None,
    streak_count: int = 0,
    wisdom_points: int = 0,
) -> User:
    return User(
        id=user_id or str(uuid4()),
        email="seeker@example.com",
        subscription_status=tier,
        premium_expires_at=premium_expires_at,
        voice_pack_expires_at=voice_pack_expires_at,
        wisdom_points=wisdom_points,
        streak_count=streak_count,
        last_activity_date=last_activity_date,
        preferred_categories=(MessageCategory.MOTIVATIONAL,),
        timezone="UTC",
    )


class FakeUserRepository:
    """In-memory UserRepository."""

    def __init__(self, users: list[User] | None = None) -> None:
        self.users = {u.id: u for u in users or []}
        self.transactions: list[PointsTransaction] = []
        self.subscription_changes: list[tuple[str, EntitlementType, datetime | None, bool]] = []

    async def get(self, user_id: str) -> User | None:
        return self.users.get(user_id)

    async def record_activity(self, user_id: str, at: datetime) -> None:
        self.users[user_id] = replace(self.users[user_id], last_activity_date=at)

    async def apply_subscription_change(
        self,
        user_id: str,
        entitlement_type: EntitlementType,
        expires_at: datetime | None,
        active: bool,
    ) -> bool:
        self.subscription_changes.append((user_id, entitlement_type, expires_at, active))
        return user_id in self.users

    async def add_points(
        self, user_id: str, action: PointsAction, points: int, description: str | None
    ) -> int:
        user = self.users.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        updated = replace(user, wisdom_points=user.wisdom_points + points)
        self.users[user_id] = updated
        self.transactions.append(
            PointsTransaction(
                id=str(uuid4()),
                user_id=user_id,
                action=action,
                points=points,
                description=description,
                created_at=NOW + timedelta(seconds=len(self.transactions)),
            )
        )
        return updated.wisdom_points

    async def points_history(self, user_id: str, limit: int) -> list[PointsTransaction]:
        mine = [t for t in self.transactions if t.user_id == user_id]
        return sorted(mine, key=lambda t: t.created_at, reverse=True)[:limit]


class FakeMessageRepository:
    """In-memory MessageRepository."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.messages: list[GeneratedMessage] = []
        self.fail_lookups = False

    async def recent_contents(
        self,
        locale: str,
        since: datetime,
        limit: int,
        category: MessageCategory | None = None,
    ) -> list[str]:
        if self.fail_lookups:
            raise ConnectionError("datastore unavailable")
        rows = [
            m
            for m in reversed(self.messages)
            if m.locale == locale
            and m.created_at >= since
            and (category is None or m.category == category)
        ]
        return [m.content for m in rows[:limit]]

    async def find_recent(
        self, user_id: str, category: MessageCategory, since: datetime
    ) -> GeneratedMessage | None:
        for message in reversed(self.messages):
            if (
                message.user_id == user_id
                and message.category == category
                and message.created_at >= since
            ):
                return message
        return None

    async def usage(self, user_id: str, now: datetime) -> UsageSnapshot:
        mine = [m for m in self.messages if m.user_id == user_id]
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return UsageSnapshot(
            messages_generated_today=sum(1 for m in mine if m.created_at >= midnight),
            last_generated_at=max((m.created_at for m in mine), default=None),
        )

    async def save(
        self,
        user_id: str,
        content: str,
        category: MessageCategory,
        tokens: int,
        cost: float,
        temperature: float,
        model: str,
        locale: str,
        time_of_day: TimeOfDay | None,
        weather_context: WeatherBucket | None,
    ) -> GeneratedMessage:
        message = GeneratedMessage(
            id=str(uuid4()),
            user_id=user_id,
            content=content,
            category=category,
            tokens=tokens,
            cost=cost,
            temperature=temperature,
            model=model,
            locale=locale,
            time_of_day=time_of_day,
            weather_context=weather_context,
            created_at=self.clock(),
        )
        self.messages.append(message)
        return message


class FakeAchievementRepository:
    """In-memory AchievementRepository reading the fake user and message stores."""

    def __init__(
        self,
        users: FakeUserRepository,
        messages: FakeMessageRepository | None = None,
    ) -> None:
        self.users = users
        self.messages = messages
        self.unlocks: list[UserAchievement] = []

    async def stats(self, user_id: str) -> UserStats | None:
        user = self.users.users.get(user_id)
        if user is None:
            return None
        actions = [t.action for t in self.users.transactions if t.user_id == user_id]
        messages = self.messages.messages if self.messages is not None else []
        return UserStats(
            wisdom_points=user.wisdom_points,
            streak_days=user.streak_count,
            messages_generated=sum(1 for m in messages if m.user_id == user_id),
            challenges_completed=actions.count(PointsAction.DAILY_CHALLENGE_COMPLETE),
            shares_made=actions.count(PointsAction.CONTENT_SHARE),
        )

    async def earned(self, user_id: str) -> list[UserAchievement]:
        mine = [u for u in self.unlocks if u.user_id == user_id]
        return sorted(mine, key=lambda u: u.earned_at, reverse=True)

    async def record_unlock(self, user_id: str, achievement_key: str) -> UserAchievement | None:
        if user_id not in self.users.users:
            raise NotFoundError("User", user_id)
        if any(
            u.user_id == user_id and u.achievement_key == achievement_key for u in self.unlocks
        ):
            return None
        unlock = UserAchievement(
            user_id=user_id,
            achievement_key=achievement_key,
            earned_at=NOW + timedelta(seconds=len(self.unlocks)),
        )
        self.unlocks.append(unlock)
        return unlock


class FakeDailyDropRepository:
    """
    In-memory DailyDropRepository.

    `preempt` simulates a concurrent writer: its content is inserted the
    moment this repository is asked to insert, so the caller loses the race.
    """

    def __init__(self) -> None:
        self.drops: dict[tuple[date, str], DailyDrop] = {}
        self.challenges: dict[tuple[date, str], DailyChallenge] = {}
        self.recent: list[str] = []
        self.preempt: DailyDrop | None = None
        self.fail_challenge_insert = False
        self.insert_calls = 0

    async def get(self, day: date, locale: str) -> DailyDrop | None:
        return self.drops.get((day, locale))

    async def insert_or_get(
        self, day: date, locale: str, content: str, model: str, tokens: int
    ) -> tuple[DailyDrop, bool]:
        self.insert_calls += 1
        if self.preempt is not None and (day, locale) not in self.drops:
            self.drops[(day, locale)] = self.preempt
        existing = self.drops.get((day, locale))
        if existing is not None:
            return existing, False
        drop = DailyDrop(
            id=str(uuid4()),
            date=day,
            content=content,
            locale=locale,
            model=model,
            tokens=tokens,
            created_at=NOW,
        )
        self.drops[(day, locale)] = drop
        return drop, True

    async def get_challenge(self, day: date, locale: str) -> DailyChallenge | None:
        return self.challenges.get((day, locale))

    async def insert_or_get_challenge(
        self, day: date, locale: str, task: str, points: int
    ) -> DailyChallenge:
        if self.fail_challenge_insert:
            raise ConnectionError("challenge table unavailable")
        existing = self.challenges.get((day, locale))
        if existing is not None:
            return existing
        challenge = DailyChallenge(
            id=str(uuid4()), date=day, task=task, points=points, locale=locale, created_at=NOW
        )
        self.challenges[(day, locale)] = challenge
        return challenge

    async def recent_contents(
        self,
        locale: str,
        since: datetime,
        limit: int,
        category: MessageCategory | None = None,
    ) -> list[str]:
        return self.recent[:limit]

    async def history(
        self, start: date, end: date, locale: str, limit: int
    ) -> tuple[list[DailyDrop], int]:
        rows = sorted(
            (d for (day, loc), d in self.drops.items() if loc == locale and start <= day <= end),
            key=lambda d: d.date,
            reverse=True,
        )
        return rows[:limit], len(rows)

    async def delete_older_than(self, cutoff: date) -> int:
        stale = [key for key in self.drops if key[0] < cutoff]
        for key in stale:
            del self.drops[key]
        return len(stale)


# ============================================================================
# Payment Sources
# ============================================================================


class FakeEntitlementSource:
    """EntitlementSource double returning fixed entitlements or raising."""

    def __init__(self, name: str, entitlements: list[Entitlement] | Exception) -> None:
        self.name = name
        self.entitlements = entitlements
        self.calls = 0

    async def get_entitlements(self, user_id: str) -> list[Entitlement]:
        self.calls += 1
        if isinstance(self.entitlements, Exception):
            raise self.entitlements
        return list(self.entitlements)


