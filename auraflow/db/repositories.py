"""
Repositories - Datastore access behind typed domain models.

Each call runs in its own short transaction from the shared session factory.
NO DICTIONARIES - Rows are converted to frozen domain dataclasses.
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog import get_logger

from auraflow.db.models import (
    DailyChallengeModel,
    DailyDropModel,
    GeneratedMessageModel,
    UserAchievementModel,
    UserModel,
    WisdomPointTransactionModel,
)
from auraflow.exceptions import DatabaseError, NotFoundError
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
    GeneratedMessage,
    PointsTransaction,
    UsageSnapshot,
    User,
    UserAchievement,
    UserStats,
)

logger = get_logger(__name__)


def _parse_uuid(value: str) -> UUID | None:
    try:
        return UUID(value)
    except ValueError:
        return None


def _start_of_day(now: datetime) -> datetime:
    return now.astimezone(UTC).replace(hour=0, minute=0, second=0, microsecond=0)


def _to_user(row: UserModel) -> User:
    return User(
        id=str(row.id),
        email=row.email,
        subscription_status=SubscriptionTier(row.subscription_status),
        premium_expires_at=row.premium_expires_at,
        voice_pack_expires_at=row.voice_pack_expires_at,
        wisdom_points=row.wisdom_points,
        streak_count=row.streak_count,
        last_activity_date=row.last_activity_date,
        preferred_categories=tuple(MessageCategory(c) for c in row.preferred_categories or []),
        timezone=row.timezone,
    )


def _to_message(row: GeneratedMessageModel) -> GeneratedMessage:
    return GeneratedMessage(
        id=str(row.id),
        user_id=str(row.user_id) if row.user_id else None,
        content=row.content,
        category=MessageCategory(row.category),
        tokens=row.tokens,
        cost=float(row.cost),
        temperature=row.temperature,
        model=row.model,
        locale=row.locale,
        time_of_day=TimeOfDay(row.time_of_day) if row.time_of_day else None,
        weather_context=WeatherBucket(row.weather_context) if row.weather_context else None,
        created_at=row.created_at,
    )


def _to_daily_drop(row: DailyDropModel) -> DailyDrop:
    return DailyDrop(
        id=str(row.id),
        date=row.date,
        content=row.content,
        locale=row.locale,
        model=row.model,
        tokens=row.tokens,
        created_at=row.created_at,
    )


def _to_challenge(row: DailyChallengeModel) -> DailyChallenge:
    return DailyChallenge(
        id=str(row.id),
        date=row.date,
        task=row.task,
        points=row.points,
        locale=row.locale,
        created_at=row.created_at,
    )


class UserRepository:
    """Users and their wisdom point ledger."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def get(self, user_id: str) -> User | None:
        """Load a user by id; None when absent or the id is malformed."""
        uid = _parse_uuid(user_id)
        if uid is None:
            return None
        async with self.session_factory() as session:
            row = await session.get(UserModel, uid)
            return _to_user(row) if row else None

    async def record_activity(self, user_id: str, at: datetime) -> None:
        """Stamp the user's last activity."""
        uid = _parse_uuid(user_id)
        if uid is None:
            raise NotFoundError("User", user_id)
        async with self.session_factory() as session:
            await session.execute(
                update(UserModel).where(UserModel.id == uid).values(last_activity_date=at)
            )
            await session.commit()

    async def apply_subscription_change(
        self,
        user_id: str,
        entitlement_type: EntitlementType,
        expires_at: datetime | None,
        active: bool,
    ) -> bool:
        """
        Mirror a payment back-end change onto the locally stored subscription.

        Activation sets the tier and its expiry. Deactivation records the expiry
        and drops the tier to free if it was the tier being deactivated.

        Returns:
            False when the user does not exist
        """
        uid = _parse_uuid(user_id)
        if uid is None:
            return False
        async with self.session_factory() as session:
            row = await session.get(UserModel, uid, with_for_update=True)
            if row is None:
                return False

            if entitlement_type == EntitlementType.PREMIUM_CORE:
                row.premium_expires_at = expires_at
            else:
                row.voice_pack_expires_at = expires_at

            if active:
                row.subscription_status = entitlement_type.value
            elif row.subscription_status == entitlement_type.value:
                row.subscription_status = SubscriptionTier.FREE.value

            await session.commit()
            logger.info(
                "user_subscription_updated",
                user_id=user_id,
                entitlement_type=entitlement_type.value,
                active=active,
                subscription_status=row.subscription_status,
            )
            return True

    async def add_points(
        self, user_id: str, action: PointsAction, points: int, description: str | None
    ) -> int:
        """
        Append a ledger entry and bump the balance in one transaction.

        Returns:
            The new wisdom point balance
        """
        uid = _parse_uuid(user_id)
        if uid is None:
            raise NotFoundError("User", user_id)
        async with self.session_factory() as session:
            result = await session.execute(
                update(UserModel)
                .where(UserModel.id == uid)
                .values(wisdom_points=UserModel.wisdom_points + points)
                .returning(UserModel.wisdom_points)
            )
            new_total = result.scalar_one_or_none()
            if new_total is None:
                await session.rollback()
                raise NotFoundError("User", user_id)

            session.add(
                WisdomPointTransactionModel(
                    user_id=uid, action=action.value, points=points, description=description
                )
            )
            await session.commit()
            return int(new_total)

    async def points_history(self, user_id: str, limit: int) -> list[PointsTransaction]:
        """Most recent ledger entries first."""
        uid = _parse_uuid(user_id)
        if uid is None:
            return []
        async with self.session_factory() as session:
            result = await session.execute(
                select(WisdomPointTransactionModel)
                .where(WisdomPointTransactionModel.user_id == uid)
                .order_by(WisdomPointTransactionModel.created_at.desc())
                .limit(limit)
            )
            return [
                PointsTransaction(
                    id=str(row.id),
                    user_id=str(row.user_id),
                    action=PointsAction(row.action),
                    points=row.points,
                    description=row.description,
                    created_at=row.created_at,
                )
                for row in result.scalars()
            ]


class MessageRepository:
    """Generated messages. Also serves as a content history for deduplication."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def recent_contents(
        self,
        locale: str,
        since: datetime,
        limit: int,
        category: MessageCategory | None = None,
    ) -> list[str]:
        """Content of the newest messages for a locale, newest first."""
        stmt = (
            select(GeneratedMessageModel.content)
            .where(GeneratedMessageModel.locale == locale)
            .where(GeneratedMessageModel.created_at >= since)
        )
        if category is not None:
            stmt = stmt.where(GeneratedMessageModel.category == category.value)
        stmt = stmt.order_by(GeneratedMessageModel.created_at.desc()).limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars())

    async def find_recent(
        self, user_id: str, category: MessageCategory, since: datetime
    ) -> GeneratedMessage | None:
        """Newest message for a user and category created after `since`."""
        uid = _parse_uuid(user_id)
        if uid is None:
            return None
        async with self.session_factory() as session:
            result = await session.execute(
                select(GeneratedMessageModel)
                .where(GeneratedMessageModel.user_id == uid)
                .where(GeneratedMessageModel.category == category.value)
                .where(GeneratedMessageModel.created_at >= since)
                .order_by(GeneratedMessageModel.created_at.desc())
                .limit(1)
            )
            row = result.scalar_one_or_none()
            return _to_message(row) if row else None

    async def usage(self, user_id: str, now: datetime) -> UsageSnapshot:
        """Messages generated since UTC midnight and the latest generation time."""
        uid = _parse_uuid(user_id)
        if uid is None:
            return UsageSnapshot(messages_generated_today=0, last_generated_at=None)
        async with self.session_factory() as session:
            today = await session.execute(
                select(func.count(GeneratedMessageModel.id))
                .where(GeneratedMessageModel.user_id == uid)
                .where(GeneratedMessageModel.created_at >= _start_of_day(now))
            )
            latest = await session.execute(
                select(func.max(GeneratedMessageModel.created_at)).where(
                    GeneratedMessageModel.user_id == uid
                )
            )
            return UsageSnapshot(
                messages_generated_today=int(today.scalar_one()),
                last_generated_at=latest.scalar_one_or_none(),
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
        """Persist an accepted message."""
        row = GeneratedMessageModel(
            user_id=_parse_uuid(user_id),
            content=content,
            category=category.value,
            tokens=tokens,
            cost=Decimal(str(cost)),
            temperature=temperature,
            model=model,
            locale=locale,
            time_of_day=time_of_day.value if time_of_day else None,
            weather_context=weather_context.value if weather_context else None,
        )
        async with self.session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                logger.error("message_persist_failed", user_id=user_id, error=str(exc))
                raise DatabaseError(f"Failed to persist message: {exc}") from exc
            await session.refresh(row)
            return _to_message(row)


class DailyDropRepository:
    """Daily drops and challenges keyed by (date, locale)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def get(self, day: date, locale: str) -> DailyDrop | None:
        """Existing drop for a date and locale."""
        async with self.session_factory() as session:
            return await self._find_drop(session, day, locale)

    async def _find_drop(self, session: AsyncSession, day: date, locale: str) -> DailyDrop | None:
        result = await session.execute(
            select(DailyDropModel).where(
                DailyDropModel.date == day, DailyDropModel.locale == locale
            )
        )
        row = result.scalar_one_or_none()
        return _to_daily_drop(row) if row else None

    async def insert_or_get(
        self, day: date, locale: str, content: str, model: str, tokens: int
    ) -> tuple[DailyDrop, bool]:
        """
        Insert a drop, or return the row that won a concurrent insert.

        Returns:
            Tuple of (drop, created). created is False when another writer
            already owned (date, locale).
        """
        async with self.session_factory() as session:
            row = DailyDropModel(
                date=day, locale=locale, content=content, model=model, tokens=tokens
            )
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                logger.info(
                    "daily_drop_insert_conflict",
                    date=day.isoformat(),
                    locale=locale,
                    error=str(exc),
                )
                await session.rollback()
                existing = await self._find_drop(session, day, locale)
                if existing is None:
                    raise DatabaseError(f"Daily drop insert failed: {exc}") from exc
                return existing, False

            await session.refresh(row)
            return _to_daily_drop(row), True

    async def get_challenge(self, day: date, locale: str) -> DailyChallenge | None:
        """Existing challenge for a date and locale."""
        async with self.session_factory() as session:
            return await self._find_challenge(session, day, locale)

    async def _find_challenge(
        self, session: AsyncSession, day: date, locale: str
    ) -> DailyChallenge | None:
        result = await session.execute(
            select(DailyChallengeModel).where(
                DailyChallengeModel.date == day, DailyChallengeModel.locale == locale
            )
        )
        row = result.scalar_one_or_none()
        return _to_challenge(row) if row else None

    async def insert_or_get_challenge(
        self, day: date, locale: str, task: str, points: int
    ) -> DailyChallenge:
        """Insert a challenge, or return the row that won a concurrent insert."""
        async with self.session_factory() as session:
            row = DailyChallengeModel(date=day, locale=locale, task=task, points=points)
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                existing = await self._find_challenge(session, day, locale)
                if existing is None:
                    raise DatabaseError(f"Daily challenge insert failed: {exc}") from exc
                return existing

            await session.refresh(row)
            return _to_challenge(row)

    async def recent_contents(
        self,
        locale: str,
        since: datetime,
        limit: int,
        category: MessageCategory | None = None,
    ) -> list[str]:
        """Content of the newest drops for a locale. Drops carry no category."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(DailyDropModel.content)
                .where(DailyDropModel.locale == locale)
                .where(DailyDropModel.created_at >= since)
                .order_by(DailyDropModel.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars())

    async def history(
        self, start: date, end: date, locale: str, limit: int
    ) -> tuple[list[DailyDrop], int]:
        """Drops between start and end inclusive, newest first, plus the total count."""
        window = (
            DailyDropModel.locale == locale,
            DailyDropModel.date >= start,
            DailyDropModel.date <= end,
        )
        async with self.session_factory() as session:
            rows = await session.execute(
                select(DailyDropModel)
                .where(*window)
                .order_by(DailyDropModel.date.desc())
                .limit(limit)
            )
            total = await session.execute(select(func.count(DailyDropModel.id)).where(*window))
            return [_to_daily_drop(r) for r in rows.scalars()], int(total.scalar_one())

    async def delete_older_than(self, cutoff: date) -> int:
        """Delete drops and challenges dated before cutoff. Returns drops removed."""
        async with self.session_factory() as session:
            result = await session.execute(
                delete(DailyDropModel).where(DailyDropModel.date < cutoff)
            )
            await session.execute(
                delete(DailyChallengeModel).where(DailyChallengeModel.date < cutoff)
            )
            await session.commit()
            return int(result.rowcount or 0)


class AchievementRepository:
    """Achievement unlocks and the statistics they are measured on."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def stats(self, user_id: str) -> UserStats | None:
        """Current counters for a user; None when the user does not exist."""
        uid = _parse_uuid(user_id)
        if uid is None:
            return None
        async with self.session_factory() as session:
            user = await session.get(UserModel, uid)
            if user is None:
                return None
            messages = await session.execute(
                select(func.count(GeneratedMessageModel.id)).where(
                    GeneratedMessageModel.user_id == uid
                )
            )
            actions = await session.execute(
                select(WisdomPointTransactionModel.action, func.count())
                .where(WisdomPointTransactionModel.user_id == uid)
                .where(
                    WisdomPointTransactionModel.action.in_(
                        [
                            PointsAction.DAILY_CHALLENGE_COMPLETE.value,
                            PointsAction.CONTENT_SHARE.value,
                        ]
                    )
                )
                .group_by(WisdomPointTransactionModel.action)
            )
            counts = {action: int(count) for action, count in actions.all()}
            return UserStats(
                wisdom_points=user.wisdom_points,
                streak_days=user.streak_count,
                messages_generated=int(messages.scalar_one()),
                challenges_completed=counts.get(PointsAction.DAILY_CHALLENGE_COMPLETE.value, 0),
                shares_made=counts.get(PointsAction.CONTENT_SHARE.value, 0),
            )

    async def earned(self, user_id: str) -> list[UserAchievement]:
        """Unlocked achievements, most recent first."""
        uid = _parse_uuid(user_id)
        if uid is None:
            return []
        async with self.session_factory() as session:
            result = await session.execute(
                select(UserAchievementModel)
                .where(UserAchievementModel.user_id == uid)
                .order_by(UserAchievementModel.earned_at.desc())
            )
            return [
                UserAchievement(
                    user_id=str(row.user_id),
                    achievement_key=row.achievement_key,
                    earned_at=row.earned_at,
                )
                for row in result.scalars()
            ]

    async def record_unlock(self, user_id: str, achievement_key: str) -> UserAchievement | None:
        """
        Record an unlock.

        Returns:
            None when the user already had the achievement
        """
        uid = _parse_uuid(user_id)
        if uid is None:
            raise NotFoundError("User", user_id)
        async with self.session_factory() as session:
            row = UserAchievementModel(user_id=uid, achievement_key=achievement_key)
            session.add(row)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info(
                    "achievement_already_unlocked",
                    user_id=user_id,
                    achievement_key=achievement_key,
                )
                return None
            await session.refresh(row)
            return UserAchievement(
                user_id=user_id, achievement_key=row.achievement_key, earned_at=row.earned_at
            )
