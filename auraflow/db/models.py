"""
Database Models - SQLAlchemy ORM models with strict typing.

NO DICTIONARIES - All columns use Mapped[] type annotations.
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    ARRAY,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class UserModel(Base):
    """
    ORM model for users table.

    Users are never hard-deleted; only their soft state changes.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    # Subscription
    subscription_status: Mapped[str] = mapped_column(String(20), nullable=False, default="free")
    premium_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    voice_pack_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Gamification
    wisdom_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_activity_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Preferences
    preferred_categories: Mapped[list[str]] = mapped_column(
        ARRAY(String(20)), nullable=False, default=list
    )
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint(
            "subscription_status IN ('free', 'premium_core', 'voice_pack')",
            name="ck_users_subscription_status",
        ),
        CheckConstraint("wisdom_points >= 0", name="ck_users_wisdom_points_non_negative"),
        CheckConstraint("streak_count >= 0", name="ck_users_streak_non_negative"),
        UniqueConstraint("email", name="uq_users_email"),
    )


class GeneratedMessageModel(Base):
    """ORM model for generated_messages table."""

    __tablename__ = "generated_messages"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )

    content: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    locale: Mapped[str] = mapped_column(String(10), nullable=False, default="en-US")
    time_of_day: Mapped[str | None] = mapped_column(String(10), nullable=True)
    weather_context: Mapped[str | None] = mapped_column(String(10), nullable=True)

    # Accounting
    tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cost: Mapped[Decimal] = mapped_column(Numeric(12, 6), nullable=False, default=Decimal("0"))
    temperature: Mapped[float] = mapped_column(Float, nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)

    # Reserved for an embedding-based similarity upgrade
    embedding: Mapped[list[float] | None] = mapped_column(ARRAY(Float), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        CheckConstraint("tokens >= 0", name="ck_generated_messages_tokens_non_negative"),
        CheckConstraint("cost >= 0", name="ck_generated_messages_cost_non_negative"),
        Index("idx_generated_messages_user_created", "user_id", "created_at"),
        Index("idx_generated_messages_locale_created", "locale", "created_at"),
    )


class DailyDropModel(Base):
    """
    ORM model for daily_drops table.

    One row per (date, locale). The unique constraint is the authority for
    concurrent generation; callers must treat a violation as "someone else won".
    """

    __tablename__ = "daily_drops"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    locale: Mapped[str] = mapped_column(String(10), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    embedding: Mapped[list[float] | None] = mapped_column(ARRAY(Float), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        UniqueConstraint("date", "locale", name="uq_daily_drops_date_locale"),
        Index("idx_daily_drops_locale_created", "locale", "created_at"),
    )


class DailyChallengeModel(Base):
    """ORM model for daily_challenges table."""

    __tablename__ = "daily_challenges"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    locale: Mapped[str] = mapped_column(String(10), nullable=False)
    task: Mapped[str] = mapped_column(Text, nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        CheckConstraint("points > 0", name="ck_daily_challenges_points_positive"),
        UniqueConstraint("date", "locale", name="uq_daily_challenges_date_locale"),
    )


class WisdomPointTransactionModel(Base):
    """ORM model for wisdom_point_transactions table (append-only ledger)."""

    __tablename__ = "wisdom_point_transactions"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        Index("idx_wisdom_points_user_created", "user_id", "created_at"),
    )


class UserAchievementModel(Base):
    """
    ORM model for user_achievements table.

    Achievement definitions live in code; this table only records unlocks.
    """

    __tablename__ = "user_achievements"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    achievement_key: Mapped[str] = mapped_column(String(50), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        UniqueConstraint("user_id", "achievement_key", name="uq_user_achievements_user_key"),
        Index("idx_user_achievements_user_earned", "user_id", "earned_at"),
    )
