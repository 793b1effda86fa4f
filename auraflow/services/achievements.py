"""
Achievement Service - Catalog of achievements and unlock evaluation.

NO DICTIONARIES - Catalog entries are frozen Achievement dataclasses; unlocks
are recorded per user and rewarded through the wisdom points ledger.
"""

from types import MappingProxyType

from structlog import get_logger

from auraflow.db.repositories import AchievementRepository
from auraflow.exceptions import NotFoundError
from auraflow.models.api import AchievementMetric, PointsAction
from auraflow.models.domain import Achievement, AchievementCondition, UserAchievement, UserStats
from auraflow.services.wisdom_points import WisdomPointsService

logger = get_logger(__name__)


def _achievement(
    key: str,
    name: str,
    description: str,
    icon: str,
    badge_color: str,
    points_required: int,
    metric: AchievementMetric,
    threshold: int,
) -> Achievement:
    return Achievement(
        key=key,
        name=name,
        description=description,
        icon=icon,
        badge_color=badge_color,
        points_required=points_required,
        conditions=(AchievementCondition(metric=metric, threshold=threshold),),
    )


_CATALOG = (
    _achievement(
        "first_steps", "First Steps", "Earn your first wisdom point", "🌟", "gold", 1,
        AchievementMetric.WISDOM_POINTS, 1,
    ),
    _achievement(
        "daily_visitor", "Daily Visitor", "Visit the app 3 days in a row", "📅", "silver", 3,
        AchievementMetric.STREAK_DAYS, 3,
    ),
    _achievement(
        "social_butterfly", "Social Butterfly", "Share your first message", "🦋", "gold", 3,
        AchievementMetric.SHARES_MADE, 1,
    ),
    _achievement(
        "challenge_accepted", "Challenge Accepted", "Complete your first daily challenge", "🎯",
        "gold", 5, AchievementMetric.CHALLENGES_COMPLETED, 1,
    ),
    _achievement(
        "inspiration_generator", "Inspiration Generator", "Generate 10 messages", "💡", "silver",
        10, AchievementMetric.MESSAGES_GENERATED, 10,
    ),
    _achievement(
        "week_warrior", "Week Warrior", "Maintain a 7-day streak", "🔥", "gold", 14,
        AchievementMetric.STREAK_DAYS, 7,
    ),
    _achievement(
        "sharing_is_caring", "Sharing is Caring", "Share content 5 times", "❤️", "bronze", 15,
        AchievementMetric.SHARES_MADE, 5,
    ),
    _achievement(
        "wisdom_seeker", "Wisdom Seeker", "Accumulate 25 wisdom points", "🧠", "bronze", 25,
        AchievementMetric.WISDOM_POINTS, 25,
    ),
    _achievement(
        "challenge_champion", "Challenge Champion", "Complete 10 daily challenges", "🏆", "gold",
        50, AchievementMetric.CHALLENGES_COMPLETED, 10,
    ),
    _achievement(
        "content_creator", "Content Creator", "Generate 50 messages", "✨", "silver", 50,
        AchievementMetric.MESSAGES_GENERATED, 50,
    ),
    _achievement(
        "monthly_dedication", "Monthly Dedication", "Maintain a 30-day streak", "🌙", "gold", 60,
        AchievementMetric.STREAK_DAYS, 30,
    ),
    _achievement(
        "wisdom_master", "Wisdom Master", "Accumulate 100 wisdom points", "👑", "gold", 100,
        AchievementMetric.WISDOM_POINTS, 100,
    ),
    _achievement(
        "prolific_creator", "Prolific Creator", "Generate 100 messages", "🎨", "gold", 100,
        AchievementMetric.MESSAGES_GENERATED, 100,
    ),
    _achievement(
        "ultimate_challenger", "Ultimate Challenger", "Complete 30 daily challenges", "⚡", "gold",
        150, AchievementMetric.CHALLENGES_COMPLETED, 30,
    ),
    _achievement(
        "wisdom_sage", "Wisdom Sage", "Accumulate 500 wisdom points", "🧙", "gold", 500,
        AchievementMetric.WISDOM_POINTS, 500,
    ),
)


# Ordered by points_required, keyed by Achievement.key
ACHIEVEMENTS = MappingProxyType({a.key: a for a in _CATALOG})


def is_unlocked_by(achievement: Achievement, stats: UserStats) -> bool:
    """All conditions must hold."""
    return all(stats.value(c.metric) >= c.threshold for c in achievement.conditions)


class AchievementService:
    """Evaluates and records achievement unlocks."""

    def __init__(
        self,
        repository: AchievementRepository,
        wisdom_points: WisdomPointsService,
        catalog: MappingProxyType[str, Achievement] = ACHIEVEMENTS,
    ) -> None:
        self.repository = repository
        self.wisdom_points = wisdom_points
        self.catalog = catalog

    def available_achievements(self) -> list[Achievement]:
        return list(self.catalog.values())

    async def get_user_achievements(
        self, user_id: str
    ) -> list[tuple[Achievement, UserAchievement]]:
        """Earned achievements, most recent first. Unknown keys are skipped."""
        earned = await self.repository.earned(user_id)
        return [
            (self.catalog[e.achievement_key], e)
            for e in earned
            if e.achievement_key in self.catalog
        ]

    async def check_and_unlock(self, user_id: str) -> list[Achievement]:
        """
        Unlock every achievement the user now qualifies for.

        Stats are read once; points awarded for an unlock count towards the
        next check, not this one.

        Returns:
            Achievements newly unlocked by this call

        Raises:
            NotFoundError: Unknown user
        """
        stats = await self.repository.stats(user_id)
        if stats is None:
            raise NotFoundError("User", user_id)

        already = {e.achievement_key for e in await self.repository.earned(user_id)}
        unlocked: list[Achievement] = []
        for achievement in self.catalog.values():
            if achievement.key in already or not is_unlocked_by(achievement, stats):
                continue
            recorded = await self.repository.record_unlock(user_id, achievement.key)
            if recorded is None:
                continue
            await self.wisdom_points.award_points(
                user_id,
                PointsAction.ACHIEVEMENT_UNLOCK,
                f'Unlocked "{achievement.name}" achievement',
            )
            logger.info(
                "achievement_unlocked",
                user_id=user_id,
                achievement_key=achievement.key,
            )
            unlocked.append(achievement)
        return unlocked
