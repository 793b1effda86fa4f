"""
Wisdom Points Service - Fixed-value awards with a streak bonus.

NO DICTIONARIES - Values are read from an immutable mapping; the ledger
returns PointsTransaction dataclasses.
"""

from types import MappingProxyType

from structlog import get_logger

from auraflow.db.repositories import UserRepository
from auraflow.exceptions import NotFoundError, ValidationError
from auraflow.models.api import PointsAction
from auraflow.models.domain import PointsTransaction

logger = get_logger(__name__)

POINT_VALUES = MappingProxyType(
    {
        PointsAction.APP_OPEN: 1,
        PointsAction.DAILY_CHALLENGE_COMPLETE: 5,
        PointsAction.CONTENT_SHARE: 3,
        PointsAction.DAILY_STREAK: 2,
        PointsAction.ACHIEVEMENT_UNLOCK: 10,
        PointsAction.REFERRAL_SUCCESS: 15,
    }
)

STREAK_BONUS_ACTIONS = frozenset(
    {PointsAction.DAILY_CHALLENGE_COMPLETE, PointsAction.CONTENT_SHARE}
)

MAX_HISTORY_LIMIT = 200


def streak_bonus(streak_count: int) -> int:
    """Extra points for an active streak."""
    if streak_count < 3:
        return 0
    if streak_count < 7:
        return 1
    if streak_count < 14:
        return 2
    if streak_count < 30:
        return 3
    return 5


class WisdomPointsService:
    """Awards and reports wisdom points."""

    def __init__(self, users: UserRepository) -> None:
        self.users = users

    async def award_points(
        self, user_id: str, action: PointsAction, description: str | None = None
    ) -> tuple[int, int]:
        """
        Award points for an action.

        Returns:
            Tuple of (points_awarded, new_total)

        Raises:
            NotFoundError: Unknown user
        """
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        action = PointsAction(action)
        points = POINT_VALUES[action]
        if action in STREAK_BONUS_ACTIONS:
            points += streak_bonus(user.streak_count)

        new_total = await self.users.add_points(
            user_id, action, points, description or action.value.replace("_", " ")
        )
        logger.info(
            "wisdom_points_awarded",
            user_id=user_id,
            action=action.value,
            points=points,
            total=new_total,
        )
        return points, new_total

    async def get_points_balance(self, user_id: str) -> int:
        """Current balance. Raises NotFoundError for unknown users."""
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user.wisdom_points

    async def get_points_history(self, user_id: str, limit: int = 50) -> list[PointsTransaction]:
        """Most recent awards first."""
        if not 1 <= limit <= MAX_HISTORY_LIMIT:
            raise ValidationError(
                f"limit must be between 1 and {MAX_HISTORY_LIMIT}", field="limit"
            )
        return await self.users.points_history(user_id, limit)
