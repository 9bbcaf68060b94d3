"""Gamification engine: runs the exercise-completion pipeline."""

from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from spellbuddy.gamification.achievement_service import evaluate_achievements, publish_achievements_unlocked
from spellbuddy.gamification.day_utils import utcnow
from spellbuddy.gamification.progress_service import record_exercise_result
from spellbuddy.gamification.schemas import ExerciseOutcome, StreakStatus, UnlockedAchievementView
from spellbuddy.gamification.streak_service import SAME_DAY, touch_activity
from spellbuddy.gamification.validators import require_count
from spellbuddy.gamification.xp_service import award_experience, publish_level_up

logger = structlog.get_logger(__name__)


class GamificationEngine:
    """Applies the progression side effects of user activity.

    Order for a completed exercise:
    1. Validate the input
    2. Award XP (level recomputed inside; locks the users row)
    3. Bump progress counters
    4. Touch the day streak
    5. Commit, then publish a level-up
    6. Evaluate achievements against the committed snapshot, commit again, publish

    Step 6 is best effort: if it fails the progress from step 5 stands and the
    next evaluation picks up whatever was missed. Events only go out for
    committed state.
    """

    def __init__(self, db: AsyncSession, redis: object = None) -> None:
        self.db = db
        self.redis = redis

    async def complete_exercise(
        self,
        user_id: int,
        correct_words: int,
        incorrect_words: int,
        points: int,
        now: datetime | None = None,
    ) -> ExerciseOutcome:
        require_count("correct_words", correct_words)
        require_count("incorrect_words", incorrect_words)
        require_count("points", points)
        if now is None:
            now = utcnow()

        try:
            xp = await award_experience(self.db, user_id, points)
            await record_exercise_result(self.db, user_id, correct_words, incorrect_words, now)
            streak = await touch_activity(self.db, user_id, now)
        except Exception:
            await self.db.rollback()
            raise
        await self.db.commit()
        await publish_level_up(self.redis, user_id, xp)

        new_achievements = await self._evaluate(user_id, now)
        logger.info(
            "exercise_completed",
            user_id=user_id,
            xp_awarded=xp.xp_awarded,
            leveled_up=xp.leveled_up,
            streak=streak.current_streak,
            unlocked=len(new_achievements or []),
        )
        return ExerciseOutcome(
            xp=xp,
            streak=streak,
            new_achievements=new_achievements or [],
            achievements_evaluated=new_achievements is not None,
        )

    async def check_streak(
        self,
        user_id: int,
        now: datetime | None = None,
    ) -> tuple[StreakStatus, list[UnlockedAchievementView]]:
        """Touch the streak for a visit and evaluate achievements if it moved."""
        if now is None:
            now = utcnow()

        try:
            streak = await touch_activity(self.db, user_id, now)
        except Exception:
            await self.db.rollback()
            raise
        await self.db.commit()

        if streak.transition == SAME_DAY:
            return streak, []
        return streak, (await self._evaluate(user_id, now)) or []

    async def _evaluate(self, user_id: int, now: datetime) -> list[UnlockedAchievementView] | None:
        """Evaluate, commit and announce unlocks. None if evaluation failed."""
        try:
            unlocked = await evaluate_achievements(self.db, user_id, now)
            await self.db.commit()
        except Exception as exc:
            await self.db.rollback()
            logger.warning(
                "achievement_evaluation_failed",
                user_id=user_id,
                error=str(exc),
                exc_info=exc,
            )
            return None
        await publish_achievements_unlocked(self.redis, user_id, unlocked)
        return unlocked
