"""Per-user progress counters: upsert-on-first-write and atomic increments.

When both rows are locked, ``users`` is locked before ``user_progress``.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from spellbuddy.db.models import User, UserProgress
from spellbuddy.db.upsert import conflict_insert
from spellbuddy.gamification.day_utils import utcnow
from spellbuddy.gamification.exceptions import NotFoundError
from spellbuddy.gamification.validators import require_count

logger = logging.getLogger(__name__)


async def get_progress(db: AsyncSession, user_id: int) -> UserProgress:
    """Fetch the progress row for a user or raise NotFoundError."""
    result = await db.execute(
        select(UserProgress)
        .where(UserProgress.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    progress = result.scalar_one_or_none()
    if progress is None:
        raise NotFoundError("UserProgress", user_id)
    return progress


async def get_or_create_progress(
    db: AsyncSession,
    user_id: int,
    *,
    for_update: bool = False,
) -> UserProgress:
    """Get or create the progress row for a user.

    The insert is ``ON CONFLICT DO NOTHING`` on ``user_id`` so two requests
    racing on a brand-new user both end up reading the same row. With
    ``for_update`` the users row is locked first, then the progress row.
    """
    user_query = select(User.id).where(User.id == user_id)
    if for_update:
        user_query = user_query.with_for_update()
    user_exists = await db.execute(user_query)
    if user_exists.scalar_one_or_none() is None:
        raise NotFoundError("User", user_id)

    stmt = conflict_insert(db, UserProgress).values(user_id=user_id, updated_at=utcnow())
    stmt = stmt.on_conflict_do_nothing(index_elements=["user_id"])
    await db.execute(stmt)

    query = (
        select(UserProgress)
        .where(UserProgress.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one()


async def record_exercise_result(
    db: AsyncSession,
    user_id: int,
    correct_words: int,
    incorrect_words: int,
    now: datetime | None = None,
) -> UserProgress:
    """Count one completed exercise and its word tallies.

    An exercise with at least one correct word and no misspellings is perfect.
    Counters are bumped with a single column-expression UPDATE.
    """
    require_count("correct_words", correct_words)
    require_count("incorrect_words", incorrect_words)

    if now is None:
        now = utcnow()

    await get_or_create_progress(db, user_id)

    perfect = 1 if incorrect_words == 0 and correct_words > 0 else 0
    await db.execute(
        update(UserProgress)
        .where(UserProgress.user_id == user_id)
        .values(
            total_exercises=UserProgress.total_exercises + 1,
            correct_words=UserProgress.correct_words + correct_words,
            incorrect_words=UserProgress.incorrect_words + incorrect_words,
            perfect_exercises=UserProgress.perfect_exercises + perfect,
            last_exercise_date=now,
            updated_at=now,
        )
    )

    progress = await get_progress(db, user_id)
    logger.debug(
        "Recorded exercise for user %d: %d correct, %d incorrect (perfect=%s)",
        user_id, correct_words, incorrect_words, bool(perfect),
    )
    return progress


async def reset_progress(db: AsyncSession, user_id: int, now: datetime | None = None) -> UserProgress:
    """Administrative reset: zero the counters and streak state. XP is left alone."""
    if now is None:
        now = utcnow()

    progress = await get_or_create_progress(db, user_id, for_update=True)
    progress.total_exercises = 0
    progress.correct_words = 0
    progress.incorrect_words = 0
    progress.perfect_exercises = 0
    progress.streak_days = 0
    progress.longest_streak = 0
    progress.last_activity_date = None
    progress.last_exercise_date = None
    progress.updated_at = now

    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(current_streak=0, longest_streak=0, last_activity_date=None)
    )
    await db.flush()

    logger.info("Reset progress for user %d", user_id)
    return progress
