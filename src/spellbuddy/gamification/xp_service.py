"""XP awards with in-database increments and level-up detection.

Rows are always written ``users`` first, then ``user_progress``.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from spellbuddy.db.models import User, UserProgress
from spellbuddy.gamification.day_utils import utcnow
from spellbuddy.gamification.exceptions import NotFoundError, ValidationError
from spellbuddy.gamification.level_curve import MAX_LEVEL, compute_level, level_for_experience
from spellbuddy.gamification.progress_service import get_or_create_progress
from spellbuddy.gamification.schemas import LevelInfo, XPAwardResult
from spellbuddy.gamification.validators import require_count

logger = logging.getLogger(__name__)


async def _reload_user(db: AsyncSession, user_id: int) -> User:
    """Bring the session's copy of the user in line with the row."""
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _mirror_experience(db: AsyncSession, user_id: int, experience_points: int) -> None:
    """Copy the canonical XP onto user_progress. The users row is already locked."""
    await get_or_create_progress(db, user_id)
    await db.execute(
        update(UserProgress)
        .where(UserProgress.user_id == user_id)
        .values(total_experience_points=experience_points, updated_at=utcnow())
    )


async def award_experience(
    db: AsyncSession,
    user_id: int,
    points: int,
) -> XPAwardResult:
    """Add ``points`` to a user's XP and recompute their level.

    1. Increment XP in the database, reading back the new total and stored level
    2. Walk the level up from the stored level
    3. Raise the stored level; the statement never lowers it
    4. Mirror the total onto user_progress.total_experience_points

    The increment is a single ``UPDATE ... RETURNING`` so concurrent awards
    serialize on the row and none is lost. Nothing is committed; publish a
    level-up with ``publish_level_up`` once the caller has committed.
    """
    require_count("points", points)

    row = (
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(experience_points=User.experience_points + points)
            .returning(User.experience_points, User.level)
            .execution_options(synchronize_session=False)
        )
    ).one_or_none()
    if row is None:
        raise NotFoundError("User", user_id)

    new_xp, old_level = row[0], row[1] or 1
    new_level = level_for_experience(new_xp, old_level)
    if new_level > old_level:
        await db.execute(
            update(User)
            .where(User.id == user_id, User.level < new_level)
            .values(level=new_level)
            .execution_options(synchronize_session=False)
        )

    await _mirror_experience(db, user_id, new_xp)
    await _reload_user(db, user_id)

    leveled_up = new_level > old_level
    if leveled_up:
        logger.info("User %d leveled up: %d -> %d", user_id, old_level, new_level)

    return XPAwardResult(
        xp_awarded=points,
        total_xp=new_xp,
        leveled_up=leveled_up,
        old_level=old_level if leveled_up else None,
        new_level=new_level if leveled_up else None,
    )


async def set_experience(
    db: AsyncSession,
    user_id: int,
    experience_points: int,
    level: int | None = None,
) -> User:
    """Administrative override of XP and level.

    This is the only path allowed to lower a level. When ``level`` is omitted it
    is derived from ``experience_points``.
    """
    require_count("experience_points", experience_points)
    if level is not None:
        if isinstance(level, bool) or not isinstance(level, int) or not 1 <= level <= MAX_LEVEL:
            raise ValidationError(f"level must be an integer between 1 and {MAX_LEVEL}, got {level!r}")
    else:
        level = level_for_experience(experience_points)

    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(experience_points=experience_points, level=level)
        .returning(User.id)
        .execution_options(synchronize_session=False)
    )
    if result.scalar_one_or_none() is None:
        raise NotFoundError("User", user_id)

    await _mirror_experience(db, user_id, experience_points)
    user = await _reload_user(db, user_id)

    logger.warning("Experience overridden for user %d: xp=%d level=%d", user_id, experience_points, level)
    return user


async def get_level_info(db: AsyncSession, user_id: int) -> LevelInfo:
    """Level bar data for a user, anchored at their stored level."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User", user_id)
    return LevelInfo(**compute_level(user.experience_points or 0, user.level or 1))


async def publish_level_up(redis: object, user_id: int, result: XPAwardResult) -> None:
    """Broadcast a committed level-up for live displays. Best effort."""
    if redis is None or not result.leveled_up:
        return
    try:
        await redis.publish(  # type: ignore[attr-defined]
            "pubsub:level_up",
            json.dumps({
                "user_id": user_id,
                "old_level": result.old_level,
                "new_level": result.new_level,
                "total_xp": result.total_xp,
            }),
        )
    except Exception:
        logger.warning("Failed to publish level_up event", exc_info=True)
