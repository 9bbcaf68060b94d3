"""Daily challenge progress and completion counts."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from spellbuddy.db.models import DailyChallenge, User, UserChallenge
from spellbuddy.db.upsert import conflict_insert
from spellbuddy.gamification.day_utils import ensure_aware, utcnow
from spellbuddy.gamification.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


async def count_completed_challenges(db: AsyncSession, user_id: int) -> int:
    """Number of challenges the user has completed."""
    result = await db.execute(
        select(func.count())
        .select_from(UserChallenge)
        .where(
            UserChallenge.user_id == user_id,
            UserChallenge.is_completed.is_(True),
        )
    )
    return result.scalar_one()


async def record_challenge_progress(
    db: AsyncSession,
    user_id: int,
    challenge_id: int,
    increment: int = 1,
    now: datetime | None = None,
) -> UserChallenge | None:
    """Advance a user's count on a challenge, completing it at the target.

    Returns the user's challenge row, or None if the challenge has expired.
    Completed challenges are not advanced further.
    """
    if isinstance(increment, bool) or not isinstance(increment, int) or increment < 1:
        raise ValidationError(f"increment must be a positive integer, got {increment!r}")

    if now is None:
        now = utcnow()

    challenge = (
        await db.execute(select(DailyChallenge).where(DailyChallenge.id == challenge_id))
    ).scalar_one_or_none()
    if challenge is None:
        raise NotFoundError("DailyChallenge", challenge_id)

    user_exists = await db.execute(select(User.id).where(User.id == user_id))
    if user_exists.scalar_one_or_none() is None:
        raise NotFoundError("User", user_id)

    if ensure_aware(challenge.expires_at) <= ensure_aware(now):
        logger.debug("Challenge %d expired; not advancing for user %d", challenge_id, user_id)
        return None

    stmt = conflict_insert(db, UserChallenge).values(user_id=user_id, challenge_id=challenge_id)
    stmt = stmt.on_conflict_do_nothing(index_elements=["user_id", "challenge_id"])
    await db.execute(stmt)

    result = await db.execute(
        select(UserChallenge)
        .where(
            UserChallenge.user_id == user_id,
            UserChallenge.challenge_id == challenge_id,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    user_challenge = result.scalar_one()

    if user_challenge.is_completed:
        return user_challenge

    user_challenge.current_count = min(user_challenge.current_count + increment, challenge.target_count)
    if user_challenge.current_count >= challenge.target_count:
        user_challenge.is_completed = True
        user_challenge.completed_at = now
        logger.info("User %d completed challenge %d", user_id, challenge_id)

    await db.flush()
    return user_challenge
