"""User lookup and registration-time setup of progression state."""

from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from spellbuddy.db.models import User, UserProgress
from spellbuddy.gamification.day_utils import utcnow
from spellbuddy.gamification.exceptions import NotFoundError, ValidationError

logger = structlog.get_logger()


async def get_user(db: AsyncSession, user_id: int) -> User:
    """Fetch a user by id or raise NotFoundError."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User", user_id)
    return user


async def create_user(
    db: AsyncSession,
    username: str,
    email: str | None = None,
    now: datetime | None = None,
) -> User:
    """Create a user at level 1 with zero XP and an empty progress row."""
    username = username.strip()
    if not username:
        raise ValidationError("Username is required")

    if now is None:
        now = utcnow()

    user = User(
        username=username,
        email=email,
        created_at=now,
        experience_points=0,
        level=1,
        current_streak=0,
        longest_streak=0,
    )
    db.add(user)
    await db.flush()

    db.add(UserProgress(user_id=user.id, updated_at=now))
    await db.flush()

    logger.info("user_created", user_id=user.id, username=username)
    return user
