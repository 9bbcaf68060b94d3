"""Day streak tracking.

The canonical streak lives on ``user_progress``. ``_write_streak`` is the only
writer and mirrors the same values onto ``users`` in the same flush, so the two
copies cannot drift apart.

Transitions, keyed on calendar days since the last activity:

    no prior activity  -> first_activity   streak = 1
    0 days             -> same_day         nothing changes, nothing is written
    1 day              -> consecutive_day  streak + 1
    more than 1 day    -> reset            streak = 1, longest kept
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from spellbuddy.config import get_settings
from spellbuddy.db.models import User, UserProgress
from spellbuddy.gamification.day_utils import days_between, ensure_aware, get_zone, utcnow
from spellbuddy.gamification.exceptions import NotFoundError
from spellbuddy.gamification.progress_service import get_or_create_progress
from spellbuddy.gamification.schemas import StreakStatus

logger = logging.getLogger(__name__)

FIRST_ACTIVITY = "first_activity"
SAME_DAY = "same_day"
CONSECUTIVE_DAY = "consecutive_day"
RESET = "reset"


@dataclass(frozen=True)
class StreakState:
    current_streak: int
    longest_streak: int
    last_activity_date: datetime | None


def next_streak_state(state: StreakState, now: datetime, tz: tzinfo) -> tuple[StreakState, str]:
    """Pure transition function. Returns the new state and the transition name.

    A ``now`` on an earlier calendar day than the last activity counts as the
    same day.
    """
    if state.last_activity_date is None:
        return StreakState(1, max(state.longest_streak, 1), now), FIRST_ACTIVITY

    gap = days_between(state.last_activity_date, now, tz)
    if gap <= 0:
        return state, SAME_DAY

    if gap == 1:
        streak = state.current_streak + 1
        return StreakState(streak, max(state.longest_streak, streak), now), CONSECUTIVE_DAY

    # longest is a historical maximum and is never reduced.
    return StreakState(1, max(state.longest_streak, 1), now), RESET


def _streak_zone() -> tzinfo:
    return get_zone(get_settings().streak_timezone)


def _state_of(progress: UserProgress) -> StreakState:
    last = progress.last_activity_date
    return StreakState(
        current_streak=progress.streak_days or 0,
        longest_streak=progress.longest_streak or 0,
        last_activity_date=ensure_aware(last) if last is not None else None,
    )


async def _write_streak(db: AsyncSession, progress: UserProgress, state: StreakState) -> None:
    """Persist a streak state to the progress row and its users mirror."""
    progress.streak_days = state.current_streak
    progress.longest_streak = state.longest_streak
    progress.last_activity_date = state.last_activity_date
    progress.updated_at = utcnow()

    await db.execute(
        update(User)
        .where(User.id == progress.user_id)
        .values(
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            last_activity_date=state.last_activity_date,
        )
    )
    await db.flush()


async def touch_activity(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> StreakStatus:
    """Register activity for ``user_id`` at ``now`` and advance the streak.

    Calling this more than once on the same calendar day is a no-op.
    """
    # Stored as UTC; SQLite keeps only the wall-clock part.
    now = ensure_aware(now).astimezone(timezone.utc) if now is not None else utcnow()

    progress = await get_or_create_progress(db, user_id, for_update=True)
    state = _state_of(progress)
    new_state, transition = next_streak_state(state, now, _streak_zone())

    if transition != SAME_DAY:
        await _write_streak(db, progress, new_state)
        logger.debug(
            "Streak %s for user %d: %d -> %d (longest %d)",
            transition, user_id, state.current_streak, new_state.current_streak, new_state.longest_streak,
        )

    return StreakStatus(
        current_streak=new_state.current_streak,
        longest_streak=new_state.longest_streak,
        reset=transition == RESET,
        transition=transition,
        last_activity_date=new_state.last_activity_date,
    )


async def get_streak(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> StreakStatus:
    """Read-only streak projection. A lapsed streak reads as 0 without being written."""
    now = ensure_aware(now) if now is not None else utcnow()

    user_exists = await db.execute(select(User.id).where(User.id == user_id))
    if user_exists.scalar_one_or_none() is None:
        raise NotFoundError("User", user_id)

    result = await db.execute(select(UserProgress).where(UserProgress.user_id == user_id))
    progress = result.scalar_one_or_none()
    if progress is None or progress.last_activity_date is None:
        return StreakStatus(
            current_streak=0,
            longest_streak=progress.longest_streak if progress is not None else 0,
        )

    state = _state_of(progress)
    current = state.current_streak
    if days_between(state.last_activity_date, now, _streak_zone()) > 1:
        current = 0

    return StreakStatus(
        current_streak=current,
        longest_streak=state.longest_streak,
        last_activity_date=state.last_activity_date,
    )
