"""Streak service tests: persisted transitions and the users mirror."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from spellbuddy.config import get_settings
from spellbuddy.db.models import User
from spellbuddy.gamification.exceptions import NotFoundError
from spellbuddy.gamification.progress_service import get_progress
from spellbuddy.gamification.streak_service import (
    CONSECUTIVE_DAY,
    FIRST_ACTIVITY,
    RESET,
    SAME_DAY,
    get_streak,
    touch_activity,
)


async def _assert_mirrored(db, user_id: int) -> None:
    progress = await get_progress(db, user_id)
    user = await db.get(User, user_id, populate_existing=True)
    assert user.current_streak == progress.streak_days
    assert user.longest_streak == progress.longest_streak
    assert (user.last_activity_date is None) == (progress.last_activity_date is None)


class TestTouchActivity:
    """Test touch_activity."""

    @pytest.mark.asyncio
    async def test_first_activity_starts_streak(self, db_session, user, day):
        status = await touch_activity(db_session, user.id, day(1))
        assert status.transition == FIRST_ACTIVITY
        assert status.current_streak == 1
        assert status.longest_streak == 1
        await _assert_mirrored(db_session, user.id)

    @pytest.mark.asyncio
    async def test_same_day_is_idempotent(self, db_session, user, day):
        await touch_activity(db_session, user.id, day(1, 8))
        await db_session.commit()

        again = await touch_activity(db_session, user.id, day(1, 21))
        assert again.transition == SAME_DAY
        assert again.current_streak == 1

        progress = await get_progress(db_session, user.id)
        assert progress.streak_days == 1
        # last activity keeps the first touch of the day
        assert progress.last_activity_date.replace(tzinfo=timezone.utc) == day(1, 8)

    @pytest.mark.asyncio
    async def test_consecutive_days_accumulate(self, db_session, user, day):
        for n in range(1, 5):
            status = await touch_activity(db_session, user.id, day(n))
            await db_session.commit()
        assert status.transition == CONSECUTIVE_DAY
        assert status.current_streak == 4
        assert status.longest_streak == 4
        await _assert_mirrored(db_session, user.id)

    @pytest.mark.asyncio
    async def test_late_night_then_early_morning(self, db_session, user, day):
        await touch_activity(db_session, user.id, day(1, 23, 59))
        status = await touch_activity(db_session, user.id, day(2, 0, 1))
        assert status.transition == CONSECUTIVE_DAY
        assert status.current_streak == 2

    @pytest.mark.asyncio
    async def test_skipped_day_resets(self, db_session, user, day):
        """Activity on day 1, none on day 2, activity on day 3 gives streak 1."""
        await touch_activity(db_session, user.id, day(1))
        await db_session.commit()
        status = await touch_activity(db_session, user.id, day(3))
        assert status.transition == RESET
        assert status.reset is True
        assert status.current_streak == 1
        assert status.longest_streak == 1

    @pytest.mark.asyncio
    async def test_reset_keeps_longest(self, db_session, user, day):
        for n in (1, 2, 3):
            await touch_activity(db_session, user.id, day(n))
        status = await touch_activity(db_session, user.id, day(10))
        assert status.current_streak == 1
        assert status.longest_streak == 3
        await _assert_mirrored(db_session, user.id)

    @pytest.mark.asyncio
    async def test_earlier_timestamp_is_same_day(self, db_session, user, day):
        await touch_activity(db_session, user.id, day(5))
        status = await touch_activity(db_session, user.id, day(4))
        assert status.transition == SAME_DAY
        assert status.current_streak == 1

    @pytest.mark.asyncio
    async def test_streak_timezone_setting(self, db_session, user, monkeypatch):
        """Days are cut at local midnight in the configured zone."""
        monkeypatch.setenv("SPELLBUDDY_STREAK_TIMEZONE", "Europe/Stockholm")
        get_settings.cache_clear()

        # 22:30 and 23:30 UTC on March 1 are March 1 and March 2 in Stockholm.
        await touch_activity(db_session, user.id, datetime(2026, 3, 1, 22, 30, tzinfo=timezone.utc))
        status = await touch_activity(db_session, user.id, datetime(2026, 3, 1, 23, 30, tzinfo=timezone.utc))
        assert status.transition == CONSECUTIVE_DAY
        assert status.current_streak == 2

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session, day):
        with pytest.raises(NotFoundError):
            await touch_activity(db_session, 9999, day(1))


class TestGetStreak:
    """Read-only streak projection."""

    @pytest.mark.asyncio
    async def test_no_activity_yet(self, db_session, user, day):
        status = await get_streak(db_session, user.id, day(1))
        assert status.current_streak == 0
        assert status.longest_streak == 0
        assert status.last_activity_date is None

    @pytest.mark.asyncio
    async def test_live_streak(self, db_session, user, day):
        await touch_activity(db_session, user.id, day(1))
        await touch_activity(db_session, user.id, day(2))
        await db_session.commit()

        assert (await get_streak(db_session, user.id, day(2, 20))).current_streak == 2
        # Still alive the next day until the user misses it
        assert (await get_streak(db_session, user.id, day(3))).current_streak == 2

    @pytest.mark.asyncio
    async def test_lapsed_streak_reads_zero_without_writing(self, db_session, user, day):
        await touch_activity(db_session, user.id, day(1))
        await touch_activity(db_session, user.id, day(2))
        await db_session.commit()

        status = await get_streak(db_session, user.id, day(6))
        assert status.current_streak == 0
        assert status.longest_streak == 2
        assert status.transition is None

        progress = await get_progress(db_session, user.id)
        assert progress.streak_days == 2

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session, day):
        with pytest.raises(NotFoundError):
            await get_streak(db_session, 9999, day(1))
