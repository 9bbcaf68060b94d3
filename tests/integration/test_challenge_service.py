"""Daily challenge tests: advancing, capping and expiry."""

from __future__ import annotations

import pytest

from spellbuddy.db.models import DailyChallenge
from spellbuddy.gamification.challenge_service import count_completed_challenges, record_challenge_progress
from spellbuddy.gamification.exceptions import NotFoundError, ValidationError


@pytest.fixture
def make_challenge(db_session, day):
    async def _make(target: int = 3, expires_day: int = 10) -> DailyChallenge:
        challenge = DailyChallenge(
            title="Word sprint",
            description="Spell words correctly today",
            experience_reward=50,
            target_count=target,
            challenge_type="correct_words",
            created_at=day(1),
            expires_at=day(expires_day),
        )
        db_session.add(challenge)
        await db_session.commit()
        return challenge

    return _make


class TestRecordChallengeProgress:
    """Test record_challenge_progress."""

    @pytest.mark.asyncio
    async def test_first_increment_creates_row(self, db_session, user, make_challenge, day):
        challenge = await make_challenge()
        row = await record_challenge_progress(db_session, user.id, challenge.id, now=day(2))
        assert row.current_count == 1
        assert row.is_completed is False
        assert row.completed_at is None

    @pytest.mark.asyncio
    async def test_reaching_target_completes(self, db_session, user, make_challenge, day):
        challenge = await make_challenge(target=3)
        await record_challenge_progress(db_session, user.id, challenge.id, 2, now=day(2))
        row = await record_challenge_progress(db_session, user.id, challenge.id, 1, now=day(2, 15))
        assert row.current_count == 3
        assert row.is_completed is True
        assert row.completed_at is not None

    @pytest.mark.asyncio
    async def test_overshoot_is_capped_at_target(self, db_session, user, make_challenge, day):
        challenge = await make_challenge(target=3)
        row = await record_challenge_progress(db_session, user.id, challenge.id, 10, now=day(2))
        assert row.current_count == 3
        assert row.is_completed is True

    @pytest.mark.asyncio
    async def test_completed_challenge_is_not_advanced(self, db_session, user, make_challenge, day):
        challenge = await make_challenge(target=1)
        first = await record_challenge_progress(db_session, user.id, challenge.id, now=day(2))
        assert first.current_count == 1

        again = await record_challenge_progress(db_session, user.id, challenge.id, now=day(3))
        assert again.current_count == 1
        assert again.completed_at.replace(tzinfo=None) == day(2).replace(tzinfo=None)

    @pytest.mark.asyncio
    async def test_expired_challenge_returns_none(self, db_session, user, make_challenge, day):
        challenge = await make_challenge(expires_day=5)
        assert await record_challenge_progress(db_session, user.id, challenge.id, now=day(5)) is None
        assert await count_completed_challenges(db_session, user.id) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("increment", [0, -2, True])
    async def test_invalid_increment(self, db_session, user, make_challenge, increment):
        challenge = await make_challenge()
        with pytest.raises(ValidationError):
            await record_challenge_progress(db_session, user.id, challenge.id, increment)

    @pytest.mark.asyncio
    async def test_unknown_challenge(self, db_session, user):
        with pytest.raises(NotFoundError):
            await record_challenge_progress(db_session, user.id, 9999)

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session, make_challenge, day):
        challenge = await make_challenge()
        with pytest.raises(NotFoundError):
            await record_challenge_progress(db_session, 9999, challenge.id, now=day(2))


class TestCountCompletedChallenges:
    @pytest.mark.asyncio
    async def test_counts_only_completed(self, db_session, user, make_challenge, day):
        done = await make_challenge(target=1)
        open_ = await make_challenge(target=5)
        await record_challenge_progress(db_session, user.id, done.id, now=day(2))
        await record_challenge_progress(db_session, user.id, open_.id, now=day(2))
        assert await count_completed_challenges(db_session, user.id) == 1
