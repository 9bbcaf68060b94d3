"""Achievement evaluation with at-most-once unlock, and mark-seen."""

from __future__ import annotations

import json
import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from spellbuddy.db.models import Achievement, User, UserAchievement, UserProgress
from spellbuddy.db.upsert import conflict_insert
from spellbuddy.gamification.achievement_rules import AchievementRule, needs_challenge_count, rule_for
from spellbuddy.gamification.challenge_service import count_completed_challenges
from spellbuddy.gamification.day_utils import utcnow
from spellbuddy.gamification.exceptions import ValidationError
from spellbuddy.gamification.schemas import AchievementStatus, ProgressSnapshot, UnlockedAchievementView

logger = logging.getLogger(__name__)


async def load_snapshot(db: AsyncSession, user_id: int) -> ProgressSnapshot | None:
    """Read the user's counters and level. None if either row is missing."""
    progress = (
        await db.execute(
            select(UserProgress)
            .where(UserProgress.user_id == user_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if progress is None:
        return None

    level = (await db.execute(select(User.level).where(User.id == user_id))).scalar_one_or_none()
    if level is None:
        return None

    return ProgressSnapshot(
        streak_days=progress.streak_days or 0,
        total_exercises=progress.total_exercises or 0,
        perfect_exercises=progress.perfect_exercises or 0,
        correct_words=progress.correct_words or 0,
        level=level or 1,
    )


async def get_unlocked_ids(db: AsyncSession, user_id: int) -> set[int]:
    """IDs of achievements the user has already unlocked."""
    result = await db.execute(
        select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
    )
    return set(result.scalars().all())


async def _candidate_rules(
    db: AsyncSession,
    user_id: int,
) -> list[tuple[Achievement, AchievementRule]]:
    """Catalog minus already-unlocked, paired with each entry's rule."""
    unlocked = await get_unlocked_ids(db, user_id)
    catalog = (await db.execute(select(Achievement).order_by(Achievement.id))).scalars().all()

    candidates = []
    for achievement in catalog:
        if achievement.id in unlocked:
            continue
        try:
            rule = rule_for(achievement.achievement_type, achievement.required_value)
        except ValueError:
            logger.warning(
                "Skipping achievement %d with unknown type %r",
                achievement.id, achievement.achievement_type,
            )
            continue
        candidates.append((achievement, rule))
    return candidates


async def _insert_unlock(
    db: AsyncSession,
    user_id: int,
    achievement_id: int,
    now: datetime,
) -> bool:
    """Insert-if-absent on (user_id, achievement_id). True if this call created the row."""
    stmt = conflict_insert(db, UserAchievement).values(
        user_id=user_id,
        achievement_id=achievement_id,
        unlocked_at=now,
        is_new=True,
    )
    stmt = stmt.on_conflict_do_nothing(index_elements=["user_id", "achievement_id"])
    stmt = stmt.returning(UserAchievement.id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none() is not None


async def evaluate_achievements(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> list[UnlockedAchievementView]:
    """Unlock every achievement the user now qualifies for.

    Returns only the achievements unlocked by this call. A user without a
    progress row simply has nothing to unlock yet. Nothing is committed;
    announce the unlocks with ``publish_achievements_unlocked`` after commit.
    """
    snapshot = await load_snapshot(db, user_id)
    if snapshot is None:
        return []

    candidates = await _candidate_rules(db, user_id)
    if not candidates:
        return []

    if needs_challenge_count([rule for _, rule in candidates]):
        completed = await count_completed_challenges(db, user_id)
        snapshot = snapshot.model_copy(update={"completed_challenges": completed})

    if now is None:
        now = utcnow()

    unlocked: list[UnlockedAchievementView] = []
    for achievement, rule in candidates:
        if not rule.is_met(snapshot):
            continue
        if not await _insert_unlock(db, user_id, achievement.id, now):
            # Another evaluation got there first.
            continue
        unlocked.append(
            UnlockedAchievementView(
                achievement_id=achievement.id,
                name=achievement.name,
                description=achievement.description,
                icon=achievement.icon,
                achievement_type=achievement.achievement_type,
                required_value=achievement.required_value,
                unlocked_at=now,
                is_new=True,
            )
        )

    if unlocked:
        await db.flush()
        logger.info(
            "User %d unlocked %d achievement(s): %s",
            user_id, len(unlocked), ", ".join(a.name for a in unlocked),
        )

    return unlocked


def _check_achievement_ids(achievement_ids: object) -> list[int]:
    if not isinstance(achievement_ids, (list, tuple, set, frozenset)):
        raise ValidationError("achievement_ids must be a list of integers")
    ids = list(achievement_ids)
    for value in ids:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"Invalid achievement id: {value!r}")
    return ids


async def mark_achievements_seen(
    db: AsyncSession,
    user_id: int,
    achievement_ids: list[int],
) -> int:
    """Clear ``is_new`` on the user's matching unlocks. Returns rows changed.

    Unknown ids and an empty list are no-ops.
    """
    ids = _check_achievement_ids(achievement_ids)
    if not ids:
        return 0

    result = await db.execute(
        update(UserAchievement)
        .where(
            UserAchievement.user_id == user_id,
            UserAchievement.achievement_id.in_(ids),
            UserAchievement.is_new.is_(True),
        )
        .values(is_new=False)
    )
    await db.flush()
    return result.rowcount or 0


async def get_new_achievements(db: AsyncSession, user_id: int) -> list[UnlockedAchievementView]:
    """Unlocks the user has not been shown yet, oldest first."""
    result = await db.execute(
        select(UserAchievement)
        .where(
            UserAchievement.user_id == user_id,
            UserAchievement.is_new.is_(True),
        )
        .order_by(UserAchievement.unlocked_at.asc(), UserAchievement.id.asc())
    )
    return [
        UnlockedAchievementView(
            achievement_id=row.achievement_id,
            name=row.achievement.name,
            description=row.achievement.description,
            icon=row.achievement.icon,
            achievement_type=row.achievement.achievement_type,
            required_value=row.achievement.required_value,
            unlocked_at=row.unlocked_at,
            is_new=True,
        )
        for row in result.scalars().all()
    ]


async def list_achievements(db: AsyncSession, user_id: int | None = None) -> list[AchievementStatus]:
    """The whole catalog with the user's unlock status, by type then required value."""
    catalog = (await db.execute(select(Achievement))).scalars().all()

    unlocked: dict[int, UserAchievement] = {}
    if user_id is not None:
        rows = await db.execute(
            select(UserAchievement)
            .where(UserAchievement.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        unlocked = {row.achievement_id: row for row in rows.scalars().all()}

    statuses = []
    for achievement in catalog:
        row = unlocked.get(achievement.id)
        statuses.append(
            AchievementStatus(
                id=achievement.id,
                name=achievement.name,
                description=achievement.description,
                icon=achievement.icon,
                achievement_type=achievement.achievement_type,
                required_value=achievement.required_value,
                unlocked_at=row.unlocked_at if row else None,
                is_new=bool(row.is_new) if row else False,
            )
        )

    statuses.sort(key=lambda s: (s.achievement_type, s.required_value))
    return statuses


async def publish_achievements_unlocked(
    redis: object,
    user_id: int,
    unlocked: list[UnlockedAchievementView],
) -> None:
    """Broadcast committed unlocks for live displays. Best effort."""
    if redis is None or not unlocked:
        return
    try:
        await redis.publish(  # type: ignore[attr-defined]
            "pubsub:achievement_unlocked",
            json.dumps({
                "user_id": user_id,
                "achievements": [
                    {"id": a.achievement_id, "name": a.name, "icon": a.icon}
                    for a in unlocked
                ],
            }),
        )
    except Exception:
        logger.warning("Failed to publish achievement_unlocked event", exc_info=True)
