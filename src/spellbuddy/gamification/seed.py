"""Default achievement catalog. Seeding is insert-if-absent on name."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from spellbuddy.db.models import Achievement
from spellbuddy.db.upsert import conflict_insert
from spellbuddy.gamification.day_utils import utcnow

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Streaks
    {"name": "First Steps", "description": "Practice for 3 days in a row",
     "icon": "\U0001F525", "required_value": 3, "achievement_type": "streak"},
    {"name": "Consistent Learner", "description": "Practice for 7 days in a row",
     "icon": "\U0001F525", "required_value": 7, "achievement_type": "streak"},
    {"name": "Dedicated Student", "description": "Practice for 14 days in a row",
     "icon": "\U0001F525", "required_value": 14, "achievement_type": "streak"},
    {"name": "Spelling Champion", "description": "Practice for 30 days in a row",
     "icon": "\U0001F3C6", "required_value": 30, "achievement_type": "streak"},
    # Exercise counts
    {"name": "Getting Started", "description": "Complete 5 exercises",
     "icon": "\U0001F4DD", "required_value": 5, "achievement_type": "exercises"},
    {"name": "Practice Makes Perfect", "description": "Complete 25 exercises",
     "icon": "\U0001F4DD", "required_value": 25, "achievement_type": "exercises"},
    {"name": "Exercise Expert", "description": "Complete 100 exercises",
     "icon": "\U0001F4DA", "required_value": 100, "achievement_type": "exercises"},
    {"name": "Spelling Master", "description": "Complete 500 exercises",
     "icon": "\U0001F393", "required_value": 500, "achievement_type": "exercises"},
    # Perfect exercises
    {"name": "Perfect Beginner", "description": "Complete 3 exercises with no spelling mistakes",
     "icon": "✨", "required_value": 3, "achievement_type": "perfect_exercises"},
    {"name": "Perfect Intermediate", "description": "Complete 10 exercises with no spelling mistakes",
     "icon": "✨", "required_value": 10, "achievement_type": "perfect_exercises"},
    {"name": "Perfect Advanced", "description": "Complete 25 exercises with no spelling mistakes",
     "icon": "\U0001F4AF", "required_value": 25, "achievement_type": "perfect_exercises"},
    # Correct words
    {"name": "Word Collector", "description": "Learn 50 words correctly",
     "icon": "\U0001F4D6", "required_value": 50, "achievement_type": "correct_words"},
    {"name": "Vocabulary Builder", "description": "Learn 200 words correctly",
     "icon": "\U0001F4D6", "required_value": 200, "achievement_type": "correct_words"},
    {"name": "Word Master", "description": "Learn 500 words correctly",
     "icon": "\U0001F4D6", "required_value": 500, "achievement_type": "correct_words"},
    # Levels
    {"name": "Level 5 Reached", "description": "Reach level 5",
     "icon": "⭐", "required_value": 5, "achievement_type": "level"},
    {"name": "Level 10 Reached", "description": "Reach level 10",
     "icon": "⭐", "required_value": 10, "achievement_type": "level"},
    {"name": "Level 25 Reached", "description": "Reach level 25",
     "icon": "\U0001F31F", "required_value": 25, "achievement_type": "level"},
    {"name": "Level 50 Reached", "description": "Reach level 50",
     "icon": "\U0001F451", "required_value": 50, "achievement_type": "level"},
    # Daily challenges
    {"name": "Challenge Accepted", "description": "Complete your first daily challenge",
     "icon": "\U0001F3AF", "required_value": 1, "achievement_type": "challenges"},
    {"name": "Challenge Master", "description": "Complete 10 daily challenges",
     "icon": "\U0001F3AF", "required_value": 10, "achievement_type": "challenges"},
]


async def seed_achievements(db: AsyncSession) -> int:
    """Insert any missing default achievements. Returns number inserted."""
    inserted = 0
    now = utcnow()
    for data in ACHIEVEMENT_SEED_DATA:
        stmt = conflict_insert(db, Achievement).values(**data, created_at=now)
        stmt = stmt.on_conflict_do_nothing(index_elements=["name"])
        stmt = stmt.returning(Achievement.id)
        result = await db.execute(stmt)
        if result.scalar_one_or_none() is not None:
            inserted += 1

    await db.commit()
    logger.info("Seeded %d achievement definitions", inserted)
    return inserted
