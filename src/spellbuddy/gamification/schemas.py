"""Pydantic result models returned by the gamification services."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


# --- XP ---


class XPAwardResult(BaseModel):
    xp_awarded: int
    total_xp: int
    leveled_up: bool
    old_level: int | None = None
    new_level: int | None = None


class LevelInfo(BaseModel):
    level: int
    xp_into_level: int
    xp_for_level: int
    next_level: int
    next_level_xp: int
    progress: float


# --- Streaks ---


class StreakStatus(BaseModel):
    current_streak: int
    longest_streak: int
    reset: bool = False
    transition: str | None = None
    last_activity_date: datetime | None = None


# --- Achievements ---


class ProgressSnapshot(BaseModel):
    """Read of a user's counters at the moment of evaluation."""

    model_config = ConfigDict(frozen=True)

    streak_days: int = 0
    total_exercises: int = 0
    perfect_exercises: int = 0
    correct_words: int = 0
    level: int = 1
    completed_challenges: int = 0


class UnlockedAchievementView(BaseModel):
    achievement_id: int
    name: str
    description: str
    icon: str
    achievement_type: str
    required_value: int
    unlocked_at: datetime
    is_new: bool = True


class AchievementStatus(BaseModel):
    id: int
    name: str
    description: str
    icon: str
    achievement_type: str
    required_value: int
    unlocked_at: datetime | None = None
    is_new: bool = False


# --- Pipeline ---


class ExerciseOutcome(BaseModel):
    xp: XPAwardResult
    streak: StreakStatus
    new_achievements: list[UnlockedAchievementView] = []
    achievements_evaluated: bool = True
