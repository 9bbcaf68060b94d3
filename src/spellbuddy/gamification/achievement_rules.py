"""Achievement kinds and their unlock predicates.

Each catalog ``achievement_type`` maps to a rule with a pure ``is_met`` over a
``ProgressSnapshot``. Metric rules qualify on ``metric >= required_value``.
Kinds without a defined metric yet (accuracy, time, difficulty_*) get an
``UnsupportedRule`` that never unlocks.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from spellbuddy.gamification.schemas import ProgressSnapshot


class AchievementType(str, Enum):
    STREAK = "streak"
    EXERCISES = "exercises"
    PERFECT_EXERCISES = "perfect_exercises"
    CORRECT_WORDS = "correct_words"
    LEVEL = "level"
    CHALLENGES = "challenges"
    ACCURACY = "accuracy"
    TIME = "time"
    DIFFICULTY_BEGINNER = "difficulty_beginner"
    DIFFICULTY_INTERMEDIATE = "difficulty_intermediate"
    DIFFICULTY_ADVANCED = "difficulty_advanced"
    DIFFICULTY_EXPERT = "difficulty_expert"


# Snapshot field each metric kind is measured against.
METRIC_FIELDS: dict[AchievementType, str] = {
    AchievementType.STREAK: "streak_days",
    AchievementType.EXERCISES: "total_exercises",
    AchievementType.PERFECT_EXERCISES: "perfect_exercises",
    AchievementType.CORRECT_WORDS: "correct_words",
    AchievementType.LEVEL: "level",
    AchievementType.CHALLENGES: "completed_challenges",
}


@dataclass(frozen=True)
class MetricRule:
    kind: AchievementType
    metric: str
    required_value: int

    def is_met(self, snapshot: ProgressSnapshot) -> bool:
        return getattr(snapshot, self.metric) >= self.required_value


@dataclass(frozen=True)
class UnsupportedRule:
    kind: AchievementType
    required_value: int

    def is_met(self, snapshot: ProgressSnapshot) -> bool:  # noqa: ARG002
        return False


AchievementRule = MetricRule | UnsupportedRule


def rule_for(achievement_type: str, required_value: int) -> AchievementRule:
    """Build the rule for a catalog entry. Raises ValueError for unknown types."""
    kind = AchievementType(achievement_type)
    metric = METRIC_FIELDS.get(kind)
    if metric is None:
        return UnsupportedRule(kind, required_value)
    return MetricRule(kind, metric, required_value)


def needs_challenge_count(rules: list[AchievementRule]) -> bool:
    """True when any rule reads the completed-challenge count."""
    return any(rule.kind is AchievementType.CHALLENGES for rule in rules)
