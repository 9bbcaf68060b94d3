"""Experience, levels, day streaks and achievements."""

from spellbuddy.gamification.exceptions import GamificationError, NotFoundError, ValidationError

__all__ = ["GamificationError", "NotFoundError", "ValidationError"]
