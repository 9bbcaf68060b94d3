"""Level thresholds and computation.

Index ``n`` of ``LEVEL_EXPERIENCE`` is the cumulative XP needed to be AT level ``n``
(index 0 is unused). Levels 1-10 are fixed; 11-100 grow by 15% per level,
rounded half up.
"""

from __future__ import annotations

import math

from spellbuddy.gamification.exceptions import ValidationError

MAX_LEVEL = 100
GROWTH_FACTOR = 1.15

_BASE_THRESHOLDS: tuple[int, ...] = (
    0,  # Level 0 (not used)
    100,
    250,
    500,
    1000,
    1750,
    2750,
    4000,
    5500,
    7250,
    9250,
)


def _build_thresholds() -> tuple[int, ...]:
    thresholds = list(_BASE_THRESHOLDS)
    for _ in range(len(_BASE_THRESHOLDS), MAX_LEVEL + 1):
        thresholds.append(math.floor(thresholds[-1] * GROWTH_FACTOR + 0.5))
    return tuple(thresholds)


LEVEL_EXPERIENCE: tuple[int, ...] = _build_thresholds()


def _check_xp(xp: int) -> None:
    if isinstance(xp, bool) or not isinstance(xp, int):
        raise ValidationError(f"Experience must be an integer, got {xp!r}")
    if xp < 0:
        raise ValidationError(f"Experience must be non-negative, got {xp}")


def experience_for_level(level: int) -> int:
    """Minimum cumulative XP to be at ``level``. Out-of-range levels are clamped."""
    return LEVEL_EXPERIENCE[min(max(level, 1), MAX_LEVEL)]


def experience_for_next_level(current_level: int) -> int:
    """XP threshold of the level after ``current_level`` (the max level at the cap)."""
    return experience_for_level(min(current_level + 1, MAX_LEVEL))


def level_for_experience(xp: int, current_level: int = 1) -> int:
    """Highest level whose threshold ``xp`` reaches, never below ``current_level``.

    The walk starts at ``current_level`` so a user's level cannot drop when the
    table changes underneath them. Level 1 is the floor even below its threshold.
    """
    _check_xp(xp)
    level = min(max(current_level, 1), MAX_LEVEL)
    while level < MAX_LEVEL and xp >= LEVEL_EXPERIENCE[level + 1]:
        level += 1
    return level


def compute_level(total_xp: int, current_level: int = 1) -> dict:
    """Level bar data for ``total_xp``."""
    level = level_for_experience(total_xp, current_level)
    floor_xp = 0 if level == 1 else LEVEL_EXPERIENCE[level]
    next_level = min(level + 1, MAX_LEVEL)
    ceiling_xp = LEVEL_EXPERIENCE[next_level]

    xp_for_level = ceiling_xp - floor_xp
    # At max level, avoid division by zero
    if xp_for_level <= 0:
        return {
            "level": level,
            "xp_into_level": max(total_xp - floor_xp, 0),
            "xp_for_level": 0,
            "next_level": level,
            "next_level_xp": ceiling_xp,
            "progress": 1.0,
        }

    xp_into_level = max(total_xp - floor_xp, 0)
    return {
        "level": level,
        "xp_into_level": xp_into_level,
        "xp_for_level": xp_for_level,
        "next_level": next_level,
        "next_level_xp": ceiling_xp,
        "progress": min(xp_into_level / xp_for_level, 1.0),
    }
