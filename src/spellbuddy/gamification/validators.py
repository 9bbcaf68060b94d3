"""Input checks shared by the services. They run before anything is written."""

from __future__ import annotations

from spellbuddy.gamification.exceptions import ValidationError


def require_count(name: str, value: object) -> int:
    """Reject anything but a non-negative int. ``bool`` is not a count."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value}")
    return value
