"""Errors raised by the progression engine.

Both concrete errors also subclass the matching builtin so callers that only
know about ``LookupError`` / ``ValueError`` still catch them.
"""

from __future__ import annotations


class GamificationError(Exception):
    """Base class for progression engine errors."""


class NotFoundError(GamificationError, LookupError):
    """A referenced user, progress row or challenge does not exist."""

    def __init__(self, entity: str, key: object) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found")


class ValidationError(GamificationError, ValueError):
    """Input rejected before any mutation took place."""
