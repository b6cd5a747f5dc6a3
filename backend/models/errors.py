from __future__ import annotations

from enum import Enum


class CardTreeError(Exception):
    pass


class InvariantViolation(CardTreeError):
    """Tree shape is broken: duplicate id, editor with children, stale parent link."""


class MoveOutcome(str, Enum):
    MOVED = "moved"
    NOOP = "noop"
    INVALID_TARGET = "invalid_target"
    CYCLE_REJECTED = "cycle_rejected"
    NOT_FOUND = "not_found"

    @property
    def ok(self) -> bool:
        return self in (MoveOutcome.MOVED, MoveOutcome.NOOP)
