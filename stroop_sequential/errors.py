"""Exception types shared by the trial engine and its drivers."""
from __future__ import annotations


class InvariantViolation(AssertionError):
    """Raised when the engine is driven into a state no valid event sequence reaches."""


__all__ = ["InvariantViolation"]
