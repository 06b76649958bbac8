"""First-response-wins capture for a single trial's response window."""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from .errors import InvariantViolation


class ResponseSignal(str, Enum):
    """Directional input: ``left`` judges incongruent, ``right`` congruent."""

    LEFT = "left"
    RIGHT = "right"

    @property
    def response(self) -> bool:
        return self is ResponseSignal.RIGHT


@dataclass(frozen=True)
class Resolution:
    """How a trial ended.  ``response is None`` means the deadline expired."""

    response: Optional[bool]
    reaction_time_ms: float
    timestamp: str

    @property
    def omitted(self) -> bool:
        return self.response is None


@dataclass(frozen=True)
class ResponseWindow:
    """The open interval between stimulus onset and the trial's resolution."""

    onset_ms: float
    deadline_token: int
    resolution: Optional[Resolution] = None
    shown: bool = False

    @property
    def is_open(self) -> bool:
        return self.resolution is None

    def _resolve(
        self, response: Optional[bool], at_ms: float, timestamp: str
    ) -> Tuple["ResponseWindow", Resolution]:
        if not self.is_open:
            raise InvariantViolation("Trial resolved twice")
        if at_ms < self.onset_ms:
            raise InvariantViolation(
                f"Resolution at {at_ms:.3f} ms precedes onset at {self.onset_ms:.3f} ms"
            )
        resolution = Resolution(
            response=response,
            reaction_time_ms=at_ms - self.onset_ms,
            timestamp=timestamp,
        )
        return replace(self, resolution=resolution), resolution


def accept_signal(
    window: ResponseWindow, signal: ResponseSignal, at_ms: float, timestamp: str
) -> Tuple[ResponseWindow, Optional[Resolution]]:
    """Resolve ``window`` with ``signal`` unless a response was already accepted.

    Returns the (possibly unchanged) window and the new resolution, or
    ``None`` when the signal arrived after the window closed.
    """

    if not window.is_open:
        return window, None
    return window._resolve(ResponseSignal(signal).response, at_ms, timestamp)


def expire_deadline(
    window: ResponseWindow, token: int, at_ms: float, timestamp: str
) -> Tuple[ResponseWindow, Optional[Resolution]]:
    """Resolve ``window`` as an omission if ``token`` is its live deadline."""

    if not window.is_open or token != window.deadline_token:
        return window, None
    return window._resolve(None, at_ms, timestamp)


__all__ = [
    "ResponseSignal",
    "Resolution",
    "ResponseWindow",
    "accept_signal",
    "expire_deadline",
]
