"""Cancellable one-shot timers driven by a monotonic time source.

The clock never sleeps or spawns threads.  The owner polls it from its frame
loop and due timers fire synchronously inside :meth:`TrialClock.poll`.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .errors import InvariantViolation

logger = logging.getLogger(__name__)

TimeSource = Callable[[], float]
TimerCallback = Callable[[float], None]


class TimerHandle:
    """A single armed wait.  Fires at most once; cancel is a no-op after firing."""

    def __init__(self, token: int, due_ms: float, callback: TimerCallback):
        self.token = token
        self.due_ms = due_ms
        self._callback = callback
        self._fired = False
        self._cancelled = False

    @property
    def pending(self) -> bool:
        return not (self._fired or self._cancelled)

    @property
    def fired(self) -> bool:
        return self._fired

    def cancel(self) -> bool:
        """Cancel the timer.  Returns ``True`` only if it was still pending."""

        if not self.pending:
            return False
        self._cancelled = True
        return True

    def _fire(self, now_ms: float) -> None:
        self._fired = True
        self._callback(now_ms)

    def __repr__(self) -> str:
        state = "pending" if self.pending else ("fired" if self._fired else "cancelled")
        return f"TimerHandle(token={self.token}, due_ms={self.due_ms:.1f}, {state})"


class TrialClock:
    """Single-owner timer service with at most one pending wait.

    Parameters
    ----------
    time_source:
        Zero-argument callable returning monotonic seconds.  Defaults to
        :func:`time.monotonic`; the PsychoPy runner passes its own clock.
    """

    def __init__(self, time_source: TimeSource = time.monotonic):
        self._time_source = time_source
        self._pending: Optional[TimerHandle] = None

    def now_ms(self) -> float:
        return self._time_source() * 1000.0

    @property
    def pending(self) -> Optional[TimerHandle]:
        if self._pending is not None and self._pending.pending:
            return self._pending
        return None

    def after(self, duration_ms: float, callback: TimerCallback, *, token: int = 0) -> TimerHandle:
        """Arm a one-shot timer firing ``duration_ms`` from now."""

        if duration_ms < 0:
            raise ValueError(f"Timer duration must be non-negative, got {duration_ms}")
        if self.pending is not None:
            raise InvariantViolation(
                f"Cannot arm timer {token} while {self._pending!r} is still pending"
            )
        handle = TimerHandle(token, self.now_ms() + duration_ms, callback)
        self._pending = handle
        logger.debug("Armed %r", handle)
        return handle

    def cancel(self) -> bool:
        """Cancel the pending timer if there is one."""

        handle = self._pending
        self._pending = None
        if handle is None:
            return False
        return handle.cancel()

    def time_until_due(self) -> Optional[float]:
        """Milliseconds until the pending timer is due, or ``None`` when idle."""

        handle = self.pending
        if handle is None:
            return None
        return max(0.0, handle.due_ms - self.now_ms())

    def poll(self) -> bool:
        """Fire the pending timer if it is due.  Returns ``True`` if it fired."""

        handle = self.pending
        if handle is None:
            return False
        now = self.now_ms()
        if now < handle.due_ms:
            return False
        # the callback may arm the next wait
        self._pending = None
        handle._fire(now)
        return True


__all__ = ["TimerHandle", "TrialClock", "TimeSource"]
