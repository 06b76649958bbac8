"""Per-frame input handling for the trial phases.

The stimulus onset is taken at the flip that first puts the word on screen
(``win.callOnFlip``), and the keyboard clock is reset on that same flip so
a key's ``rt`` is measured from onset.  Keys are drained before the runner
is polled, so a press that lands just before the deadline still wins even
when it is collected on a later frame.

Only duck-typed ``win`` and ``kb`` objects are used here (PsychoPy's
``visual.Window`` and ``hardware.keyboard.Keyboard`` in the real task).
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .engine import Phase, Session
from .response import ResponseSignal
from .runner import SessionRunner

logger = logging.getLogger(__name__)


class TrialFrames:
    """Glue between one window's flips and a :class:`SessionRunner`."""

    def __init__(
        self,
        runner: SessionRunner,
        win: Any,
        kb: Any,
        key_map: Mapping[str, ResponseSignal],
    ):
        self.runner = runner
        self.win = win
        self.kb = kb
        self.key_map = dict(key_map)
        self._onset_pending = False
        runner.add_listener(self._on_phase)

    def _on_phase(self, phase: Phase, session: Session) -> None:
        if phase is Phase.STIMULUS:
            self._onset_pending = True

    def before_flip(self) -> None:
        """Schedule onset capture if this flip shows a new stimulus."""

        if self._onset_pending and self.runner.phase is Phase.STIMULUS:
            self._onset_pending = False
            self.win.callOnFlip(self._stimulus_shown)

    def _stimulus_shown(self) -> None:
        self.kb.clock.reset()
        self.kb.clearEvents()
        self.runner.stimulus_shown()

    def after_flip(self, pointer: Optional[ResponseSignal] = None) -> None:
        """Deliver this frame's input, then let due timers fire."""

        keys = self.kb.getKeys(list(self.key_map), waitRelease=False, clear=True)
        window = self.runner.session.window
        if self.runner.phase is Phase.STIMULUS and window is not None and window.shown:
            for key in keys:
                at_ms = window.onset_ms + key.rt * 1000.0
                self.runner.respond(self.key_map[key.name], at_ms=at_ms)
        elif keys:
            logger.debug("Ignored %d key(s) outside the response window", len(keys))
        if pointer is not None:
            self.runner.respond(pointer)
        self.runner.poll()


__all__ = ["TrialFrames"]
