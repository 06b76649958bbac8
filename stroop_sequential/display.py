"""PsychoPy drawing helpers for each phase of the Stroop task."""
from __future__ import annotations

from typing import Dict, Optional

from psychopy import event, visual

from .config import ExperimentConfig
from .response import ResponseSignal
from .stimuli import StimulusSpec


class ExperimentAbort(Exception):
    """Raised when the participant issues a quit command (e.g., presses ESC)."""


def ensure_window_focus(win: visual.Window) -> None:
    """Try to bring ``win`` to the foreground so participant input is captured."""

    win_handle = getattr(win, "winHandle", None)
    if win_handle is None:
        return
    try:
        win_handle.activate()
    except AttributeError:
        pass


class StroopScreens:
    """Stimulus objects for one window, built once and reused every frame."""

    BUTTON_LABELS = {
        ResponseSignal.LEFT: "<  INCONGRUENT",
        ResponseSignal.RIGHT: "CONGRUENT  >",
    }

    def __init__(self, win: visual.Window, config: ExperimentConfig):
        self.win = win
        self.config = config
        self.message = visual.TextStim(win, text="", height=0.035, color="white", wrapWidth=1.2)
        self.fixation = visual.TextStim(win, text="+", height=0.08, color="white")
        self.word = visual.TextStim(win, text="", height=0.12, bold=True)
        self.buttons: Dict[ResponseSignal, visual.Rect] = {}
        self.button_text: Dict[ResponseSignal, visual.TextStim] = {}
        for signal, x_pos in ((ResponseSignal.LEFT, -0.3), (ResponseSignal.RIGHT, 0.3)):
            self.buttons[signal] = visual.Rect(
                win,
                width=0.4,
                height=0.1,
                pos=(x_pos, -0.3),
                lineColor="white",
                fillColor=None,
            )
            self.button_text[signal] = visual.TextStim(
                win,
                text=self.BUTTON_LABELS[signal],
                height=0.03,
                pos=(x_pos, -0.3),
                color="white",
            )

    def draw_message(self, text: str) -> None:
        self.message.text = text
        self.message.draw()

    def draw_fixation(self) -> None:
        self.fixation.draw()

    def draw_stimulus(self, stimulus: StimulusSpec) -> None:
        self.word.text = stimulus.word
        self.word.color = self.config.color_values.get(stimulus.color, stimulus.color)
        self.word.draw()
        for signal in self.buttons:
            self.buttons[signal].draw()
            self.button_text[signal].draw()

    def pressed_button(self, mouse: event.Mouse) -> Optional[ResponseSignal]:
        """Return the response button under a pressed mouse, if any."""

        for signal, button in self.buttons.items():
            if mouse.isPressedIn(button, buttons=[0]):
                return signal
        return None


__all__ = ["ExperimentAbort", "StroopScreens", "ensure_window_focus"]
