"""Configuration helpers for the sequential-dependency Stroop task.

The :class:`ExperimentConfig` dataclass stores every parameter the trial
engine recognizes: the category sets, the block topology and the phase
durations.  Display options for the PsychoPy runner live here too so that
all tweakable values can be found in one place.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple


@dataclass
class ExperimentConfig:
    """Container for experiment parameters and runtime options."""

    experiment_name: str = "stroop_sequential"
    words: Tuple[str, ...] = ("VERMELHO", "VERDE", "AZUL")
    colors: Tuple[str, ...] = ("red", "green", "blue")
    n_blocks: int = 4
    trials_per_block: int = 20
    practice_trials: int = 5
    fixation_ms: float = 800.0
    deadline_ms: float = 2000.0
    iti_min_ms: float = 700.0
    iti_max_ms: float = 1300.0
    data_sink_url: str = ""
    send_timeout_s: float = 10.0
    results_directory: str = "data"
    seed: Optional[int] = None
    response_keys: Dict[str, str] = field(
        default_factory=lambda: {"left": "left", "right": "right"}
    )
    quit_keys: Tuple[str, ...] = ("escape",)
    continue_keys: Tuple[str, ...] = ("space", "return")
    color_values: Dict[str, str] = field(
        default_factory=lambda: {"red": "red", "green": "green", "blue": "blue"}
    )
    full_screen: bool = True
    window_size: Tuple[int, int] = (1280, 720)
    window_units: str = "height"
    background_color: Sequence[float] = (-0.8, -0.8, -0.8)
    screen_index: int = 0
    debug_mode: bool = False
    debug_window_size: Tuple[int, int] = (1024, 768)

    def validate(self) -> None:
        """Raise ``ValueError`` when the parameters cannot drive a session."""

        if len(self.words) < 2:
            raise ValueError("At least two word/color categories are required")
        if len(self.words) != len(self.colors):
            raise ValueError(
                f"Word and color sets must have the same size "
                f"({len(self.words)} words, {len(self.colors)} colors)"
            )
        if self.n_blocks < 1 or self.trials_per_block < 1:
            raise ValueError("n_blocks and trials_per_block must be positive")
        if self.practice_trials < 0:
            raise ValueError("practice_trials cannot be negative")
        for name in ("fixation_ms", "deadline_ms", "iti_min_ms", "iti_max_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.iti_min_ms > self.iti_max_ms:
            raise ValueError("iti_min_ms must not exceed iti_max_ms")

    @property
    def total_trials(self) -> int:
        return self.n_blocks * self.trials_per_block

    def instructions_text(self) -> str:
        """Return an instruction string for the on-screen dialog."""

        words = ", ".join(self.words)
        left = self.response_keys.get("left", "left")
        right = self.response_keys.get("right", "right")
        return (
            "Stroop Task - Sequential Context\n\n"
            f"Color words ({words}) are shown printed in color.\n"
            "Judge whether the word and its ink color MATCH.\n\n"
            f"{left} = INCONGRUENT\n"
            f"{right} = CONGRUENT\n\n"
            f"Respond as fast and accurately as possible "
            f"(limit {self.deadline_ms / 1000:.1f} s).\n"
            f"You will start with {self.practice_trials} practice trials."
        )


__all__ = ["ExperimentConfig"]
