"""Shared fakes for the engine tests.  Nothing here imports PsychoPy."""
from __future__ import annotations

import random
from typing import List, Optional, Tuple

import pytest

from stroop_sequential.config import ExperimentConfig
from stroop_sequential.engine import Phase
from stroop_sequential.export import DeliveryResult
from stroop_sequential.records import SessionLog
from stroop_sequential.runner import SessionRunner


class ManualTimeSource:
    """Monotonic time that only moves when a test advances it."""

    def __init__(self) -> None:
        self.ms = 0.0

    def __call__(self) -> float:
        return self.ms / 1000.0

    def advance(self, ms: float) -> None:
        self.ms += ms


class RecordingSink:
    """Data sink that remembers every transmission."""

    def __init__(self, delivered: bool = True) -> None:
        self.delivered = delivered
        self.calls: List[Tuple[str, SessionLog]] = []

    def transmit(self, participant_id: str, log: SessionLog) -> DeliveryResult:
        self.calls.append((participant_id, log))
        return DeliveryResult(delivered=self.delivered)


class TaskDriver:
    """Step a :class:`SessionRunner` through trials with a manual clock."""

    # keeps due-time comparisons clear of ms/s float round-off
    SLACK_MS = 1e-6

    def __init__(self, runner: SessionRunner, clock: ManualTimeSource) -> None:
        self.runner = runner
        self.clock = clock
        self.config = runner.config

    def to_first_fixation(self, first: str = "Ana", last: str = "Souza") -> str:
        self.runner.start()
        self.runner.continue_()
        participant_id = self.runner.identify(first, last)
        self.runner.continue_()
        self.runner.continue_()
        assert self.runner.phase is Phase.FIXATION
        return participant_id

    def show_stimulus(self) -> None:
        assert self.runner.phase is Phase.FIXATION
        self.clock.advance(self.config.fixation_ms + self.SLACK_MS)
        assert self.runner.poll()
        assert self.runner.phase is Phase.STIMULUS

    def trial(self, signal: Optional[str], rt_ms: float = 500.0) -> None:
        """Run fixation, stimulus (response or timeout) and the ITI."""

        self.show_stimulus()
        if signal is None:
            self.clock.advance(self.config.deadline_ms + self.SLACK_MS)
            assert self.runner.poll()
        else:
            self.clock.advance(rt_ms)
            self.runner.respond(signal)
        assert self.runner.phase is Phase.ITI
        self.clock.advance(self.config.iti_max_ms + self.SLACK_MS)
        assert self.runner.poll()


@pytest.fixture
def time_source() -> ManualTimeSource:
    return ManualTimeSource()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def small_config() -> ExperimentConfig:
    return ExperimentConfig(n_blocks=2, trials_per_block=3, practice_trials=2, seed=7)


@pytest.fixture
def make_driver(time_source, sink):
    def _make(config: ExperimentConfig, **kwargs) -> TaskDriver:
        kwargs.setdefault("data_sink", sink)
        runner = SessionRunner(
            config,
            time_source=time_source,
            rng=random.Random(config.seed),
            wall_clock=lambda: "2026-01-01T00:00:00.000Z",
            **kwargs,
        )
        return TaskDriver(runner, time_source)

    return _make
