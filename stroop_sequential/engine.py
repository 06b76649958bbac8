"""Phase state machine for the Stroop trial sequence.

The engine is a pure function, :func:`reduce`, from the current
:class:`Session` and one input event to the next session plus a list of
effects.  It never reads a clock or touches a timer.  Time arrives stamped
on the events, and timer arming/cancelling leaves as :class:`ArmTimer` /
:class:`CancelTimer` effects for the driver to carry out.

Every armed wait gets a fresh token.  A :class:`TimerFired` event whose
token is not the session's live token belongs to a superseded wait and is
dropped, so a late deadline can never touch a trial that already advanced.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Tuple, Union

from .config import ExperimentConfig
from .errors import InvariantViolation
from .records import SessionLog, TrialRecord, build_trial_record
from .response import Resolution, ResponseSignal, ResponseWindow, accept_signal, expire_deadline
from .stimuli import StimulusSpec, generate_blocks, generate_trials


class Phase(str, Enum):
    WELCOME = "welcome"
    IDENTIFICATION = "identification"
    CONSENT = "consent"
    INSTRUCTIONS = "instructions"
    PRACTICE_START = "practice-start"
    MAIN_START = "main-start"
    FIXATION = "fixation"
    STIMULUS = "stimulus-wait"
    ITI = "iti"
    INTERBLOCK = "interblock"
    FINISH = "finish"


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Continue:
    """Explicit go-ahead on a static screen (welcome, consent, instructions, pause)."""


@dataclass(frozen=True)
class Identify:
    participant_id: str


@dataclass(frozen=True)
class TimerFired:
    token: int
    at_ms: float
    timestamp: str = ""


@dataclass(frozen=True)
class StimulusShown:
    """The stimulus reached the screen.  Onset and deadline restart from ``at_ms``."""

    at_ms: float


@dataclass(frozen=True)
class Respond:
    signal: ResponseSignal
    at_ms: float
    timestamp: str = ""


Event = Union[Continue, Identify, TimerFired, Respond, StimulusShown]


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EnterPhase:
    phase: Phase


@dataclass(frozen=True)
class ArmTimer:
    token: int
    duration_ms: float
    phase: Phase


@dataclass(frozen=True)
class CancelTimer:
    token: int


@dataclass(frozen=True)
class RecordAppended:
    record: TrialRecord


@dataclass(frozen=True)
class TrialResolved:
    """Emitted for every resolved trial, practice included."""

    practice: bool
    resolution: Resolution


@dataclass(frozen=True)
class Transmit:
    """Hand the finished session log to the data sink.  Emitted once."""


Effect = Union[EnterPhase, ArmTimer, CancelTimer, RecordAppended, TrialResolved, Transmit]


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Session:
    """Run-level aggregate.  Only :func:`reduce` produces new instances."""

    participant_id: str = ""
    phase: Phase = Phase.WELCOME
    practice: Optional[Tuple[StimulusSpec, ...]] = None
    blocks: Optional[Tuple[Tuple[StimulusSpec, ...], ...]] = None
    in_practice: bool = False
    block: int = 0
    trial_in_block: int = 0
    global_trial: int = 0
    timer_token: Optional[int] = None
    next_token: int = 1
    window: Optional[ResponseWindow] = None
    log: SessionLog = field(default_factory=SessionLog)
    transmitted: bool = False

    @property
    def current_sequence(self) -> Tuple[StimulusSpec, ...]:
        if self.in_practice:
            if self.practice is None:
                raise InvariantViolation("Practice sequence requested before generation")
            return self.practice
        if self.blocks is None:
            raise InvariantViolation("Block sequence requested before generation")
        if not 0 <= self.block < len(self.blocks):
            raise InvariantViolation(f"Block {self.block} is outside the configured blocks")
        return self.blocks[self.block]

    @property
    def current_stimulus(self) -> StimulusSpec:
        sequence = self.current_sequence
        if not 0 <= self.trial_in_block < len(sequence):
            raise InvariantViolation(
                f"Trial {self.trial_in_block} is outside a sequence of {len(sequence)}"
            )
        return sequence[self.trial_in_block]


@dataclass
class EngineContext:
    """Read-only inputs to :func:`reduce`: parameters and the random source."""

    config: ExperimentConfig
    rng: random.Random = field(default_factory=random.Random)


@dataclass(frozen=True)
class Transition:
    session: Session
    effects: Tuple[Effect, ...] = ()
    stale: bool = False


# ---------------------------------------------------------------------------
# Transition helpers
# ---------------------------------------------------------------------------

def _arm(session: Session, effects: List[Effect], duration_ms: float) -> Tuple[Session, int]:
    if session.timer_token is not None:
        raise InvariantViolation(
            f"Arming a timer in {session.phase.value} while token {session.timer_token} is live"
        )
    token = session.next_token
    effects.append(ArmTimer(token=token, duration_ms=duration_ms, phase=session.phase))
    return replace(session, timer_token=token, next_token=token + 1), token


def _disarm(session: Session, effects: List[Effect]) -> Session:
    if session.timer_token is None:
        return session
    effects.append(CancelTimer(session.timer_token))
    return replace(session, timer_token=None)


def _enter(
    session: Session,
    phase: Phase,
    effects: List[Effect],
    context: EngineContext,
    *,
    at_ms: float | None = None,
) -> Session:
    config = context.config
    session = _disarm(session, effects)
    session = replace(session, phase=phase)
    effects.append(EnterPhase(phase))

    if phase is Phase.PRACTICE_START:
        if session.practice is None:
            practice: Tuple[StimulusSpec, ...] = ()
            if config.practice_trials > 0:
                practice = tuple(
                    generate_trials(
                        config.practice_trials,
                        words=config.words,
                        colors=config.colors,
                        rng=context.rng,
                    )
                )
            session = replace(session, practice=practice, in_practice=True, trial_in_block=0)
        if not session.practice:
            return _enter(replace(session, in_practice=False), Phase.MAIN_START, effects, context)
        return _enter(session, Phase.FIXATION, effects, context)

    if phase is Phase.MAIN_START:
        if session.blocks is None:
            blocks = generate_blocks(
                config.n_blocks,
                config.trials_per_block,
                words=config.words,
                colors=config.colors,
                rng=context.rng,
            )
            session = replace(
                session,
                blocks=blocks,
                in_practice=False,
                block=0,
                trial_in_block=0,
                global_trial=0,
            )
        return _enter(session, Phase.FIXATION, effects, context)

    if phase is Phase.FIXATION:
        session = replace(session, window=None)
        session, _ = _arm(session, effects, config.fixation_ms)
        return session

    if phase is Phase.STIMULUS:
        if at_ms is None:
            raise InvariantViolation("Stimulus onset requires a timestamp")
        session, token = _arm(session, effects, config.deadline_ms)
        return replace(session, window=ResponseWindow(onset_ms=at_ms, deadline_token=token))

    if phase is Phase.ITI:
        session, _ = _arm(session, effects, context.rng.uniform(config.iti_min_ms, config.iti_max_ms))
        return session

    if phase is Phase.FINISH and not session.transmitted:
        effects.append(Transmit())
        return replace(session, transmitted=True)

    return session


def _resolve_trial(
    session: Session,
    window: ResponseWindow,
    resolution: Resolution,
    effects: List[Effect],
    context: EngineContext,
) -> Session:
    session = _disarm(replace(session, window=window), effects)
    effects.append(TrialResolved(practice=session.in_practice, resolution=resolution))
    if not session.in_practice:
        record = build_trial_record(
            session.current_stimulus,
            resolution,
            session.log.last,
            participant_id=session.participant_id,
            block=session.block,
            trial_in_block=session.trial_in_block,
            global_trial=session.global_trial,
            block_size=context.config.trials_per_block,
        )
        session = replace(session, log=session.log.append(record))
        effects.append(RecordAppended(record))
    return _enter(session, Phase.ITI, effects, context)


def _advance(session: Session, effects: List[Effect], context: EngineContext) -> Session:
    config = context.config
    if session.in_practice:
        if session.trial_in_block + 1 < len(session.current_sequence):
            session = replace(session, trial_in_block=session.trial_in_block + 1)
            return _enter(session, Phase.FIXATION, effects, context)
        return _enter(replace(session, in_practice=False), Phase.MAIN_START, effects, context)

    if session.block >= config.n_blocks:
        raise InvariantViolation(f"Advanced past the last block ({config.n_blocks})")
    if session.trial_in_block + 1 < config.trials_per_block:
        session = replace(
            session,
            trial_in_block=session.trial_in_block + 1,
            global_trial=session.global_trial + 1,
        )
        return _enter(session, Phase.FIXATION, effects, context)
    if session.block + 1 < config.n_blocks:
        session = replace(
            session,
            block=session.block + 1,
            trial_in_block=0,
            global_trial=session.global_trial + 1,
        )
        return _enter(session, Phase.INTERBLOCK, effects, context)
    return _enter(session, Phase.FINISH, effects, context)


_CONTINUE_TARGETS = {
    Phase.WELCOME: Phase.IDENTIFICATION,
    Phase.CONSENT: Phase.INSTRUCTIONS,
    Phase.INSTRUCTIONS: Phase.PRACTICE_START,
    Phase.INTERBLOCK: Phase.FIXATION,
}


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------

def reduce(session: Session, event: Event, context: EngineContext) -> Transition:
    """Apply ``event`` to ``session``.

    Events that do not apply to the current phase, or that refer to a
    superseded timer or an already resolved trial, produce a stale
    transition that leaves the session untouched.
    """

    effects: List[Effect] = []
    stale = Transition(session, stale=True)

    if isinstance(event, Continue):
        target = _CONTINUE_TARGETS.get(session.phase)
        if target is None:
            return stale
        return Transition(_enter(session, target, effects, context), tuple(effects))

    if isinstance(event, Identify):
        if session.phase is not Phase.IDENTIFICATION or not event.participant_id:
            return stale
        session = replace(session, participant_id=event.participant_id)
        return Transition(_enter(session, Phase.CONSENT, effects, context), tuple(effects))

    if isinstance(event, TimerFired):
        if session.timer_token is None or event.token != session.timer_token:
            return stale
        window = session.window
        session = replace(session, timer_token=None)
        if session.phase is Phase.FIXATION:
            session = _enter(session, Phase.STIMULUS, effects, context, at_ms=event.at_ms)
        elif session.phase is Phase.STIMULUS:
            if window is None:
                raise InvariantViolation("Deadline fired without a response window")
            window, resolution = expire_deadline(window, event.token, event.at_ms, event.timestamp)
            if resolution is None:
                raise InvariantViolation("Live deadline token did not match the response window")
            session = _resolve_trial(session, window, resolution, effects, context)
        elif session.phase is Phase.ITI:
            session = _advance(session, effects, context)
        else:
            raise InvariantViolation(f"Live timer fired in {session.phase.value}")
        return Transition(session, tuple(effects))

    if isinstance(event, StimulusShown):
        window = session.window
        if session.phase is not Phase.STIMULUS or window is None:
            return stale
        if window.shown or not window.is_open or event.at_ms < window.onset_ms:
            return stale
        session = _disarm(session, effects)
        session, token = _arm(session, effects, context.config.deadline_ms)
        window = ResponseWindow(onset_ms=event.at_ms, deadline_token=token, shown=True)
        return Transition(replace(session, window=window), tuple(effects))

    if isinstance(event, Respond):
        window = session.window
        if session.phase is not Phase.STIMULUS or window is None:
            return stale
        # presses stamped outside the response window lose to the deadline
        elapsed = event.at_ms - window.onset_ms
        if elapsed < 0 or elapsed > context.config.deadline_ms:
            return stale
        window, resolution = accept_signal(window, event.signal, event.at_ms, event.timestamp)
        if resolution is None:
            return stale
        return Transition(_resolve_trial(session, window, resolution, effects, context), tuple(effects))

    raise TypeError(f"Unknown event {event!r}")


__all__ = [
    "Phase",
    "Continue",
    "Identify",
    "TimerFired",
    "Respond",
    "StimulusShown",
    "Event",
    "EnterPhase",
    "ArmTimer",
    "CancelTimer",
    "RecordAppended",
    "TrialResolved",
    "Transmit",
    "Effect",
    "Session",
    "EngineContext",
    "Transition",
    "reduce",
]
