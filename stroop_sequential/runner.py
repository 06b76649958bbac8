"""Event driver that connects the pure engine to timers and the data sink.

:class:`SessionRunner` owns the :class:`~stroop_sequential.engine.Session`.
Input events are stamped with the monotonic clock, passed through
:func:`~stroop_sequential.engine.reduce` one at a time, and the resulting
effects are applied in order.  The presentation layer subscribes to phase
changes with :meth:`SessionRunner.add_listener` and calls :meth:`poll`
from its frame loop.

The finished log is sent on a background thread after listeners have seen
the finish phase.  The outcome only ever sets :attr:`SessionRunner.delivery`.
"""
from __future__ import annotations

import logging
import random
import threading
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from .clock import TimeSource, TrialClock
from .config import ExperimentConfig
from .engine import (
    ArmTimer,
    CancelTimer,
    Continue,
    EngineContext,
    EnterPhase,
    Event,
    Identify,
    Phase,
    RecordAppended,
    Respond,
    Session,
    StimulusShown,
    TimerFired,
    Transition,
    TrialResolved,
    Transmit,
    reduce,
)
from .errors import InvariantViolation
from .export import DataSink, DeliveryResult, serialize_log
from .participant import generate_participant_id
from .records import SessionLog
from .response import ResponseSignal

logger = logging.getLogger(__name__)

PhaseListener = Callable[[Phase, Session], None]


def utc_timestamp() -> str:
    """Wall-clock capture time as ISO-8601 UTC with millisecond precision."""

    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SessionRunner:
    """Drive one session from the welcome screen to the finish screen."""

    def __init__(
        self,
        config: ExperimentConfig | None = None,
        *,
        data_sink: DataSink | None = None,
        time_source: TimeSource = time.monotonic,
        rng: random.Random | None = None,
        wall_clock: Callable[[], str] = utc_timestamp,
    ):
        self.config = config or ExperimentConfig()
        self.config.validate()
        self.context = EngineContext(self.config, rng or random.Random(self.config.seed))
        self.clock = TrialClock(time_source)
        self.data_sink = data_sink or DataSink(
            self.config.data_sink_url, timeout_s=self.config.send_timeout_s
        )
        self._wall_clock = wall_clock
        self._session = Session()
        self._listeners: List[PhaseListener] = []
        self._delivery: Optional[DeliveryResult] = None
        self._outbox: Optional[Tuple[str, SessionLog]] = None
        self._sender: Optional[threading.Thread] = None
        self._dispatching = False

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def session(self) -> Session:
        return self._session

    @property
    def phase(self) -> Phase:
        return self._session.phase

    @property
    def delivery(self) -> Optional[DeliveryResult]:
        """Outcome of the send, or ``None`` while it is still in flight."""

        return self._delivery

    @property
    def delivered(self) -> bool:
        return self._delivery is not None and self._delivery.delivered

    def serialize(self) -> bytes:
        """Synchronous local export of the full log, independent of delivery."""

        return serialize_log(self._session.log)

    def wait_for_delivery(self, timeout: float | None = None) -> Optional[DeliveryResult]:
        """Block until the background send finishes (or ``timeout`` passes)."""

        if self._sender is not None:
            self._sender.join(timeout)
        return self._delivery

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------
    def add_listener(self, listener: PhaseListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        logger.info("Session started in phase %s", self.phase.value)
        self._notify([self.phase])

    def continue_(self) -> Transition:
        return self.dispatch(Continue())

    def identify(self, first_name: str, last_name: str) -> str:
        participant_id = generate_participant_id(first_name, last_name)
        self.dispatch(Identify(participant_id))
        return participant_id

    def stimulus_shown(self, at_ms: float | None = None) -> Transition:
        """Pin onset to the flip that put the stimulus on screen."""

        return self.dispatch(StimulusShown(self.clock.now_ms() if at_ms is None else at_ms))

    def respond(self, signal: ResponseSignal | str, at_ms: float | None = None) -> Transition:
        """Deliver a response pressed at ``at_ms`` (defaults to now)."""

        if at_ms is None:
            at_ms = self.clock.now_ms()
        return self.dispatch(Respond(ResponseSignal(signal), at_ms, self._wall_clock()))

    def poll(self) -> bool:
        """Fire the pending timer if it is due."""

        return self.clock.poll()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    def dispatch(self, event: Event) -> Transition:
        if self._dispatching:
            raise InvariantViolation(f"Re-entrant dispatch of {event!r}")
        transition = reduce(self._session, event, self.context)
        if transition.stale:
            logger.debug("Dropped stale %r in %s", event, self.phase.value)
            return transition

        self._session = transition.session
        entered: List[Phase] = []
        self._dispatching = True
        try:
            for effect in transition.effects:
                if isinstance(effect, EnterPhase):
                    entered.append(effect.phase)
                self._apply(effect)
        finally:
            self._dispatching = False
        self._notify(entered)
        self._flush_outbox()
        return transition

    def _apply(self, effect: object) -> None:
        if isinstance(effect, CancelTimer):
            pending = self.clock.pending
            if pending is not None and pending.token == effect.token:
                self.clock.cancel()
        elif isinstance(effect, ArmTimer):
            self.clock.after(effect.duration_ms, self._timer_callback(effect.token), token=effect.token)
        elif isinstance(effect, TrialResolved):
            resolution = effect.resolution
            logger.debug(
                "%s trial resolved: response=%s rt=%.1f ms",
                "Practice" if effect.practice else "Main",
                resolution.response,
                resolution.reaction_time_ms,
            )
        elif isinstance(effect, RecordAppended):
            record = effect.record
            logger.debug(
                "Logged trial %d (block %d, trial %d) accuracy=%s",
                record.global_trial,
                record.block,
                record.trial_in_block,
                record.accuracy,
            )
        elif isinstance(effect, Transmit):
            session = self._session
            logger.info("Task finished with %d records; queued for sending", len(session.log))
            self._outbox = (session.participant_id, session.log)
        elif isinstance(effect, EnterPhase):
            if effect.phase is Phase.INTERBLOCK:
                logger.info("Block %d of %d completed", self._session.block, self.config.n_blocks)
            elif effect.phase is Phase.MAIN_START:
                logger.info("Main task started for %s", self._session.participant_id)
        else:
            raise TypeError(f"Unknown effect {effect!r}")

    def _flush_outbox(self) -> None:
        if self._outbox is None:
            return
        participant_id, log = self._outbox
        self._outbox = None
        self._sender = threading.Thread(
            target=self._send,
            args=(participant_id, log),
            name="data-sink",
            daemon=True,
        )
        self._sender.start()

    def _send(self, participant_id: str, log: SessionLog) -> None:
        try:
            result = self.data_sink.transmit(participant_id, log)
        except Exception as exc:
            logger.warning("Data sink failed for %s: %s", participant_id, exc)
            result = DeliveryResult(delivered=False, error=str(exc))
        self._delivery = result

    def _timer_callback(self, token: int) -> Callable[[float], None]:
        def _fire(at_ms: float) -> None:
            self.dispatch(TimerFired(token, at_ms, self._wall_clock()))

        return _fire

    def _notify(self, phases: List[Phase]) -> None:
        for phase in phases:
            for listener in self._listeners:
                listener(phase, self._session)


__all__ = ["SessionRunner", "PhaseListener", "utc_timestamp"]
