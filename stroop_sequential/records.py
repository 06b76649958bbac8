"""Trial records and the append-only session log.

A :class:`TrialRecord` is built exactly once per main-task trial, when the
response window resolves.  Besides the trial's own outcome it carries the
sequential-dependency fields copied from the record logged just before it.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .response import Resolution
from .stimuli import StimulusSpec

#: Wire names, in export order.
RECORD_FIELDS: Tuple[str, ...] = (
    "participantId",
    "block",
    "trialInBlock",
    "globalTrial",
    "x",
    "word",
    "color",
    "congruent",
    "response",
    "reactionTime",
    "accuracy",
    "omitted",
    "prevCongruent",
    "prevResponse",
    "prevAccuracy",
    "repetitionWord",
    "repetitionColor",
    "timestamp",
)


@dataclass(frozen=True)
class TrialRecord:
    """One row of experimental data."""

    participant_id: str
    block: int
    trial_in_block: int
    global_trial: int
    x: float
    word: str
    color: str
    congruent: bool
    response: Optional[bool]
    reaction_time_ms: float
    accuracy: bool
    omitted: bool
    prev_congruent: Optional[bool]
    prev_response: Optional[bool]
    prev_accuracy: Optional[bool]
    repetition_word: bool
    repetition_color: bool
    timestamp: str

    def to_json(self) -> Dict[str, Any]:
        values = (
            self.participant_id,
            self.block,
            self.trial_in_block,
            self.global_trial,
            self.x,
            self.word,
            self.color,
            self.congruent,
            self.response,
            self.reaction_time_ms,
            self.accuracy,
            self.omitted,
            self.prev_congruent,
            self.prev_response,
            self.prev_accuracy,
            self.repetition_word,
            self.repetition_color,
            self.timestamp,
        )
        return dict(zip(RECORD_FIELDS, values))


def normalized_position(trial_in_block: int, block_size: int) -> float:
    """Position of a trial within its block, 0 for the first and 1 for the last."""

    if block_size <= 1:
        return 0.0
    return trial_in_block / (block_size - 1)


def build_trial_record(
    spec: StimulusSpec,
    resolution: Resolution,
    previous: Optional[TrialRecord],
    *,
    participant_id: str,
    block: int,
    trial_in_block: int,
    global_trial: int,
    block_size: int,
) -> TrialRecord:
    """Combine a stimulus, its resolution and the preceding record."""

    response = resolution.response
    return TrialRecord(
        participant_id=participant_id,
        block=block,
        trial_in_block=trial_in_block,
        global_trial=global_trial,
        x=normalized_position(trial_in_block, block_size),
        word=spec.word,
        color=spec.color,
        congruent=spec.congruent,
        response=response,
        reaction_time_ms=resolution.reaction_time_ms,
        accuracy=response is not None and response == spec.congruent,
        omitted=response is None,
        prev_congruent=previous.congruent if previous else None,
        prev_response=previous.response if previous else None,
        prev_accuracy=previous.accuracy if previous else None,
        repetition_word=previous is not None and previous.word == spec.word,
        repetition_color=previous is not None and previous.color == spec.color,
        timestamp=resolution.timestamp,
    )


class SessionLog:
    """Immutable, ordered log of main-task records.

    :meth:`append` returns a new log; existing instances never change, so a
    log handed to a reader cannot be altered behind its back.
    """

    __slots__ = ("_records",)

    def __init__(self, records: Tuple[TrialRecord, ...] = ()):
        self._records = tuple(records)

    def append(self, record: TrialRecord) -> "SessionLog":
        return SessionLog(self._records + (record,))

    @property
    def last(self) -> Optional[TrialRecord]:
        return self._records[-1] if self._records else None

    @property
    def records(self) -> Tuple[TrialRecord, ...]:
        return self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[TrialRecord]:
        return iter(self._records)

    def __getitem__(self, index: int) -> TrialRecord:
        return self._records[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SessionLog):
            return NotImplemented
        return self._records == other._records

    def __repr__(self) -> str:
        return f"SessionLog({len(self._records)} records)"

    def to_json(self) -> List[Dict[str, Any]]:
        return [record.to_json() for record in self._records]

    def to_json_bytes(self) -> bytes:
        """Pretty-printed JSON array of every record, UTF-8 encoded."""

        return json.dumps(self.to_json(), indent=2, ensure_ascii=False).encode("utf-8")


__all__ = [
    "RECORD_FIELDS",
    "TrialRecord",
    "SessionLog",
    "build_trial_record",
    "normalized_position",
]
