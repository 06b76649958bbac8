"""Trial-sequencing engine for a sequential-dependency Stroop task.

Participants judge whether a color word matches its ink color under a
response deadline.  The package generates counterbalanced stimulus
sequences, drives the fixation/stimulus/inter-trial phases, captures the
first response of each trial and records the carry-over features from the
previous trial.  The PsychoPy front end lives in
:mod:`stroop_sequential.experiment` and is imported only when the task is
actually run, so the engine can be used and tested without a display.
"""

from .config import ExperimentConfig
from .engine import Phase, Session, reduce
from .errors import InvariantViolation
from .export import DataSink, DeliveryResult, serialize_log
from .participant import generate_participant_id
from .records import SessionLog, TrialRecord, build_trial_record
from .response import ResponseSignal
from .runner import SessionRunner
from .stimuli import StimulusSpec, generate_blocks, generate_trials
from .cli import main as run_experiment

__all__ = [
    "ExperimentConfig",
    "Phase",
    "Session",
    "reduce",
    "InvariantViolation",
    "DataSink",
    "DeliveryResult",
    "serialize_log",
    "generate_participant_id",
    "SessionLog",
    "TrialRecord",
    "build_trial_record",
    "ResponseSignal",
    "SessionRunner",
    "StimulusSpec",
    "generate_trials",
    "generate_blocks",
    "run_experiment",
]
