"""Command line helpers for running the sequential Stroop task."""
from __future__ import annotations

import argparse
import logging
import random
import sys
from pathlib import Path
from typing import Sequence

from .config import ExperimentConfig
from .stimuli import StimulusSpec, generate_blocks, generate_trials

DEFAULTS = ExperimentConfig()


def build_arg_parser() -> argparse.ArgumentParser:
    """Create an argument parser exposing the task parameters."""

    parser = argparse.ArgumentParser(
        description=(
            "Launch the sequential-dependency Stroop task: congruency judgements "
            "under a response deadline, with practice and paused blocks."
        )
    )
    parser.add_argument(
        "--blocks",
        type=int,
        default=DEFAULTS.n_blocks,
        help="Number of main-task blocks (default: %(default)s).",
    )
    parser.add_argument(
        "--trials-per-block",
        type=int,
        default=DEFAULTS.trials_per_block,
        help="Trials in each block (default: %(default)s).",
    )
    parser.add_argument(
        "--practice-trials",
        type=int,
        default=DEFAULTS.practice_trials,
        help="Practice trials before the main task; 0 skips practice (default: %(default)s).",
    )
    parser.add_argument(
        "--fixation-ms",
        type=float,
        default=DEFAULTS.fixation_ms,
        help="Fixation cross duration in ms (default: %(default)s).",
    )
    parser.add_argument(
        "--deadline-ms",
        type=float,
        default=DEFAULTS.deadline_ms,
        help="Response deadline from stimulus onset in ms (default: %(default)s).",
    )
    parser.add_argument(
        "--iti-min-ms",
        type=float,
        default=DEFAULTS.iti_min_ms,
        help="Lower bound of the uniform inter-trial interval (default: %(default)s).",
    )
    parser.add_argument(
        "--iti-max-ms",
        type=float,
        default=DEFAULTS.iti_max_ms,
        help="Upper bound of the uniform inter-trial interval (default: %(default)s).",
    )
    parser.add_argument(
        "--data-url",
        type=str,
        default=DEFAULTS.data_sink_url,
        help="HTTP endpoint receiving the JSON payload at the end (default: none).",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path(DEFAULTS.results_directory),
        help="Folder where the JSON/CSV/log outputs are saved (default: %(default)s).",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for stimulus sequences and ITIs, for reproducible runs.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Run in a window instead of full screen.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log every trial resolution to the console.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the generated practice and block sequences and exit without PsychoPy.",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> ExperimentConfig:
    config = ExperimentConfig(
        n_blocks=args.blocks,
        trials_per_block=args.trials_per_block,
        practice_trials=args.practice_trials,
        fixation_ms=args.fixation_ms,
        deadline_ms=args.deadline_ms,
        iti_min_ms=args.iti_min_ms,
        iti_max_ms=args.iti_max_ms,
        data_sink_url=args.data_url,
        results_directory=str(args.data_dir),
        seed=args.seed,
        debug_mode=args.debug,
    )
    config.validate()
    return config


def _describe(label: str, sequence: Sequence[StimulusSpec]) -> None:
    congruent = sum(1 for spec in sequence if spec.congruent)
    print(f"{label}: {len(sequence)} trials, {congruent} congruent / {len(sequence) - congruent} incongruent")
    for index, spec in enumerate(sequence):
        kind = "C" if spec.congruent else "I"
        print(f"  [{index:02}] {kind} {spec.word:<10} in {spec.color}")


def perform_dry_run(config: ExperimentConfig) -> None:
    """Print sample practice and block sequences drawn with ``config``."""

    rng = random.Random(config.seed)
    if config.practice_trials:
        practice = generate_trials(
            config.practice_trials, words=config.words, colors=config.colors, rng=rng
        )
        _describe("Practice", practice)
    blocks = generate_blocks(
        config.n_blocks,
        config.trials_per_block,
        words=config.words,
        colors=config.colors,
        rng=rng,
    )
    for index, block in enumerate(blocks, start=1):
        _describe(f"Block {index}/{config.n_blocks}", block)
    print("Dry-run complete.")


def main(argv: Sequence[str] | None = None) -> None:
    """Parse command line options and execute the experiment."""

    parser = build_arg_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = config_from_args(args)
    except ValueError as exc:
        parser.error(str(exc))

    if args.dry_run:
        perform_dry_run(config)
        return

    # PsychoPy is only needed for the interactive run
    from .experiment import StroopExperiment

    StroopExperiment(config).run()


if __name__ == "__main__":  # pragma: no cover - module level CLI hook
    main(sys.argv[1:])
