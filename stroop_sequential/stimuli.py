"""Stimulus sequence generation for the Stroop task.

Every trial is a word drawn from a category set rendered in a color drawn
from a parallel set of the same size.  A word and a color belong to the same
category when they share an index, which makes the trial congruent.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List, Sequence, Tuple


@dataclass(frozen=True)
class StimulusSpec:
    """One trial's stimulus: the printed word, its ink color and congruency."""

    word: str
    color: str
    congruent: bool


def _draw_category(rng: random.Random, size: int) -> int:
    return rng.randrange(size)


def generate_trials(
    n: int,
    *,
    words: Sequence[str],
    colors: Sequence[str],
    rng: random.Random | None = None,
) -> List[StimulusSpec]:
    """Return ``n`` independently drawn stimuli in uniformly shuffled order.

    Congruency is a fair coin flip per slot, so congruent and incongruent
    counts are only balanced in expectation.  Incongruent colors are redrawn
    until they differ from the word's category.
    """

    if n < 1:
        raise ValueError(f"Sequence length must be positive, got {n}")
    if len(words) != len(colors) or len(words) < 2:
        raise ValueError("words and colors must be parallel sets of at least two categories")

    rng = rng or random.Random()
    size = len(words)
    trials: List[StimulusSpec] = []
    for _ in range(n):
        congruent = rng.random() < 0.5
        word_index = _draw_category(rng, size)
        color_index = word_index
        if not congruent:
            while color_index == word_index:
                color_index = _draw_category(rng, size)
        trials.append(
            StimulusSpec(
                word=words[word_index],
                color=colors[color_index],
                congruent=congruent,
            )
        )
    # Fisher-Yates
    rng.shuffle(trials)
    return trials


def generate_blocks(
    n_blocks: int,
    trials_per_block: int,
    *,
    words: Sequence[str],
    colors: Sequence[str],
    rng: random.Random | None = None,
) -> Tuple[Tuple[StimulusSpec, ...], ...]:
    """Generate one independent sequence per block."""

    rng = rng or random.Random()
    return tuple(
        tuple(generate_trials(trials_per_block, words=words, colors=colors, rng=rng))
        for _ in range(n_blocks)
    )


__all__ = ["StimulusSpec", "generate_trials", "generate_blocks"]
