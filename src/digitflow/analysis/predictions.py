"""Prediction generator: four independent heuristics over the window.

Confidences are fixed-formula scores in 0-100, not calibrated
probabilities.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from digitflow.analysis.patterns import PatternAnalysis

STRATEGY_MOST_FREQUENT = "Most Frequent"
STRATEGY_HOT_DIGIT = "Hot Digit"
STRATEGY_SEQUENCE = "Sequence Pattern"
STRATEGY_TRANSITION = "Transition Analysis"


@dataclass(frozen=True)
class Prediction:
    digit: int
    confidence: float
    strategy: str
    timestamp: float


def generate_predictions(
    window: Sequence[int],
    counts: Sequence[int],
    patterns: PatternAnalysis | None,
    *,
    now: float | None = None,
) -> list[Prediction]:
    """Build every applicable prediction, highest confidence first.

    1. Most Frequent: the full-window mode (lowest digit on ties).
    2. Hot Digit: the hottest digit of the trailing-20 slice.
    3. Sequence Pattern: if the last two digits open one of the repeating
       3-sequences, its third digit.
    4. Transition Analysis: the most frequent recorded successor of the last
       digit among the top transitions.

    Returns an empty list for an empty window. The sort is stable, so equal
    confidences keep the order above.
    """
    n = len(window)
    if n == 0:
        return []
    ts = time.time() if now is None else now
    predictions: list[Prediction] = []

    max_count = max(counts)
    predictions.append(
        Prediction(counts.index(max_count), max_count / n * 100, STRATEGY_MOST_FREQUENT, ts)
    )

    if patterns is not None and patterns.hot_digits:
        hottest = patterns.hot_digits[0]
        predictions.append(Prediction(hottest.digit, hottest.percentage, STRATEGY_HOT_DIGIT, ts))

    if patterns is not None and n >= 3:
        tail = tuple(window[-2:])
        for seq in patterns.sequences:
            if seq.pattern[:2] == tail:
                predictions.append(
                    Prediction(seq.pattern[2], seq.occurrences / n * 100, STRATEGY_SEQUENCE, ts)
                )
                break

    if patterns is not None:
        last = window[-1]
        for transition in patterns.transitions:
            if transition.from_digit == last:
                predictions.append(
                    Prediction(
                        transition.to_digit, transition.count / n * 100, STRATEGY_TRANSITION, ts
                    )
                )
                break

    predictions.sort(key=lambda p: p.confidence, reverse=True)
    return predictions
