"""Tests for the prediction heuristics."""

from __future__ import annotations

from digitflow.analysis.patterns import analyze_patterns, digit_counts
from digitflow.analysis.predictions import (
    STRATEGY_HOT_DIGIT,
    STRATEGY_MOST_FREQUENT,
    STRATEGY_SEQUENCE,
    STRATEGY_TRANSITION,
    generate_predictions,
)


def _predict(window: list[int]):
    return generate_predictions(window, digit_counts(window), analyze_patterns(window), now=1.0)


class TestMostFrequent:
    def test_all_zeros(self) -> None:
        predictions = generate_predictions(
            [0, 0, 0, 0, 0], [5, 0, 0, 0, 0, 0, 0, 0, 0, 0], None, now=1.0
        )
        (most,) = [p for p in predictions if p.strategy == STRATEGY_MOST_FREQUENT]
        assert most.digit == 0
        assert most.confidence == 100.0
        assert most.timestamp == 1.0

    def test_ties_pick_lowest_digit(self) -> None:
        window = [7, 3, 7, 3, 5]
        (most,) = [p for p in _predict(window) if p.strategy == STRATEGY_MOST_FREQUENT]
        assert most.digit == 3
        assert most.confidence == 40.0


class TestStrategies:
    def test_all_four_strategies(self) -> None:
        # Ends with 1,2 and "1,2,3" repeats; 2 is always followed by 3.
        window = [1, 2, 3, 1, 2, 3, 1, 2, 3, 4, 1, 2]
        predictions = _predict(window)
        by_strategy = {p.strategy: p for p in predictions}
        assert set(by_strategy) == {
            STRATEGY_MOST_FREQUENT,
            STRATEGY_HOT_DIGIT,
            STRATEGY_SEQUENCE,
            STRATEGY_TRANSITION,
        }
        assert by_strategy[STRATEGY_SEQUENCE].digit == 3
        assert by_strategy[STRATEGY_TRANSITION].digit == 3
        assert by_strategy[STRATEGY_SEQUENCE].confidence == 3 / 12 * 100

    def test_sorted_by_confidence_descending(self) -> None:
        window = [1, 2, 3, 1, 2, 3, 1, 2, 3, 4, 1, 2]
        confidences = [p.confidence for p in _predict(window)]
        assert confidences == sorted(confidences, reverse=True)

    def test_confidences_in_range(self) -> None:
        window = [4, 8, 1, 5, 9, 2, 6, 0, 3, 7, 4, 4, 8]
        assert all(0 <= p.confidence <= 100 for p in _predict(window))

    def test_empty_window(self) -> None:
        assert generate_predictions([], [0] * 10, None) == []

    def test_without_patterns_only_most_frequent(self) -> None:
        window = [1, 2, 3]
        predictions = generate_predictions(window, digit_counts(window), None)
        assert [p.strategy for p in predictions] == [STRATEGY_MOST_FREQUENT]
