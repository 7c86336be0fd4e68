"""Pattern and statistics derivation over a window snapshot.

Every function here is pure: the same window always yields the same result,
and nothing is cached between calls. Windows are at most a few hundred
digits, so everything is recomputed by full re-scan on each observation.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

RECENT_SLICE = 20
MIN_STREAK = 3
MAX_STREAKS = 5
SEQUENCE_LENGTH = 3
MIN_SEQUENCE_OCCURRENCES = 2
MAX_SEQUENCES = 5
HOT_COLD_SIZE = 3
MAX_TRANSITIONS = 10
MIN_PATTERN_WINDOW = 5


@dataclass(frozen=True)
class Streak:
    digit: int
    count: int
    end_index: int


@dataclass(frozen=True)
class SequencePattern:
    pattern: tuple[int, ...]
    occurrences: int


@dataclass(frozen=True)
class DigitShare:
    digit: int
    count: int
    percentage: float


@dataclass(frozen=True)
class Transition:
    from_digit: int
    to_digit: int
    count: int

    @property
    def label(self) -> str:
        return f"{self.from_digit}->{self.to_digit}"


@dataclass(frozen=True)
class SplitShare:
    """Two-way split of the recent slice (even/odd or high/low)."""

    first: int
    second: int
    first_percentage: float
    second_percentage: float


@dataclass(frozen=True)
class PatternAnalysis:
    streaks: tuple[Streak, ...]
    sequences: tuple[SequencePattern, ...]
    hot_digits: tuple[DigitShare, ...]
    cold_digits: tuple[DigitShare, ...]
    transitions: tuple[Transition, ...]
    even_odd: SplitShare
    high_low: SplitShare


@dataclass(frozen=True)
class DigitDistribution:
    digit: int
    count: int
    percentage: float
    deviation: float


@dataclass(frozen=True)
class Statistics:
    mean: float
    variance: float
    std_dev: float
    distribution: tuple[DigitDistribution, ...]
    total_ticks: int
    unique_digits: int


def digit_counts(window: Sequence[int]) -> list[int]:
    """Ten-bucket frequency count of the window."""
    counts = [0] * 10
    for digit in window:
        counts[digit] += 1
    return counts


def find_streaks(window: Sequence[int]) -> tuple[Streak, ...]:
    """Maximal runs of one digit of length >= 3; the 5 most recent."""
    if not window:
        return ()
    streaks: list[Streak] = []
    digit, count, end = window[0], 1, 0
    for i in range(1, len(window)):
        if window[i] == digit:
            count += 1
            end = i
            continue
        if count >= MIN_STREAK:
            streaks.append(Streak(digit, count, end))
        digit, count, end = window[i], 1, i
    if count >= MIN_STREAK:
        streaks.append(Streak(digit, count, end))
    return tuple(streaks[-MAX_STREAKS:])


def find_sequences(window: Sequence[int]) -> tuple[SequencePattern, ...]:
    """Repeating length-3 subsequences, most frequent first (top 5).

    Ties keep first-seen order.
    """
    occurrences: Counter[tuple[int, ...]] = Counter()
    for i in range(len(window) - SEQUENCE_LENGTH + 1):
        occurrences[tuple(window[i : i + SEQUENCE_LENGTH])] += 1
    repeated = [
        SequencePattern(pattern, n)
        for pattern, n in occurrences.items()
        if n >= MIN_SEQUENCE_OCCURRENCES
    ]
    repeated.sort(key=lambda s: s.occurrences, reverse=True)
    return tuple(repeated[:MAX_SEQUENCES])


def _recent_shares(window: Sequence[int]) -> list[DigitShare]:
    recent = window[-RECENT_SLICE:]
    if not recent:
        return []
    counts = digit_counts(recent)
    return [
        DigitShare(digit, count, count / len(recent) * 100) for digit, count in enumerate(counts)
    ]


def hot_digits(window: Sequence[int]) -> tuple[DigitShare, ...]:
    """The 3 most frequent digits in the trailing 20 observations."""
    shares = [s for s in _recent_shares(window) if s.count > 0]
    shares.sort(key=lambda s: s.count, reverse=True)
    return tuple(shares[:HOT_COLD_SIZE])


def cold_digits(window: Sequence[int]) -> tuple[DigitShare, ...]:
    """The 3 least frequent digits (absent ones included) in the trailing 20."""
    shares = _recent_shares(window)
    shares.sort(key=lambda s: s.count)
    return tuple(shares[:HOT_COLD_SIZE])


def find_transitions(window: Sequence[int]) -> tuple[Transition, ...]:
    """Adjacent digit->digit pair counts, top 10. Ties keep first-seen order."""
    pairs: Counter[tuple[int, int]] = Counter(zip(window, window[1:], strict=False))
    ranked = sorted(pairs.items(), key=lambda item: item[1], reverse=True)
    return tuple(Transition(a, b, n) for (a, b), n in ranked[:MAX_TRANSITIONS])


def _split(window: Sequence[int], predicate) -> SplitShare:  # noqa: ANN001
    recent = window[-RECENT_SLICE:]
    first = sum(1 for d in recent if predicate(d))
    second = len(recent) - first
    if not recent:
        return SplitShare(0, 0, 0.0, 0.0)
    return SplitShare(first, second, first / len(recent) * 100, second / len(recent) * 100)


def even_odd(window: Sequence[int]) -> SplitShare:
    """Even (first) vs odd (second) split of the trailing 20."""
    return _split(window, lambda d: d % 2 == 0)


def high_low(window: Sequence[int]) -> SplitShare:
    """High 5-9 (first) vs low 0-4 (second) split of the trailing 20."""
    return _split(window, lambda d: d >= 5)


def analyze_patterns(window: Sequence[int]) -> PatternAnalysis | None:
    """All pattern derivations, or None while the window holds fewer than 5 digits."""
    if len(window) < MIN_PATTERN_WINDOW:
        return None
    return PatternAnalysis(
        streaks=find_streaks(window),
        sequences=find_sequences(window),
        hot_digits=hot_digits(window),
        cold_digits=cold_digits(window),
        transitions=find_transitions(window),
        even_odd=even_odd(window),
        high_low=high_low(window),
    )


def calculate_statistics(
    window: Sequence[int], counts: Sequence[int] | None = None
) -> Statistics | None:
    """Descriptive statistics over the full window, None when it is empty.

    Variance is the population variance. ``deviation`` is each digit's
    distance from the uniform expectation ``len(window) / 10``.
    """
    n = len(window)
    if n == 0:
        return None
    if counts is None:
        counts = digit_counts(window)
    mean = sum(window) / n
    variance = sum((d - mean) ** 2 for d in window) / n
    distribution = tuple(
        DigitDistribution(digit, count, count / n * 100, count - n / 10)
        for digit, count in enumerate(counts)
    )
    return Statistics(
        mean=mean,
        variance=variance,
        std_dev=math.sqrt(variance),
        distribution=distribution,
        total_ticks=n,
        unique_digits=sum(1 for c in counts if c > 0),
    )
