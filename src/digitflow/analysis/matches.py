"""Match tracker: scores the active prediction against each new digit."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from digitflow.analysis.predictions import Prediction

DEFAULT_LOG_SIZE = 50


@dataclass(frozen=True)
class MatchRecord:
    predicted: int
    actual: int
    matched: bool
    confidence: float
    timestamp: float


def match_accuracy(records: Iterable[MatchRecord]) -> float:
    """Hits over total as a percentage; 0.0 for an empty log."""
    total = hits = 0
    for record in records:
        total += 1
        hits += record.matched
    return hits / total * 100 if total else 0.0


class MatchTracker:
    """Trailing log of hit/miss records, capped independently of the window."""

    def __init__(self, capacity: int = DEFAULT_LOG_SIZE) -> None:
        self._records: deque[MatchRecord] = deque(maxlen=capacity)

    def record(
        self, prediction: Prediction, actual: int, *, now: float | None = None
    ) -> MatchRecord:
        entry = MatchRecord(
            predicted=prediction.digit,
            actual=actual,
            matched=prediction.digit == actual,
            confidence=prediction.confidence,
            timestamp=time.time() if now is None else now,
        )
        self._records.append(entry)
        return entry

    @property
    def records(self) -> list[MatchRecord]:
        return list(self._records)

    @property
    def accuracy(self) -> float:
        """Recomputed from the log on every read."""
        return match_accuracy(self._records)

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
