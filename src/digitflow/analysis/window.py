"""Bounded FIFO window of digit observations."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class ObservationWindow:
    """The trailing sequence of observed digits analysis runs over.

    Holds at most ``max_length`` digits; appending to a full window evicts
    the oldest one.
    """

    def __init__(self, max_length: int = 100) -> None:
        if max_length < 1:
            msg = "max_length must be positive"
            raise ValueError(msg)
        self._digits: deque[int] = deque(maxlen=max_length)

    @property
    def max_length(self) -> int:
        return self._digits.maxlen or 0

    def append(self, digit: int) -> int | None:
        """Add an observation, returning the evicted digit if the window was full."""
        if not 0 <= digit <= 9:
            msg = f"digit out of range: {digit}"
            raise ValueError(msg)
        evicted = self._digits[0] if len(self._digits) == self.max_length else None
        self._digits.append(digit)
        return evicted

    def snapshot(self) -> tuple[int, ...]:
        """Immutable copy of the window, oldest first."""
        return tuple(self._digits)

    def clear(self) -> None:
        self._digits.clear()

    def __len__(self) -> int:
        return len(self._digits)

    def __iter__(self) -> Iterator[int]:
        return iter(self._digits)
