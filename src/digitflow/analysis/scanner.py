"""Multi-market scanner.

Opens one tick stream per known market, accumulates digit counts for a fixed
window (60 s by default) while reporting progress every 500 ms, then closes
every connection and scores each market with three heuristics: even share,
odd share and a rise/fall trend between the two halves of the observed
digits.

The "accuracy" multiplier is self-referential: each tick is compared with the
running mode digit *at that moment*, which shifts as ticks arrive. It is not
a held-out backtest and says nothing about predictive power; it is kept as a
heuristic weighting only.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from digitflow.feed.markets import MARKETS

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from digitflow.feed.client import Tick, TickStream
    from digitflow.feed.markets import Market
    from digitflow.metrics.collector import EngineMetrics

logger = logging.getLogger(__name__)

MAX_CONFIDENCE = 95.0


@dataclass
class LiveMarketData:
    """Per-market accumulator while a scan runs."""

    market_id: str
    market_name: str
    current_price: str = "0.00"
    last_digit: int = 0
    digit_counts: list[int] = field(default_factory=lambda: [0] * 10)
    recent_trend: list[int] = field(default_factory=list)
    tick_count: int = 0
    matches: int = 0
    differs: int = 0
    is_connected: bool = False
    most_appearing_digit: int = 0
    most_appearing_count: int = 0

    @classmethod
    def for_market(cls, market: Market) -> LiveMarketData:
        return cls(market_id=market.id, market_name=market.name)

    def observe(self, tick: Tick) -> None:
        digit = tick.digit
        self.current_price = tick.quote
        self.last_digit = digit
        self.digit_counts[digit] += 1
        self.recent_trend.append(digit)
        self.tick_count += 1

        top = max(self.digit_counts)
        self.most_appearing_digit = self.digit_counts.index(top)
        self.most_appearing_count = top
        if digit == self.most_appearing_digit:
            self.matches += 1
        else:
            self.differs += 1

    def copy(self) -> LiveMarketData:
        return LiveMarketData(**asdict(self))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MarketSignal:
    """The scanner's verdict for one market."""

    market: str
    market_name: str
    best_strategy: str
    confidence: float
    reasoning: str
    digit_counts: tuple[int, ...]
    recent_trend: tuple[int, ...]
    matches: int
    differs: int
    tick_count: int
    most_appearing_digit: int
    most_appearing_count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _mean(values: Sequence[int], default: float) -> float:
    return sum(values) / len(values) if values else default


def determine_strategy(data: LiveMarketData) -> MarketSignal:
    """Score one market's accumulated ticks and pick its best strategy.

    Empty totals count as a 50/50 split and an empty trend half as a mean of 5.
    Each of the three scores is scaled by ``1 + accuracy / 200``; the highest
    wins (later entries win ties) and is capped at 95.
    """
    counts = data.digit_counts
    even = sum(counts[0::2])
    odd = sum(counts[1::2])
    total = even + odd
    even_pct = even / total * 100 if total else 50.0
    odd_pct = odd / total * 100 if total else 50.0

    trend = data.recent_trend
    half = len(trend) // 2
    first_avg = _mean(trend[:half], 5.0)
    second_avg = _mean(trend[half:], 5.0)
    trend_diff = second_avg - first_avg
    trend_pct = 50 + abs(trend_diff) * 10

    decided = data.matches + data.differs
    accuracy = data.matches / decided * 100 if decided else 0.0
    boost = 1 + accuracy / 200

    mode = f"Most appearing: {data.most_appearing_digit}"
    tally = f"Matches: {data.matches} | Differs: {data.differs}"
    direction = "rise" if trend_diff > 0 else "fall"
    trend_word = "Rising" if trend_diff > 0 else "Falling"
    candidates = [
        (
            "even",
            even_pct * boost,
            f"Even digits: {even_pct:.1f}% | {mode} ({data.most_appearing_count}x) | "
            f"{tally} | Accuracy: {accuracy:.1f}%",
        ),
        (
            "odd",
            odd_pct * boost,
            f"Odd digits: {odd_pct:.1f}% | {mode} ({data.most_appearing_count}x) | "
            f"{tally} | Accuracy: {accuracy:.1f}%",
        ),
        (
            direction,
            trend_pct * boost,
            f"{trend_word} trend: {first_avg:.2f} → {second_avg:.2f} | {mode} | {tally}",
        ),
    ]
    best = candidates[0]
    for candidate in candidates[1:]:
        if not best[1] > candidate[1]:
            best = candidate

    strategy, confidence, reasoning = best
    return MarketSignal(
        market=data.market_id,
        market_name=data.market_name,
        best_strategy=strategy,
        confidence=min(confidence, MAX_CONFIDENCE),
        reasoning=reasoning,
        digit_counts=tuple(counts),
        recent_trend=tuple(trend),
        matches=data.matches,
        differs=data.differs,
        tick_count=data.tick_count,
        most_appearing_digit=data.most_appearing_digit,
        most_appearing_count=data.most_appearing_count,
    )


def rank_signals(signals: Sequence[MarketSignal]) -> list[MarketSignal]:
    """Sort by confidence, highest first; ties keep input order."""
    return sorted(signals, key=lambda s: s.confidence, reverse=True)


class MarketScanner:
    """Runs one timed scan across a set of markets.

    Args:
        stream_factory: Builds a :class:`TickStream` for a market id.
        markets: Markets to scan; defaults to every known market.
        duration: Scan length in seconds.
        poll_interval: Seconds between progress callbacks.
        metrics: Optional engine metrics.
    """

    def __init__(
        self,
        stream_factory: Callable[[str], TickStream],
        *,
        markets: Sequence[Market] = MARKETS,
        duration: float = 60.0,
        poll_interval: float = 0.5,
        metrics: EngineMetrics | None = None,
    ) -> None:
        self._stream_factory = stream_factory
        self._markets = tuple(markets)
        self._duration = duration
        self._poll_interval = poll_interval
        self._metrics = metrics

    async def scan(
        self,
        on_progress: Callable[[float, list[LiveMarketData]], None] | None = None,
    ) -> list[MarketSignal]:
        """Scan every market and return one signal each, in market order."""
        states = [LiveMarketData.for_market(m) for m in self._markets]
        streams = [self._stream_factory(m.id) for m in self._markets]
        tasks = [
            asyncio.create_task(self._collect(stream, state))
            for stream, state in zip(streams, states, strict=True)
        ]
        logger.info("Market scan started across %d markets", len(states))

        def report(progress: float) -> None:
            if on_progress is None:
                return
            for stream, state in zip(streams, states, strict=True):
                state.is_connected = stream.connected
            on_progress(progress, [s.copy() for s in states])

        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + self._duration
        try:
            if self._metrics is not None:
                with self._metrics.track_market_scan():
                    await self._wait(loop, started, deadline, report)
            else:
                await self._wait(loop, started, deadline, report)
        finally:
            for task in tasks:
                task.cancel()
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for market, result in zip(self._markets, results, strict=True):
                if isinstance(result, Exception) and not isinstance(result, asyncio.CancelledError):
                    logger.error("Scan collector for %s failed: %s", market.id, result)

        signals = [determine_strategy(state) for state in states]
        report(100.0)
        logger.info("Market scan finished")
        return signals

    async def _wait(
        self,
        loop: asyncio.AbstractEventLoop,
        started: float,
        deadline: float,
        report: Callable[[float], None],
    ) -> None:
        remaining = deadline - loop.time()
        while remaining > 0:
            await asyncio.sleep(min(self._poll_interval, remaining))
            remaining = deadline - loop.time()
            elapsed = loop.time() - started
            report(min(elapsed / self._duration * 100, 100.0) if self._duration else 100.0)

    async def _collect(self, stream: TickStream, state: LiveMarketData) -> None:
        async for tick in stream.ticks():
            state.observe(tick)
        state.is_connected = False
        if self._metrics is not None:
            self._metrics.record_disconnect(stream.symbol)
