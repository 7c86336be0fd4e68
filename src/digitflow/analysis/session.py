"""Analysis session: one live market, its window, predictions and match log.

A running session has three moving parts, all on the event loop:

- a producer task reading the market's :class:`TickStream` and publishing
  ticks onto an ``asyncio.Queue``;
- a consumer task draining that queue into :meth:`AnalysisSession.observe`;
- a ``predict`` cron job regenerating predictions every 30 seconds.

Stopping cancels the producer, closes the channel with a ``None`` sentinel,
waits for the consumer to drain, and stops the cron job.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from digitflow.analysis.matches import MatchRecord, MatchTracker
from digitflow.analysis.patterns import (
    PatternAnalysis,
    Statistics,
    analyze_patterns,
    calculate_statistics,
    digit_counts,
)
from digitflow.analysis.predictions import Prediction, generate_predictions
from digitflow.analysis.window import ObservationWindow
from digitflow.taskmanager.manager import CronJob, TaskManager

if TYPE_CHECKING:
    from collections.abc import Callable

    from digitflow.config.settings import AnalysisConfig
    from digitflow.feed.client import Tick, TickStream
    from digitflow.metrics.collector import EngineMetrics

logger = logging.getLogger(__name__)

_PREDICT_JOB = "predict"
_SUBSCRIBER_BUFFER = 16


@dataclass(frozen=True)
class AnalysisSnapshot:
    """Point-in-time view of a session, safe to serialise."""

    market: str
    max_ticks: int
    is_running: bool
    is_connected: bool
    latest_quote: str | None
    last_digit: int | None
    ticks: tuple[int, ...]
    digit_counts: tuple[int, ...]
    patterns: PatternAnalysis | None
    statistics: Statistics | None
    predictions: tuple[Prediction, ...]
    active_prediction: Prediction | None
    matches: tuple[MatchRecord, ...]
    accuracy: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class AnalysisSession:
    """Owns the observation window and everything derived from it."""

    def __init__(
        self,
        market: str,
        *,
        stream_factory: Callable[[str], TickStream],
        config: AnalysisConfig,
        max_ticks: int | None = None,
        metrics: EngineMetrics | None = None,
    ) -> None:
        self._config = config
        self._stream_factory = stream_factory
        self._metrics = metrics
        self.market = market
        self._window = ObservationWindow(max_ticks or config.default_max_ticks)
        self._tracker = MatchTracker(config.match_log_size)
        self._counts = [0] * 10
        self._patterns: PatternAnalysis | None = None
        self._statistics: Statistics | None = None
        self._predictions: list[Prediction] = []
        self._active: Prediction | None = None
        self._primed = False
        self.latest_quote: str | None = None
        self.last_digit: int | None = None

        self._stream: TickStream | None = None
        self._channel: asyncio.Queue[Tick | None] | None = None
        self._producer: asyncio.Task[None] | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._timers: TaskManager | None = None
        self._subscribers: set[asyncio.Queue[AnalysisSnapshot | None]] = set()
        self.last_activity = time.monotonic()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    @property
    def is_connected(self) -> bool:
        return self._stream is not None and self._stream.connected

    @property
    def max_ticks(self) -> int:
        return self._window.max_length

    async def start(self) -> None:
        """Open the feed connection and start the prediction cadence."""
        if self.is_running:
            return
        self._stream = self._stream_factory(self.market)
        self._channel = asyncio.Queue()
        self._producer = asyncio.create_task(self._produce(self._stream, self._channel))
        self._consumer = asyncio.create_task(self._consume(self._channel))

        self._timers = TaskManager(metrics=self._metrics)
        self._timers.register(
            _PREDICT_JOB,
            CronJob(handler=self._predict_job, period=self._config.prediction_interval),
        )
        await self._timers.start()
        self.make_prediction()
        logger.info("Analysis started on %s (window %d)", self.market, self.max_ticks)

    async def stop(self) -> None:
        """Close the connection and clear pending timers. Idempotent."""
        if self._producer is not None:
            self._producer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._producer
            self._producer = None
        if self._channel is not None:
            self._channel.put_nowait(None)
        if self._consumer is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer
            self._consumer = None
        self._channel = None
        if self._timers is not None:
            await self._timers.stop()
            self._timers = None
        if self._stream is not None:
            logger.info("Analysis stopped on %s", self.market)
        self._stream = None

    def reset(self, *, max_ticks: int | None = None) -> None:
        """Discard the window and everything derived from it."""
        self._window = ObservationWindow(max_ticks or self._window.max_length)
        self._tracker.clear()
        self._counts = [0] * 10
        self._patterns = None
        self._statistics = None
        self._predictions = []
        self._active = None
        self._primed = False
        self.latest_quote = None
        self.last_digit = None
        self._publish()

    async def change_market(self, market: str, *, max_ticks: int | None = None) -> None:
        """Switch instruments: the old window is dropped, never carried over."""
        was_running = self.is_running
        await self.stop()
        self.market = market
        self.reset(max_ticks=max_ticks)
        if was_running:
            await self.start()

    # ------------------------------------------------------------------
    # Observation pipeline
    # ------------------------------------------------------------------

    def observe(self, tick: Tick) -> None:
        """Feed one tick through match tracking and analysis."""
        if self._active is not None:
            self._tracker.record(self._active, tick.digit)

        self.latest_quote = tick.quote
        self.last_digit = tick.digit
        self._window.append(tick.digit)
        window = self._window.snapshot()
        self._counts = digit_counts(window)
        self._patterns = analyze_patterns(window)
        self._statistics = calculate_statistics(window, self._counts)

        if not self._primed:
            self.make_prediction()
        if self._metrics is not None:
            self._metrics.record_tick(tick.symbol)
        self._publish()

    def make_prediction(self) -> list[Prediction]:
        """Regenerate predictions once the window holds enough data."""
        window = self._window.snapshot()
        if len(window) < self._config.min_ticks_for_prediction:
            return self._predictions
        self._predictions = generate_predictions(window, self._counts, self._patterns)
        self._active = self._predictions[0] if self._predictions else None
        self._primed = True
        return self._predictions

    async def _predict_job(self) -> None:
        if self.make_prediction():
            self._publish()

    async def _produce(self, stream: TickStream, channel: asyncio.Queue[Tick | None]) -> None:
        try:
            async for tick in stream.ticks():
                channel.put_nowait(tick)
        except Exception:
            logger.exception("Tick producer for %s failed", stream.symbol)
        if self._metrics is not None:
            self._metrics.record_disconnect(stream.symbol)

    async def _consume(self, channel: asyncio.Queue[Tick | None]) -> None:
        while True:
            tick = await channel.get()
            if tick is None:
                return
            self.observe(tick)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def window(self) -> tuple[int, ...]:
        return self._window.snapshot()

    @property
    def predictions(self) -> list[Prediction]:
        return list(self._predictions)

    @property
    def active_prediction(self) -> Prediction | None:
        return self._active

    @property
    def tracker(self) -> MatchTracker:
        return self._tracker

    def snapshot(self) -> AnalysisSnapshot:
        return AnalysisSnapshot(
            market=self.market,
            max_ticks=self.max_ticks,
            is_running=self.is_running,
            is_connected=self.is_connected,
            latest_quote=self.latest_quote,
            last_digit=self.last_digit,
            ticks=self._window.snapshot(),
            digit_counts=tuple(self._counts),
            patterns=self._patterns,
            statistics=self._statistics,
            predictions=tuple(self._predictions),
            active_prediction=self._active,
            matches=tuple(self._tracker.records),
            accuracy=self._tracker.accuracy,
        )

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[AnalysisSnapshot | None]:
        """Register for a snapshot after every change.

        A ``None`` on the queue means the session was discarded and nothing
        more will arrive.
        """
        queue: asyncio.Queue[AnalysisSnapshot | None] = asyncio.Queue(maxsize=_SUBSCRIBER_BUFFER)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[AnalysisSnapshot | None]) -> None:
        self._subscribers.discard(queue)

    def close_subscribers(self) -> None:
        """End every subscription with the ``None`` sentinel."""
        for queue in self._subscribers:
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(None)
        self._subscribers.clear()

    def _publish(self) -> None:
        if not self._subscribers:
            return
        snap = self.snapshot()
        for queue in self._subscribers:
            if queue.full():
                # Slow reader: keep only the freshest snapshots.
                queue.get_nowait()
            queue.put_nowait(snap)
