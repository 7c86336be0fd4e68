"""Per-user ownership of analysis sessions and market scans.

Each authenticated access key owns at most one :class:`AnalysisSession` and
one scan job. Sessions are never shared: changing market or window size
tears the old window down.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from digitflow.analysis.scanner import MarketScanner, rank_signals
from digitflow.analysis.session import AnalysisSession
from digitflow.errors.definitions import (
    ErrInvalidWindowSize,
    ErrNoAnalysisSession,
    ErrNoScan,
    ErrScanInProgress,
    ErrUnknownMarket,
)
from digitflow.feed.markets import get_market

if TYPE_CHECKING:
    from collections.abc import Callable

    from digitflow.analysis.scanner import LiveMarketData, MarketSignal
    from digitflow.config.settings import AnalysisConfig, ScannerConfig
    from digitflow.feed.client import TickStream
    from digitflow.metrics.collector import EngineMetrics

logger = logging.getLogger(__name__)


class AnalysisManager:
    """Creates, looks up and tears down analysis sessions by owner."""

    def __init__(
        self,
        config: AnalysisConfig,
        stream_factory: Callable[[str], TickStream],
        *,
        metrics: EngineMetrics | None = None,
    ) -> None:
        self._config = config
        self.stream_factory = stream_factory
        self._metrics = metrics
        self._sessions: dict[str, AnalysisSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, owner: str) -> AnalysisSession:
        """Return the owner's session.

        Raises:
            DFPError: 404 if the owner has none.
        """
        session = self._sessions.get(owner)
        if session is None:
            raise ErrNoAnalysisSession
        session.last_activity = time.monotonic()
        return session

    def validate(self, market: str, max_ticks: int | None) -> int:
        """Check a market id and window size, returning the effective size."""
        if get_market(market) is None:
            raise ErrUnknownMarket
        size = max_ticks if max_ticks is not None else self._config.default_max_ticks
        if not self._config.min_max_ticks <= size <= self._config.max_max_ticks:
            raise ErrInvalidWindowSize
        return size

    async def start(self, owner: str, market: str, max_ticks: int | None = None) -> AnalysisSession:
        """Start (or retarget) the owner's session on *market*."""
        size = self.validate(market, max_ticks)
        session = self._sessions.get(owner)
        if session is None:
            session = AnalysisSession(
                market,
                stream_factory=self.stream_factory,
                config=self._config,
                max_ticks=size,
                metrics=self._metrics,
            )
            self._sessions[owner] = session
            self._update_gauge()
        elif session.market != market or session.max_ticks != size:
            await session.change_market(market, max_ticks=size)
        session.last_activity = time.monotonic()
        await session.start()
        return session

    async def stop(self, owner: str) -> AnalysisSession:
        session = self.get(owner)
        await session.stop()
        return session

    def reset(self, owner: str) -> AnalysisSession:
        session = self.get(owner)
        session.reset()
        return session

    async def discard(self, owner: str) -> None:
        """Stop and forget the owner's session (logout)."""
        session = self._sessions.pop(owner, None)
        if session is not None:
            await session.stop()
            session.close_subscribers()
            self._update_gauge()

    async def reap_idle(self, *, now: float | None = None) -> int:
        """Discard sessions nobody has touched within the idle timeout."""
        now = time.monotonic() if now is None else now
        idle = [
            owner
            for owner, session in self._sessions.items()
            if now - session.last_activity > self._config.idle_timeout
        ]
        for owner in idle:
            await self.discard(owner)
        if idle:
            logger.info("Reaped %d idle analysis sessions", len(idle))
        return len(idle)

    async def close(self) -> None:
        for owner in list(self._sessions):
            await self.discard(owner)

    def _update_gauge(self) -> None:
        if self._metrics is not None:
            self._metrics.set_analysis_session_count(len(self._sessions))


class ScanStatus(enum.StrEnum):
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ScanJob:
    """Progress and outcome of one background market scan."""

    status: ScanStatus = ScanStatus.RUNNING
    progress: float = 0.0
    markets: list[LiveMarketData] = field(default_factory=list)
    signals: list[MarketSignal] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None
    task: asyncio.Task[None] | None = field(default=None, repr=False)

    def on_progress(self, progress: float, markets: list[LiveMarketData]) -> None:
        self.progress = progress
        self.markets = markets

    @property
    def best(self) -> MarketSignal | None:
        return self.signals[0] if self.signals else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": str(self.status),
            "progress": self.progress,
            "markets": [m.to_dict() for m in self.markets],
            "signals": [s.to_dict() for s in self.signals],
            "best": self.best.to_dict() if self.best else None,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


class ScanManager:
    """Runs at most one scan per owner as a background task."""

    def __init__(
        self,
        config: ScannerConfig,
        stream_factory: Callable[[str], TickStream],
        *,
        metrics: EngineMetrics | None = None,
    ) -> None:
        self._config = config
        self.stream_factory = stream_factory
        self._metrics = metrics
        self._jobs: dict[str, ScanJob] = {}

    def get(self, owner: str) -> ScanJob:
        job = self._jobs.get(owner)
        if job is None:
            raise ErrNoScan
        return job

    def start(self, owner: str) -> ScanJob:
        """Kick off a scan for *owner*.

        Raises:
            DFPError: 409 if the owner's previous scan is still running.
        """
        current = self._jobs.get(owner)
        if current is not None and current.status == ScanStatus.RUNNING:
            raise ErrScanInProgress
        job = ScanJob()
        scanner = MarketScanner(
            self.stream_factory,
            duration=self._config.duration,
            poll_interval=self._config.poll_interval,
            metrics=self._metrics,
        )
        job.task = asyncio.create_task(self._run(job, scanner))
        self._jobs[owner] = job
        return job

    async def _run(self, job: ScanJob, scanner: MarketScanner) -> None:
        try:
            signals = await scanner.scan(job.on_progress)
        except asyncio.CancelledError:
            job.status = ScanStatus.FAILED
            raise
        except Exception:
            logger.exception("Market scan failed")
            job.status = ScanStatus.FAILED
        else:
            job.signals = rank_signals(signals)
            job.status = ScanStatus.DONE
        finally:
            job.finished_at = time.time()

    async def discard(self, owner: str) -> None:
        job = self._jobs.pop(owner, None)
        if job is not None and job.task is not None and not job.task.done():
            job.task.cancel()
            await asyncio.gather(job.task, return_exceptions=True)

    async def close(self) -> None:
        for owner in list(self._jobs):
            await self.discard(owner)
