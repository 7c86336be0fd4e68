"""Fixed-rate asyncio cron jobs.

Each registered :class:`CronJob` runs on its own task. Runs are scheduled
from the previous deadline rather than from when the handler returned, so a
30 s cadence stays a 30 s cadence however long the handler takes; a job that
falls more than a whole period behind skips the missed runs instead of
bursting. A handler that raises is logged and counted, and the job keeps its
schedule.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from digitflow.metrics.collector import EngineMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CronJob:
    """A handler and how often to run it."""

    handler: Callable[[], Awaitable[None]]
    period: float  # seconds
    name: str = ""


@dataclass
class JobStats:
    runs: int = 0
    failures: int = 0
    last_run: float | None = None  # wall clock


class TaskManager:
    """Runs named cron jobs until stopped.

    The engine owns one for housekeeping (idle session reaping, gauges); every
    running analysis session owns a private one for its prediction cadence.
    """

    def __init__(self, *, metrics: EngineMetrics | None = None) -> None:
        self._metrics = metrics
        self._jobs: dict[str, CronJob] = {}
        self._stats: dict[str, JobStats] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def jobs(self) -> dict[str, CronJob]:
        return dict(self._jobs)

    def stats(self, name: str) -> JobStats:
        """Run counters for a registered job.

        Raises:
            KeyError: If no job is registered under *name*.
        """
        return self._stats[name]

    def register(self, name: str, job: CronJob) -> None:
        """Add *job* under *name*, replacing any job already there.

        Jobs registered while the manager runs are scheduled at once.
        """
        self.unregister(name)
        job = replace(job, name=name)
        self._jobs[name] = job
        self._stats[name] = JobStats()
        if self._running:
            self._spawn(job)

    def unregister(self, name: str) -> None:
        self._jobs.pop(name, None)
        self._stats.pop(name, None)
        task = self._tasks.pop(name, None)
        if task is not None:
            task.cancel()

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        for job in self._jobs.values():
            self._spawn(job)
        logger.debug("Cron started: %s", ", ".join(self._jobs) or "no jobs")

    async def stop(self) -> None:
        """Cancel every job and wait until none is mid-run."""
        if not self._running:
            return
        self._running = False
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug("Cron stopped")

    def _spawn(self, job: CronJob) -> None:
        self._tasks[job.name] = asyncio.create_task(
            self._schedule(job, self._stats[job.name]), name=f"cron:{job.name}"
        )

    async def _schedule(self, job: CronJob, stats: JobStats) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while True:
            deadline += job.period
            await asyncio.sleep(max(deadline - loop.time(), 0.0))
            await self._run_once(job, stats)
            now = loop.time()
            if now - deadline > job.period:
                deadline = now

    async def _run_once(self, job: CronJob, stats: JobStats) -> None:
        stats.runs += 1
        stats.last_run = time.time()
        try:
            if self._metrics is not None:
                with self._metrics.track_cron(job.name):
                    await job.handler()
            else:
                await job.handler()
        except Exception:
            stats.failures += 1
            logger.exception("Cron job %r failed", job.name)
