"""Prometheus metrics for the Digit Flow Pro engine.

Everything lives on a private :class:`CollectorRegistry`, so several apps can
coexist in one process (the test suite builds dozens). Names carry the
``dfp`` namespace:

- ``dfp_stats_total{entity}``: access keys and live analysis sessions
- ``dfp_verifications_total{outcome,reason}``: access key verifications
- ``dfp_ticks_total{market}``, ``dfp_feed_disconnects_total{market}``
- ``dfp_market_scan_histogram``: wall time of multi-market scans
- ``dfp_cron_histogram{job_name}``, ``dfp_cron_last_execution_gauge{job_name}``
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, TypeVar

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from contextlib import AbstractContextManager

NAMESPACE = "dfp"

MetricT = TypeVar("MetricT", Counter, Gauge, Histogram)


class MetricsCollector:
    """Creates metrics under one namespace on one registry."""

    def __init__(self, registry: CollectorRegistry | None = None, *, namespace: str = NAMESPACE):
        self.registry = registry or CollectorRegistry()
        self.namespace = namespace

    def __call__(
        self, kind: type[MetricT], name: str, doc: str, labels: tuple[str, ...] = ()
    ) -> MetricT:
        return kind(name, doc, labels, namespace=self.namespace, registry=self.registry)


@contextmanager
def _timed(observe: Callable[[float], None]) -> Iterator[None]:
    start = time.monotonic()
    try:
        yield
    finally:
        observe(time.monotonic() - start)


class EngineMetrics:
    """What the engine, its sessions and its cron jobs report."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        metric = collector or MetricsCollector()
        self._collector = metric

        self._stats = metric(
            Gauge, "stats_total", "Entity counts in the Digit Flow Pro engine", ("entity",)
        )
        self._verifications = metric(
            Counter,
            "verifications_total",
            "Access key verifications by outcome",
            ("outcome", "reason"),
        )
        self._ticks = metric(
            Counter, "ticks_total", "Ticks received from the quote feed", ("market",)
        )
        self._disconnects = metric(
            Counter,
            "feed_disconnects_total",
            "Quote feed connections that failed or dropped",
            ("market",),
        )
        self._scan = metric(Histogram, "market_scan_histogram", "Duration of multi-market scans")
        self._cron = metric(
            Histogram, "cron_histogram", "Duration of cron job executions", ("job_name",)
        )
        self._cron_last = metric(
            Gauge, "cron_last_execution_gauge", "Timestamp of last cron execution", ("job_name",)
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._collector.registry

    def set_access_key_count(self, count: int) -> None:
        self._stats.labels(entity="access_keys").set(count)

    def set_analysis_session_count(self, count: int) -> None:
        self._stats.labels(entity="analysis_sessions").set(count)

    def record_verification(self, outcome: str, reason: str) -> None:
        """Count one ``verify`` call; *reason* is the error code, ``bound`` or ``known-device``."""
        self._verifications.labels(outcome=outcome, reason=reason).inc()

    def record_tick(self, market: str) -> None:
        self._ticks.labels(market=market).inc()

    def record_disconnect(self, market: str) -> None:
        self._disconnects.labels(market=market).inc()

    def track_market_scan(self) -> AbstractContextManager[None]:
        """Time a scan, including one that fails or is cancelled."""
        return _timed(self._scan.observe)

    @contextmanager
    def track_cron(self, job_name: str) -> Iterator[None]:
        """Time one cron run and stamp when it last ran."""
        try:
            with _timed(self._cron.labels(job_name=job_name).observe):
                yield
        finally:
            self._cron_last.labels(job_name=job_name).set_to_current_time()
