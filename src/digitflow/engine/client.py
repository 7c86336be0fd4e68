"""DigitFlowEngine: owns the key store, the services and every live analysis."""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

    from digitflow.analysis.manager import AnalysisManager, ScanManager
    from digitflow.config.settings import AppConfig
    from digitflow.datastore.client import Datastore
    from digitflow.engine.services.access_key_service import AccessKeyService
    from digitflow.engine.services.device_service import DeviceService
    from digitflow.engine.services.verification_service import VerificationService
    from digitflow.feed.client import TickStream
    from digitflow.metrics.collector import EngineMetrics
    from digitflow.taskmanager.manager import TaskManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ERR_NOT_INITIALIZED = "Engine not initialized. Call initialize() first."


def _require(component: T | None) -> T:
    if component is None:
        raise RuntimeError(_ERR_NOT_INITIALIZED)
    return component


class DigitFlowEngine:
    """Everything the API needs behind one object, started and stopped together.

    The app's lifespan calls :meth:`initialize` on startup and :meth:`close` on
    shutdown; route handlers reach services through the properties, which
    raise ``RuntimeError`` outside that window.

    Args:
        config: Application configuration.
        stream_factory: Builds a tick stream for a market id. Defaults to a
            live websocket stream against the configured feed URL.
        metrics: Metrics to report into (the app passes the registry it
            serves); created from config when omitted.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        stream_factory: Callable[[str], TickStream] | None = None,
        metrics: EngineMetrics | None = None,
    ) -> None:
        self._config = config
        self._stream_factory = stream_factory
        self._metrics = metrics
        self._initialized = False

        self._datastore: Datastore | None = None
        self._access_keys: AccessKeyService | None = None
        self._devices: DeviceService | None = None
        self._verification: VerificationService | None = None
        self._analysis: AnalysisManager | None = None
        self._scans: ScanManager | None = None
        self._cron: TaskManager | None = None

    async def initialize(self) -> None:
        """Open the key store (creating tables), build services, start cron.

        Raises:
            RuntimeError: If already initialized.
        """
        if self._initialized:
            msg = "Engine already initialized"
            raise RuntimeError(msg)

        from digitflow.datastore.client import Datastore

        self._datastore = Datastore(self._config.db)
        await self._datastore.open(migrate=True)

        if self._metrics is None and self._config.metrics.enabled:
            from digitflow.metrics.collector import EngineMetrics

            self._metrics = EngineMetrics()

        self._build_services()
        if self._config.task.enabled:
            await self._start_cron()

        self._initialized = True
        logger.info("Engine initialized (db=%s)", self._config.db.engine)

    def _build_services(self) -> None:
        from digitflow.analysis.manager import AnalysisManager, ScanManager
        from digitflow.engine.services.access_key_service import AccessKeyService
        from digitflow.engine.services.device_service import DeviceService
        from digitflow.engine.services.verification_service import VerificationService
        from digitflow.feed.client import TickStream

        self._access_keys = AccessKeyService(self)
        self._devices = DeviceService(self)
        self._verification = VerificationService(self)

        streams = self._stream_factory or partial(TickStream, url=self._config.feed.url)
        self._analysis = AnalysisManager(self._config.analysis, streams, metrics=self._metrics)
        self._scans = ScanManager(self._config.scanner, streams, metrics=self._metrics)

    async def _start_cron(self) -> None:
        from digitflow.taskmanager.manager import CronJob, TaskManager
        from digitflow.taskmanager.tasks import (
            CALCULATE_METRICS_PERIOD,
            task_calculate_metrics,
            task_reap_idle_sessions,
        )

        cron = TaskManager(metrics=self._metrics)
        cron.register(
            "reap_idle_sessions",
            CronJob(
                handler=partial(task_reap_idle_sessions, self),
                period=self._config.analysis.reaper_period,
            ),
        )
        if self._metrics is not None:
            cron.register(
                "calculate_metrics",
                CronJob(
                    handler=partial(task_calculate_metrics, self, self._metrics),
                    period=CALCULATE_METRICS_PERIOD,
                ),
            )
        await cron.start()
        self._cron = cron

    async def close(self) -> None:
        """Stop cron, drop every feed connection, then close the key store.

        Safe to call more than once.
        """
        if not self._initialized:
            return
        self._initialized = False

        if self._cron is not None:
            await self._cron.stop()
        for manager in (self._scans, self._analysis):
            if manager is not None:
                await manager.close()
        if self._datastore is not None:
            await self._datastore.close()

        self._cron = self._scans = self._analysis = None
        self._access_keys = self._devices = self._verification = None
        self._datastore = None
        logger.info("Engine closed")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def metrics(self) -> EngineMetrics | None:
        """None when metrics are disabled."""
        return self._metrics

    @property
    def task_manager(self) -> TaskManager | None:
        """The housekeeping cron, or None when background tasks are disabled."""
        return self._cron

    @property
    def datastore(self) -> Datastore:
        return _require(self._datastore)

    @property
    def access_key_service(self) -> AccessKeyService:
        return _require(self._access_keys)

    @property
    def device_service(self) -> DeviceService:
        return _require(self._devices)

    @property
    def verification_service(self) -> VerificationService:
        return _require(self._verification)

    @property
    def analysis_manager(self) -> AnalysisManager:
        """Per-access-key live analysis sessions."""
        return _require(self._analysis)

    @property
    def scan_manager(self) -> ScanManager:
        """Per-access-key multi-market scans."""
        return _require(self._scans)

    async def health_check(self) -> dict[str, str]:
        """Component statuses: ``ok``, ``error``, ``not_initialized`` or ``unknown``."""
        if not self._initialized:
            return {"engine": "not_initialized", "datastore": "unknown"}
        datastore_ok = self._datastore is not None and self._datastore.is_open
        return {"engine": "ok", "datastore": "ok" if datastore_ok else "error"}
