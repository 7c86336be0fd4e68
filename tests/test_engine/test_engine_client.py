"""Tests for the DigitFlowEngine lifecycle."""

from __future__ import annotations

import pytest

from digitflow.config.settings import TaskConfig
from digitflow.engine.client import DigitFlowEngine


@pytest.mark.parametrize(
    "prop",
    [
        "datastore",
        "access_key_service",
        "device_service",
        "verification_service",
        "analysis_manager",
        "scan_manager",
    ],
)
def test_properties_require_initialize(app_config, prop: str) -> None:
    engine = DigitFlowEngine(app_config)
    with pytest.raises(RuntimeError, match="not initialized"):
        getattr(engine, prop)


async def test_initialize_and_close(engine) -> None:
    assert engine.is_initialized
    assert engine.datastore.is_open
    assert engine.metrics is not None
    assert engine.task_manager is None

    await engine.close()
    assert not engine.is_initialized
    await engine.close()


async def test_double_initialize(engine) -> None:
    with pytest.raises(RuntimeError, match="already initialized"):
        await engine.initialize()


async def test_health_check(app_config) -> None:
    engine = DigitFlowEngine(app_config)
    assert await engine.health_check() == {"engine": "not_initialized", "datastore": "unknown"}
    await engine.initialize()
    try:
        assert await engine.health_check() == {"engine": "ok", "datastore": "ok"}
    finally:
        await engine.close()


async def test_registers_cron_jobs(app_config, stream_factory) -> None:
    app_config.task = TaskConfig(enabled=True)
    engine = DigitFlowEngine(app_config, stream_factory=stream_factory)
    await engine.initialize()
    try:
        assert engine.task_manager is not None
        assert engine.task_manager.is_running
        assert set(engine.task_manager.jobs) == {"reap_idle_sessions", "calculate_metrics"}
    finally:
        await engine.close()
    assert engine.task_manager is None


async def test_metrics_disabled_skips_metrics_job(app_config, stream_factory) -> None:
    app_config.task = TaskConfig(enabled=True)
    app_config.metrics.enabled = False
    engine = DigitFlowEngine(app_config, stream_factory=stream_factory)
    await engine.initialize()
    try:
        assert engine.metrics is None
        assert set(engine.task_manager.jobs) == {"reap_idle_sessions"}
    finally:
        await engine.close()


async def test_close_stops_analysis_sessions(engine) -> None:
    session = await engine.analysis_manager.start("DFP-KEY", "R_10")
    assert session.is_running
    await engine.close()
    assert not session.is_running
