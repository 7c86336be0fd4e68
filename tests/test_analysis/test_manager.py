"""Tests for per-user analysis session and scan management."""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeStreamFactory
from digitflow.analysis.manager import AnalysisManager, ScanManager, ScanStatus
from digitflow.config.settings import AnalysisConfig, ScannerConfig
from digitflow.errors.dfp_errors import DFPError


@pytest.fixture
def manager() -> AnalysisManager:
    return AnalysisManager(AnalysisConfig(prediction_interval=3600.0), FakeStreamFactory())


class TestAnalysisManager:
    async def test_start_and_get(self, manager: AnalysisManager) -> None:
        session = await manager.start("key-1", "R_10")
        assert manager.get("key-1") is session
        assert session.max_ticks == 100
        assert len(manager) == 1
        await manager.close()
        assert len(manager) == 0

    async def test_sessions_are_per_owner(self, manager: AnalysisManager) -> None:
        a = await manager.start("key-1", "R_10")
        b = await manager.start("key-2", "R_10")
        assert a is not b
        await manager.close()

    async def test_restart_switches_market(self, manager: AnalysisManager) -> None:
        session = await manager.start("key-1", "R_10", 50)
        again = await manager.start("key-1", "R_25", 20)
        assert again is session
        assert session.market == "R_25"
        assert session.max_ticks == 20
        await manager.close()

    @pytest.mark.parametrize("max_ticks", [9, 501])
    async def test_window_size_bounds(self, manager: AnalysisManager, max_ticks: int) -> None:
        with pytest.raises(DFPError) as exc_info:
            await manager.start("key-1", "R_10", max_ticks)
        assert exc_info.value.status_code == 400

    async def test_unknown_market(self, manager: AnalysisManager) -> None:
        with pytest.raises(DFPError) as exc_info:
            await manager.start("key-1", "EURUSD")
        assert exc_info.value.code == "unknown-market"

    async def test_missing_session(self, manager: AnalysisManager) -> None:
        with pytest.raises(DFPError) as exc_info:
            manager.get("nobody")
        assert exc_info.value.status_code == 404

    async def test_stop_and_reset(self, manager: AnalysisManager) -> None:
        await manager.start("key-1", "R_10")
        session = await manager.stop("key-1")
        assert not session.is_running
        assert manager.reset("key-1").window == ()

    async def test_reap_idle(self, manager: AnalysisManager) -> None:
        session = await manager.start("key-1", "R_10")
        assert await manager.reap_idle(now=session.last_activity + 1) == 0
        reaped = await manager.reap_idle(now=session.last_activity + 15 * 60 + 1)
        assert reaped == 1
        assert len(manager) == 0
        assert not session.is_running

    async def test_discard_ends_subscriptions(self, manager: AnalysisManager) -> None:
        session = await manager.start("key-1", "R_10")
        queue = session.subscribe()
        await manager.discard("key-1")
        items = [queue.get_nowait() for _ in range(queue.qsize())]
        assert items[-1] is None
        assert session.subscriber_count == 0


class TestScanManager:
    async def test_scan_runs_in_background(self) -> None:
        scans = ScanManager(ScannerConfig(duration=0.1, poll_interval=0.02), FakeStreamFactory())
        job = scans.start("key-1")
        assert job.status == ScanStatus.RUNNING
        assert scans.get("key-1") is job
        await asyncio.wait_for(job.task, 2.0)
        assert job.status == ScanStatus.DONE
        assert job.progress == 100.0
        assert len(job.signals) == 10
        assert job.best is job.signals[0]
        assert job.finished_at is not None
        assert job.to_dict()["status"] == "done"

    async def test_one_scan_at_a_time(self) -> None:
        scans = ScanManager(ScannerConfig(duration=5.0), FakeStreamFactory())
        scans.start("key-1")
        with pytest.raises(DFPError) as exc_info:
            scans.start("key-1")
        assert exc_info.value.status_code == 409
        await scans.close()

    async def test_no_scan(self) -> None:
        scans = ScanManager(ScannerConfig(), FakeStreamFactory())
        with pytest.raises(DFPError) as exc_info:
            scans.get("key-1")
        assert exc_info.value.status_code == 404

    async def test_discard_cancels(self) -> None:
        scans = ScanManager(ScannerConfig(duration=5.0), FakeStreamFactory())
        job = scans.start("key-1")
        await asyncio.sleep(0.05)
        await scans.discard("key-1")
        assert job.status == ScanStatus.FAILED
        assert job.task.done()
