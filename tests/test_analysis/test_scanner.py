"""Tests for the multi-market scanner heuristics and scan loop."""

from __future__ import annotations

from conftest import FakeStreamFactory
from digitflow.analysis.scanner import (
    MAX_CONFIDENCE,
    LiveMarketData,
    MarketScanner,
    MarketSignal,
    determine_strategy,
    rank_signals,
)
from digitflow.feed.client import Tick
from digitflow.feed.markets import MARKETS, Market
from digitflow.metrics.collector import EngineMetrics


def _data(digits: list[int]) -> LiveMarketData:
    data = LiveMarketData.for_market(Market("R_10", "Volatility 10 Index"))
    for d in digits:
        data.observe(Tick("R_10", f"1.{d}", d))
    return data


def _signal(market: str, confidence: float) -> MarketSignal:
    return MarketSignal(
        market=market,
        market_name=market,
        best_strategy="even",
        confidence=confidence,
        reasoning="",
        digit_counts=(0,) * 10,
        recent_trend=(),
        matches=0,
        differs=0,
        tick_count=0,
        most_appearing_digit=0,
        most_appearing_count=0,
    )


class TestLiveMarketData:
    def test_observe_tracks_mode_and_self_matches(self) -> None:
        data = _data([3, 3, 5])
        assert data.tick_count == 3
        assert data.digit_counts[3] == 2
        assert data.most_appearing_digit == 3
        assert data.most_appearing_count == 2
        # 3 matches the mode after counting; 3 again; 5 does not.
        assert data.matches == 2
        assert data.differs == 1
        assert data.current_price == "1.5"

    def test_copy_is_independent(self) -> None:
        data = _data([1])
        snap = data.copy()
        data.observe(Tick("R_10", "1.2", 2))
        assert snap.tick_count == 1
        assert snap.digit_counts[2] == 0


class TestDetermineStrategy:
    def test_empty_market_defaults(self) -> None:
        signal = determine_strategy(_data([]))
        # 50/50 split, flat trend, zero accuracy: all three score 50 and the
        # trend candidate wins the tie.
        assert signal.confidence == 50.0
        assert signal.best_strategy == "fall"
        assert signal.tick_count == 0

    def test_even_heavy(self) -> None:
        signal = determine_strategy(_data([2, 4, 6, 8, 2, 4, 1, 2]))
        assert signal.best_strategy == "even"
        assert signal.reasoning.startswith("Even digits: 87.5%")

    def test_odd_heavy(self) -> None:
        signal = determine_strategy(_data([1, 3, 5, 7, 9, 1, 3, 5]))
        assert signal.best_strategy == "odd"

    def test_rising_trend(self) -> None:
        signal = determine_strategy(_data([0, 1, 0, 1, 8, 9, 8, 9]))
        assert signal.best_strategy == "rise"
        assert "Rising trend" in signal.reasoning

    def test_capped(self) -> None:
        signal = determine_strategy(_data([2] * 40))
        assert signal.confidence == MAX_CONFIDENCE

    def test_accuracy_boost(self) -> None:
        # Mode matches on 2 of 4 ticks: accuracy 50%, multiplier 1.25.
        signal = determine_strategy(_data([2, 4, 1, 3]))
        assert signal.matches == 2
        assert signal.best_strategy == "fall"
        assert signal.confidence == 75.0


class TestRankSignals:
    def test_ranked_descending(self) -> None:
        signals = [_signal("A", 80.0), _signal("B", 95.0), _signal("C", 60.0)]
        ranked = rank_signals(signals)
        assert [s.confidence for s in ranked] == [95.0, 80.0, 60.0]
        assert ranked[0].market == "B"

    def test_ties_are_stable(self) -> None:
        ranked = rank_signals([_signal("A", 70.0), _signal("B", 70.0)])
        assert [s.market for s in ranked] == ["A", "B"]


class TestMarketScanner:
    async def test_scan_every_market(self) -> None:
        factory = FakeStreamFactory({"R_10": ["1.2", "1.4", "1.6"], "R_25": ["2.1"]})
        progress: list[float] = []
        snapshots: list[list[LiveMarketData]] = []

        def on_progress(pct: float, markets: list[LiveMarketData]) -> None:
            progress.append(pct)
            snapshots.append(markets)

        metrics = EngineMetrics()
        scanner = MarketScanner(factory, duration=0.2, poll_interval=0.05, metrics=metrics)
        signals = await scanner.scan(on_progress)

        assert [s.market for s in signals] == [m.id for m in MARKETS]
        assert signals[0].tick_count == 3
        assert signals[0].best_strategy == "even"
        assert signals[1].tick_count == 1
        assert progress[-1] == 100.0
        assert progress == sorted(progress)
        assert all(0 <= p <= 100 for p in progress)
        assert len(snapshots[-1]) == len(MARKETS)
        # Every connection is closed once the scan ends.
        assert all(not s.connected for streams in factory.streams.values() for s in streams)
        assert metrics.registry.get_sample_value("dfp_market_scan_histogram_count") == 1.0

    async def test_scan_reports_connection_state(self) -> None:
        factory = FakeStreamFactory()
        seen: list[bool] = []
        scanner = MarketScanner(
            factory, markets=MARKETS[:1], duration=0.1, poll_interval=0.02
        )
        await scanner.scan(lambda pct, markets: seen.append(markets[0].is_connected))
        assert True in seen
        assert seen[-1] is False

    async def test_scan_without_callback(self) -> None:
        scanner = MarketScanner(FakeStreamFactory(), markets=MARKETS[:2], duration=0.05)
        signals = await scanner.scan()
        assert len(signals) == 2
