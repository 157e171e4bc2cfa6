"""Tests for SignalScanner."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from core.models.candle import Candle
from core.models.signal import Action
from core.signal_generator import SignalGenerator

from app.clients.market_data import MarketDataError
from app.services.outcome_checker import OutcomeChecker
from app.services.position_tracker import PositionTracker
from app.services.signal_scanner import SignalScanner
from app.watchlist import Watchlist, WatchlistAsset

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
HOURS = {"4h": 4, "1d": 24}


def make_candles(step: float, timeframe: str, n: int = 60) -> list[Candle]:
    candles = []
    for i in range(n):
        close = 100.0 * (1 + step) ** i
        candles.append(
            Candle(
                timestamp=T0 + timedelta(hours=HOURS[timeframe] * i),
                open=close,
                high=close * 1.005,
                low=close * 0.995,
                close=close,
                volume=1000.0,
            )
        )
    return candles


class FakeCandles:
    """Candle provider with a fixed price path per asset."""

    def __init__(self, steps: dict[str, float], failing: set[str] = frozenset()):
        self.steps = steps
        self.failing = failing
        self.calls: list[tuple[str, str, int]] = []

    async def get_candles(self, asset: str, timeframe: str, limit: int = 250) -> list[Candle]:
        self.calls.append((asset, timeframe, limit))
        if asset in self.failing:
            raise MarketDataError(f"{asset}/{timeframe}: unavailable")
        return make_candles(self.steps[asset], timeframe)


@pytest.fixture
def watchlist():
    return Watchlist(assets=[
        WatchlistAsset(symbol="BTC", asset_class="major"),
        WatchlistAsset(symbol="ETH"),
        WatchlistAsset(symbol="USDT", asset_class="stable"),
        WatchlistAsset(symbol="SOL"),
        WatchlistAsset(symbol="DOGE", enabled=False),
    ])


@pytest.fixture
def candles():
    return FakeCandles({"BTC": -0.01, "USDT": -0.01, "SOL": 0.0}, failing={"ETH"})


class TestFetchInputs:
    """Tests for SignalScanner.fetch_inputs."""

    @pytest.mark.asyncio
    async def test_skips_failed_and_disabled(self, candles, watchlist):
        scanner = SignalScanner(candles, SignalGenerator(), watchlist, candle_limit=120)

        inputs = await scanner.fetch_inputs()

        assert [i.asset for i in inputs] == ["BTC", "USDT", "SOL"]
        assert inputs[0].asset_class == "major"
        assert set(inputs[0].candles) == {"4h", "1d"}
        assert ("BTC", "4h", 120) in candles.calls
        assert all(call[0] != "DOGE" for call in candles.calls)


class TestScan:
    """Tests for SignalScanner.scan."""

    @pytest.mark.asyncio
    async def test_scan_tracks_and_records(self, candles, watchlist):
        prices = AsyncMock()
        prices.get_current_price = AsyncMock(return_value=None)
        tracker = PositionTracker(prices, check_delay=0)
        checker = OutcomeChecker(prices, delay=0)
        scanner = SignalScanner(
            candles, SignalGenerator(), watchlist, tracker=tracker, outcome_checker=checker
        )

        signals = await scanner.scan()

        # USDT is non-directional and SOL is flat, so only BTC emits
        assert [s.asset for s in signals] == ["BTC"]
        assert signals[0].action == Action.LONG
        assert tracker.active_count == 1
        assert checker.get(signals[0].id) is not None

    @pytest.mark.asyncio
    async def test_scan_without_consumers(self, candles, watchlist):
        scanner = SignalScanner(candles, SignalGenerator(), watchlist)

        signals = await scanner.scan()

        assert len(signals) == 1
