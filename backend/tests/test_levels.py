"""Tests for Fibonacci and support/resistance levels."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from core.indicators import (
    cluster_levels,
    fibonacci_levels,
    is_near_level,
    support_resistance,
)
from core.models.candle import Candle

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_candles(closes, wick=1.0):
    """Candles with an absolute wick above and below each close."""
    return [
        Candle(
            timestamp=T0 + timedelta(hours=4 * i),
            open=close,
            high=close + wick,
            low=close - wick,
            close=close,
            volume=1000.0,
        )
        for i, close in enumerate(closes)
    ]


class TestFibonacci:
    """Tests for fibonacci_levels."""

    def test_insufficient_data(self):
        candles = make_candles([100.0 + i for i in range(49)])
        assert fibonacci_levels(candles, lookback=50) is None

    def test_linear_swing(self):
        """Closes 100..149: swing high 150, swing low 99."""
        fib = fibonacci_levels(make_candles([100.0 + i for i in range(50)]))

        assert fib.swing_high == 150
        assert fib.swing_low == 99
        assert fib.swing_range == 51
        assert fib.retracements["50.0"] == pytest.approx(124.5)
        assert fib.retracements["61.8"] == pytest.approx(150 - 51 * 0.618)
        assert fib.extensions_up["161.8"] == pytest.approx(150 + 51 * 0.618)
        assert fib.extensions_down["127.2"] == pytest.approx(99 - 51 * 0.272)

    def test_nearest_level(self):
        fib = fibonacci_levels(make_candles([100.0 + i for i in range(50)]))

        assert fib.price == 149
        assert fib.nearest_name == "0.0"
        assert fib.nearest_level == 150
        assert fib.distance_percent == pytest.approx(-100 / 150)
        assert is_near_level(fib, 2.0)
        assert not is_near_level(fib, 0.5)

    def test_retracements_ordered(self):
        fib = fibonacci_levels(make_candles([100 + 20 * math.sin(i / 6) for i in range(80)]))
        values = list(fib.retracements.values())

        assert all(a > b for a, b in zip(values, values[1:]))
        assert all(fib.swing_low < v < fib.swing_high for v in values)


class TestClusterLevels:
    """Tests for cluster_levels."""

    def test_empty(self):
        assert cluster_levels([]) == []

    def test_merges_neighbours(self):
        levels = cluster_levels([110.5, 100, 105, 101, 110], 0.02)
        assert levels == [pytest.approx(100.5), pytest.approx(105), pytest.approx(110.25)]

    def test_distinct_levels_kept(self):
        assert cluster_levels([100, 200, 300], 0.02) == [100, 200, 300]


class TestSupportResistance:
    """Tests for support_resistance."""

    def test_short_input(self):
        result = support_resistance(make_candles([100.0] * 10))

        assert result.support == []
        assert result.resistance == []
        assert result.nearest_support is None
        assert result.price == 100

    def test_empty_input(self):
        assert support_resistance([]).price == 0

    def test_levels_split_around_price(self):
        closes = [100 + 15 * math.sin(i / 4) + 5 * math.cos(i / 9) for i in range(120)]
        result = support_resistance(make_candles(closes))
        price = closes[-1]

        assert result.support or result.resistance
        assert all(s < price for s in result.support)
        assert all(r > price for r in result.resistance)
        assert result.support == sorted(result.support)
        assert result.resistance == sorted(result.resistance)
        if result.support:
            assert result.nearest_support == result.support[-1]
        if result.resistance:
            assert result.nearest_resistance == result.resistance[0]
        assert len(result.support) <= 5 and len(result.resistance) <= 5

    def test_monotonic_decline_uses_recent_range(self):
        closes = [100 * 0.99 ** i for i in range(60)]
        result = support_resistance(make_candles(closes, wick=0.1))

        assert result.nearest_support == pytest.approx(closes[-1] - 0.1)
        assert result.nearest_resistance == pytest.approx(closes[-20] + 0.1)
