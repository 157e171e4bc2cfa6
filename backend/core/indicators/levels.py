"""Price levels: Fibonacci retracements/extensions and support/resistance."""

from typing import Sequence

import numpy as np

from core.models.candle import Candle
from core.models.snapshot import FibonacciLevels, PricePosition, SupportResistance


RETRACEMENT_RATIOS = {
    "23.6": 0.236,
    "38.2": 0.382,
    "50.0": 0.5,
    "61.8": 0.618,
    "78.6": 0.786,
}
EXTENSION_RATIOS = {
    "127.2": 0.272,
    "141.4": 0.414,
    "161.8": 0.618,
}


def fibonacci_levels(candles: Sequence[Candle], lookback: int = 50) -> FibonacciLevels | None:
    """Calculate Fibonacci levels from the swing high/low of the last ``lookback`` candles.

    Returns None when fewer than ``lookback`` candles are available.
    """
    if len(candles) < lookback:
        return None

    recent = candles[-lookback:]
    high = float(np.max([c.high for c in recent]))
    low = float(np.min([c.low for c in recent]))
    swing = high - low
    price = candles[-1].close

    retracements = {name: high - swing * r for name, r in RETRACEMENT_RATIOS.items()}
    extensions_up = {name: high + swing * r for name, r in EXTENSION_RATIOS.items()}
    extensions_down = {name: low - swing * r for name, r in EXTENSION_RATIOS.items()}

    candidates = {"0.0": high, "100.0": low, **retracements, **extensions_up}
    nearest_name, nearest = min(candidates.items(), key=lambda kv: abs(price - kv[1]))
    distance = (price - nearest) / nearest * 100 if nearest else 0.0

    return FibonacciLevels(
        swing_high=high,
        swing_low=low,
        retracements=retracements,
        extensions_up=extensions_up,
        extensions_down=extensions_down,
        price=price,
        nearest_level=nearest,
        nearest_name=nearest_name,
        distance_percent=distance,
    )


def is_near_level(fib: FibonacciLevels, tolerance: float = 2.0) -> bool:
    """True if price is within ``tolerance`` percent of its nearest Fibonacci level."""
    return abs(fib.distance_percent) <= tolerance


def _find_pivots(candles: Sequence[Candle], window: int) -> tuple[list[float], list[float]]:
    """Strict local highs/lows over +/- ``window`` candles."""
    highs = np.array([c.high for c in candles], dtype=np.float64)
    lows = np.array([c.low for c in candles], dtype=np.float64)
    pivot_highs: list[float] = []
    pivot_lows: list[float] = []

    for i in range(window, len(candles) - window):
        neighbours = np.r_[i - window:i, i + 1:i + window + 1]
        if highs[i] > highs[neighbours].max():
            pivot_highs.append(float(highs[i]))
        if lows[i] < lows[neighbours].min():
            pivot_lows.append(float(lows[i]))

    return pivot_highs, pivot_lows


def cluster_levels(prices: Sequence[float], threshold: float = 0.02) -> list[float]:
    """Merge ascending prices within ``threshold`` (fraction) of each other into their mean."""
    if not prices:
        return []

    ordered = sorted(prices)
    clusters: list[list[float]] = [[ordered[0]]]
    for price in ordered[1:]:
        prev = clusters[-1][-1]
        if prev > 0 and (price - prev) / prev <= threshold:
            clusters[-1].append(price)
        else:
            clusters.append([price])

    return sorted(round(float(np.mean(c)), 8) for c in clusters)


def support_resistance(
    candles: Sequence[Candle],
    window: int = 5,
    cluster_percent: float = 2.0,
    max_levels: int = 5,
) -> SupportResistance:
    """Support/resistance from pivots plus the recent 20-candle range.

    Levels are clustered and split around the current close; up to
    ``max_levels`` nearest levels are kept on each side.
    """
    if len(candles) < window * 2 + 1:
        price = candles[-1].close if candles else 0.0
        return SupportResistance(price=price)

    price = candles[-1].close
    pivot_highs, pivot_lows = _find_pivots(candles, window)
    recent = candles[-20:]
    pivot_highs.append(max(c.high for c in recent))
    pivot_lows.append(min(c.low for c in recent))

    levels = cluster_levels(pivot_highs + pivot_lows, cluster_percent / 100)
    support = [lvl for lvl in levels if lvl < price]
    resistance = [lvl for lvl in levels if lvl > price]

    nearest_support = support[-1] if support else None
    nearest_resistance = resistance[0] if resistance else None

    position = PricePosition.MID_RANGE
    band = cluster_percent / 100
    if nearest_support is not None and nearest_resistance is not None:
        if (price - nearest_support) / price < band:
            position = PricePosition.NEAR_SUPPORT
        elif (nearest_resistance - price) / price < band:
            position = PricePosition.NEAR_RESISTANCE

    return SupportResistance(
        support=support[-max_levels:],
        resistance=resistance[:max_levels],
        nearest_support=nearest_support,
        nearest_resistance=nearest_resistance,
        price=price,
        position=position,
    )
