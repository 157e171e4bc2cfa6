"""Signal generation and outcome configuration models."""

from __future__ import annotations

from pydantic import BaseModel


# Pegged assets never receive a directional signal
NON_DIRECTIONAL_ASSETS: frozenset[str] = frozenset({
    "USDT", "USDC", "DAI", "BUSD", "TUSD", "FRAX", "USDD",
    "USDP", "GUSD", "PYUSD", "FDUSD", "UST", "USDN",
})
NON_DIRECTIONAL_CLASSES: frozenset[str] = frozenset({"stable"})


class IndicatorConfig(BaseModel):
    """Indicator periods and thresholds."""

    rsi_period: int = 14
    rsi_oversold: float = 30.0
    rsi_overbought: float = 70.0

    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9

    volume_lookback: int = 20
    fib_lookback: int = 50
    fib_tolerance_percent: float = 2.0

    pivot_window: int = 5
    level_cluster_percent: float = 2.0
    max_levels: int = 5


class SignalConfig(BaseModel):
    """Rule cascade, level and confidence parameters."""

    indicators: IndicatorConfig = IndicatorConfig()

    # Rule cascade
    extreme_oversold: float = 20.0
    extreme_overbought: float = 80.0
    no_edge_sentiment: float = 5.0  # |sentiment| below this => HOLD
    high_conviction_sentiment: float = 25.0
    strong_trend_strength: int = 35

    # Levels
    support_buffer: float = 0.98  # stop = support * 0.98 (LONG)
    max_stop_percent: float = 5.0  # stop never closer than entry * 0.95
    target_multiples: tuple[float, float, float] = (1.5, 2.5, 4.0)
    fallback_level_percent: float = 5.0

    # Confidence
    base_confidence: float = 50.0
    min_confidence: int = 25
    max_confidence: int = 95
    volume_weight: float = 0.5

    # Timeframe choice: slower label when its trend is this strong
    slow_timeframe_strength: int = 70


def is_non_directional(asset: str, asset_class: str | None = None) -> bool:
    """True for pegged assets that must never get a directional signal."""
    if asset_class and asset_class.lower() in NON_DIRECTIONAL_CLASSES:
        return True
    return asset.upper() in NON_DIRECTIONAL_ASSETS
