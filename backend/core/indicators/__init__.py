"""Technical indicators (pure math, no I/O)."""

from core.indicators.indicators import (
    ema,
    ema_series,
    sma,
    rsi,
    detect_rsi_divergence,
    macd,
    detect_trend,
    analyze_volume,
    volume_score,
)
from core.indicators.levels import (
    cluster_levels,
    fibonacci_levels,
    is_near_level,
    support_resistance,
)
from core.indicators.analysis import analyze, summarize, technical_sentiment

__all__ = [
    "ema",
    "ema_series",
    "sma",
    "rsi",
    "detect_rsi_divergence",
    "macd",
    "detect_trend",
    "analyze_volume",
    "volume_score",
    "cluster_levels",
    "fibonacci_levels",
    "is_near_level",
    "support_resistance",
    "analyze",
    "summarize",
    "technical_sentiment",
]
