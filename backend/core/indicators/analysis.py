"""Full per-timeframe technical analysis."""

from typing import Sequence

from core.indicators.indicators import (
    analyze_volume,
    detect_rsi_divergence,
    detect_trend,
    macd,
    rsi,
)
from core.indicators.levels import fibonacci_levels, is_near_level, support_resistance
from core.models.candle import Candle
from core.models.config import IndicatorConfig
from core.models.snapshot import (
    Divergence,
    IndicatorSnapshot,
    MacdTrend,
    RsiSignal,
    TrendDirection,
)


def analyze(candles: Sequence[Candle], config: IndicatorConfig | None = None) -> IndicatorSnapshot:
    """Compute every indicator for one candle sequence.

    Uses only the candles given; callers replaying history pass a prefix.
    """
    cfg = config or IndicatorConfig()
    closes = [c.close for c in candles]

    rsi_result = rsi(closes, cfg.rsi_period, cfg.rsi_oversold, cfg.rsi_overbought)
    snapshot = IndicatorSnapshot(
        rsi=rsi_result,
        rsi_divergence=detect_rsi_divergence(closes, rsi_result.values),
        macd=macd(closes, cfg.macd_fast, cfg.macd_slow, cfg.macd_signal),
        trend=detect_trend(candles),
        levels=support_resistance(
            candles, cfg.pivot_window, cfg.level_cluster_percent, cfg.max_levels
        ),
        volume=analyze_volume(candles, cfg.volume_lookback),
        fibonacci=fibonacci_levels(candles, cfg.fib_lookback),
    )
    return snapshot.model_copy(update={"summary": summarize(snapshot, cfg)})


def summarize(snapshot: IndicatorSnapshot, config: IndicatorConfig | None = None) -> str:
    """Human-readable one-paragraph summary of a snapshot."""
    cfg = config or IndicatorConfig()
    parts: list[str] = []

    r = snapshot.rsi
    if r.signal == RsiSignal.OVERSOLD:
        text = f"RSI at {r.value} indicates oversold conditions"
        if snapshot.rsi_divergence == Divergence.BULLISH:
            text += " with bullish divergence forming"
    elif r.signal == RsiSignal.OVERBOUGHT:
        text = f"RSI at {r.value} indicates overbought conditions"
        if snapshot.rsi_divergence == Divergence.BEARISH:
            text += " with bearish divergence forming"
    else:
        text = f"RSI at {r.value} is neutral"
    parts.append(text)

    t = snapshot.trend
    if t.direction == TrendDirection.UP:
        text = f"Uptrend detected (strength {t.strength}/100)"
    elif t.direction == TrendDirection.DOWN:
        text = f"Downtrend detected (strength {t.strength}/100)"
    else:
        text = "Sideways/consolidation phase"
    parts.append(f"{text}, price above {t.emas_above}/3 key EMAs")

    if snapshot.macd.crossover is not None:
        parts.append(f"MACD {snapshot.macd.crossover.value.replace('_', ' ').lower()}")

    lv = snapshot.levels
    if lv.nearest_support is not None:
        parts.append(f"Support near {lv.nearest_support:g}")
    if lv.nearest_resistance is not None:
        parts.append(f"Resistance near {lv.nearest_resistance:g}")

    fib = snapshot.fibonacci
    if fib is not None and is_near_level(fib, cfg.fib_tolerance_percent):
        parts.append(f"Near Fib {fib.nearest_name}% level ({fib.distance_percent:+.1f}%)")

    return ". ".join(parts)


def technical_sentiment(snapshot: IndicatorSnapshot) -> int:
    """Directional score in [-100, 100] from RSI, MACD and trend agreement."""
    score = 0.0

    if snapshot.rsi.signal == RsiSignal.OVERSOLD:
        score += 20
    elif snapshot.rsi.signal == RsiSignal.OVERBOUGHT:
        score -= 20
    score += (snapshot.rsi.value - 50) * 0.2

    if snapshot.macd.trend == MacdTrend.BULLISH:
        score += 20
    elif snapshot.macd.trend == MacdTrend.BEARISH:
        score -= 20
    score += max(-10.0, min(10.0, snapshot.macd.histogram * 100))

    if snapshot.trend.direction == TrendDirection.UP:
        score += snapshot.trend.strength * 0.4
    elif snapshot.trend.direction == TrendDirection.DOWN:
        score -= snapshot.trend.strength * 0.4

    return int(max(-100, min(100, round(score))))
