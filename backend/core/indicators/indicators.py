"""Technical indicators for signal generation.

Pure NumPy implementations over float close/volume series. Every
function returns a documented neutral default on short input instead
of raising, so callers can treat "not enough data" as "no opinion".
"""

from typing import Sequence

import numpy as np

from core.models.candle import Candle
from core.models.snapshot import (
    Divergence,
    EmaAlignment,
    MacdCrossover,
    MacdResult,
    MacdTrend,
    RsiResult,
    RsiSignal,
    TrendDirection,
    TrendResult,
    VolumeConfirmation,
    VolumeResult,
    VolumeTrend,
)


# =============================================================================
# Moving averages
# =============================================================================

def ema_series(values: Sequence[float], period: int) -> np.ndarray:
    """Calculate an EMA series seeded with the SMA of the first ``period`` values.

    The result has ``len(values) - period + 1`` points. Input shorter than
    ``period`` yields a single point: the mean of what is available.
    """
    arr = np.asarray(values, dtype=np.float64)
    if len(arr) == 0:
        return np.empty(0, dtype=np.float64)
    if len(arr) < period:
        return np.array([arr.mean()], dtype=np.float64)

    multiplier = 2.0 / (period + 1)
    result = np.empty(len(arr) - period + 1, dtype=np.float64)
    result[0] = arr[:period].mean()

    for i in range(period, len(arr)):
        j = i - period + 1
        result[j] = (arr[i] - result[j - 1]) * multiplier + result[j - 1]

    return result


def ema(values: Sequence[float], period: int) -> float:
    """Latest EMA value, 0.0 for empty input."""
    series = ema_series(values, period)
    if len(series) == 0:
        return 0.0
    return float(series[-1])


def sma(values: Sequence[float], period: int) -> float:
    """Simple moving average of the last ``period`` values (all values if shorter)."""
    arr = np.asarray(values, dtype=np.float64)
    if len(arr) == 0:
        return 0.0
    return float(arr[-period:].mean())


# =============================================================================
# RSI
# =============================================================================

def rsi(closes: Sequence[float], period: int = 14,
        oversold: float = 30.0, overbought: float = 70.0) -> RsiResult:
    """Calculate RSI with Wilder's smoothing.

    Needs ``period + 1`` closes. A series with only losses yields a real
    RSI of 0, reported as 0 (``has_data`` is True). A series with no
    movement at all has no momentum and is reported as 50.
    """
    if len(closes) < period + 1:
        return RsiResult()

    arr = np.asarray(closes, dtype=np.float64)
    changes = np.diff(arr)
    gains = np.where(changes > 0, changes, 0.0)
    losses = np.where(changes < 0, -changes, 0.0)

    avg_gain = gains[:period].mean()
    avg_loss = losses[:period].mean()

    values = [_rsi_from_averages(avg_gain, avg_loss)]
    for i in range(period, len(changes)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        values.append(_rsi_from_averages(avg_gain, avg_loss))

    value = round(values[-1], 2)
    if value <= oversold:
        signal = RsiSignal.OVERSOLD
    elif value >= overbought:
        signal = RsiSignal.OVERBOUGHT
    else:
        signal = RsiSignal.NEUTRAL

    return RsiResult(value=value, signal=signal, values=values, has_data=True)


def _rsi_from_averages(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        # Flat window: no momentum either way
        if avg_gain == 0:
            return 50.0
        return 100.0
    rs = avg_gain / avg_loss
    return float(100.0 - 100.0 / (1.0 + rs))


def detect_rsi_divergence(
    closes: Sequence[float],
    rsi_values: Sequence[float],
    lookback: int = 10,
) -> Divergence | None:
    """Detect bullish/bearish divergence between price and RSI.

    Bullish: price makes a lower low while RSI makes a higher low below 40.
    Bearish: price makes a higher high while RSI makes a lower high above 60.
    """
    if len(closes) < lookback or len(rsi_values) < lookback:
        return None

    prices = np.asarray(closes[-lookback:], dtype=np.float64)
    rsis = np.asarray(rsi_values[-lookback:], dtype=np.float64)
    half = lookback // 2

    price_low1, price_low2 = prices[:half].min(), prices[half:].min()
    rsi_low1, rsi_low2 = rsis[:half].min(), rsis[half:].min()
    price_high1, price_high2 = prices[:half].max(), prices[half:].max()
    rsi_high1, rsi_high2 = rsis[:half].max(), rsis[half:].max()

    if price_low2 < price_low1 and rsi_low2 > rsi_low1 and rsi_low2 < 40:
        return Divergence.BULLISH
    if price_high2 > price_high1 and rsi_high2 < rsi_high1 and rsi_high2 > 60:
        return Divergence.BEARISH
    return None


# =============================================================================
# MACD
# =============================================================================

def macd(closes: Sequence[float], fast: int = 12, slow: int = 26,
         signal_period: int = 9) -> MacdResult:
    """Calculate MACD line, signal line and histogram.

    Needs ``slow + signal_period`` closes, otherwise all-zero/NEUTRAL.
    Scalars are rounded to 4 decimals; the histogram is computed before
    rounding.
    """
    if len(closes) < slow + signal_period:
        return MacdResult()

    fast_ema = ema_series(closes, fast)
    slow_ema = ema_series(closes, slow)

    # Align the fast EMA to the slow EMA's first point
    offset = slow - fast
    macd_line = fast_ema[offset:] - slow_ema
    signal_line = ema_series(macd_line, signal_period)
    histogram = macd_line[len(macd_line) - len(signal_line):] - signal_line

    current = float(histogram[-1])
    previous = float(histogram[-2]) if len(histogram) >= 2 else 0.0

    if current > 0 and current > previous:
        trend = MacdTrend.BULLISH
    elif current < 0 and current < previous:
        trend = MacdTrend.BEARISH
    else:
        trend = MacdTrend.NEUTRAL

    crossover = None
    if len(histogram) >= 2:
        if previous < 0 < current:
            crossover = MacdCrossover.BULLISH_CROSS
        elif previous > 0 > current:
            crossover = MacdCrossover.BEARISH_CROSS

    return MacdResult(
        macd=round(float(macd_line[-1]), 4),
        signal=round(float(signal_line[-1]), 4),
        histogram=round(current, 4),
        trend=trend,
        crossover=crossover,
        macd_values=macd_line.tolist(),
        signal_values=signal_line.tolist(),
        histogram_values=histogram.tolist(),
    )


# =============================================================================
# Trend
# =============================================================================

def detect_trend(candles: Sequence[Candle], window: int = 20) -> TrendResult:
    """Detect trend direction and strength from the EMA20/50/200 stack.

    Direction comes from the last ``window`` closes' change compared with
    a volatility-scaled threshold (2x stdev of returns). Strength is the
    change magnitude plus bonuses for EMA alignment and price position.
    """
    if len(candles) < window:
        return TrendResult()

    closes = np.array([c.close for c in candles], dtype=np.float64)
    price = float(closes[-1])
    ema20 = round(ema(closes, 20), 2)
    ema50 = round(ema(closes, 50), 2)
    ema200 = round(ema(closes, 200), 2)

    above20, above50, above200 = price > ema20, price > ema50, price > ema200

    if ema20 > ema50 > ema200:
        alignment = EmaAlignment.BULLISH
    elif ema20 < ema50 < ema200:
        alignment = EmaAlignment.BEARISH
    else:
        alignment = EmaAlignment.MIXED

    recent = closes[-window:]
    if recent[0] == 0:
        return TrendResult(ema20=ema20, ema50=ema50, ema200=ema200)
    change = (recent[-1] - recent[0]) / recent[0]
    returns = np.diff(recent) / recent[:-1]
    threshold = 2 * float(returns.std())

    if change > threshold:
        direction = TrendDirection.UP
    elif change < -threshold:
        direction = TrendDirection.DOWN
    else:
        direction = TrendDirection.SIDEWAYS

    strength = 0
    if direction != TrendDirection.SIDEWAYS:
        strength = min(100, round(abs(change) * 500))
        if (direction == TrendDirection.UP and alignment == EmaAlignment.BULLISH) or (
            direction == TrendDirection.DOWN and alignment == EmaAlignment.BEARISH
        ):
            strength = min(100, strength + 20)
        if (direction == TrendDirection.UP and above20 and above50 and above200) or (
            direction == TrendDirection.DOWN and not (above20 or above50 or above200)
        ):
            strength = min(100, strength + 15)

    return TrendResult(
        direction=direction,
        strength=strength,
        ema20=ema20,
        ema50=ema50,
        ema200=ema200,
        above_ema20=above20,
        above_ema50=above50,
        above_ema200=above200,
        alignment=alignment,
    )


# =============================================================================
# Volume
# =============================================================================

def analyze_volume(candles: Sequence[Candle], lookback: int = 20) -> VolumeResult:
    """Compare the latest volume with the trailing baseline."""
    if len(candles) < 2:
        return VolumeResult()

    volumes = np.array([c.volume for c in candles[-lookback:]], dtype=np.float64)
    current = float(volumes[-1])
    baseline = float(volumes[:-1].mean())
    ratio = current / baseline if baseline > 0 else 1.0

    recent = volumes[-5:]
    older = volumes[-10:-5]
    recent_avg = float(recent.mean())
    older_avg = float(older.mean()) if len(older) else recent_avg
    if recent_avg > older_avg * 1.2:
        trend = VolumeTrend.INCREASING
    elif recent_avg < older_avg * 0.8:
        trend = VolumeTrend.DECREASING
    else:
        trend = VolumeTrend.STABLE

    price_up = candles[-1].close > candles[-2].close
    volume_up = ratio > 1

    if volume_up:
        side = "bullish" if price_up else "bearish"
        if ratio > 1.5:
            confirmation = VolumeConfirmation.STRONG
            description = f"Strong {side} confirmation - volume {ratio:.1f}x average"
        else:
            confirmation = VolumeConfirmation.MODERATE
            description = f"Moderate {side} confirmation - volume slightly elevated"
    elif price_up:
        confirmation = VolumeConfirmation.DIVERGENCE
        description = "Bearish divergence - price up but volume declining"
    else:
        confirmation = VolumeConfirmation.WEAK
        description = "Weak signal - low volume decline"

    return VolumeResult(
        avg_volume=baseline,
        current_volume=current,
        volume_ratio=ratio,
        trend=trend,
        confirmation=confirmation,
        description=description,
    )


_CONFIRMATION_SCORE = {
    VolumeConfirmation.STRONG: 15,
    VolumeConfirmation.MODERATE: 8,
    VolumeConfirmation.WEAK: 2,
    VolumeConfirmation.DIVERGENCE: -10,
}


def volume_score(volume: VolumeResult, long: bool) -> int:
    """Confidence adjustment in [-20, 20] for a LONG (or SHORT) candidate."""
    score = _CONFIRMATION_SCORE[volume.confirmation]
    if volume.volume_ratio > 2:
        score += 5
    elif volume.volume_ratio < 0.5:
        score -= 5

    if volume.trend == VolumeTrend.INCREASING and long:
        score += 3
    elif volume.trend == VolumeTrend.DECREASING and not long:
        score += 3

    return max(-20, min(20, score))
