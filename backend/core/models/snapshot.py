"""Indicator result models.

All results are derived from a candle sequence and never mutated.
Every result type has a neutral default meaning "no opinion", returned
when the input is too short for the indicator.
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


class RsiSignal(str, Enum):
    OVERSOLD = "OVERSOLD"
    NEUTRAL = "NEUTRAL"
    OVERBOUGHT = "OVERBOUGHT"


class MacdTrend(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class MacdCrossover(str, Enum):
    BULLISH_CROSS = "BULLISH_CROSS"
    BEARISH_CROSS = "BEARISH_CROSS"


class TrendDirection(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    SIDEWAYS = "SIDEWAYS"


class EmaAlignment(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    MIXED = "MIXED"


class VolumeConfirmation(str, Enum):
    STRONG = "STRONG"
    MODERATE = "MODERATE"
    WEAK = "WEAK"
    DIVERGENCE = "DIVERGENCE"


class VolumeTrend(str, Enum):
    INCREASING = "INCREASING"
    DECREASING = "DECREASING"
    STABLE = "STABLE"


class Divergence(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"


class PricePosition(str, Enum):
    NEAR_SUPPORT = "NEAR_SUPPORT"
    NEAR_RESISTANCE = "NEAR_RESISTANCE"
    MID_RANGE = "MID_RANGE"


class RsiResult(BaseModel):
    """RSI value, zone and full Wilder series.

    ``has_data`` distinguishes the insufficient-data default (value 50)
    from a computed RSI, which may legitimately be 0.
    """

    model_config = ConfigDict(frozen=True)

    value: float = 50.0
    signal: RsiSignal = RsiSignal.NEUTRAL
    values: list[float] = Field(default_factory=list)
    has_data: bool = False


class MacdResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    macd: float = 0.0
    signal: float = 0.0
    histogram: float = 0.0
    trend: MacdTrend = MacdTrend.NEUTRAL
    crossover: MacdCrossover | None = None
    macd_values: list[float] = Field(default_factory=list)
    signal_values: list[float] = Field(default_factory=list)
    histogram_values: list[float] = Field(default_factory=list)


class TrendResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    direction: TrendDirection = TrendDirection.SIDEWAYS
    strength: int = 0  # 0-100
    ema20: float = 0.0
    ema50: float = 0.0
    ema200: float = 0.0
    above_ema20: bool = False
    above_ema50: bool = False
    above_ema200: bool = False
    alignment: EmaAlignment = EmaAlignment.MIXED

    @property
    def emas_above(self) -> int:
        return sum((self.above_ema20, self.above_ema50, self.above_ema200))


class VolumeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    avg_volume: float = 0.0
    current_volume: float = 0.0
    volume_ratio: float = 1.0
    trend: VolumeTrend = VolumeTrend.STABLE
    confirmation: VolumeConfirmation = VolumeConfirmation.WEAK
    description: str = "Insufficient data"


class FibonacciLevels(BaseModel):
    """Retracement and extension levels from the recent swing."""

    model_config = ConfigDict(frozen=True)

    swing_high: float
    swing_low: float
    retracements: dict[str, float]
    extensions_up: dict[str, float]
    extensions_down: dict[str, float]
    price: float
    nearest_level: float
    nearest_name: str
    distance_percent: float

    @property
    def swing_range(self) -> float:
        return self.swing_high - self.swing_low


class SupportResistance(BaseModel):
    model_config = ConfigDict(frozen=True)

    support: list[float] = Field(default_factory=list)
    resistance: list[float] = Field(default_factory=list)
    nearest_support: float | None = None
    nearest_resistance: float | None = None
    price: float = 0.0
    position: PricePosition = PricePosition.MID_RANGE


class IndicatorSnapshot(BaseModel):
    """Everything the signal generator needs for one timeframe."""

    model_config = ConfigDict(frozen=True)

    rsi: RsiResult = Field(default_factory=RsiResult)
    rsi_divergence: Divergence | None = None
    macd: MacdResult = Field(default_factory=MacdResult)
    trend: TrendResult = Field(default_factory=TrendResult)
    levels: SupportResistance = Field(default_factory=SupportResistance)
    volume: VolumeResult = Field(default_factory=VolumeResult)
    fibonacci: FibonacciLevels | None = None
    summary: str = ""

    @property
    def support(self) -> list[float]:
        return self.levels.support

    @property
    def resistance(self) -> list[float]:
        return self.levels.resistance

    @property
    def volume_confirmation(self) -> VolumeConfirmation:
        return self.volume.confirmation
