"""Predefined backtest strategies built from typed indicator conditions.

A strategy scores entry rules: the weights of all rules whose condition
holds are summed, and the first matching rule picks the side. A
position opens only when the score reaches the entry threshold. Exit
conditions close an open position on the bar they become true.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from core.models.signal import Action
from core.models.snapshot import IndicatorSnapshot, MacdCrossover, TrendDirection
from core.strategy.registry import register_strategy

ENTRY_THRESHOLD = 50


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------

class Condition(Protocol):
    def evaluate(self, snapshot: IndicatorSnapshot) -> bool: ...


@dataclass(frozen=True)
class RsiBelow:
    threshold: float

    def evaluate(self, snapshot: IndicatorSnapshot) -> bool:
        return snapshot.rsi.has_data and snapshot.rsi.value < self.threshold

    def __str__(self) -> str:
        return f"RSI < {self.threshold:g}"


@dataclass(frozen=True)
class RsiAbove:
    threshold: float

    def evaluate(self, snapshot: IndicatorSnapshot) -> bool:
        return snapshot.rsi.has_data and snapshot.rsi.value > self.threshold

    def __str__(self) -> str:
        return f"RSI > {self.threshold:g}"


@dataclass(frozen=True)
class MacdCrossAbove:
    def evaluate(self, snapshot: IndicatorSnapshot) -> bool:
        return snapshot.macd.crossover == MacdCrossover.BULLISH_CROSS

    def __str__(self) -> str:
        return "MACD crosses above signal"


@dataclass(frozen=True)
class MacdCrossBelow:
    def evaluate(self, snapshot: IndicatorSnapshot) -> bool:
        return snapshot.macd.crossover == MacdCrossover.BEARISH_CROSS

    def __str__(self) -> str:
        return "MACD crosses below signal"


@dataclass(frozen=True)
class MacdAbove:
    """MACD line above its signal line."""

    def evaluate(self, snapshot: IndicatorSnapshot) -> bool:
        return bool(snapshot.macd.histogram_values) and snapshot.macd.macd > snapshot.macd.signal

    def __str__(self) -> str:
        return "MACD > signal"


@dataclass(frozen=True)
class MacdBelow:
    """MACD line below its signal line."""

    def evaluate(self, snapshot: IndicatorSnapshot) -> bool:
        return bool(snapshot.macd.histogram_values) and snapshot.macd.macd < snapshot.macd.signal

    def __str__(self) -> str:
        return "MACD < signal"


@dataclass(frozen=True)
class TrendIs:
    direction: TrendDirection

    def evaluate(self, snapshot: IndicatorSnapshot) -> bool:
        return snapshot.trend.direction == self.direction

    def __str__(self) -> str:
        return f"trend {self.direction.value}"


# ---------------------------------------------------------------------------
# Strategy definition
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EntryRule:
    condition: Condition
    action: Action
    weight: int


@dataclass(frozen=True)
class BacktestStrategy:
    name: str
    description: str
    entry_rules: tuple[EntryRule, ...]
    exit_conditions: tuple[Condition, ...] = ()
    stop_loss_percent: float = 5.0
    take_profit_percent: float = 10.0
    entry_threshold: int = ENTRY_THRESHOLD

    def score_entry(self, snapshot: IndicatorSnapshot) -> tuple[Action | None, int]:
        """Sum the weights of matching entry rules; the first match picks the side."""
        score = 0
        action = None
        for rule in self.entry_rules:
            if rule.condition.evaluate(snapshot):
                score += rule.weight
                if action is None:
                    action = rule.action
        return action, score

    def entry_action(self, snapshot: IndicatorSnapshot) -> Action | None:
        action, score = self.score_entry(snapshot)
        if action is not None and score >= self.entry_threshold:
            return action
        return None

    def should_exit(self, snapshot: IndicatorSnapshot) -> bool:
        return any(c.evaluate(snapshot) for c in self.exit_conditions)

    def levels(self, side: Action, entry: float) -> tuple[float, float]:
        """Fixed-percent (stop_loss, take_profit) for an entry."""
        sl = self.stop_loss_percent / 100
        tp = self.take_profit_percent / 100
        if side == Action.LONG:
            return entry * (1 - sl), entry * (1 + tp)
        return entry * (1 + sl), entry * (1 - tp)


# ---------------------------------------------------------------------------
# Predefined strategies
# ---------------------------------------------------------------------------

@register_strategy("rsi_oversold_long")
def rsi_oversold_long() -> BacktestStrategy:
    return BacktestStrategy(
        name="RSI Oversold Long",
        description="Buy when RSI drops below 30, sell when RSI exceeds 70 or hits stop-loss",
        entry_rules=(EntryRule(RsiBelow(30), Action.LONG, 60),),
        exit_conditions=(RsiAbove(70),),
        stop_loss_percent=5,
        take_profit_percent=10,
    )


@register_strategy("rsi_extreme_oversold")
def rsi_extreme_oversold() -> BacktestStrategy:
    return BacktestStrategy(
        name="RSI Extreme Oversold",
        description="Buy only when RSI drops below 25",
        entry_rules=(EntryRule(RsiBelow(25), Action.LONG, 70),),
        exit_conditions=(RsiAbove(65),),
        stop_loss_percent=7,
        take_profit_percent=15,
    )


@register_strategy("rsi_overbought_short")
def rsi_overbought_short() -> BacktestStrategy:
    return BacktestStrategy(
        name="RSI Overbought Short",
        description="Short when RSI exceeds 70, cover when RSI drops below 30",
        entry_rules=(EntryRule(RsiAbove(70), Action.SHORT, 60),),
        exit_conditions=(RsiBelow(30),),
        stop_loss_percent=5,
        take_profit_percent=10,
    )


@register_strategy("rsi_trend_aligned")
def rsi_trend_aligned() -> BacktestStrategy:
    return BacktestStrategy(
        name="RSI + Trend Alignment",
        description="Buy oversold RSI only when the trend is up",
        entry_rules=(
            EntryRule(RsiBelow(35), Action.LONG, 40),
            EntryRule(TrendIs(TrendDirection.UP), Action.LONG, 30),
        ),
        exit_conditions=(RsiAbove(65),),
        stop_loss_percent=4,
        take_profit_percent=12,
    )


@register_strategy("macd_crossover")
def macd_crossover() -> BacktestStrategy:
    return BacktestStrategy(
        name="MACD Crossover",
        description="Buy when MACD crosses above its signal line, sell on the bearish cross",
        entry_rules=(EntryRule(MacdCrossAbove(), Action.LONG, 60),),
        exit_conditions=(MacdCrossBelow(),),
        stop_loss_percent=6,
        take_profit_percent=12,
    )


@register_strategy("rsi_macd_combo")
def rsi_macd_combo() -> BacktestStrategy:
    return BacktestStrategy(
        name="RSI + MACD Combined",
        description="Buy when RSI is oversold and MACD is above its signal line",
        entry_rules=(
            EntryRule(RsiBelow(35), Action.LONG, 35),
            EntryRule(MacdAbove(), Action.LONG, 35),
        ),
        exit_conditions=(RsiAbove(70),),
        stop_loss_percent=5,
        take_profit_percent=15,
    )


@register_strategy("rsi_conservative")
def rsi_conservative() -> BacktestStrategy:
    return BacktestStrategy(
        name="Conservative RSI",
        description="Tight stops and modest targets for a higher win rate",
        entry_rules=(EntryRule(RsiBelow(30), Action.LONG, 60),),
        exit_conditions=(RsiAbove(55),),
        stop_loss_percent=3,
        take_profit_percent=6,
    )


@register_strategy("rsi_aggressive")
def rsi_aggressive() -> BacktestStrategy:
    return BacktestStrategy(
        name="Aggressive RSI",
        description="Wide stops and large targets for maximum profit potential",
        entry_rules=(EntryRule(RsiBelow(30), Action.LONG, 60),),
        exit_conditions=(RsiAbove(75),),
        stop_loss_percent=8,
        take_profit_percent=20,
    )
