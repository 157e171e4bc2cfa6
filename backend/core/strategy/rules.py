"""Prioritized rule cascade for the live signal generator.

Rules are evaluated in order on the faster timeframe, cross-checked
against the slower one; the first matching rule decides the action.
Each directional rule comes as a LONG/SHORT pair sharing one name.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from core.models.config import SignalConfig
from core.models.signal import Action
from core.models.snapshot import (
    IndicatorSnapshot,
    MacdCrossover,
    MacdTrend,
    RsiSignal,
    TrendDirection,
)


@dataclass(frozen=True)
class RuleContext:
    """Inputs every rule predicate sees."""

    fast: IndicatorSnapshot
    slow: IndicatorSnapshot
    sentiment: float
    config: SignalConfig


Predicate = Callable[[RuleContext], bool]


@dataclass(frozen=True)
class Rule:
    name: str
    predicate: Predicate
    action: Action

    def matches(self, ctx: RuleContext) -> bool:
        return self.predicate(ctx)


@dataclass(frozen=True)
class RuleMatch:
    rule: str
    action: Action


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

def _extreme_oversold(ctx: RuleContext) -> bool:
    return ctx.fast.rsi.value <= ctx.config.extreme_oversold


def _extreme_overbought(ctx: RuleContext) -> bool:
    return ctx.fast.rsi.value >= ctx.config.extreme_overbought


def _oversold_confirmed(ctx: RuleContext) -> bool:
    f = ctx.fast
    return f.rsi.signal == RsiSignal.OVERSOLD and (
        ctx.sentiment > 0
        or f.macd.histogram > 0
        or f.macd.crossover == MacdCrossover.BULLISH_CROSS
        or ctx.slow.rsi.value < 40
    )


def _overbought_confirmed(ctx: RuleContext) -> bool:
    f = ctx.fast
    return f.rsi.signal == RsiSignal.OVERBOUGHT and (
        ctx.sentiment < 0
        or f.macd.histogram < 0
        or f.macd.crossover == MacdCrossover.BEARISH_CROSS
        or ctx.slow.rsi.value > 60
    )


def _high_conviction_long(ctx: RuleContext) -> bool:
    return (
        ctx.sentiment > ctx.config.high_conviction_sentiment
        and ctx.fast.rsi.signal == RsiSignal.OVERSOLD
        and ctx.fast.trend.direction != TrendDirection.DOWN
    )


def _high_conviction_short(ctx: RuleContext) -> bool:
    return (
        ctx.sentiment < -ctx.config.high_conviction_sentiment
        and ctx.fast.rsi.signal == RsiSignal.OVERBOUGHT
        and ctx.fast.trend.direction != TrendDirection.UP
    )


def _trend_following_long(ctx: RuleContext) -> bool:
    t = ctx.fast.trend
    return (
        t.direction == TrendDirection.UP
        and t.strength > ctx.config.strong_trend_strength
        and ctx.fast.macd.trend == MacdTrend.BULLISH
        and ctx.sentiment > 10
    )


def _trend_following_short(ctx: RuleContext) -> bool:
    t = ctx.fast.trend
    return (
        t.direction == TrendDirection.DOWN
        and t.strength > ctx.config.strong_trend_strength
        and ctx.fast.macd.trend == MacdTrend.BEARISH
        and ctx.sentiment < -10
    )


def _macd_cross_long(ctx: RuleContext) -> bool:
    f = ctx.fast
    return (
        f.macd.crossover == MacdCrossover.BULLISH_CROSS
        and f.rsi.value < 60
        and f.trend.direction != TrendDirection.DOWN
    )


def _macd_cross_short(ctx: RuleContext) -> bool:
    f = ctx.fast
    return (
        f.macd.crossover == MacdCrossover.BEARISH_CROSS
        and f.rsi.value > 40
        and f.trend.direction != TrendDirection.UP
    )


def _mean_reversion_long(ctx: RuleContext) -> bool:
    f = ctx.fast
    return (
        f.rsi.value < 35
        and ctx.slow.rsi.value < 45
        and (f.macd.crossover == MacdCrossover.BULLISH_CROSS or f.macd.histogram > 0)
    )


def _mean_reversion_short(ctx: RuleContext) -> bool:
    f = ctx.fast
    return (
        f.rsi.value > 65
        and ctx.slow.rsi.value > 55
        and (f.macd.crossover == MacdCrossover.BEARISH_CROSS or f.macd.histogram < 0)
    )


def _momentum_long(ctx: RuleContext) -> bool:
    f = ctx.fast
    return (
        ctx.sentiment > 30
        and f.trend.direction == TrendDirection.UP
        and 50 < f.rsi.value < 70
    )


def _momentum_short(ctx: RuleContext) -> bool:
    f = ctx.fast
    return (
        ctx.sentiment < -30
        and f.trend.direction == TrendDirection.DOWN
        and 30 < f.rsi.value < 50
    )


def _no_edge(ctx: RuleContext) -> bool:
    return abs(ctx.sentiment) < ctx.config.no_edge_sentiment


def _always(ctx: RuleContext) -> bool:
    return True


RULES: tuple[Rule, ...] = (
    Rule("extreme_rsi", _extreme_oversold, Action.LONG),
    Rule("extreme_rsi", _extreme_overbought, Action.SHORT),
    Rule("rsi_confirmed", _oversold_confirmed, Action.LONG),
    Rule("rsi_confirmed", _overbought_confirmed, Action.SHORT),
    Rule("high_conviction", _high_conviction_long, Action.LONG),
    Rule("high_conviction", _high_conviction_short, Action.SHORT),
    Rule("trend_following", _trend_following_long, Action.LONG),
    Rule("trend_following", _trend_following_short, Action.SHORT),
    Rule("macd_crossover", _macd_cross_long, Action.LONG),
    Rule("macd_crossover", _macd_cross_short, Action.SHORT),
    Rule("mean_reversion", _mean_reversion_long, Action.LONG),
    Rule("mean_reversion", _mean_reversion_short, Action.SHORT),
    Rule("momentum", _momentum_long, Action.LONG),
    Rule("momentum", _momentum_short, Action.SHORT),
    Rule("no_edge", _no_edge, Action.HOLD),
    Rule("default", _always, Action.HOLD),
)


def evaluate(ctx: RuleContext, rules: tuple[Rule, ...] = RULES) -> RuleMatch:
    """Return the first matching rule's action (HOLD when nothing matches)."""
    for rule in rules:
        if rule.matches(ctx):
            return RuleMatch(rule=rule.name, action=rule.action)
    return RuleMatch(rule="default", action=Action.HOLD)
