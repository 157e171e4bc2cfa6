"""Signal generator: multi-timeframe analysis to a trading signal.

This module is pure business logic with no I/O dependencies. Candles
are supplied by the caller, and learned confidence multipliers come from
an optional ConfidenceLearner owned by the caller.
"""

import logging
import math
from dataclasses import dataclass
from typing import Sequence

from core.indicators import analyze, technical_sentiment, volume_score
from core.learning import ConfidenceLearner, indicator_key, token_key
from core.models import (
    Action,
    Candle,
    IndicatorSnapshot,
    RiskLevel,
    Signal,
    SignalConfig,
    SignalReasoning,
    is_non_directional,
)
from core.models.snapshot import MacdTrend, RsiSignal, TrendDirection
from core.strategy.rules import RULES, Rule, RuleContext, evaluate

logger = logging.getLogger(__name__)


@dataclass
class SignalInput:
    """Everything needed to generate one asset's signal."""

    asset: str
    candles: dict[str, Sequence[Candle]]  # timeframe -> ascending candles
    asset_class: str | None = None
    fundamental_context: str = ""
    sentiment_context: str = ""


@dataclass(frozen=True)
class Levels:
    entry: float
    targets: list[float]
    stop_loss: float


def round_price(value: float) -> float:
    """Round to 4 decimals, keeping 4 significant digits for sub-unit prices."""
    if value <= 0 or not math.isfinite(value):
        return value
    decimals = max(4, 3 - math.floor(math.log10(value)))
    return round(value, decimals)


class SignalGenerator:
    """Generate LONG/SHORT signals from a fast and a slow timeframe.

    ``fast_timeframe`` drives the rule cascade and levels; ``slow_timeframe``
    cross-checks it. Entry is the latest close of the fast timeframe.
    """

    def __init__(
        self,
        fast_timeframe: str = "4h",
        slow_timeframe: str = "1d",
        config: SignalConfig | None = None,
        learner: ConfidenceLearner | None = None,
        rules: tuple[Rule, ...] = RULES,
    ):
        self.fast_timeframe = fast_timeframe
        self.slow_timeframe = slow_timeframe
        self.config = config or SignalConfig()
        self.learner = learner
        self.rules = rules

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate(
        self,
        asset: str,
        candles_by_timeframe: dict[str, Sequence[Candle]],
        asset_class: str | None = None,
        fundamental_context: str = "",
        sentiment_context: str = "",
    ) -> Signal | None:
        """Generate a signal, or None for HOLD and rejected candidates."""
        if is_non_directional(asset, asset_class):
            logger.warning(f"Rejected {asset}: non-directional asset, no signal generated")
            return None

        fast_candles = list(candles_by_timeframe.get(self.fast_timeframe, ()))
        slow_candles = list(candles_by_timeframe.get(self.slow_timeframe, ()))
        if not fast_candles:
            logger.warning(f"Rejected {asset}: no {self.fast_timeframe} candles")
            return None

        price = fast_candles[-1].close
        if not math.isfinite(price) or price <= 0:
            logger.warning(f"Rejected {asset}: invalid entry price {price!r}")
            return None

        cfg = self.config
        fast = analyze(fast_candles, cfg.indicators)
        slow = analyze(slow_candles, cfg.indicators)
        sentiment = (technical_sentiment(fast) + technical_sentiment(slow)) / 2

        match = evaluate(RuleContext(fast, slow, sentiment, cfg), self.rules)
        if match.action == Action.HOLD:
            logger.debug(f"{asset}: HOLD ({match.rule}, sentiment {sentiment:+.1f})")
            return None

        levels = self.calculate_levels(match.action, price, fast)
        indicators = {
            "rsi_fast": fast.rsi.value,
            "rsi_slow": slow.rsi.value,
            "trend_strength": fast.trend.strength,
            "macd_histogram": fast.macd.histogram,
        }
        confidence = self.calculate_confidence(
            fast, slow, sentiment, match.action, asset, list(indicators)
        )

        signal = Signal(
            created_at=fast_candles[-1].timestamp,
            asset=asset,
            action=match.action,
            entry=levels.entry,
            targets=levels.targets,
            stop_loss=levels.stop_loss,
            confidence=confidence,
            timeframe=self.choose_timeframe(slow),
            risk_level=self.risk_level(confidence, fast),
            reasoning=self.build_reasoning(
                fast, slow, match.rule, fundamental_context, sentiment_context
            ),
            indicators=indicators,
            snapshot=fast,
        )
        logger.info(
            f"{asset}: {signal.action.value} @ {signal.entry} "
            f"(confidence {signal.confidence}, rule {match.rule})"
        )
        return signal

    def generate_batch(self, inputs: Sequence[SignalInput]) -> list[Signal]:
        """Generate signals for many assets, highest confidence first.

        A failure for one asset is logged and does not affect the others.
        """
        signals = []
        for item in inputs:
            try:
                signal = self.generate(
                    item.asset,
                    item.candles,
                    asset_class=item.asset_class,
                    fundamental_context=item.fundamental_context,
                    sentiment_context=item.sentiment_context,
                )
            except Exception:
                logger.error(f"Error generating signal for {item.asset}", exc_info=True)
                continue
            if signal is not None:
                signals.append(signal)

        signals.sort(key=lambda s: s.confidence, reverse=True)
        return signals

    # ------------------------------------------------------------------
    # Levels
    # ------------------------------------------------------------------

    def calculate_levels(self, action: Action, price: float, snapshot: IndicatorSnapshot) -> Levels:
        """Entry, stop and three targets at 1.5R/2.5R/4R.

        Each target is pulled in to the first resistance (LONG) or support
        (SHORT) or Fibonacci extension lying between the previous target
        and the raw multiple.
        """
        cfg = self.config
        fallback = cfg.fallback_level_percent / 100
        support = snapshot.levels.nearest_support or price * (1 - fallback)
        resistance = snapshot.levels.nearest_resistance or price * (1 + fallback)
        max_stop = cfg.max_stop_percent / 100
        fib = snapshot.fibonacci

        if action == Action.LONG:
            stop = min(support * cfg.support_buffer, price * (1 - max_stop))
            risk = price - stop
            obstacles = list(snapshot.levels.resistance)
            if fib is not None:
                obstacles += fib.extensions_up.values()
            obstacles = sorted(lvl for lvl in obstacles if lvl > price)
        else:
            stop = max(resistance * (2 - cfg.support_buffer), price * (1 + max_stop))
            risk = stop - price
            obstacles = list(snapshot.levels.support)
            if fib is not None:
                obstacles += fib.extensions_down.values()
            obstacles = sorted((lvl for lvl in obstacles if 0 < lvl < price), reverse=True)

        sign = action.sign
        entry = round_price(price)
        targets: list[float] = []
        previous = price
        for mult in cfg.target_multiples:
            raw = price + sign * risk * mult
            if raw <= 0:
                # Short targets never cross zero
                raw = previous / 2
            target = raw
            for level in obstacles:
                if sign * (level - previous) > 0 and sign * (raw - level) > 0:
                    target = level
                    break
            rounded = round_price(target)
            # Strictly beyond the entry and the previous target after rounding
            if sign * (rounded - (targets[-1] if targets else entry)) <= 0:
                rounded = round_price(raw)
            targets.append(rounded)
            previous = target

        return Levels(entry=entry, targets=targets, stop_loss=round_price(stop))

    # ------------------------------------------------------------------
    # Confidence and metadata
    # ------------------------------------------------------------------

    def calculate_confidence(
        self,
        fast: IndicatorSnapshot,
        slow: IndicatorSnapshot,
        sentiment: float,
        action: Action,
        asset: str,
        indicator_names: Sequence[str] = (),
    ) -> int:
        """Base 50 plus indicator-agreement bonuses, clamped to [25, 95]."""
        cfg = self.config
        bonus = 0.0
        rsi_value = fast.rsi.value
        extreme = rsi_value <= cfg.extreme_oversold or rsi_value >= cfg.extreme_overbought

        if extreme:
            bonus += 20
        elif rsi_value <= 25 or rsi_value >= 75:
            bonus += 15
        elif fast.rsi.signal != RsiSignal.NEUTRAL:
            bonus += 10

        if fast.rsi.signal != RsiSignal.NEUTRAL and fast.rsi.signal == slow.rsi.signal:
            bonus += 15
        if (fast.rsi.signal == RsiSignal.OVERSOLD and slow.rsi.value < 40) or (
            fast.rsi.signal == RsiSignal.OVERBOUGHT and slow.rsi.value > 60
        ):
            bonus += 5

        if fast.macd.trend == slow.macd.trend and fast.macd.trend != MacdTrend.NEUTRAL:
            bonus += 10
        if (
            fast.trend.direction == slow.trend.direction
            and fast.trend.direction != TrendDirection.SIDEWAYS
        ):
            bonus += 15
        if fast.macd.crossover is not None:
            bonus += 10
        bonus += abs(sentiment) * 0.1

        bonus *= self._learned_multiplier(action, asset, indicator_names)
        bonus += volume_score(fast.volume, action == Action.LONG) * cfg.volume_weight

        confidence = round(cfg.base_confidence + bonus)
        return int(min(cfg.max_confidence, max(cfg.min_confidence, confidence)))

    def _learned_multiplier(self, action: Action, asset: str, indicator_names: Sequence[str]) -> float:
        if self.learner is None:
            return 1.0
        multipliers = [self.learner.multiplier(indicator_key(n, action)) for n in indicator_names]
        indicator_mult = sum(multipliers) / len(multipliers) if multipliers else 1.0
        return indicator_mult * self.learner.multiplier(token_key(asset))

    @staticmethod
    def risk_level(confidence: int, snapshot: IndicatorSnapshot) -> RiskLevel:
        if confidence > 75 and snapshot.trend.strength > 60:
            return RiskLevel.LOW
        if confidence < 50 or snapshot.trend.direction == TrendDirection.SIDEWAYS:
            return RiskLevel.HIGH
        return RiskLevel.MEDIUM

    def choose_timeframe(self, slow: IndicatorSnapshot) -> str:
        if slow.trend.strength > self.config.slow_timeframe_strength:
            return self.slow_timeframe
        return self.fast_timeframe

    def build_reasoning(
        self,
        fast: IndicatorSnapshot,
        slow: IndicatorSnapshot,
        rule: str,
        fundamental_context: str = "",
        sentiment_context: str = "",
    ) -> SignalReasoning:
        cfg = self.config
        tf = self.fast_timeframe.upper()
        rsi_value = fast.rsi.value
        if rsi_value <= cfg.extreme_oversold:
            lead = f"EXTREME OVERSOLD: RSI({tf})={rsi_value} - high probability bounce zone. "
        elif rsi_value >= cfg.extreme_overbought:
            lead = f"EXTREME OVERBOUGHT: RSI({tf})={rsi_value} - high probability pullback zone. "
        elif fast.rsi.signal != RsiSignal.NEUTRAL:
            lead = f"{fast.rsi.signal.value}: RSI({tf})={rsi_value} - potential reversal zone. "
        else:
            lead = ""

        if fast.rsi.signal != RsiSignal.NEUTRAL and fast.rsi.signal == slow.rsi.signal:
            lead += (
                f"Multi-timeframe RSI alignment "
                f"({self.slow_timeframe.upper()} RSI={slow.rsi.value}). "
            )

        technical = (
            f"{lead}{fast.summary}. "
            f"{self.slow_timeframe.upper()}: trend {slow.trend.direction.value.lower()}"
        )
        return SignalReasoning(
            technical=technical,
            fundamental=fundamental_context or "No significant fundamental factors",
            sentiment=sentiment_context or "Neutral market sentiment",
            rule=rule,
        )
