"""Confidence learning from resolved signal outcomes.

Keeps a streaming win/loss aggregate per indicator+direction
(``"<indicator>_<ACTION>"``) and per asset (``"token_<SYMBOL>"``).
Adjusted weights are advisory multipliers for later confidence scoring;
they never touch signals that were already emitted.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from core.models.learning import LearningWeight, WeightCategory
from core.models.signal import Action, Outcome

logger = logging.getLogger(__name__)

MIN_SAMPLES = 5
TOKEN_MIN_SAMPLES = 3
NOISE_THRESHOLD = 0.05


@dataclass(frozen=True)
class PatternAnalysis:
    pattern: str
    win_rate: float  # percent
    sample_size: int
    avg_pnl: float
    confidence: str  # high / medium / low
    recommendation: str


@dataclass(frozen=True)
class WeightAdjustment:
    target: str
    old_weight: float
    new_weight: float


@dataclass(frozen=True)
class LearningInsight:
    category: str
    insight: str
    actionable: bool
    adjustment: WeightAdjustment | None = None


@dataclass
class LearningCycleResult:
    insights: list[LearningInsight] = field(default_factory=list)
    adjustments: list[WeightAdjustment] = field(default_factory=list)
    indicator_patterns: list[PatternAnalysis] = field(default_factory=list)
    token_patterns: list[PatternAnalysis] = field(default_factory=list)


def indicator_key(indicator: str, action: Action | str) -> str:
    return f"{indicator}_{Action(action).value}"


def token_key(asset: str) -> str:
    return f"token_{asset.upper()}"


class ConfidenceLearner:
    """Owns the learning weights. Single writer per key."""

    def __init__(self, weights: Iterable[LearningWeight] = ()):
        self._weights: dict[str, LearningWeight] = {w.key: w for w in weights}

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_outcome(
        self,
        signal_indicators: Mapping[str, float] | Iterable[str],
        action: Action | str,
        asset: str,
        outcome: Outcome,
        pnl: float,
    ) -> None:
        """Fold one resolved outcome into the aggregates. NEUTRAL is ignored."""
        if outcome == Outcome.NEUTRAL:
            return

        won = outcome == Outcome.WIN
        for indicator in signal_indicators:
            key = indicator_key(indicator, action)
            self._get_or_create(key, WeightCategory.INDICATOR).record(won, pnl)
        self._get_or_create(token_key(asset), WeightCategory.TOKEN).record(won, pnl)

        logger.debug(f"Recorded {outcome.value} for {asset} {Action(action).value} ({pnl:+.2f}%)")

    def _get_or_create(self, key: str, category: WeightCategory) -> LearningWeight:
        weight = self._weights.get(key)
        if weight is None:
            weight = LearningWeight(key=key, category=category)
            self._weights[key] = weight
        return weight

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, key: str) -> LearningWeight | None:
        return self._weights.get(key)

    def weights(self) -> list[LearningWeight]:
        return list(self._weights.values())

    def multiplier(self, key: str) -> float:
        """Adjusted weight for ``key``, 1.0 when unknown."""
        weight = self._weights.get(key)
        return weight.adjusted_weight if weight is not None else 1.0

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze_indicator_patterns(self) -> list[PatternAnalysis]:
        """Indicator patterns with at least 5 samples, best win rate first."""
        patterns = []
        for weight in self._weights.values():
            if weight.category != WeightCategory.INDICATOR or weight.samples < MIN_SAMPLES:
                continue
            win_rate = weight.win_rate * 100
            if win_rate >= 60:
                recommendation = "Increase weight - strong performer"
            elif win_rate <= 40:
                recommendation = "Decrease weight - underperforming"
            else:
                recommendation = "Maintain current weight"
            patterns.append(PatternAnalysis(
                pattern=weight.key,
                win_rate=win_rate,
                sample_size=weight.samples,
                avg_pnl=weight.avg_pnl,
                confidence=_sample_confidence(weight.samples, high=20, medium=10),
                recommendation=recommendation,
            ))
        return sorted(patterns, key=lambda p: p.win_rate, reverse=True)

    def analyze_token_patterns(self) -> list[PatternAnalysis]:
        """Per-asset patterns with at least 3 samples, best win rate first."""
        patterns = []
        for weight in self._weights.values():
            if weight.category != WeightCategory.TOKEN or weight.samples < TOKEN_MIN_SAMPLES:
                continue
            win_rate = weight.win_rate * 100
            token = weight.key.removeprefix("token_")
            if win_rate >= 65:
                recommendation = f"{token} shows strong predictability - prioritize"
            elif win_rate <= 35:
                recommendation = f"{token} is hard to predict - reduce exposure"
            else:
                recommendation = f"{token} is average - standard weighting"
            patterns.append(PatternAnalysis(
                pattern=token,
                win_rate=win_rate,
                sample_size=weight.samples,
                avg_pnl=weight.avg_pnl,
                confidence=_sample_confidence(weight.samples, high=15, medium=7),
                recommendation=recommendation,
            ))
        return sorted(patterns, key=lambda p: p.win_rate, reverse=True)

    def generate_insights(self) -> list[LearningInsight]:
        """Best/worst indicator and asset observations."""
        insights: list[LearningInsight] = []

        indicators = self.analyze_indicator_patterns()
        if indicators:
            best = indicators[0]
            if best.win_rate >= 55:
                insights.append(LearningInsight(
                    category="indicator",
                    insight=(
                        f"{best.pattern} is your best performing indicator "
                        f"({best.win_rate:.1f}% win rate over {best.sample_size} trades)"
                    ),
                    actionable=True,
                    adjustment=WeightAdjustment(
                        target=best.pattern,
                        old_weight=self.multiplier(best.pattern),
                        new_weight=min(1.5, 1 + (best.win_rate - 50) / 100),
                    ),
                ))
            worst = indicators[-1]
            if worst is not best and worst.win_rate <= 45:
                insights.append(LearningInsight(
                    category="indicator",
                    insight=(
                        f"{worst.pattern} is underperforming ({worst.win_rate:.1f}% win rate)"
                        " - consider reducing its influence"
                    ),
                    actionable=True,
                    adjustment=WeightAdjustment(
                        target=worst.pattern,
                        old_weight=self.multiplier(worst.pattern),
                        new_weight=max(0.5, 1 - (50 - worst.win_rate) / 100),
                    ),
                ))

        tokens = self.analyze_token_patterns()
        if tokens:
            best = tokens[0]
            if best.win_rate >= 60:
                insights.append(LearningInsight(
                    category="token",
                    insight=(
                        f"{best.pattern} is highly predictable ({best.win_rate:.1f}% win rate)"
                        " - consider increasing coverage"
                    ),
                    actionable=False,
                ))
            worst = tokens[-1]
            if worst is not best and worst.win_rate <= 40:
                insights.append(LearningInsight(
                    category="token",
                    insight=(
                        f"{worst.pattern} signals are unreliable ({worst.win_rate:.1f}% win rate)"
                        " - consider excluding"
                    ),
                    actionable=False,
                ))

        return insights

    # ------------------------------------------------------------------
    # Adjustment
    # ------------------------------------------------------------------

    def apply_learnings(self) -> list[WeightAdjustment]:
        """Move each sufficiently sampled weight to 0.5 + win rate.

        Changes of 0.05 or less are treated as noise and skipped.
        """
        adjustments = []
        for weight in self._weights.values():
            if weight.samples < MIN_SAMPLES:
                continue
            new_weight = 0.5 + weight.win_rate
            if abs(new_weight - weight.adjusted_weight) > NOISE_THRESHOLD:
                adjustments.append(WeightAdjustment(weight.key, weight.adjusted_weight, new_weight))
                weight.adjusted_weight = new_weight

        logger.info(f"Made {len(adjustments)} weight adjustments")
        return adjustments

    def run_cycle(self) -> LearningCycleResult:
        """Analyze patterns, generate insights, then apply adjustments."""
        result = LearningCycleResult(
            indicator_patterns=self.analyze_indicator_patterns(),
            token_patterns=self.analyze_token_patterns(),
            insights=self.generate_insights(),
        )
        result.adjustments = self.apply_learnings()
        return result


def _sample_confidence(samples: int, high: int, medium: int) -> str:
    if samples >= high:
        return "high"
    if samples >= medium:
        return "medium"
    return "low"
