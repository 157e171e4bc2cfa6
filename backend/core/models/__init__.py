"""Domain models shared by live tracking and backtesting."""

from core.models.candle import Candle
from core.models.config import IndicatorConfig, SignalConfig, is_non_directional
from core.models.learning import LearningWeight, WeightCategory
from core.models.signal import (
    Action,
    Outcome,
    OutcomeEvent,
    PositionStatus,
    RiskLevel,
    Signal,
    SignalReasoning,
    TrackedPosition,
)
from core.models.snapshot import IndicatorSnapshot
from core.models.trade import BacktestTrade, EquityPoint, ExitReason, TradeStatus

__all__ = [
    "Action",
    "BacktestTrade",
    "Candle",
    "EquityPoint",
    "ExitReason",
    "IndicatorConfig",
    "IndicatorSnapshot",
    "LearningWeight",
    "Outcome",
    "OutcomeEvent",
    "PositionStatus",
    "RiskLevel",
    "Signal",
    "SignalConfig",
    "SignalReasoning",
    "TrackedPosition",
    "TradeStatus",
    "WeightCategory",
    "is_non_directional",
]
