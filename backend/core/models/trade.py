"""Backtest trade and equity-curve models."""

from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict

from core.models.signal import Action


class TradeStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED_WIN = "CLOSED_WIN"
    CLOSED_LOSS = "CLOSED_LOSS"
    CLOSED_BREAKEVEN = "CLOSED_BREAKEVEN"


class ExitReason(str, Enum):
    STOP_LOSS = "STOP_LOSS"
    TAKE_PROFIT = "TAKE_PROFIT"
    SIGNAL = "SIGNAL"  # Opposing or explicit exit signal
    END_OF_PERIOD = "END_OF_PERIOD"


BREAKEVEN_BAND = 0.1  # |pnl%| below this is break-even


class BacktestTrade(BaseModel):
    """A simulated trade. Closed trades are append-only history."""

    entry_time: datetime
    entry_price: float
    side: Action
    size: float
    stop_loss: float
    take_profit: float
    exit_time: datetime | None = None
    exit_price: float | None = None
    status: TradeStatus = TradeStatus.OPEN
    pnl: float = 0.0
    pnl_percent: float = 0.0
    exit_reason: ExitReason | None = None
    # Indicator context at entry, used by strategy analysis
    entry_rsi: float | None = None
    entry_trend: str | None = None

    @property
    def is_open(self) -> bool:
        return self.status == TradeStatus.OPEN

    @property
    def planned_risk_reward(self) -> float:
        """Planned reward/risk ratio from the entry levels."""
        risk = abs(self.entry_price - self.stop_loss)
        if risk == 0:
            return 0.0
        return abs(self.take_profit - self.entry_price) / risk

    @property
    def realized_risk_reward(self) -> float:
        """Realized move in units of planned risk (signed)."""
        risk = abs(self.entry_price - self.stop_loss)
        if risk == 0 or self.exit_price is None:
            return 0.0
        return (self.exit_price - self.entry_price) * self.side.sign / risk

    @property
    def duration_hours(self) -> float:
        if self.exit_time is None:
            return 0.0
        return (self.exit_time - self.entry_time).total_seconds() / 3600

    def close(self, price: float, at: datetime, pnl_percent: float, reason: ExitReason) -> None:
        """Close the trade at ``price``. ``pnl_percent`` is already side-adjusted."""
        self.exit_time = at
        self.exit_price = price
        self.pnl_percent = round(pnl_percent, 4)
        self.pnl = round(self.size * pnl_percent / 100, 4)
        self.exit_reason = reason
        if abs(pnl_percent) < BREAKEVEN_BAND:
            self.status = TradeStatus.CLOSED_BREAKEVEN
        elif pnl_percent > 0:
            self.status = TradeStatus.CLOSED_WIN
        else:
            self.status = TradeStatus.CLOSED_LOSS


class EquityPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    equity: float
    drawdown: float
    drawdown_percent: float
