"""Statistics calculator for backtest results.

Computes trade metrics (win rate, profit factor, Sharpe, drawdown,
durations, risk/reward) and a strategy analysis (RSI buckets, trend
alignment, recommendations).

Profit factor convention:
  no wins and no losses  -> 0
  wins but no losses     -> inf
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime

import numpy as np

from core.models.signal import Action
from core.models.trade import BacktestTrade, EquityPoint, TradeStatus

from backtest.engine import EngineRun

logger = logging.getLogger(__name__)

TRADING_DAYS = 252


@dataclass
class BacktestMetrics:
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    breakeven_trades: int = 0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0  # loss figures are positive magnitudes
    largest_win: float = 0.0
    largest_loss: float = 0.0
    profit_factor: float = 0.0
    total_return: float = 0.0
    total_return_percent: float = 0.0
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_percent: float = 0.0
    avg_trade_duration_hours: float = 0.0
    avg_risk_reward: float = 0.0  # planned
    avg_realized_risk_reward: float = 0.0


@dataclass
class RsiBucketStats:
    level: str
    trades: int
    win_rate: float
    avg_return: float


@dataclass
class AlignmentStats:
    trades: int = 0
    win_rate: float = 0.0


@dataclass
class StrategyAnalysis:
    best_rsi_levels: list[RsiBucketStats] = field(default_factory=list)
    with_trend: AlignmentStats = field(default_factory=AlignmentStats)
    against_trend: AlignmentStats = field(default_factory=AlignmentStats)
    recommendations: list[str] = field(default_factory=list)


@dataclass
class BacktestResult:
    """Complete result of one (asset, strategy) run."""

    asset: str
    strategy: str
    timeframe: str
    start_date: datetime | None
    end_date: datetime | None
    initial_capital: float
    final_capital: float
    candles: int = 0
    trades: list[BacktestTrade] = field(default_factory=list)
    equity_curve: list[EquityPoint] = field(default_factory=list)
    metrics: BacktestMetrics = field(default_factory=BacktestMetrics)
    analysis: StrategyAnalysis = field(default_factory=StrategyAnalysis)


class StatisticsCalculator:
    """Calculate backtest statistics from an engine run."""

    def calculate(
        self,
        run: EngineRun,
        asset: str,
        strategy: str,
        timeframe: str,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> BacktestResult:
        result = BacktestResult(
            asset=asset,
            strategy=strategy,
            timeframe=timeframe,
            start_date=start_date,
            end_date=end_date,
            initial_capital=run.initial_capital,
            final_capital=run.final_capital,
            candles=run.candles_processed,
            trades=run.trades,
            equity_curve=run.equity_curve,
        )
        self._calc_trades(result)
        self._calc_returns(result)
        self._calc_drawdown(result)
        self._calc_durations(result)
        self._calc_analysis(result)
        return result

    def _calc_trades(self, result: BacktestResult) -> None:
        m = result.metrics
        trades = result.trades
        wins = [t.pnl for t in trades if t.status == TradeStatus.CLOSED_WIN]
        losses = [t.pnl for t in trades if t.status == TradeStatus.CLOSED_LOSS]

        m.total_trades = len(trades)
        m.winning_trades = len(wins)
        m.losing_trades = len(losses)
        m.breakeven_trades = sum(1 for t in trades if t.status == TradeStatus.CLOSED_BREAKEVEN)
        m.win_rate = len(wins) / len(trades) * 100 if trades else 0.0

        gross_win = sum(wins)
        gross_loss = abs(sum(losses))
        m.avg_win = gross_win / len(wins) if wins else 0.0
        m.avg_loss = gross_loss / len(losses) if losses else 0.0
        m.largest_win = max(wins, default=0.0)
        m.largest_loss = abs(min(losses, default=0.0))
        m.profit_factor = profit_factor(gross_win, gross_loss)

    def _calc_returns(self, result: BacktestResult) -> None:
        m = result.metrics
        m.total_return = result.final_capital - result.initial_capital
        if result.initial_capital > 0:
            m.total_return_percent = m.total_return / result.initial_capital * 100
        m.sharpe_ratio = sharpe_ratio([t.pnl_percent for t in result.trades])

    def _calc_drawdown(self, result: BacktestResult) -> None:
        m = result.metrics
        m.max_drawdown = max((p.drawdown for p in result.equity_curve), default=0.0)
        m.max_drawdown_percent = max(
            (p.drawdown_percent for p in result.equity_curve), default=0.0
        )

    def _calc_durations(self, result: BacktestResult) -> None:
        m = result.metrics
        closed = [t for t in result.trades if t.exit_time is not None]
        if closed:
            m.avg_trade_duration_hours = sum(t.duration_hours for t in closed) / len(closed)
            m.avg_risk_reward = sum(t.planned_risk_reward for t in closed) / len(closed)
            m.avg_realized_risk_reward = (
                sum(t.realized_risk_reward for t in closed) / len(closed)
            )

    def _calc_analysis(self, result: BacktestResult) -> None:
        analysis = result.analysis
        buckets: dict[str, list[BacktestTrade]] = {}
        for trade in result.trades:
            if trade.entry_rsi is None:
                continue
            if trade.entry_rsi < 30:
                level = "Oversold (<30)"
            elif trade.entry_rsi > 70:
                level = "Overbought (>70)"
            else:
                level = "Neutral (30-70)"
            buckets.setdefault(level, []).append(trade)

        analysis.best_rsi_levels = sorted(
            (
                RsiBucketStats(
                    level=level,
                    trades=len(trades),
                    win_rate=_win_rate(trades),
                    avg_return=sum(t.pnl_percent for t in trades) / len(trades),
                )
                for level, trades in buckets.items()
            ),
            key=lambda b: b.win_rate,
            reverse=True,
        )

        with_trend = [t for t in result.trades if _trend_relation(t) == 1]
        against_trend = [t for t in result.trades if _trend_relation(t) == -1]
        analysis.with_trend = AlignmentStats(len(with_trend), _win_rate(with_trend))
        analysis.against_trend = AlignmentStats(len(against_trend), _win_rate(against_trend))

        m = result.metrics
        recs = analysis.recommendations
        if m.total_trades == 0:
            recs.append("No trades taken - entry criteria never met")
            return
        if m.win_rate < 50:
            recs.append("Consider tightening entry criteria or adjusting stop-loss levels")
        if m.profit_factor < 1.5:
            recs.append("Profit factor is low - review risk/reward ratio")
        if analysis.with_trend.win_rate > analysis.against_trend.win_rate + 10:
            recs.append("Trading with the trend shows significantly better results")
        if analysis.best_rsi_levels and analysis.best_rsi_levels[0].win_rate > 60:
            recs.append(f"{analysis.best_rsi_levels[0].level} RSI levels show best performance")


def profit_factor(gross_win: float, gross_loss: float) -> float:
    """Gross wins / gross losses; 0 with neither, inf with wins only."""
    if gross_loss > 0:
        return gross_win / gross_loss
    if gross_win > 0:
        return math.inf
    return 0.0


def sharpe_ratio(returns: list[float]) -> float:
    """Simplified annualized Sharpe from per-trade returns (population stdev)."""
    if not returns:
        return 0.0
    arr = np.asarray(returns, dtype=np.float64)
    std = float(arr.std())
    if std == 0:
        return 0.0
    return float(arr.mean() / std * math.sqrt(TRADING_DAYS))


def _win_rate(trades: list[BacktestTrade]) -> float:
    if not trades:
        return 0.0
    return sum(1 for t in trades if t.status == TradeStatus.CLOSED_WIN) / len(trades) * 100


def _trend_relation(trade: BacktestTrade) -> int:
    """+1 with the entry trend, -1 against it, 0 sideways/unknown."""
    if trade.entry_trend == "UP":
        return 1 if trade.side == Action.LONG else -1
    if trade.entry_trend == "DOWN":
        return 1 if trade.side == Action.SHORT else -1
    return 0
