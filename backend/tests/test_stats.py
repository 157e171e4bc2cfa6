"""Tests for StatisticsCalculator backtest statistics."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from core.models.signal import Action
from core.models.trade import BacktestTrade, EquityPoint, ExitReason

from backtest.engine import EngineRun
from backtest.stats import StatisticsCalculator, profit_factor, sharpe_ratio


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_trade(
    pnl_percent: float,
    hours: int = 8,
    entry_rsi: float | None = 25.0,
    entry_trend: str = "UP",
    side: Action = Action.LONG,
) -> BacktestTrade:
    """Build a closed 1000-unit trade with the given side-adjusted PnL%."""
    trade = BacktestTrade(
        entry_time=T0,
        entry_price=100.0,
        side=side,
        size=1000.0,
        stop_loss=95.0 if side == Action.LONG else 105.0,
        take_profit=110.0 if side == Action.LONG else 90.0,
        entry_rsi=entry_rsi,
        entry_trend=entry_trend,
    )
    exit_price = 100.0 + side.sign * pnl_percent
    reason = ExitReason.TAKE_PROFIT if pnl_percent > 0 else ExitReason.STOP_LOSS
    trade.close(exit_price, T0 + timedelta(hours=hours), pnl_percent, reason)
    return trade


def make_run(trades: list[BacktestTrade], equity: list[float] | None = None) -> EngineRun:
    final = 10_000.0 + sum(t.pnl for t in trades)
    curve = []
    peak = 10_000.0
    for i, value in enumerate(equity or []):
        peak = max(peak, value)
        curve.append(
            EquityPoint(
                timestamp=T0 + timedelta(hours=4 * i),
                equity=value,
                drawdown=peak - value,
                drawdown_percent=(peak - value) / peak * 100,
            )
        )
    return EngineRun(
        trades=trades,
        equity_curve=curve,
        initial_capital=10_000.0,
        final_capital=final,
        candles_processed=len(curve),
    )


def _calc(run: EngineRun):
    return StatisticsCalculator().calculate(run, "BTC", "RSI Oversold Long", "4h")


# ---------------------------------------------------------------------------
# Module functions
# ---------------------------------------------------------------------------

class TestProfitFactor:
    def test_no_trades_is_zero(self):
        assert profit_factor(0, 0) == 0

    def test_wins_only_is_inf(self):
        assert math.isinf(profit_factor(100, 0))

    def test_ratio(self):
        assert profit_factor(150, 50) == pytest.approx(3)

    def test_losses_only(self):
        assert profit_factor(0, 50) == 0


class TestSharpe:
    def test_empty(self):
        assert sharpe_ratio([]) == 0

    def test_constant_returns(self):
        assert sharpe_ratio([2.0, 2.0, 2.0]) == 0

    def test_sign(self):
        assert sharpe_ratio([10.0, 5.0, -5.0]) > 0
        assert sharpe_ratio([-10.0, -5.0, 5.0]) < 0


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------

class TestStatisticsCalculator:
    """Tests for StatisticsCalculator.calculate."""

    def test_no_trades(self):
        result = _calc(make_run([]))
        m = result.metrics

        assert m.total_trades == 0
        assert m.win_rate == 0
        assert m.profit_factor == 0
        assert m.total_return == 0
        assert result.analysis.recommendations == ["No trades taken - entry criteria never met"]

    def test_trade_metrics(self):
        trades = [make_trade(10.0), make_trade(5.0), make_trade(-5.0, entry_rsi=50, entry_trend="DOWN")]
        m = _calc(make_run(trades)).metrics

        assert m.total_trades == 3
        assert m.winning_trades == 2
        assert m.losing_trades == 1
        assert m.win_rate == pytest.approx(200 / 3)
        assert m.avg_win == pytest.approx(75)
        assert m.avg_loss == pytest.approx(50)
        assert m.largest_win == pytest.approx(100)
        assert m.largest_loss == pytest.approx(50)
        assert m.profit_factor == pytest.approx(3)
        assert m.total_return == pytest.approx(100)
        assert m.total_return_percent == pytest.approx(1)
        assert m.avg_trade_duration_hours == pytest.approx(8)
        assert m.avg_risk_reward == pytest.approx(2)

    def test_breakeven_not_counted_as_win_or_loss(self):
        m = _calc(make_run([make_trade(10.0), make_trade(0.05)])).metrics

        assert m.breakeven_trades == 1
        assert m.winning_trades == 1
        assert m.losing_trades == 0
        assert math.isinf(m.profit_factor)

    def test_drawdown_from_equity_curve(self):
        m = _calc(make_run([], equity=[10_000, 10_500, 9_450, 10_200])).metrics

        assert m.max_drawdown == pytest.approx(1_050)
        assert m.max_drawdown_percent == pytest.approx(10)

    def test_rsi_buckets_and_trend_alignment(self):
        trades = [
            make_trade(10.0, entry_rsi=25, entry_trend="UP"),
            make_trade(5.0, entry_rsi=28, entry_trend="UP"),
            make_trade(-5.0, entry_rsi=50, entry_trend="DOWN"),
            make_trade(-5.0, entry_rsi=None, entry_trend="SIDEWAYS"),
        ]
        a = _calc(make_run(trades)).analysis

        assert [b.level for b in a.best_rsi_levels] == ["Oversold (<30)", "Neutral (30-70)"]
        assert a.best_rsi_levels[0].trades == 2
        assert a.best_rsi_levels[0].win_rate == 100
        assert (a.with_trend.trades, a.with_trend.win_rate) == (2, 100)
        assert (a.against_trend.trades, a.against_trend.win_rate) == (1, 0)
        assert "Trading with the trend shows significantly better results" in a.recommendations
        assert "Oversold (<30) RSI levels show best performance" in a.recommendations

    def test_short_trend_relation(self):
        trades = [make_trade(5.0, side=Action.SHORT, entry_trend="DOWN")]
        a = _calc(make_run(trades)).analysis

        assert a.with_trend.trades == 1
        assert a.against_trend.trades == 0

    def test_metadata(self):
        start = T0
        end = T0 + timedelta(days=30)
        result = StatisticsCalculator().calculate(
            make_run([make_trade(10.0)]), "ETH", "MACD Crossover", "1d", start, end
        )

        assert (result.asset, result.strategy, result.timeframe) == ("ETH", "MACD Crossover", "1d")
        assert (result.start_date, result.end_date) == (start, end)
        assert result.final_capital == pytest.approx(10_100)
