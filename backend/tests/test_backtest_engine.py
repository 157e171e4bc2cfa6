"""Tests for the bar-by-bar backtest engine."""

from datetime import datetime, timedelta, timezone

import pytest

from core.models.candle import Candle
from core.models.signal import Action
from core.models.trade import ExitReason, TradeStatus
from core.strategy import create_strategy, list_strategies

from backtest.engine import BacktestEngine, snapshot_at
from backtest.stats import StatisticsCalculator

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_candles(closes):
    return [
        Candle(
            timestamp=T0 + timedelta(hours=4 * i),
            open=close,
            high=close,
            low=close,
            close=close,
            volume=1000.0,
        )
        for i, close in enumerate(closes)
    ]


def path(*legs, start=100.0):
    """Price path from (steps, pct_change) legs."""
    closes = [start]
    for steps, change in legs:
        for _ in range(steps):
            closes.append(closes[-1] * (1 + change))
    return closes


class TestFlatMarket:
    """A zero-volatility series never opens a trade."""

    @pytest.mark.parametrize("name", list_strategies())
    def test_no_trades(self, name):
        engine = BacktestEngine(create_strategy(name))
        run = engine.run(make_candles([100.0] * 100))
        result = StatisticsCalculator().calculate(run, "BTC", name, "4h")

        assert run.trades == []
        assert run.final_capital == run.initial_capital
        assert result.metrics.profit_factor == 0
        assert result.metrics.win_rate == 0
        assert result.metrics.sharpe_ratio == 0


class TestEngine:
    """Tests for BacktestEngine.run."""

    def test_take_profit(self):
        """Enter on the oversold decline, exit at the 10% target on the rally."""
        candles = make_candles(path((19, -0.01), (10, 0.03)))
        run = BacktestEngine(create_strategy("rsi_oversold_long")).run(candles)

        assert len(run.trades) == 1
        trade = run.trades[0]
        assert trade.side == Action.LONG
        assert trade.entry_time == candles[14].timestamp
        assert trade.exit_time == candles[24].timestamp
        assert trade.exit_reason == ExitReason.TAKE_PROFIT
        assert trade.status == TradeStatus.CLOSED_WIN
        assert trade.entry_rsi == 0
        assert trade.size == pytest.approx(1000)
        assert run.final_capital == pytest.approx(10_000 + trade.pnl)

    def test_stop_loss_and_forced_close(self):
        candles = make_candles(path((39, -0.01)))
        run = BacktestEngine(create_strategy("rsi_oversold_long")).run(candles)

        reasons = [t.exit_reason for t in run.trades]
        assert reasons[:-1] == [ExitReason.STOP_LOSS] * (len(reasons) - 1)
        assert reasons[-1] == ExitReason.END_OF_PERIOD
        assert run.trades[-1].exit_time == candles[-1].timestamp
        assert all(t.status == TradeStatus.CLOSED_LOSS for t in run.trades[:-1])

    def test_one_position_at_a_time(self):
        candles = make_candles(path((39, -0.01)))
        run = BacktestEngine(create_strategy("rsi_oversold_long")).run(candles)

        for prev, nxt in zip(run.trades, run.trades[1:]):
            assert nxt.entry_time >= prev.exit_time

    def test_equity_curve(self):
        candles = make_candles(path((19, -0.01), (10, 0.03)))
        run = BacktestEngine(create_strategy("rsi_oversold_long")).run(candles)

        assert len(run.equity_curve) == len(candles) - 14
        assert run.candles_processed == len(candles) - 14
        assert all(p.drawdown >= 0 for p in run.equity_curve)
        assert max(p.drawdown for p in run.equity_curve) > 0

    def test_warmup_floor(self):
        engine = BacktestEngine(create_strategy("rsi_oversold_long"), warmup=3)
        assert engine.warmup == 14

    def test_short_input(self):
        run = BacktestEngine(create_strategy("rsi_oversold_long")).run(make_candles([100.0] * 5))

        assert run.trades == []
        assert run.equity_curve == []
        assert run.candles_processed == 0

    def test_rerun_is_independent(self):
        candles = make_candles(path((39, -0.01)))
        engine = BacktestEngine(create_strategy("rsi_oversold_long"))

        first = engine.run(candles)
        second = engine.run(candles)

        assert len(first.trades) == len(second.trades)
        assert first.final_capital == second.final_capital


class TestSnapshotAt:
    """Tests for snapshot_at."""

    def test_no_lookahead(self):
        """Changing candles after the index never changes the snapshot."""
        base = path((30, -0.01), (20, 0.02))
        altered = base[:31] + [c * 3 for c in base[31:]]

        for index in (20, 30):
            assert snapshot_at(make_candles(base), index) == snapshot_at(make_candles(altered), index)

    def test_uses_prefix(self):
        candles = make_candles(path((40, 0.01)))
        snapshot = snapshot_at(candles, 20)

        assert len(snapshot.rsi.values) == 21 - 14
