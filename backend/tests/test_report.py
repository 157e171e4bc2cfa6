"""Tests for backtest report formatting."""

import json
import math
from datetime import datetime, timedelta, timezone

from core.models.signal import Action
from core.models.trade import BacktestTrade, ExitReason

from backtest.engine import EngineRun
from backtest.report import ReportFormatter
from backtest.runner import BacktestRunConfig, RunOutcome
from backtest.stats import StatisticsCalculator

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def winning_result():
    trade = BacktestTrade(
        entry_time=T0,
        entry_price=100.0,
        side=Action.LONG,
        size=1000.0,
        stop_loss=95.0,
        take_profit=110.0,
        entry_rsi=22.0,
        entry_trend="DOWN",
    )
    trade.close(110.0, T0 + timedelta(hours=12), 10.0, ExitReason.TAKE_PROFIT)
    run = EngineRun(
        trades=[trade],
        initial_capital=10_000.0,
        final_capital=10_100.0,
        candles_processed=50,
    )
    return StatisticsCalculator().calculate(run, "BTC", "RSI Oversold Long", "4h", T0, T0 + timedelta(days=10))


class TestToDict:
    """Tests for ReportFormatter.to_dict."""

    def test_infinite_profit_factor_serialized(self):
        result = winning_result()
        assert math.isinf(result.metrics.profit_factor)

        data = ReportFormatter.to_dict(result)

        assert data["metrics"]["profit_factor"] == "inf"
        json.dumps(data, allow_nan=False)

    def test_sections(self):
        data = ReportFormatter.to_dict(winning_result())

        assert set(data) == {"metadata", "metrics", "analysis", "trades", "equity_curve"}
        assert data["metadata"]["start_date"] == T0.isoformat()
        assert data["trades"][0]["side"] == "LONG"
        assert data["trades"][0]["exit_reason"] == "TAKE_PROFIT"
        assert data["analysis"]["against_trend"]["trades"] == 1


class TestSaveJson:
    """Tests for ReportFormatter.save_json."""

    def test_results_and_failures(self, tmp_path):
        outcomes = [
            RunOutcome(config=BacktestRunConfig(asset="BTC", strategy="rsi_oversold_long"),
                       result=winning_result()),
            RunOutcome(config=BacktestRunConfig(asset="ETH", strategy="rsi_oversold_long"),
                       error="No candle file"),
        ]
        path = tmp_path / "results.json"

        ReportFormatter.save_json(outcomes, str(path))
        data = json.loads(path.read_text())

        assert len(data["runs"]) == 2
        assert data["runs"][0]["metrics"]["total_trades"] == 1
        assert data["runs"][1] == {
            "metadata": {"asset": "ETH", "strategy": "rsi_oversold_long", "timeframe": "4h"},
            "error": "No candle file",
        }


class TestConsole:
    """Tests for console output."""

    def test_print_console(self, capsys):
        ReportFormatter.print_console(winning_result())
        out = capsys.readouterr().out

        assert "BACKTEST RESULTS: RSI Oversold Long" in out
        assert "Profit factor:    inf" in out
        assert "TAKE_PROFIT" in out

    def test_print_summary_shows_failures(self, capsys):
        outcomes = [
            RunOutcome(config=BacktestRunConfig(asset="BTC", strategy="rsi_oversold_long"),
                       result=winning_result()),
            RunOutcome(config=BacktestRunConfig(asset="ETH", strategy="macd_crossover"),
                       error="boom"),
        ]
        ReportFormatter.print_summary(outcomes)
        out = capsys.readouterr().out

        assert "FAILED: boom" in out
        assert "RSI Oversold Long" in out
