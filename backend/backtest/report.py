"""Report formatting for backtest results.

Outputs results to console (formatted tables) and JSON files.
"""

from __future__ import annotations

import json
import math
from datetime import datetime
from enum import Enum

from backtest.runner import RunOutcome
from backtest.stats import BacktestResult


class ReportEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


def _json_number(value: float, digits: int = 2) -> float | str:
    """Round for JSON; infinities become the strings "inf"/"-inf"."""
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return round(value, digits)


def _format_pf(value: float) -> str:
    return "inf" if math.isinf(value) else f"{value:.2f}"


def _format_date(value: datetime | None) -> str:
    return f"{value:%Y-%m-%d}" if value else "-"


class ReportFormatter:
    """Format backtest results for display and export."""

    @staticmethod
    def print_console(result: BacktestResult) -> None:
        """Print formatted report to console."""
        m = result.metrics
        a = result.analysis

        print("\n" + "=" * 70)
        print(f"  BACKTEST RESULTS: {result.strategy}")
        print("=" * 70)
        print(f"  Asset:     {result.asset} ({result.timeframe})")
        print(f"  Period:    {_format_date(result.start_date)} → {_format_date(result.end_date)}")
        print(f"  Candles:   {result.candles:,}")

        # Performance
        print("\n" + "-" * 70)
        print("  PERFORMANCE")
        print("-" * 70)
        print(f"  Initial capital:  {result.initial_capital:,.2f}")
        print(f"  Final capital:    {result.final_capital:,.2f}")
        print(f"  Total return:     {m.total_return:+,.2f} ({m.total_return_percent:+.2f}%)")
        print(f"  Max drawdown:     {m.max_drawdown:,.2f} ({m.max_drawdown_percent:.2f}%)")
        print(f"  Sharpe ratio:     {m.sharpe_ratio:.2f}")
        print(f"  Profit factor:    {_format_pf(m.profit_factor)}")

        # Trades
        print("\n" + "-" * 70)
        print("  TRADES")
        print("-" * 70)
        print(f"  Total trades:     {m.total_trades}")
        print(f"  Wins / Losses:    {m.winning_trades} / {m.losing_trades} "
              f"({m.breakeven_trades} breakeven)")
        print(f"  Win rate:         {m.win_rate:.1f}%")
        print(f"  Avg win / loss:   {m.avg_win:,.2f} / {m.avg_loss:,.2f}")
        print(f"  Largest win:      {m.largest_win:,.2f}")
        print(f"  Largest loss:     {m.largest_loss:,.2f}")
        print(f"  Avg duration:     {m.avg_trade_duration_hours:.1f}h")
        print(f"  Avg R:R planned:  {m.avg_risk_reward:.2f}")
        print(f"  Avg R realized:   {m.avg_realized_risk_reward:+.2f}")

        # RSI buckets
        if a.best_rsi_levels:
            print("\n" + "-" * 70)
            print("  BY ENTRY RSI")
            print("-" * 70)
            print(f"  {'Level':<20} {'Trades':>7} {'Win%':>8} {'Avg ret':>9}")
            for b in a.best_rsi_levels:
                print(f"  {b.level:<20} {b.trades:>7} {b.win_rate:>7.1f}% {b.avg_return:>+8.2f}%")

        if a.with_trend.trades or a.against_trend.trades:
            print("\n" + "-" * 70)
            print("  TREND ALIGNMENT")
            print("-" * 70)
            print(f"  With trend:     {a.with_trend.trades:>5} trades  {a.with_trend.win_rate:>6.1f}%")
            print(f"  Against trend:  {a.against_trend.trades:>5} trades  {a.against_trend.win_rate:>6.1f}%")

        # Last trades
        if result.trades:
            print("\n" + "-" * 70)
            print("  TRADES (last 10)")
            print("-" * 70)
            print(f"  {'Entry':<17} {'Side':<6} {'Entry px':>12} {'Exit px':>12} "
                  f"{'PnL%':>8} {'Reason':<14}")
            for t in result.trades[-10:]:
                reason = t.exit_reason.value if t.exit_reason else "-"
                exit_price = f"{t.exit_price:>12.4f}" if t.exit_price is not None else f"{'-':>12}"
                print(f"  {t.entry_time:%Y-%m-%d %H:%M} {t.side.value:<6} "
                      f"{t.entry_price:>12.4f} {exit_price} {t.pnl_percent:>+7.2f}% {reason:<14}")

        if a.recommendations:
            print("\n" + "-" * 70)
            print("  RECOMMENDATIONS")
            print("-" * 70)
            for rec in a.recommendations:
                print(f"  - {rec}")

        print("\n" + "=" * 70)

    @staticmethod
    def print_summary(outcomes: list[RunOutcome]) -> None:
        """Print one line per run, failures included."""
        print("\n" + "=" * 70)
        print("  SUMMARY")
        print("=" * 70)
        print(f"  {'Asset':<10} {'Strategy':<24} {'Trades':>6} {'Win%':>7} "
              f"{'Return':>9} {'PF':>6}")
        for o in outcomes:
            if o.result is None:
                print(f"  {o.config.asset:<10} {o.config.strategy:<24} FAILED: {o.error}")
                continue
            m = o.result.metrics
            print(f"  {o.result.asset:<10} {o.result.strategy:<24} {m.total_trades:>6} "
                  f"{m.win_rate:>6.1f}% {m.total_return_percent:>+8.2f}% "
                  f"{_format_pf(m.profit_factor):>6}")
        print("=" * 70)

    @staticmethod
    def to_dict(result: BacktestResult) -> dict:
        """Convert results to JSON-serializable dict."""
        m = result.metrics
        a = result.analysis
        return {
            "metadata": {
                "asset": result.asset,
                "strategy": result.strategy,
                "timeframe": result.timeframe,
                "start_date": result.start_date.isoformat() if result.start_date else None,
                "end_date": result.end_date.isoformat() if result.end_date else None,
                "candles": result.candles,
                "initial_capital": result.initial_capital,
                "final_capital": round(result.final_capital, 2),
            },
            "metrics": {
                "total_trades": m.total_trades,
                "winning_trades": m.winning_trades,
                "losing_trades": m.losing_trades,
                "breakeven_trades": m.breakeven_trades,
                "win_rate": round(m.win_rate, 2),
                "avg_win": round(m.avg_win, 4),
                "avg_loss": round(m.avg_loss, 4),
                "largest_win": round(m.largest_win, 4),
                "largest_loss": round(m.largest_loss, 4),
                "profit_factor": _json_number(m.profit_factor),
                "total_return": round(m.total_return, 2),
                "total_return_percent": round(m.total_return_percent, 2),
                "sharpe_ratio": round(m.sharpe_ratio, 4),
                "max_drawdown": round(m.max_drawdown, 2),
                "max_drawdown_percent": round(m.max_drawdown_percent, 2),
                "avg_trade_duration_hours": round(m.avg_trade_duration_hours, 2),
                "avg_risk_reward": round(m.avg_risk_reward, 2),
                "avg_realized_risk_reward": round(m.avg_realized_risk_reward, 2),
            },
            "analysis": {
                "best_rsi_levels": [
                    {
                        "level": b.level,
                        "trades": b.trades,
                        "win_rate": round(b.win_rate, 2),
                        "avg_return": round(b.avg_return, 4),
                    }
                    for b in a.best_rsi_levels
                ],
                "with_trend": {"trades": a.with_trend.trades, "win_rate": round(a.with_trend.win_rate, 2)},
                "against_trend": {
                    "trades": a.against_trend.trades,
                    "win_rate": round(a.against_trend.win_rate, 2),
                },
                "recommendations": a.recommendations,
            },
            "trades": [t.model_dump(mode="json") for t in result.trades],
            "equity_curve": [
                {
                    "timestamp": p.timestamp.isoformat(),
                    "equity": round(p.equity, 2),
                    "drawdown": round(p.drawdown, 2),
                    "drawdown_percent": round(p.drawdown_percent, 4),
                }
                for p in result.equity_curve
            ],
        }

    @staticmethod
    def save_json(outcomes: list[RunOutcome], filepath: str) -> None:
        """Save every run (results and failures) to a JSON file."""
        data = {
            "runs": [
                ReportFormatter.to_dict(o.result)
                if o.result is not None
                else {
                    "metadata": {
                        "asset": o.config.asset,
                        "strategy": o.config.strategy,
                        "timeframe": o.config.timeframe,
                    },
                    "error": o.error,
                }
                for o in outcomes
            ]
        }
        with open(filepath, "w") as f:
            json.dump(data, f, indent=2, cls=ReportEncoder)
        print(f"\nResults saved to {filepath}")
