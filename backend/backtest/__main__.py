"""CLI entry point for the backtesting system.

Completely independent of app/. Candles are read from CSV files under
the configured data directory (``BACKTEST_DATA_DIR``).

Usage:
    python -m backtest --assets BTC --strategies rsi_oversold_long
    python -m backtest --assets BTC,ETH --strategies all --timeframe 1d
    python -m backtest --list-strategies
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime, timezone

# Add backend to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.strategy import create_strategy, list_strategies

from backtest.config import get_backtest_settings
from backtest.report import ReportFormatter
from backtest.runner import BacktestRunner, build_run_configs
from backtest.storage.candle_source import CsvCandleSource

DEFAULT_ASSETS = "BTC,ETH,SOL"
DEFAULT_STRATEGIES = "rsi_oversold_long"


def parse_date(date_str: str) -> datetime:
    """Parse YYYY-MM-DD to timezone-aware datetime."""
    try:
        dt = datetime.strptime(date_str, "%Y-%m-%d")
        return dt.replace(tzinfo=timezone.utc)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid date format: {date_str} (expected YYYY-MM-DD)"
        )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Backtest indicator strategies on historical candles",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m backtest --assets BTC --strategies rsi_oversold_long
  python -m backtest --assets BTC,ETH --strategies all --start 2024-01-01 --end 2024-12-31
  python -m backtest --strategies macd_crossover --timeframe 1d -o results.json
  python -m backtest --list-strategies
        """,
    )

    parser.add_argument(
        "--list-strategies",
        action="store_true",
        help="List registered strategies and exit",
    )
    parser.add_argument(
        "--assets",
        type=str,
        default=DEFAULT_ASSETS,
        help=f"Comma-separated asset symbols (default: {DEFAULT_ASSETS})",
    )
    parser.add_argument(
        "--strategies",
        type=str,
        default=DEFAULT_STRATEGIES,
        help=f"Comma-separated strategy names, or 'all' (default: {DEFAULT_STRATEGIES})",
    )
    parser.add_argument(
        "--timeframe",
        type=str,
        default=None,
        help="Candle timeframe (default: BACKTEST_TIMEFRAME or 4h)",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory with <ASSET>_<timeframe>.csv files (default: BACKTEST_DATA_DIR)",
    )
    parser.add_argument(
        "--start",
        type=parse_date,
        default=None,
        help="Start date (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--end",
        type=parse_date,
        default=None,
        help="End date (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--capital",
        type=float,
        default=None,
        help="Initial capital (default: BACKTEST_INITIAL_CAPITAL or 10000)",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output file path for JSON results",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging",
    )
    return parser.parse_args(argv)


def cmd_list_strategies() -> None:
    """Print all registered strategies."""
    print(f"\n{'Name':<24} {'SL%':>5} {'TP%':>5}  Description")
    print("-" * 90)
    for name in list_strategies():
        s = create_strategy(name)
        print(f"{name:<24} {s.stop_loss_percent:>5g} {s.take_profit_percent:>5g}  {s.description}")
    print()


async def cmd_run_backtest(args: argparse.Namespace) -> int:
    """Run backtests; returns the process exit code."""
    settings = get_backtest_settings()

    assets = [a.strip().upper() for a in args.assets.split(",") if a.strip()]
    if args.strategies.strip().lower() == "all":
        strategies = list_strategies()
    else:
        strategies = [s.strip() for s in args.strategies.split(",") if s.strip()]

    unknown = [s for s in strategies if s not in list_strategies()]
    if unknown:
        print(f"Error: unknown strategies: {', '.join(unknown)}")
        print(f"Available: {', '.join(list_strategies())}")
        return 1

    timeframe = args.timeframe or settings.timeframe
    # End date should include the full day
    end_date = args.end.replace(hour=23, minute=59, second=59) if args.end else None

    print(f"\nBacktest: {', '.join(assets)} × {', '.join(strategies)}")
    print(f"Timeframe: {timeframe}")

    configs = build_run_configs(
        assets=assets,
        strategies=strategies,
        timeframe=timeframe,
        start_date=args.start,
        end_date=end_date,
        initial_capital=args.capital or settings.initial_capital,
        position_size_percent=settings.position_size_percent,
    )

    runner = BacktestRunner(
        candle_source=CsvCandleSource(args.data_dir or settings.data_dir),
        warmup=settings.warmup_candles,
    )

    print("\nRunning backtests...")
    outcomes = await runner.run_all(configs)

    for outcome in outcomes:
        if outcome.result is not None:
            ReportFormatter.print_console(outcome.result)
    if len(outcomes) > 1:
        ReportFormatter.print_summary(outcomes)

    if args.output:
        ReportFormatter.save_json(outcomes, args.output)

    return 0 if any(not o.failed for o in outcomes) else 1


async def main() -> int:
    args = parse_args()

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    if args.list_strategies:
        cmd_list_strategies()
        return 0

    return await cmd_run_backtest(args)


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
