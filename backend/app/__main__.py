"""CLI entry point for a one-shot signal scan.

Usage:
    python -m app
    python -m app --watchlist my_watchlist.yaml --fast 1h --slow 4h
    python -m app --track
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import timedelta
from pathlib import Path

# Add backend to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.learning import ConfidenceLearner
from core.signal_generator import SignalGenerator

from app.clients.market_data import MarketDataClient
from app.config import Settings, get_settings
from app.services.outcome_checker import OutcomeChecker
from app.services.position_tracker import FailureTracker, PositionTracker
from app.services.signal_scanner import SignalScanner
from app.watchlist import load_watchlist


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Scan the watchlist for trading signals")
    parser.add_argument("--watchlist", type=str, default=None, help="Path to watchlist.yaml")
    parser.add_argument("--fast", type=str, default=None, help="Fast timeframe (default: SIGNALS_FAST_TIMEFRAME)")
    parser.add_argument("--slow", type=str, default=None, help="Slow timeframe (default: SIGNALS_SLOW_TIMEFRAME)")
    parser.add_argument("--track", action="store_true", help="Run one position check cycle after the scan")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    return parser.parse_args(argv)


def build_tracker(client: MarketDataClient, settings: Settings) -> PositionTracker:
    failures = FailureTracker(
        threshold=settings.failure_threshold,
        cooldown=timedelta(minutes=settings.failure_cooldown_minutes),
    )
    return PositionTracker(
        client,
        validity=timedelta(hours=settings.signal_validity_hours),
        require_fill=settings.require_fill,
        check_delay=settings.check_delay_seconds,
        failure_tracker=failures,
    )


async def main() -> None:
    args = parse_args()

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    settings = get_settings()
    watchlist = load_watchlist(Path(args.watchlist or settings.watchlist_path))
    client = MarketDataClient(
        base_url=settings.market_data_url,
        api_key=settings.market_data_api_key,
        quote_asset=settings.quote_asset,
        calls_per_minute=settings.calls_per_minute,
        timeout=settings.request_timeout,
    )
    learner = ConfidenceLearner()
    generator = SignalGenerator(
        fast_timeframe=args.fast or settings.fast_timeframe,
        slow_timeframe=args.slow or settings.slow_timeframe,
        learner=learner,
    )
    tracker = build_tracker(client, settings)
    checker = OutcomeChecker(client, learner=learner, delay=settings.outcome_check_delay_seconds)
    scanner = SignalScanner(
        client,
        generator,
        watchlist,
        tracker=tracker,
        outcome_checker=checker,
        candle_limit=settings.candle_limit,
    )

    try:
        signals = await scanner.scan()
        cycle = await tracker.run_check_cycle() if args.track and signals else None
    finally:
        await client.close()

    if not signals:
        print("\nNo signals.")
        return

    print(f"\n{'Asset':<8} {'Action':<6} {'Conf':>4} {'Entry':>12} {'Stop':>12} "
          f"{'TP1':>12} {'TP3':>12} {'TF':<4} Rule")
    print("-" * 96)
    for s in signals:
        print(f"{s.asset:<8} {s.action.value:<6} {s.confidence:>4} {s.entry:>12g} "
              f"{s.stop_loss:>12g} {s.targets[0]:>12g} {s.targets[-1]:>12g} "
              f"{s.timeframe:<4} {s.reasoning.rule}")

    if cycle is not None:
        print(f"\nPositions: {cycle.checked} checked, {cycle.resolved} resolved, "
              f"{cycle.skipped} skipped, {cycle.errors} errors")
        for signal in signals:
            status = tracker.get_status(signal.id)
            if status is not None:
                print(f"  {signal.asset:<8} {status['status']:<12} pnl={status['current_pnl']}")
    print()


if __name__ == "__main__":
    asyncio.run(main())
