"""BacktestRunner: orchestrates backtest runs across assets and strategies.

Completely independent of app/. Uses:
- backtest/storage for candle access
- backtest/engine + backtest/stats for replay and metrics
- core/ for pure business logic

Runs execute sequentially; a failure loads or replays one run only and
never aborts the others.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from core.strategy import create_strategy

from backtest.engine import BacktestEngine
from backtest.stats import BacktestResult, StatisticsCalculator
from backtest.storage.candle_source import CandleSource, CandleSourceError

logger = logging.getLogger(__name__)


@dataclass
class BacktestRunConfig:
    """Configuration for one (asset, strategy) backtest run."""

    asset: str
    strategy: str
    timeframe: str = "4h"
    start_date: datetime | None = None
    end_date: datetime | None = None
    initial_capital: float = 10_000.0
    position_size_percent: float = 10.0
    strategy_overrides: dict[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return f"{self.asset}/{self.timeframe} {self.strategy}"


@dataclass
class RunOutcome:
    """Result of one run: either a BacktestResult or an error message."""

    config: BacktestRunConfig
    result: BacktestResult | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.result is None


def build_run_configs(
    assets: list[str],
    strategies: list[str],
    timeframe: str,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    initial_capital: float = 10_000.0,
    position_size_percent: float = 10.0,
) -> list[BacktestRunConfig]:
    """Cross product of assets × strategies."""
    return [
        BacktestRunConfig(
            asset=asset,
            strategy=strategy,
            timeframe=timeframe,
            start_date=start_date,
            end_date=end_date,
            initial_capital=initial_capital,
            position_size_percent=position_size_percent,
        )
        for asset in assets
        for strategy in strategies
    ]


class BacktestRunner:
    """Run backtests for several configs sequentially."""

    def __init__(self, candle_source: CandleSource, warmup: int | None = None):
        self._candle_source = candle_source
        self._warmup = warmup

    async def run(self, config: BacktestRunConfig) -> BacktestResult:
        """Execute a single run. Raises on candle or strategy errors."""
        strategy = create_strategy(config.strategy, **config.strategy_overrides)
        candles = await self._candle_source.get_candles(
            config.asset, config.timeframe, config.start_date, config.end_date
        )
        if not candles:
            raise CandleSourceError(f"[{config.asset}/{config.timeframe}] No candles in range")

        engine_kwargs: dict[str, Any] = {
            "initial_capital": config.initial_capital,
            "position_size_percent": config.position_size_percent,
        }
        if self._warmup is not None:
            engine_kwargs["warmup"] = self._warmup

        engine = BacktestEngine(strategy, **engine_kwargs)
        engine_run = engine.run(candles)

        return StatisticsCalculator().calculate(
            engine_run,
            asset=config.asset,
            strategy=strategy.name,
            timeframe=config.timeframe,
            start_date=config.start_date or candles[0].timestamp,
            end_date=config.end_date or candles[-1].timestamp,
        )

    async def run_all(self, configs: list[BacktestRunConfig]) -> list[RunOutcome]:
        """Execute every config, isolating failures per run."""
        start_time = time.time()
        outcomes: list[RunOutcome] = []

        logger.info(f"Starting {len(configs)} backtest run(s)")
        for config in configs:
            try:
                result = await self.run(config)
            except CandleSourceError as e:
                logger.error(f"Backtest failed: {config.label}: {e}")
                outcomes.append(RunOutcome(config=config, error=str(e)))
                continue
            except Exception as e:
                logger.error(f"Backtest failed: {config.label}", exc_info=True)
                outcomes.append(RunOutcome(config=config, error=str(e)))
                continue

            m = result.metrics
            logger.info(
                f"  {config.label}: {m.total_trades} trades, "
                f"win rate {m.win_rate:.1f}%, return {m.total_return_percent:+.2f}%"
            )
            outcomes.append(RunOutcome(config=config, result=result))

        elapsed = time.time() - start_time
        failed = sum(1 for o in outcomes if o.failed)
        logger.info(
            f"Backtests completed in {elapsed:.1f}s: "
            f"{len(outcomes) - failed} ok, {failed} failed"
        )
        return outcomes
