"""Backtesting system for indicator-based strategies.

Fully independent of app/; only depends on core/ for business logic.

Candles come from a CandleSource (CSV files or in memory); each
(asset, strategy) run is replayed bar by bar without lookahead.

Usage:
    python -m backtest --assets BTC,ETH --strategies all
    python -m backtest --list-strategies
"""

from backtest.engine import BacktestEngine, EngineRun
from backtest.runner import BacktestRunConfig, BacktestRunner, RunOutcome
from backtest.stats import BacktestResult, StatisticsCalculator

__all__ = [
    "BacktestEngine",
    "EngineRun",
    "BacktestRunConfig",
    "BacktestRunner",
    "RunOutcome",
    "BacktestResult",
    "StatisticsCalculator",
]
