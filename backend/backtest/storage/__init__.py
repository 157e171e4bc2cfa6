"""Backtest storage layer, independent of app/.

Candles are read from CSV files or supplied in memory.
"""

from backtest.storage.candle_source import (
    CandleSource,
    CandleSourceError,
    CsvCandleSource,
    MemoryCandleSource,
)

__all__ = [
    "CandleSource",
    "CandleSourceError",
    "CsvCandleSource",
    "MemoryCandleSource",
]
