"""Candle data source for backtesting.

Reads OHLCV candles from CSV files laid out as
``<data_dir>/<ASSET>_<timeframe>.csv``. No app/ dependency.
"""

from __future__ import annotations

import csv
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from core.models.candle import Candle

logger = logging.getLogger(__name__)


class CandleSourceError(Exception):
    """Candles for an (asset, timeframe) could not be loaded."""


class CandleSource(Protocol):
    """Protocol for candle data access."""

    async def get_candles(
        self,
        asset: str,
        timeframe: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Candle]: ...


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 string or epoch seconds/milliseconds to UTC."""
    value = value.strip()
    if value.isdigit():
        ts = int(value)
        # Binance-style millisecond epochs
        if ts > 10**11:
            ts = ts / 1000
        return datetime.fromtimestamp(ts, tz=timezone.utc)

    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class CsvCandleSource:
    """Read candles from per-asset CSV files.

    Expected header: ``timestamp,open,high,low,close,volume``. Rows are
    sorted ascending and duplicate timestamps keep the last row.
    """

    def __init__(self, data_dir: str | Path):
        self._data_dir = Path(data_dir)

    def path_for(self, asset: str, timeframe: str) -> Path:
        return self._data_dir / f"{asset.upper()}_{timeframe}.csv"

    async def get_candles(
        self,
        asset: str,
        timeframe: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Candle]:
        """Load candles in ascending time order, filtered to [start, end]."""
        path = self.path_for(asset, timeframe)
        if not path.exists():
            raise CandleSourceError(f"No candle file for {asset}/{timeframe}: {path}")

        by_time: dict[datetime, Candle] = {}
        try:
            with path.open(newline="", encoding="utf-8") as f:
                for line_no, row in enumerate(csv.DictReader(f), start=2):
                    try:
                        candle = Candle(
                            timestamp=parse_timestamp(row["timestamp"]),
                            open=float(row["open"]),
                            high=float(row["high"]),
                            low=float(row["low"]),
                            close=float(row["close"]),
                            volume=float(row.get("volume") or 0.0),
                        )
                    except (KeyError, TypeError, ValueError) as e:
                        raise CandleSourceError(f"{path}:{line_no}: bad row ({e})") from e

                    if start is not None and candle.timestamp < start:
                        continue
                    if end is not None and candle.timestamp > end:
                        continue
                    by_time[candle.timestamp] = candle
        except OSError as e:
            raise CandleSourceError(f"Cannot read {path}: {e}") from e

        candles = [by_time[ts] for ts in sorted(by_time)]
        logger.debug(f"[{asset}/{timeframe}] Loaded {len(candles):,} candles from {path}")
        return candles


class MemoryCandleSource:
    """In-memory candle source keyed by (asset, timeframe)."""

    def __init__(self, candles: dict[tuple[str, str], list[Candle]] | None = None):
        self._candles: dict[tuple[str, str], list[Candle]] = {}
        for (asset, timeframe), series in (candles or {}).items():
            self.add(asset, timeframe, series)

    def add(self, asset: str, timeframe: str, candles: list[Candle]) -> None:
        self._candles[(asset.upper(), timeframe)] = sorted(candles, key=lambda c: c.timestamp)

    async def get_candles(
        self,
        asset: str,
        timeframe: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Candle]:
        key = (asset.upper(), timeframe)
        if key not in self._candles:
            raise CandleSourceError(f"No candles for {asset}/{timeframe}")
        return [
            c
            for c in self._candles[key]
            if (start is None or c.timestamp >= start)
            and (end is None or c.timestamp <= end)
        ]
