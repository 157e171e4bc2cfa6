"""Backtest-specific configuration.

Independent of app/config.py; only needs a candle data directory and
the simulated account parameters.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class BacktestSettings(BaseSettings):
    """Backtest configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BACKTEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Directory holding <ASSET>_<timeframe>.csv files
    data_dir: str = "data/candles"

    initial_capital: float = 10_000.0
    position_size_percent: float = 10.0
    timeframe: str = "4h"
    warmup_candles: int = 14


_settings: BacktestSettings | None = None


def get_backtest_settings() -> BacktestSettings:
    """Get cached backtest settings instance."""
    global _settings
    if _settings is None:
        _settings = BacktestSettings()
    return _settings
