"""Application configuration."""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SIGNALS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Market data (Binance spot REST)
    market_data_url: str = "https://api.binance.com"
    market_data_api_key: str = ""
    quote_asset: str = "USDT"
    calls_per_minute: int = 600
    request_timeout: float = 30.0

    # Watchlist YAML (optional, built-in default when missing)
    watchlist_path: str = "watchlist.yaml"

    # Signal generation
    fast_timeframe: str = "4h"
    slow_timeframe: str = "1d"
    candle_limit: int = 250

    # Position tracking
    signal_validity_hours: int = 48
    require_fill: bool = False
    check_delay_seconds: float = 0.25
    failure_threshold: int = 5
    failure_cooldown_minutes: int = 30

    # Historical call scoring
    outcome_check_delay_seconds: float = 0.2


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
