"""Asset watchlist loaded from watchlist.yaml.

Supports:
- Per-asset symbol, optional contract address and asset class
- Per-asset enable flag and free-form fundamental/sentiment context
- No YAML file = built-in default watchlist
"""

import logging
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, field_validator, model_validator

from core.models.config import is_non_directional

logger = logging.getLogger(__name__)


class WatchlistAsset(BaseModel):
    """A single asset entry in the watchlist."""

    symbol: str
    address: str = ""
    asset_class: str | None = None
    enabled: bool = True
    fundamental_context: str = ""
    sentiment_context: str = ""

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("symbol must not be empty")
        return v

    @property
    def is_directional(self) -> bool:
        return not is_non_directional(self.symbol, self.asset_class)


class Watchlist(BaseModel):
    """Top-level watchlist.yaml configuration."""

    assets: list[WatchlistAsset] = []

    @model_validator(mode="after")
    def _validate(self):
        seen: set[str] = set()
        for asset in self.assets:
            if asset.symbol in seen:
                raise ValueError(f"duplicate asset '{asset.symbol}' in watchlist")
            seen.add(asset.symbol)
        return self

    def get_enabled(self) -> list[WatchlistAsset]:
        """Enabled assets, non-directional ones included (the generator filters them)."""
        return [a for a in self.assets if a.enabled]

    def get(self, symbol: str) -> WatchlistAsset | None:
        symbol = symbol.upper()
        return next((a for a in self.assets if a.symbol == symbol), None)


DEFAULT_WATCHLIST = Watchlist(
    assets=[
        WatchlistAsset(symbol="BTC", asset_class="major"),
        WatchlistAsset(symbol="ETH", asset_class="major"),
        WatchlistAsset(symbol="SOL", asset_class="l1"),
        WatchlistAsset(symbol="BNB", asset_class="l1"),
        WatchlistAsset(symbol="XRP", asset_class="l1"),
        WatchlistAsset(symbol="DOGE", asset_class="meme"),
        WatchlistAsset(symbol="LINK", asset_class="defi"),
        WatchlistAsset(symbol="AVAX", asset_class="l1"),
    ]
)

_DEFAULT_PATH = Path(__file__).parent.parent / "watchlist.yaml"


def load_watchlist(path: Path | None = None) -> Watchlist:
    """Load the watchlist from a YAML file.

    Falls back to the built-in default watchlist if the file doesn't exist.
    """
    config_path = Path(path) if path else _DEFAULT_PATH

    # Load .env next to the watchlist so SIGNALS_* settings are visible
    env_path = config_path.parent / ".env"
    load_dotenv(env_path, override=False)

    if not config_path.exists():
        logger.info(
            "No watchlist.yaml found at %s, using default watchlist (%d assets)",
            config_path,
            len(DEFAULT_WATCHLIST.assets),
        )
        return DEFAULT_WATCHLIST.model_copy(deep=True)

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    watchlist = Watchlist(**raw)
    logger.info(
        "Loaded watchlist: %d assets (%d enabled)",
        len(watchlist.assets),
        len(watchlist.get_enabled()),
    )
    return watchlist
