"""Market data REST client for candles and spot prices (Binance spot API)."""

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Any

import httpx

from core.models.candle import Candle

logger = logging.getLogger(__name__)


class MarketDataError(Exception):
    """Market data could not be fetched or parsed."""


class RateLimiter:
    """Simple rate limiter for API calls. Owned by one client instance."""

    def __init__(self, calls_per_minute: int = 1200):
        self.calls_per_minute = calls_per_minute
        self.interval = 60.0 / calls_per_minute
        self.last_call = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait if necessary to respect rate limit."""
        async with self._lock:
            loop = asyncio.get_running_loop()
            wait_time = self.last_call + self.interval - loop.time()
            if wait_time > 0:
                await asyncio.sleep(wait_time)
            self.last_call = loop.time()


class MarketDataClient:
    """Spot market data client.

    Assets are plain symbols ("BTC"); the trading pair is the symbol plus
    the configured quote asset ("BTCUSDT").
    """

    BASE_URL = "https://api.binance.com"
    MAX_LIMIT = 1000

    def __init__(
        self,
        base_url: str = BASE_URL,
        api_key: str = "",
        quote_asset: str = "USDT",
        calls_per_minute: int = 1200,
        timeout: float = 30.0,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.quote_asset = quote_asset
        self.timeout = timeout
        self.rate_limiter = RateLimiter(calls_per_minute)
        self._client: httpx.AsyncClient | None = None

    def pair(self, asset: str) -> str:
        asset = asset.upper()
        if asset.endswith(self.quote_asset):
            return asset
        return f"{asset}{self.quote_asset}"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {}
            if self.api_key:
                headers["X-MBX-APIKEY"] = self.api_key
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self, method: str, endpoint: str, params: dict[str, Any] | None = None
    ) -> Any:
        """Make an API request with rate limiting."""
        await self.rate_limiter.acquire()
        client = await self._get_client()
        response = await client.request(method, endpoint, params=params)
        response.raise_for_status()
        return response.json()

    async def get_candles(
        self,
        asset: str,
        timeframe: str,
        limit: int = 250,
        end_time: datetime | None = None,
    ) -> list[Candle]:
        """
        Fetch closed candles in ascending time order.

        Args:
            asset: Asset symbol (e.g., "BTC")
            timeframe: Candle interval (e.g., "4h", "1d")
            limit: Maximum number of candles (max 1000)
            end_time: End time (inclusive)

        Raises:
            MarketDataError: On HTTP or payload errors
        """
        params: dict[str, Any] = {
            "symbol": self.pair(asset),
            "interval": timeframe,
            "limit": min(limit, self.MAX_LIMIT),
        }
        if end_time:
            params["endTime"] = int(end_time.timestamp() * 1000)

        try:
            data = await self._request("GET", "/api/v3/klines", params)
        except httpx.HTTPError as e:
            raise MarketDataError(f"{asset}/{timeframe}: {e}") from e

        try:
            candles = [
                Candle(
                    timestamp=datetime.fromtimestamp(item[0] / 1000, tz=timezone.utc),
                    open=float(item[1]),
                    high=float(item[2]),
                    low=float(item[3]),
                    close=float(item[4]),
                    volume=float(item[5]),
                )
                for item in data
            ]
        except (IndexError, TypeError, ValueError) as e:
            raise MarketDataError(f"{asset}/{timeframe}: malformed kline payload ({e})") from e

        # The last kline is still forming unless its close time has passed
        if data and int(data[-1][6]) > datetime.now(timezone.utc).timestamp() * 1000:
            candles = candles[:-1]
        return candles

    async def get_current_price(self, asset: str) -> float | None:
        """Latest spot price, or None when unavailable."""
        try:
            data = await self._request(
                "GET", "/api/v3/ticker/price", {"symbol": self.pair(asset)}
            )
            price = float(data["price"])
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Could not get price for {asset}: {e}")
            return None

        if not math.isfinite(price) or price <= 0:
            logger.warning(f"Invalid price for {asset}: {price}")
            return None
        return price
