"""Market data clients."""

from app.clients.market_data import MarketDataClient, MarketDataError, RateLimiter

__all__ = [
    "MarketDataClient",
    "MarketDataError",
    "RateLimiter",
]
