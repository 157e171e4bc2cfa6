"""Tests for MarketDataClient using a mocked HTTP transport."""

from datetime import datetime, timezone

import httpx
import pytest

from app.clients.market_data import MarketDataClient, MarketDataError, RateLimiter

OPEN_MS = 1704067200000  # 2024-01-01T00:00:00Z
FOUR_HOURS_MS = 4 * 3600 * 1000
FUTURE_MS = 4102444800000  # 2100-01-01


def kline(open_ms, close, close_ms):
    return [open_ms, "100.0", "105.0", "95.0", str(close), "12.5", close_ms]


def make_client(handler) -> MarketDataClient:
    client = MarketDataClient(calls_per_minute=60_000)
    client._client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url=client.base_url
    )
    return client


class TestPair:
    """Tests for trading pair naming."""

    def test_pair(self):
        client = MarketDataClient()

        assert client.pair("btc") == "BTCUSDT"
        assert client.pair("ETHUSDT") == "ETHUSDT"
        assert MarketDataClient(quote_asset="USDC").pair("SOL") == "SOLUSDC"


class TestGetCandles:
    """Tests for MarketDataClient.get_candles."""

    @pytest.mark.asyncio
    async def test_parses_klines(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[
                kline(OPEN_MS, 101.0, OPEN_MS + FOUR_HOURS_MS - 1),
                kline(OPEN_MS + FOUR_HOURS_MS, 102.0, OPEN_MS + 2 * FOUR_HOURS_MS - 1),
            ])

        client = make_client(handler)
        candles = await client.get_candles("btc", "4h", limit=5000)
        await client.close()

        assert seen["path"] == "/api/v3/klines"
        assert seen["params"] == {"symbol": "BTCUSDT", "interval": "4h", "limit": "1000"}
        assert [c.close for c in candles] == [101.0, 102.0]
        assert candles[0].timestamp == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert candles[0].volume == 12.5

    @pytest.mark.asyncio
    async def test_drops_forming_candle(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[
                kline(OPEN_MS, 101.0, OPEN_MS + FOUR_HOURS_MS - 1),
                kline(OPEN_MS + FOUR_HOURS_MS, 102.0, FUTURE_MS),
            ])

        client = make_client(handler)
        candles = await client.get_candles("BTC", "4h")

        assert [c.close for c in candles] == [101.0]

    @pytest.mark.asyncio
    async def test_end_time_param(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return httpx.Response(200, json=[])

        client = make_client(handler)
        await client.get_candles("BTC", "1d", end_time=datetime(2024, 1, 1, tzinfo=timezone.utc))

        assert seen["endTime"] == str(OPEN_MS)

    @pytest.mark.asyncio
    async def test_http_error(self):
        client = make_client(lambda request: httpx.Response(500, json={"msg": "down"}))

        with pytest.raises(MarketDataError, match="BTC/4h"):
            await client.get_candles("BTC", "4h")

    @pytest.mark.asyncio
    async def test_malformed_payload(self):
        client = make_client(lambda request: httpx.Response(200, json=[[OPEN_MS, "x"]]))

        with pytest.raises(MarketDataError, match="malformed"):
            await client.get_candles("BTC", "4h")


class TestGetCurrentPrice:
    """Tests for MarketDataClient.get_current_price."""

    @pytest.mark.asyncio
    async def test_price(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/v3/ticker/price"
            assert request.url.params["symbol"] == "ETHUSDT"
            return httpx.Response(200, json={"symbol": "ETHUSDT", "price": "2345.67"})

        client = make_client(handler)

        assert await client.get_current_price("eth") == pytest.approx(2345.67)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"price": "0"},
        {"price": "-1"},
        {"price": "nan"},
        {"price": "abc"},
        {},
    ])
    async def test_invalid_price(self, payload):
        client = make_client(lambda request: httpx.Response(200, json=payload))

        assert await client.get_current_price("BTC") is None

    @pytest.mark.asyncio
    async def test_http_error_returns_none(self):
        client = make_client(lambda request: httpx.Response(429))

        assert await client.get_current_price("BTC") is None


class TestRateLimiter:
    """Tests for RateLimiter."""

    @pytest.mark.asyncio
    async def test_interval(self):
        limiter = RateLimiter(calls_per_minute=600)
        assert limiter.interval == pytest.approx(0.1)

        await limiter.acquire()
        assert limiter.last_call > 0
