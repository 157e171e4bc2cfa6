"""Tests for the CSV candle source."""

from datetime import datetime, timezone

import pytest

from backtest.storage.candle_source import CandleSourceError, CsvCandleSource, parse_timestamp

HEADER = "timestamp,open,high,low,close,volume\n"


def write_csv(tmp_path, name, rows):
    path = tmp_path / name
    path.write_text(HEADER + "".join(f"{row}\n" for row in rows))
    return path


class TestParseTimestamp:
    """Tests for parse_timestamp."""

    def test_iso_z(self):
        assert parse_timestamp("2024-01-01T04:00:00Z") == datetime(2024, 1, 1, 4, tzinfo=timezone.utc)

    def test_naive_iso_is_utc(self):
        assert parse_timestamp("2024-01-01 04:00:00").tzinfo == timezone.utc

    def test_epoch_seconds_and_millis(self):
        expected = datetime(2024, 1, 1, tzinfo=timezone.utc)

        assert parse_timestamp("1704067200") == expected
        assert parse_timestamp("1704067200000") == expected

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")


class TestCsvCandleSource:
    """Tests for CsvCandleSource."""

    @pytest.mark.asyncio
    async def test_load_sorted_and_deduplicated(self, tmp_path):
        write_csv(tmp_path, "BTC_4h.csv", [
            "2024-01-01T08:00:00Z,102,103,101,102.5,10",
            "2024-01-01T00:00:00Z,100,101,99,100.5,10",
            "2024-01-01T04:00:00Z,101,102,100,101.5,10",
            "2024-01-01T04:00:00Z,101,102,100,101.7,12",
        ])
        candles = await CsvCandleSource(tmp_path).get_candles("btc", "4h")

        assert [c.close for c in candles] == [100.5, 101.7, 102.5]
        assert candles[1].volume == 12

    @pytest.mark.asyncio
    async def test_date_filter(self, tmp_path):
        write_csv(tmp_path, "ETH_1d.csv", [
            f"2024-01-0{d}T00:00:00Z,{d},{d},{d},{d},1" for d in range(1, 6)
        ])
        candles = await CsvCandleSource(tmp_path).get_candles(
            "ETH",
            "1d",
            start=datetime(2024, 1, 2, tzinfo=timezone.utc),
            end=datetime(2024, 1, 4, tzinfo=timezone.utc),
        )

        assert [c.close for c in candles] == [2, 3, 4]

    @pytest.mark.asyncio
    async def test_missing_volume_defaults_to_zero(self, tmp_path):
        write_csv(tmp_path, "SOL_4h.csv", ["1704067200,1,2,0.5,1.5,"])
        candles = await CsvCandleSource(tmp_path).get_candles("SOL", "4h")

        assert candles[0].volume == 0

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(CandleSourceError, match="No candle file"):
            await CsvCandleSource(tmp_path).get_candles("BTC", "4h")

    @pytest.mark.asyncio
    async def test_bad_row_reports_line(self, tmp_path):
        write_csv(tmp_path, "BTC_4h.csv", [
            "2024-01-01T00:00:00Z,100,101,99,100.5,10",
            "2024-01-01T04:00:00Z,abc,102,100,101.5,10",
        ])
        with pytest.raises(CandleSourceError, match=":3: bad row"):
            await CsvCandleSource(tmp_path).get_candles("BTC", "4h")

    def test_path_for(self, tmp_path):
        assert CsvCandleSource(tmp_path).path_for("eth", "1h") == tmp_path / "ETH_1h.csv"

    @pytest.mark.asyncio
    async def test_inconsistent_ohlc_is_bad_row(self, tmp_path):
        write_csv(tmp_path, "BTC_4h.csv", ["2024-01-01T00:00:00Z,100,99,101,100,10"])

        with pytest.raises(CandleSourceError, match=":2: bad row"):
            await CsvCandleSource(tmp_path).get_candles("BTC", "4h")
