"""Tests for BinanceSource and the kline source base class.

All tests replace the ccxt exchange object with an AsyncMock to avoid
real API calls.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import ccxt.async_support as ccxt_async
import pytest

from klinedata.config import ExchangeSettings, LoaderSettings
from klinedata.exceptions import FetchError
from klinedata.exchange.binance import BinanceSource

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

MOCK_KLINES = [
    [
        1704067200000,
        "42283.58000000",
        "42298.62000000",
        "42261.02000000",
        "42298.61000000",
        "35.92724000",
        1704067259999,
        "1519032.58693930",
        1327,
        "21.96788000",
        "928833.25312170",
        "0",
    ],
    [
        1704067260000,
        "42298.62000000",
        "42320.00000000",
        "42298.61000000",
        "42319.99000000",
        "21.07189000",
        1704067319999,
        "891406.05117150",
        922,
        "15.89460000",
        "672431.12003580",
        "0",
    ],
]

MOCK_TICKER_PRICES = [
    {"symbol": "ETHBTC", "price": "0.05140000"},
    {"symbol": "BTCUSDT", "price": "42298.61000000"},
    {"price": "1.0"},
]


@pytest.fixture
def source() -> BinanceSource:
    source = BinanceSource(
        ExchangeSettings(),
        LoaderSettings(default_interval="1m", max_records_per_call=500),
    )
    source._exchange = AsyncMock()
    return source


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestBuildRequest:
    def test_request_uses_loader_interval_and_limit(self, source: BinanceSource) -> None:
        request = source.build_request("BTCUSDT", 0, 1_200_000)

        assert request == {
            "symbol": "BTCUSDT",
            "interval": "1m",
            "startTime": 0,
            "endTime": 1_200_000,
            "limit": 500,
        }

    def test_base_url_override(self) -> None:
        source = BinanceSource(
            ExchangeSettings(base_url="https://testnet.binance.vision/api/v3"),
            LoaderSettings(),
        )
        assert source.exchange.urls["api"]["public"] == "https://testnet.binance.vision/api/v3"


class TestFetch:
    @pytest.mark.asyncio
    async def test_fetch_parses_rows(self, source: BinanceSource) -> None:
        source._exchange.public_get_klines = AsyncMock(return_value=MOCK_KLINES)

        records = await source.fetch("BTCUSDT", 1704067200000, 1704067320000)

        source._exchange.public_get_klines.assert_awaited_once_with(
            source.build_request("BTCUSDT", 1704067200000, 1704067320000)
        )
        assert [r.open_time for r in records] == [1704067200000, 1704067260000]
        assert records[1].high_price == Decimal("42320")
        assert records[1].number_of_trades == 922
        assert all(r.symbol == "BTCUSDT" for r in records)

    @pytest.mark.asyncio
    async def test_malformed_row_dropped_batch_continues(self, source: BinanceSource) -> None:
        bad_row = MOCK_KLINES[0][:5]
        source._exchange.public_get_klines = AsyncMock(
            return_value=[MOCK_KLINES[0], bad_row, MOCK_KLINES[1]]
        )

        records = await source.fetch("BTCUSDT", 0, 1)

        assert len(records) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_row", [None, 7, {"0": 1}, "1704067200000"])
    async def test_non_list_row_dropped_batch_continues(
        self, source: BinanceSource, bad_row: object
    ) -> None:
        source._exchange.public_get_klines = AsyncMock(
            return_value=[MOCK_KLINES[0], bad_row, MOCK_KLINES[1]]
        )

        records = await source.fetch("BTCUSDT", 0, 1)

        assert [r.open_time for r in records] == [1704067200000, 1704067260000]

    @pytest.mark.asyncio
    async def test_empty_response_is_empty_batch(self, source: BinanceSource) -> None:
        source._exchange.public_get_klines = AsyncMock(return_value=[])

        assert await source.fetch("BTCUSDT", 0, 1) == []

    @pytest.mark.asyncio
    async def test_non_list_response_is_fetch_error(self, source: BinanceSource) -> None:
        source._exchange.public_get_klines = AsyncMock(
            return_value={"code": -1121, "msg": "Invalid symbol."}
        )

        with pytest.raises(FetchError, match="malformed"):
            await source.fetch("BTCUSDT", 0, 1)

    @pytest.mark.asyncio
    async def test_ccxt_error_wrapped(self, source: BinanceSource) -> None:
        source._exchange.public_get_klines = AsyncMock(
            side_effect=ccxt_async.NetworkError("connection reset")
        )

        with pytest.raises(FetchError, match="connection reset"):
            await source.fetch("BTCUSDT", 0, 1)


class TestListSymbols:
    @pytest.mark.asyncio
    async def test_symbols_in_exchange_order(self, source: BinanceSource) -> None:
        source._exchange.public_get_ticker_price = AsyncMock(return_value=MOCK_TICKER_PRICES)

        assert await source.list_symbols() == ["ETHBTC", "BTCUSDT"]

    @pytest.mark.asyncio
    async def test_empty_response_is_fetch_error(self, source: BinanceSource) -> None:
        source._exchange.public_get_ticker_price = AsyncMock(return_value=[])

        with pytest.raises(FetchError, match="empty response"):
            await source.list_symbols()

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self, source: BinanceSource) -> None:
        source._exchange.public_get_ticker_price = AsyncMock(
            side_effect=ccxt_async.ExchangeNotAvailable("maintenance")
        )

        with pytest.raises(FetchError):
            await source.list_symbols()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_close_closes_ccxt(self, source: BinanceSource) -> None:
        await source.close()

        source._exchange.close.assert_awaited_once()
