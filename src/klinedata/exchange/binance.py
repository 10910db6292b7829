"""Binance kline source implementation via ccxt async.

Uses the raw public endpoints (GET /api/v3/klines and /api/v3/ticker/price)
through ccxt's implicit API so rows keep all twelve Binance columns,
including quote and taker volumes that ccxt's unified fetch_ohlcv drops.
"""

from typing import Any

import ccxt.async_support as ccxt_async

from klinedata.config import ExchangeSettings, LoaderSettings
from klinedata.exceptions import FetchError
from klinedata.exchange.source import KlineSource
from klinedata.logging import get_logger
from klinedata.models import KlineData

logger = get_logger(__name__)


class BinanceSource(KlineSource):
    """Concrete Binance spot kline source using ccxt async."""

    name = "Binance"

    def __init__(
        self,
        settings: ExchangeSettings,
        loader_settings: LoaderSettings,
    ) -> None:
        self._settings = settings
        self._interval = loader_settings.default_interval
        self._limit = loader_settings.max_records_per_call

        self._exchange = ccxt_async.binance(
            {
                "enableRateLimit": settings.enable_rate_limit,
                "options": {"defaultType": "spot"},
            }
        )
        if settings.base_url:
            self._exchange.urls["api"]["public"] = settings.base_url

    @property
    def exchange(self) -> ccxt_async.binance:
        """Access the underlying ccxt exchange instance."""
        return self._exchange

    async def connect(self) -> None:
        # Public endpoints only; no market preload is needed for raw klines
        logger.info("binance_source_ready", interval=self._interval, limit=self._limit)

    async def close(self) -> None:
        """Clean up ccxt async resources. CRITICAL: must be called to avoid resource leaks."""
        await self._exchange.close()
        logger.info("binance_connection_closed")

    async def list_symbols(self) -> list[str]:
        try:
            body = await self._exchange.public_get_ticker_price()
        except ccxt_async.BaseError as e:
            logger.error("binance_symbols_failed", error=str(e))
            raise FetchError(f"Failed to fetch symbols from Binance: {e}") from e

        if not isinstance(body, list) or not body:
            logger.error("invalid_symbols_response", body=body)
            raise FetchError("Failed to fetch symbols from Binance: empty response")

        symbols: list[str] = []
        for entry in body:
            symbol = entry.get("symbol") if isinstance(entry, dict) else None
            if symbol:
                symbols.append(symbol)
            else:
                logger.warning("symbol_entry_missing_name", entry=entry)
        return symbols

    def build_request(self, symbol: str, start_ms: int, end_ms: int) -> dict:
        return {
            "symbol": symbol,
            "interval": self._interval,
            "startTime": start_ms,
            "endTime": end_ms,
            "limit": self._limit,
        }

    async def send_request(self, request: dict) -> Any:
        try:
            return await self._exchange.public_get_klines(request)
        except ccxt_async.BaseError as e:
            raise FetchError(
                f"Binance klines request failed for {request.get('symbol')}: {e}"
            ) from e

    def parse_row(self, symbol: str, row: Any) -> KlineData:
        return KlineData.from_exchange_row(symbol, row)
