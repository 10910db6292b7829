"""Exchange source layer -- kline adapters selected by name."""

from klinedata.exchange.binance import BinanceSource
from klinedata.exchange.registry import SourceRegistry
from klinedata.exchange.source import KlineSource

__all__ = ["BinanceSource", "KlineSource", "SourceRegistry"]
