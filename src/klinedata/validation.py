"""Precondition checks run at the start of each public operation."""

from klinedata.exceptions import InputInvalidError
from klinedata.exchange.source import KlineSource


def check_time_range(start_ms: int, end_ms: int) -> None:
    """Require 0 <= start_ms < end_ms."""
    if start_ms < 0 or end_ms < 0:
        raise InputInvalidError(
            f"startTime is {start_ms}; endTime is {end_ms}. Times must be non-negative."
        )
    if start_ms >= end_ms:
        raise InputInvalidError(
            f"startTime is {start_ms}; endTime is {end_ms}. "
            "startTime should be smaller than endTime."
        )


def check_symbol_name(symbol: str) -> None:
    if not symbol or not symbol.strip():
        raise InputInvalidError("symbol must not be blank")


async def check_symbol(symbol: str, source: KlineSource) -> None:
    """Require symbol to be listed by source.

    FetchError from the symbol listing propagates unchanged.
    """
    check_symbol_name(symbol)
    symbols = await source.list_symbols()
    if symbol not in symbols:
        raise InputInvalidError(f"Invalid symbol: {symbol}")
