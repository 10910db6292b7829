"""Tests for SourceRegistry."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from klinedata.exceptions import InputInvalidError
from klinedata.exchange.registry import SourceRegistry


def _source(name: str) -> MagicMock:
    source = MagicMock()
    source.name = name
    source.connect = AsyncMock()
    source.close = AsyncMock()
    return source


class TestSourceRegistry:
    def test_get_by_name(self) -> None:
        registry = SourceRegistry()
        binance = _source("Binance")
        registry.register(binance)

        assert registry.get("Binance") is binance
        assert "Binance" in registry

    def test_register_under_alias(self) -> None:
        registry = SourceRegistry()
        binance = _source("Binance")
        registry.register(binance, name="binance-us")

        assert registry.get("binance-us") is binance
        assert registry.names() == ["binance-us"]

    def test_unknown_name(self) -> None:
        registry = SourceRegistry()
        registry.register(_source("Binance"))

        with pytest.raises(InputInvalidError, match="Unknown exchange: Kraken"):
            registry.get("Kraken")

    def test_duplicate_name_rejected(self) -> None:
        registry = SourceRegistry()
        registry.register(_source("Binance"))

        with pytest.raises(ValueError, match="already registered"):
            registry.register(_source("Binance"))

    @pytest.mark.asyncio
    async def test_connect_and_close_all(self) -> None:
        registry = SourceRegistry()
        sources = [_source("A"), _source("B")]
        for source in sources:
            registry.register(source)

        await registry.connect_all()
        await registry.close_all()

        for source in sources:
            source.connect.assert_awaited_once()
            source.close.assert_awaited_once()
