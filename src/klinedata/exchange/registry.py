"""Name-to-source registry for exchange adapters."""

from klinedata.exceptions import InputInvalidError
from klinedata.exchange.source import KlineSource
from klinedata.logging import get_logger

logger = get_logger(__name__)


class SourceRegistry:
    """Maps exchange names ("Binance", ...) to KlineSource instances.

    Usage:
        registry = SourceRegistry()
        registry.register(BinanceSource(settings.exchange, settings.loader))
        source = registry.get("Binance")
    """

    def __init__(self) -> None:
        self._sources: dict[str, KlineSource] = {}

    def register(self, source: KlineSource, name: str | None = None) -> None:
        key = name or source.name
        if not key:
            raise ValueError("source must have a name to be registered")
        if key in self._sources:
            raise ValueError(f"source {key!r} already registered")
        self._sources[key] = source
        logger.debug("source_registered", exchange=key)

    def get(self, name: str) -> KlineSource:
        """Return the source registered under name.

        Raises InputInvalidError for unknown names.
        """
        source = self._sources.get(name)
        if source is None:
            raise InputInvalidError(
                f"Unknown exchange: {name}. Available: {', '.join(self.names())}"
            )
        return source

    def names(self) -> list[str]:
        return sorted(self._sources)

    def __contains__(self, name: object) -> bool:
        return name in self._sources

    async def connect_all(self) -> None:
        for source in self._sources.values():
            await source.connect()

    async def close_all(self) -> None:
        for source in self._sources.values():
            await source.close()
