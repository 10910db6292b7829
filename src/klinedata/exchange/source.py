"""Abstract kline source interface.

Defines the contract for all exchange adapters. The loader and the service
depend only on this interface, keeping exchange-specific request building
and response parsing isolated in the concrete implementation.
"""

from abc import ABC, abstractmethod
from typing import Any

from klinedata.exceptions import FetchError, ParseError
from klinedata.logging import get_logger
from klinedata.models import KlineData

logger = get_logger(__name__)


class KlineSource(ABC):
    """Abstract base class for exchange kline sources."""

    name: str = ""

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the underlying client."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Clean up client resources."""
        ...

    @abstractmethod
    async def list_symbols(self) -> list[str]:
        """Return every symbol the exchange quotes, in exchange order.

        Raises FetchError on transport failure or an empty/malformed response.
        """
        ...

    @abstractmethod
    def build_request(self, symbol: str, start_ms: int, end_ms: int) -> dict:
        """Build the request parameters for one sub-range."""
        ...

    @abstractmethod
    async def send_request(self, request: dict) -> Any:
        """Send a built request and return the raw response body.

        Implementations raise FetchError on transport failure.
        """
        ...

    @abstractmethod
    def parse_row(self, symbol: str, row: Any) -> KlineData:
        """Convert one raw response row. Raises ParseError if malformed."""
        ...

    async def fetch(self, symbol: str, start_ms: int, end_ms: int) -> list[KlineData]:
        """Fetch and parse all klines of one sub-range.

        Pagination is NOT handled here -- the loader sizes sub-ranges so one
        call covers each of them.
        """
        request = self.build_request(symbol, start_ms, end_ms)
        body = await self.send_request(request)
        return self.parse_response(symbol, body)

    def parse_response(self, symbol: str, body: Any) -> list[KlineData]:
        """Parse a response body, dropping and counting malformed rows.

        A body that is not a list is a FetchError. An empty list is a valid
        response for a range with no trading.
        """
        if not isinstance(body, list):
            logger.error(
                "invalid_kline_response",
                exchange=self.name,
                symbol=symbol,
                body_type=type(body).__name__,
            )
            raise FetchError(f"{self.name}: malformed kline response for {symbol}")

        records: list[KlineData] = []
        dropped = 0
        for row in body:
            try:
                records.append(self.parse_row(symbol, row))
            except ParseError as e:
                dropped += 1
                logger.warning(
                    "kline_row_dropped",
                    exchange=self.name,
                    symbol=symbol,
                    error=str(e),
                )

        if dropped:
            logger.error(
                "kline_rows_failed",
                exchange=self.name,
                symbol=symbol,
                received=len(body),
                dropped=dropped,
            )
        logger.debug(
            "klines_parsed",
            exchange=self.name,
            symbol=symbol,
            received=len(body),
            parsed=len(records),
        )
        return records
