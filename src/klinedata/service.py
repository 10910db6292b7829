"""Inbound service calls: load a range into the store, query a resampled range.

MarketDataService is the boundary an HTTP layer or the CLI calls. It
resolves the exchange by name, runs the precondition checks, then hands
off to the loader or to the retriever and aggregator.
"""

from klinedata.config import LoaderSettings
from klinedata.data.aggregator import aggregate_klines
from klinedata.data.loader import KlineLoader, LoadReport
from klinedata.data.retriever import CacheAsideRetriever
from klinedata.exceptions import PartialLoadError
from klinedata.exchange.registry import SourceRegistry
from klinedata.intervals import Interval
from klinedata.logging import get_logger
from klinedata.models import KlineData
from klinedata.validation import check_symbol, check_time_range

logger = get_logger(__name__)


class MarketDataService:
    """Entry points for loading and retrieving kline data.

    Args:
        registry: Exchange sources by name.
        loader: Batch loader writing into the store.
        retriever: Cache-aside reader over the same store.
        settings: Loader settings (raise_on_partial).
    """

    def __init__(
        self,
        registry: SourceRegistry,
        loader: KlineLoader,
        retriever: CacheAsideRetriever,
        settings: LoaderSettings,
    ) -> None:
        self._registry = registry
        self._loader = loader
        self._retriever = retriever
        self._settings = settings

    async def load_data(
        self,
        symbol: str,
        start_ms: int,
        end_ms: int,
        exchange_name: str,
    ) -> LoadReport:
        """Load [start_ms, end_ms) of symbol from exchange_name into the store.

        Raises:
            InputInvalidError: Unknown exchange, bad range or unknown symbol.
            FetchError: The exchange symbol list could not be fetched.
            PartialLoadError: Some sub-ranges failed and raise_on_partial is set.
        """
        source = self._registry.get(exchange_name)
        check_time_range(start_ms, end_ms)
        await check_symbol(symbol, source)

        report = await self._loader.load(symbol, start_ms, end_ms, source)
        if not report.complete:
            logger.warning(
                "partial_load",
                symbol=symbol,
                exchange=exchange_name,
                failed=len(report.failed_batches),
                batches=len(report.batches),
            )
            if self._settings.raise_on_partial:
                raise PartialLoadError(report)
        return report

    async def retrieve_and_aggregate(
        self,
        symbol: str,
        start_ms: int,
        end_ms: int,
        interval_label: str,
        exchange_name: str,
    ) -> list[KlineData]:
        """Return symbol's klines for [start_ms, end_ms] resampled to interval_label.

        Raises:
            UnsupportedIntervalError: interval_label is not in the catalog.
            InputInvalidError: Unknown exchange, bad range, unknown symbol or
                an interval finer than the stored one.
        """
        interval = Interval.from_label(interval_label)
        source = self._registry.get(exchange_name)
        check_time_range(start_ms, end_ms)
        await check_symbol(symbol, source)

        records = await self._retriever.retrieve(symbol, start_ms, end_ms)
        aggregated = aggregate_klines(records, interval)
        logger.info(
            "klines_retrieved",
            symbol=symbol,
            interval=interval.label,
            records=len(records),
            buckets=len(aggregated),
        )
        return aggregated
