"""Cache-aside kline retrieval.

Reads the cache index first and falls back to the durable store when the
index does not hold enough buckets for the requested range. Records read
from the store are written back to the index and the namespace TTL is
reset.

Coverage is checked by count only: the index is considered complete when
it holds at least as many entries in the aligned range as the range has
buckets. Which buckets are missing is never computed, so an index holding
the right number of wrong entries is served as-is until its TTL lapses.
"""

import asyncio

from klinedata.config import CacheSettings
from klinedata.data.cache import KlineCache, cache_namespace
from klinedata.data.store import KlineStore
from klinedata.intervals import Interval
from klinedata.logging import get_logger
from klinedata.models import KlineData
from klinedata.validation import check_time_range

logger = get_logger(__name__)


def aligned_range(start_ms: int, end_ms: int, interval: Interval) -> tuple[int, int]:
    """Widen [start_ms, end_ms] to whole buckets.

    The end is advanced one bucket only when it is not already on a
    bucket boundary, so a boundary-aligned end adds no trailing bucket.
    """
    aligned_start = interval.bucket_start(start_ms)
    aligned_end = interval.bucket_start(end_ms)
    if aligned_end < end_ms:
        aligned_end += interval.milliseconds
    return aligned_start, aligned_end


class CacheAsideRetriever:
    """Serves kline ranges from the cache index, backfilled from the store.

    All records handled here are at the store's native interval
    (the loader's default interval); coarser intervals are produced
    afterwards by the aggregator.

    With single_flight enabled, concurrent retrievals that miss on the same
    namespace and aligned range share one store query and one write-back.

    Usage:
        retriever = CacheAsideRetriever(store, cache, Interval.ONE_MINUTE, settings.cache)
        records = await retriever.retrieve("BTCUSDT", start_ms, end_ms)
    """

    def __init__(
        self,
        store: KlineStore,
        cache: KlineCache,
        interval: Interval,
        settings: CacheSettings,
    ) -> None:
        self._store = store
        self._cache = cache
        self._interval = interval
        self._settings = settings
        self._in_flight: dict[tuple[str, int, int], asyncio.Task[list[KlineData]]] = {}

    @property
    def interval(self) -> Interval:
        return self._interval

    def namespace(self, symbol: str) -> str:
        return cache_namespace(self._settings.key_prefix, symbol, self._interval.label)

    async def retrieve(self, symbol: str, start_ms: int, end_ms: int) -> list[KlineData]:
        """Return the records of [start_ms, end_ms] ordered by open_time.

        The range is widened to whole buckets of the native interval.
        """
        check_time_range(start_ms, end_ms)

        aligned_start, aligned_end = aligned_range(start_ms, end_ms, self._interval)
        expected_count = (aligned_end - aligned_start) // self._interval.milliseconds
        namespace = self.namespace(symbol)

        cached = await self._cache.range_by_key(namespace, aligned_start, aligned_end)

        if len(cached) >= expected_count:
            logger.debug(
                "cache_hit",
                symbol=symbol,
                expected=expected_count,
                cached=len(cached),
            )
            return cached

        logger.info(
            "cache_coverage_insufficient",
            symbol=symbol,
            expected=expected_count,
            cached=len(cached),
        )
        db_data = await self._backfill_once(namespace, symbol, aligned_start, aligned_end)

        # Store records replace cached ones at the same open_time
        merged: dict[int, KlineData] = {record.open_time: record for record in cached}
        for record in db_data:
            merged[record.open_time] = record
        return [merged[open_time] for open_time in sorted(merged)]

    async def _backfill_once(
        self, namespace: str, symbol: str, start_ms: int, end_ms: int
    ) -> list[KlineData]:
        if not self._settings.single_flight:
            return await self._backfill(namespace, symbol, start_ms, end_ms)

        flight_key = (namespace, start_ms, end_ms)
        task = self._in_flight.get(flight_key)
        if task is None:
            task = asyncio.ensure_future(
                self._backfill(namespace, symbol, start_ms, end_ms)
            )
            self._in_flight[flight_key] = task
            task.add_done_callback(lambda _: self._in_flight.pop(flight_key, None))
        else:
            logger.debug("backfill_joined", symbol=symbol, start_ms=start_ms)
        # One waiter being cancelled must not cancel the shared query
        return await asyncio.shield(task)

    async def _backfill(
        self, namespace: str, symbol: str, start_ms: int, end_ms: int
    ) -> list[KlineData]:
        db_data = await self._store.get_klines(symbol, start_ms, end_ms)
        for record in db_data:
            await self._cache.upsert(namespace, record, record.open_time)
        await self._cache.expire(namespace, self._settings.ttl_seconds)

        logger.info("cache_backfilled", symbol=symbol, db_count=len(db_data))
        return db_data
