"""Concurrent batch load pipeline with bounded fan-out, timeout and retry.

Splits a requested [start, end) range into sub-ranges sized so that one
exchange call returns every kline of a sub-range, then fetches and
persists all sub-ranges concurrently:

- At most max_concurrency exchange calls are in flight at once
- Each attempt is bounded by request_timeout; a timeout counts as a FetchError
- Failed attempts are retried with exponential backoff; unparseable bodies are not
- A sub-range that still fails is logged and reported; siblings continue
- load() returns only after every sub-range has finished (barrier)

Each successful sub-range issues exactly one batch insert containing the
records parsed from its response.
"""

import asyncio
import math
import time
from dataclasses import dataclass, field

import structlog

from klinedata.config import LoaderSettings
from klinedata.data.store import KlineStore
from klinedata.exceptions import FetchError, InputInvalidError, ParseError
from klinedata.exchange.source import KlineSource
from klinedata.intervals import Interval
from klinedata.logging import get_logger
from klinedata.models import KlineData

logger = get_logger(__name__)


@dataclass
class BatchResult:
    """Outcome of one sub-range fetch and write."""

    start_ms: int
    end_ms: int
    fetched: int = 0
    inserted: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class LoadReport:
    """Per-sub-range summary of one load call.

    A partial load (some batches failed) still persists every batch that
    succeeded; complete tells the caller whether the whole range landed.
    """

    symbol: str
    exchange: str
    start_ms: int
    end_ms: int
    batches: list[BatchResult] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return all(batch.ok for batch in self.batches)

    @property
    def failed_batches(self) -> list[BatchResult]:
        return [batch for batch in self.batches if not batch.ok]

    @property
    def total_fetched(self) -> int:
        return sum(batch.fetched for batch in self.batches)

    @property
    def total_inserted(self) -> int:
        return sum(batch.inserted for batch in self.batches)


def partition_range(start_ms: int, end_ms: int, span_ms: int) -> list[tuple[int, int]]:
    """Tile [start_ms, end_ms) with contiguous half-open sub-ranges of span_ms.

    Produces ceil((end - start) / span) sub-ranges; the last one is clamped
    to end_ms.
    """
    if start_ms < 0 or start_ms >= end_ms:
        raise InputInvalidError(
            f"startTime is {start_ms}; endTime is {end_ms}. "
            "startTime should be non-negative and smaller than endTime."
        )
    if span_ms <= 0:
        raise InputInvalidError(f"span must be positive, got {span_ms}")

    count = math.ceil((end_ms - start_ms) / span_ms)
    ranges = []
    for i in range(count):
        batch_start = start_ms + i * span_ms
        ranges.append((batch_start, min(batch_start + span_ms, end_ms)))
    return ranges


class KlineLoader:
    """Loads a symbol's klines for a time range from a source into the store.

    Usage:
        loader = KlineLoader(store, settings.loader)
        report = await loader.load("BTCUSDT", start_ms, end_ms, source)
        if not report.complete:
            ...
    """

    def __init__(self, store: KlineStore, settings: LoaderSettings) -> None:
        self._store = store
        self._settings = settings
        self._interval = Interval.from_label(settings.default_interval)

    @property
    def time_span_per_call(self) -> int:
        """Milliseconds of data one exchange call can return."""
        return self._interval.milliseconds * self._settings.max_records_per_call

    def partition(self, start_ms: int, end_ms: int) -> list[tuple[int, int]]:
        return partition_range(start_ms, end_ms, self.time_span_per_call)

    # ──────────────────────────────────────────────
    # Public methods
    # ──────────────────────────────────────────────

    async def load(
        self,
        symbol: str,
        start_ms: int,
        end_ms: int,
        source: KlineSource,
    ) -> LoadReport:
        """Fetch and persist every sub-range of [start_ms, end_ms) concurrently.

        Does not raise for failed sub-ranges; inspect the returned report.
        Errors that are not fetch or parse failures (store I/O, bugs) are re-raised
        once all sibling batches have finished.
        """
        ranges = self.partition(start_ms, end_ms)
        semaphore = asyncio.Semaphore(self._settings.max_concurrency)
        started = time.monotonic()

        with structlog.contextvars.bound_contextvars(symbol=symbol, exchange=source.name):
            logger.info(
                "load_started",
                start_ms=start_ms,
                end_ms=end_ms,
                batches=len(ranges),
                span_ms=self.time_span_per_call,
            )

            results = await asyncio.gather(
                *(
                    self._load_batch(symbol, batch_start, batch_end, source, semaphore)
                    for batch_start, batch_end in ranges
                ),
                return_exceptions=True,
            )

            report = LoadReport(symbol, source.name, start_ms, end_ms)
            unexpected: BaseException | None = None
            for (batch_start, batch_end), result in zip(ranges, results):
                if isinstance(result, BaseException):
                    logger.error(
                        "batch_load_crashed",
                        batch_start=batch_start,
                        batch_end=batch_end,
                        error=repr(result),
                    )
                    report.batches.append(
                        BatchResult(batch_start, batch_end, error=repr(result))
                    )
                    unexpected = unexpected or result
                else:
                    report.batches.append(result)

            logger.info(
                "load_finished",
                batches=len(report.batches),
                failed=len(report.failed_batches),
                fetched=report.total_fetched,
                inserted=report.total_inserted,
                duration_seconds=round(time.monotonic() - started, 2),
            )

        if unexpected is not None:
            raise unexpected
        return report

    # ──────────────────────────────────────────────
    # Per-batch work
    # ──────────────────────────────────────────────

    async def _load_batch(
        self,
        symbol: str,
        start_ms: int,
        end_ms: int,
        source: KlineSource,
        semaphore: asyncio.Semaphore,
    ) -> BatchResult:
        result = BatchResult(start_ms, end_ms)
        try:
            records = await self._fetch_with_retry(
                symbol, start_ms, end_ms, source, semaphore
            )
        except (FetchError, ParseError) as e:
            # ParseError is not retried
            result.error = str(e)
            logger.error(
                "batch_fetch_failed",
                batch_start=start_ms,
                batch_end=end_ms,
                error=str(e),
            )
            return result

        result.fetched = len(records)
        result.inserted = await self._store.insert_klines(records)
        logger.debug(
            "batch_loaded",
            batch_start=start_ms,
            batch_end=end_ms,
            fetched=result.fetched,
            inserted=result.inserted,
        )
        return result

    async def _fetch_with_retry(
        self,
        symbol: str,
        start_ms: int,
        end_ms: int,
        source: KlineSource,
        semaphore: asyncio.Semaphore,
    ) -> list[KlineData]:
        """Fetch one sub-range with per-attempt timeout and exponential backoff.

        Delays between attempts: base, 2*base, 4*base, ...
        Raises FetchError after the final failed attempt.
        """
        max_retries = self._settings.max_retries
        base_delay = self._settings.retry_base_delay

        for attempt in range(max_retries):
            try:
                async with semaphore:
                    return await asyncio.wait_for(
                        source.fetch(symbol, start_ms, end_ms),
                        timeout=self._settings.request_timeout,
                    )
            except (FetchError, asyncio.TimeoutError) as e:
                if attempt == max_retries - 1:
                    if isinstance(e, FetchError):
                        raise
                    raise FetchError(
                        f"fetch timed out after {self._settings.request_timeout}s"
                    ) from e

                delay = base_delay * (2**attempt)
                logger.warning(
                    "batch_fetch_retry",
                    batch_start=start_ms,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    delay=delay,
                    error=str(e) or type(e).__name__,
                )
                await asyncio.sleep(delay)

        return []  # Unreachable, but satisfies type checker
