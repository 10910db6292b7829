"""Entry point for the kline data service.

Wires all components together and runs one command:

    klinedata load  --exchange Binance --symbol BTCUSDT --start 0 --end 1200000
    klinedata query --exchange Binance --symbol BTCUSDT --start 0 --end 3600000 --interval 1h

Component wiring order (in build_components):
1. KlineDatabase + KlineStore (durable store)
2. Cache index (Redis when CACHE_REDIS_URL is set, in-memory otherwise)
3. SourceRegistry with every exchange adapter
4. KlineLoader (batch partitioner)
5. CacheAsideRetriever
6. MarketDataService
"""

import argparse
import asyncio
import json
import sys
from typing import Any

from klinedata.config import AppSettings
from klinedata.data.cache import InMemoryKlineCache, KlineCache, RedisKlineCache
from klinedata.data.database import KlineDatabase
from klinedata.data.loader import KlineLoader
from klinedata.data.retriever import CacheAsideRetriever
from klinedata.data.store import KlineStore
from klinedata.exceptions import KlineDataError, PartialLoadError
from klinedata.exchange.binance import BinanceSource
from klinedata.exchange.registry import SourceRegistry
from klinedata.intervals import Interval
from klinedata.logging import get_logger, setup_logging
from klinedata.service import MarketDataService


def build_components(settings: AppSettings) -> dict[str, Any]:
    """Build the dependency graph from settings.

    Does NOT open the database or exchange connections -- run() does that
    so it can close them in the same place.
    """
    database = KlineDatabase(settings.database.path)
    store = KlineStore(database)

    cache: KlineCache
    if settings.cache.redis_url:
        cache = RedisKlineCache.from_url(settings.cache.redis_url)
    else:
        cache = InMemoryKlineCache()

    registry = SourceRegistry()
    registry.register(BinanceSource(settings.exchange, settings.loader))

    loader = KlineLoader(store, settings.loader)
    retriever = CacheAsideRetriever(
        store,
        cache,
        Interval.from_label(settings.loader.default_interval),
        settings.cache,
    )
    service = MarketDataService(registry, loader, retriever, settings.loader)

    return {
        "database": database,
        "store": store,
        "cache": cache,
        "registry": registry,
        "loader": loader,
        "retriever": retriever,
        "service": service,
    }


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="klinedata",
        description="Load historical klines into the store and query them resampled.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_range_args(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--exchange", default="Binance", help="Exchange name (default: Binance)")
        sub.add_argument("--symbol", required=True, help="Exchange symbol, e.g. BTCUSDT")
        sub.add_argument("--start", type=int, required=True, help="Start time, epoch ms")
        sub.add_argument("--end", type=int, required=True, help="End time, epoch ms")

    load_parser = subparsers.add_parser("load", help="Fetch a range from the exchange into the store")
    add_range_args(load_parser)

    query_parser = subparsers.add_parser("query", help="Print a range resampled to an interval as JSON")
    add_range_args(query_parser)
    query_parser.add_argument(
        "--interval",
        default="1h",
        choices=Interval.labels(),
        help="Target interval (default: 1h)",
    )
    return parser


async def run(args: argparse.Namespace, settings: AppSettings | None = None) -> int:
    """Run one CLI command. Returns the process exit code."""
    settings = settings or AppSettings()
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("klinedata.main")

    components = build_components(settings)
    service: MarketDataService = components["service"]

    try:
        await components["database"].connect()
        await components["registry"].connect_all()
        if args.command == "load":
            report = await service.load_data(args.symbol, args.start, args.end, args.exchange)
            print(
                json.dumps(
                    {
                        "symbol": report.symbol,
                        "batches": len(report.batches),
                        "fetched": report.total_fetched,
                        "inserted": report.total_inserted,
                    }
                )
            )
        else:
            records = await service.retrieve_and_aggregate(
                args.symbol, args.start, args.end, args.interval, args.exchange
            )
            print(json.dumps([record.to_dict() for record in records], indent=2))
        return 0
    except PartialLoadError as e:
        logger.error(
            "load_incomplete",
            failed=[(b.start_ms, b.end_ms, b.error) for b in e.report.failed_batches],
        )
        return 2
    except KlineDataError as e:
        logger.error("command_failed", command=args.command, error=str(e))
        return 1
    finally:
        await components["registry"].close_all()
        await components["cache"].close()
        await components["database"].close()


def main(argv: list[str] | None = None) -> None:
    """Synchronous entry point."""
    args = create_parser().parse_args(argv)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
