"""Kline persistence, caching, loading and resampling.

Provides the SQLite database manager and typed store, the cache index,
the concurrent batch loader, the cache-aside retriever and the bucket
aggregator.
"""

from klinedata.data.aggregator import aggregate_klines
from klinedata.data.cache import (
    InMemoryKlineCache,
    KlineCache,
    RedisKlineCache,
    cache_namespace,
)
from klinedata.data.database import KlineDatabase
from klinedata.data.loader import BatchResult, KlineLoader, LoadReport, partition_range
from klinedata.data.retriever import CacheAsideRetriever, aligned_range
from klinedata.data.store import KlineStore

__all__ = [
    "BatchResult",
    "CacheAsideRetriever",
    "InMemoryKlineCache",
    "KlineCache",
    "KlineDatabase",
    "KlineLoader",
    "KlineStore",
    "LoadReport",
    "RedisKlineCache",
    "aggregate_klines",
    "aligned_range",
    "cache_namespace",
    "partition_range",
]
