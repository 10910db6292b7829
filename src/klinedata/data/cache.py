"""Cache index for recently materialized kline records.

The index is an ordered structure per namespace (one namespace per
symbol and interval) scored by open_time. It is never the source of
truth: entries expire independently of the durable store and can always
be rebuilt from it.

Two implementations share the KlineCache contract:
- RedisKlineCache: one Redis sorted set per namespace (ZRANGEBYSCORE/ZADD/EXPIRE)
- InMemoryKlineCache: process-local, used when no Redis URL is configured
"""

import json
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

import redis.asyncio as redis

from klinedata.logging import get_logger
from klinedata.models import KlineData

logger = get_logger(__name__)


def cache_namespace(prefix: str, symbol: str, interval_label: str) -> str:
    """Namespace key for one (symbol, interval) scope, e.g. klineData:BTCUSDT:1m."""
    return f"{prefix}:{symbol}:{interval_label}"


class KlineCache(ABC):
    """Abstract sorted cache index keyed by open_time."""

    @abstractmethod
    async def range_by_key(
        self, namespace: str, low_key: int, high_key: int
    ) -> list[KlineData]:
        """Return entries with low_key <= key <= high_key, ordered by key."""
        ...

    @abstractmethod
    async def upsert(self, namespace: str, record: KlineData, key: int) -> None:
        """Store record under key, replacing any entry already at that key."""
        ...

    @abstractmethod
    async def expire(self, namespace: str, seconds: int) -> None:
        """(Re)set the namespace's time-to-live."""
        ...

    async def close(self) -> None:
        return None


class RedisKlineCache(KlineCache):
    """Redis sorted-set cache index.

    Members are canonical JSON of the record (sorted keys, decimals as
    strings) and scores are open_time.

    Usage:
        cache = RedisKlineCache.from_url("redis://localhost:6379/0")
        await cache.upsert("klineData:BTCUSDT:1m", record, record.open_time)
    """

    def __init__(self, client: redis.Redis) -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisKlineCache":
        # decode_responses=True ensures we get str members, not bytes
        return cls(redis.from_url(url, decode_responses=True))

    @staticmethod
    def _encode(record: KlineData) -> str:
        return json.dumps(record.to_dict(), sort_keys=True, separators=(",", ":"))

    @staticmethod
    def _decode(member: str | bytes) -> KlineData:
        return KlineData.from_dict(json.loads(member))

    async def range_by_key(
        self, namespace: str, low_key: int, high_key: int
    ) -> list[KlineData]:
        members = await self._redis.zrangebyscore(namespace, low_key, high_key)
        return [self._decode(member) for member in members]

    async def upsert(self, namespace: str, record: KlineData, key: int) -> None:
        # A changed record serializes to a new member; drop the old one at this score
        await self._redis.zremrangebyscore(namespace, key, key)
        await self._redis.zadd(namespace, {self._encode(record): key})

    async def expire(self, namespace: str, seconds: int) -> None:
        await self._redis.expire(namespace, seconds)

    async def close(self) -> None:
        await self._redis.aclose()
        logger.info("redis_cache_closed")


class InMemoryKlineCache(KlineCache):
    """Process-local cache index with per-namespace expiry.

    A namespace with no TTL set never expires, matching Redis semantics
    for keys without EXPIRE.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, dict[int, KlineData]] = {}
        self._deadlines: dict[str, float] = {}

    def _purge_if_expired(self, namespace: str) -> None:
        deadline = self._deadlines.get(namespace)
        if deadline is not None and self._clock() >= deadline:
            self._entries.pop(namespace, None)
            self._deadlines.pop(namespace, None)

    async def range_by_key(
        self, namespace: str, low_key: int, high_key: int
    ) -> list[KlineData]:
        self._purge_if_expired(namespace)
        entries = self._entries.get(namespace, {})
        return [entries[key] for key in sorted(entries) if low_key <= key <= high_key]

    async def upsert(self, namespace: str, record: KlineData, key: int) -> None:
        self._purge_if_expired(namespace)
        self._entries.setdefault(namespace, {})[key] = record

    async def expire(self, namespace: str, seconds: int) -> None:
        if namespace in self._entries:
            self._deadlines[namespace] = self._clock() + seconds

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())
