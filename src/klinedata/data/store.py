"""Typed SQLite read/write abstraction for kline records.

All SQL is isolated behind KlineStore. Records are append-only: inserts
ignore rows whose primary key (symbol, open_time, close_time) already exists.

CRITICAL: Decimal fields are stored as TEXT in SQLite and restored as Decimal on read.
"""

import asyncio
from collections.abc import Sequence
from decimal import Decimal

from klinedata.data.database import KlineDatabase
from klinedata.logging import get_logger
from klinedata.models import KlineData

logger = get_logger(__name__)

_COLUMNS = (
    "symbol, open_time, close_time, open_price, high_price, low_price, "
    "close_price, volume, quote_asset_volume, number_of_trades, "
    "taker_buy_base_volume, taker_buy_quote_volume"
)


def _text(value: Decimal) -> str:
    return format(value, "f")


def _to_row(record: KlineData) -> tuple:
    return (
        record.symbol,
        record.open_time,
        record.close_time,
        _text(record.open_price),
        _text(record.high_price),
        _text(record.low_price),
        _text(record.close_price),
        _text(record.volume),
        _text(record.quote_asset_volume),
        record.number_of_trades,
        _text(record.taker_buy_base_volume),
        _text(record.taker_buy_quote_volume),
    )


def _from_row(row: Sequence) -> KlineData:
    return KlineData(
        symbol=row[0],
        open_time=row[1],
        close_time=row[2],
        open_price=row[3],
        high_price=row[4],
        low_price=row[5],
        close_price=row[6],
        volume=row[7],
        quote_asset_volume=row[8],
        number_of_trades=row[9],
        taker_buy_base_volume=row[10],
        taker_buy_quote_volume=row[11],
    )


class KlineStore:
    """Async SQLite store for kline records.

    Wraps KlineDatabase with typed read/write methods. Concurrent loader
    batches share one connection, so each insert and its commit run under
    a lock.

    Usage:
        async with KlineDatabase("data/klines.db") as database:
            store = KlineStore(database)
            inserted = await store.insert_klines(records)
    """

    def __init__(self, database: KlineDatabase) -> None:
        self._database = database
        self._write_lock = asyncio.Lock()

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def insert_klines(self, records: Sequence[KlineData]) -> int:
        """Batch insert records, ignoring duplicates via INSERT OR IGNORE.

        Returns the number of actually inserted rows (excludes ignored duplicates).
        An empty batch is a no-op.
        """
        if not records:
            return 0

        data = [_to_row(record) for record in records]
        async with self._write_lock:
            cursor = await self._database.db.executemany(
                f"INSERT OR IGNORE INTO kline_data ({_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                data,
            )
            await self._database.db.commit()

        inserted = cursor.rowcount
        logger.debug(
            "inserted_klines",
            symbol=records[0].symbol,
            total=len(records),
            inserted=inserted,
        )
        return inserted

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def get_klines(
        self,
        symbol: str,
        start_ms: int,
        end_ms: int,
    ) -> list[KlineData]:
        """Query records with open_time >= start_ms and close_time <= end_ms.

        Returns list of KlineData ordered by open_time ASC.
        """
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM kline_data "
            "WHERE symbol = ? AND open_time >= ? AND close_time <= ? "
            "ORDER BY open_time ASC",
            (symbol, start_ms, end_ms),
        )
        rows = await cursor.fetchall()
        return [_from_row(row) for row in rows]

    async def count_klines(self, symbol: str | None = None) -> int:
        """Count stored records, optionally for a single symbol."""
        if symbol is None:
            cursor = await self._database.db.execute("SELECT COUNT(*) FROM kline_data")
        else:
            cursor = await self._database.db.execute(
                "SELECT COUNT(*) FROM kline_data WHERE symbol = ?", (symbol,)
            )
        row = await cursor.fetchone()
        return row[0] if row else 0
