"""Typed SQLite read/write abstraction for OHLCV bars.

Provides HistoricalDataStore with an idempotent upsert and an ascending range
query per timeframe table. All SQL is isolated behind this interface.

CRITICAL: All price/volume values stored as TEXT in SQLite, restored as Decimal on read.
"""

import sqlite3
from datetime import datetime, timezone
from decimal import Decimal

from ohlcv_sync.data.database import HistoricalDatabase
from ohlcv_sync.data.models import Bar
from ohlcv_sync.exceptions import PersistenceError
from ohlcv_sync.logging import get_logger
from ohlcv_sync.models import Timeframe

logger = get_logger(__name__)

_NUMERIC_FIELDS = ("open", "high", "low", "close", "volume_base", "volume_quote")


class HistoricalDataStore:
    """Async SQLite store for OHLCV bars, one table per timeframe.

    Wraps HistoricalDatabase with typed read/write methods. All SQL access
    goes through self._database.db (the aiosqlite Connection).

    Usage:
        async with HistoricalDatabase("data/ohlcv.db") as database:
            store = HistoricalDataStore(database)
            written = await store.upsert_bars(Timeframe.HOURLY, bars)
    """

    def __init__(self, database: HistoricalDatabase) -> None:
        self._database = database

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def upsert_bars(self, timeframe: Timeframe, bars: list[Bar]) -> int:
        """Insert bars, overwriting prices and volumes on natural-key collision.

        The batch is written in a single transaction: either every bar lands
        or none does. The surrogate id of an existing row never changes.
        Returns the number of rows written.

        Raises PersistenceError if the batch is rejected.
        """
        if not bars:
            return 0

        for bar in bars:
            missing = [name for name in _NUMERIC_FIELDS if getattr(bar, name) is None]
            if missing:
                raise PersistenceError(
                    f"bar {bar.symbol}/{bar.quote_currency}@{bar.timestamp.isoformat()} "
                    f"has null fields: {', '.join(missing)}"
                )

        data = [
            (
                bar.symbol,
                bar.quote_currency,
                bar.timestamp_s,
                str(bar.open),
                str(bar.high),
                str(bar.low),
                str(bar.close),
                str(bar.volume_base),
                str(bar.volume_quote),
            )
            for bar in bars
        ]

        db = self._database.db
        try:
            cursor = await db.executemany(
                f"INSERT INTO {timeframe.table} "
                "(symbol, quote_currency, timestamp, open, high, low, close, "
                "volume_base, volume_quote) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT (symbol, quote_currency, timestamp) DO UPDATE SET "
                "open = excluded.open, high = excluded.high, low = excluded.low, "
                "close = excluded.close, volume_base = excluded.volume_base, "
                "volume_quote = excluded.volume_quote",
                data,
            )
            await db.commit()
        except sqlite3.Error as e:
            await db.rollback()
            logger.error(
                "upsert_bars_failed",
                table=timeframe.table,
                total=len(bars),
                error=str(e),
            )
            raise PersistenceError(f"failed to upsert into {timeframe.table}: {e}") from e

        written = cursor.rowcount
        logger.debug(
            "upserted_bars",
            table=timeframe.table,
            total=len(bars),
            written=written,
        )
        return written

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def get_bars(
        self,
        timeframe: Timeframe,
        symbol: str,
        quote_currency: str,
        limit: int | None = None,
    ) -> list[Bar]:
        """Query bars for a pair, ordered by timestamp ASC.

        limit caps the number of rows counted from the oldest bar.
        """
        query = (
            f"SELECT id, symbol, quote_currency, timestamp, open, high, low, close, "
            f"volume_base, volume_quote FROM {timeframe.table} "
            f"WHERE symbol = ? AND quote_currency = ? ORDER BY timestamp ASC"
        )
        params: list = [symbol, quote_currency]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        cursor = await self._database.db.execute(query, params)
        rows = await cursor.fetchall()
        return [
            Bar(
                id=row[0],
                symbol=row[1],
                quote_currency=row[2],
                timestamp=datetime.fromtimestamp(row[3], tz=timezone.utc),
                open=Decimal(row[4]),
                high=Decimal(row[5]),
                low=Decimal(row[6]),
                close=Decimal(row[7]),
                volume_base=Decimal(row[8]),
                volume_quote=Decimal(row[9]),
            )
            for row in rows
        ]

    async def count_bars(
        self, timeframe: Timeframe, symbol: str, quote_currency: str
    ) -> int:
        """Return the number of stored bars for a pair in one timeframe table."""
        cursor = await self._database.db.execute(
            f"SELECT COUNT(*) FROM {timeframe.table} "
            f"WHERE symbol = ? AND quote_currency = ?",
            (symbol, quote_currency),
        )
        return (await cursor.fetchone())[0]
