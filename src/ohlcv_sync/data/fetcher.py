"""Backward-paginated history fetch with termination and data-quality rules.

Reconstructs an entire OHLCV history from an API that returns at most one
bounded page per call, walking backward in time from "now".

Implementation notes:
- Pages arrive newest-first across calls, so the merged series is stable
  sorted ascending before it is returned. Overlapping page boundaries can
  produce equal timestamps; arrival order is kept for those.
- A page whose records ALL have zero base volume is data the upstream has
  not materialized yet. It ends the walk without error. A page with only
  some zero-volume records is accepted in full.
- For sub-hour timeframes the newest bar is dropped when its base volume is
  zero: that bucket has not closed yet.
- An interrupted walk returns what it collected together with the error.
"""

import asyncio
import time
from datetime import datetime, timezone

import structlog

from ohlcv_sync.api.client import MarketDataClient
from ohlcv_sync.config import FetchSettings
from ohlcv_sync.exceptions import SyncError
from ohlcv_sync.logging import get_logger
from ohlcv_sync.models import FetchResult, OHLCVRecord, Timeframe


class HistoricalDataFetcher:
    """Fetches OHLCV history through a MarketDataClient.

    Usage:
        fetcher = HistoricalDataFetcher(client, settings.fetch)
        result = await fetcher.fetch_all("BTC", "USD", Timeframe.HOURLY)
        recent = await fetcher.fetch_recent("BTC", "USD", Timeframe.DAILY, 7)
    """

    def __init__(
        self,
        client: MarketDataClient,
        settings: FetchSettings,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._log = logger or get_logger(__name__)

    async def fetch_recent(
        self,
        symbol: str,
        quote_currency: str,
        timeframe: Timeframe,
        limit: int,
    ) -> list[OHLCVRecord]:
        """Fetch the most recent `limit` buckets with a single call.

        Errors propagate unchanged.
        """
        self._log.debug(
            "fetching_recent_ohlcv",
            symbol=symbol,
            quote_currency=quote_currency,
            timeframe=timeframe.value,
            limit=limit,
        )
        page = await self._client.fetch_page(symbol, quote_currency, timeframe, limit)
        return page.records

    async def fetch_all(
        self,
        symbol: str,
        quote_currency: str,
        timeframe: Timeframe,
    ) -> FetchResult:
        """Walk BACKWARD from now until the upstream runs out of history.

        Returns a FetchResult sorted ascending by time. If the walk broke on
        an error after at least one page, the result carries both the
        records and the error.

        Raises the SyncError that stopped the walk when nothing was collected.
        """
        log = self._log.bind(
            symbol=symbol, quote_currency=quote_currency, timeframe=timeframe.value
        )
        log.info("fetch_all_started")

        records: list[OHLCVRecord] = []
        error: SyncError | None = None
        pages = 0
        cursor = int(time.time()) + self._settings.clock_skew_seconds

        while True:
            log.debug("fetching_history_page", cursor=_iso(cursor), collected=len(records))
            try:
                page = await self._client.fetch_page(
                    symbol,
                    quote_currency,
                    timeframe,
                    self._client.max_page_size,
                    cursor=cursor,
                )
            except SyncError as e:
                log.error("history_page_failed", cursor=_iso(cursor), error=str(e))
                error = e
                break

            if not page.records:
                log.debug("history_exhausted", pages=pages)
                break

            if is_zero_volume_page(page.records):
                log.warning("zero_volume_page_skipped", cursor=_iso(cursor), size=len(page))
                break

            records.extend(page.records)
            pages += 1
            cursor = page.time_from - timeframe.bucket_seconds

            log.debug(
                "history_page_done",
                pages=pages,
                collected=len(records),
                delay=self._settings.page_delay_seconds,
            )
            # Rate limit safety delay between paginated calls
            await asyncio.sleep(self._settings.page_delay_seconds)

        if not records:
            if error is not None:
                raise error
            log.info("fetch_all_empty")
            return FetchResult()

        records = sort_by_time(records)
        if timeframe.is_sub_hour:
            records = remove_not_ready(records)

        if error is not None:
            log.warning("fetch_all_incomplete", pages=pages, records=len(records), error=str(error))
        else:
            log.info("fetch_all_complete", pages=pages, records=len(records))

        return FetchResult(records=records, error=error)


# ──────────────────────────────────────────────
# Series helpers
# ──────────────────────────────────────────────


def is_zero_volume_page(records: list[OHLCVRecord]) -> bool:
    """True when no record in the page has any base volume (vacuously for [])."""
    return all(r.volume_from == 0 for r in records)


def remove_not_ready(records: list[OHLCVRecord]) -> list[OHLCVRecord]:
    """Drop the newest record if its base volume is zero (bucket still open)."""
    if records and records[-1].volume_from == 0:
        return records[:-1]
    return records


def sort_by_time(records: list[OHLCVRecord]) -> list[OHLCVRecord]:
    """Stable ascending sort by time."""
    return sorted(records, key=lambda r: r.time)


def remove_zero_price_records(records: list[OHLCVRecord]) -> list[OHLCVRecord]:
    """Drop every record whose open, high, low and close are all zero."""
    return [r for r in records if not r.is_zero_price]


def _iso(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()
