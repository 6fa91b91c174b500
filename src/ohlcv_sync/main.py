"""Entry point for the OHLCV sync job.

Wires settings, logging, the CryptoCompare client, the SQLite store and the
ingestion pipeline, runs one pass over every configured symbol and exits.

Two modes:
- default: refresh the most recent FETCH_LIMIT_* buckets per timeframe
- --fetch-all: walk every timeframe's entire history backward from now
"""

import argparse
import asyncio
import sys

from ohlcv_sync.api.cryptocompare_client import CryptoCompareClient
from ohlcv_sync.config import AppSettings
from ohlcv_sync.data.database import HistoricalDatabase
from ohlcv_sync.data.fetcher import HistoricalDataFetcher
from ohlcv_sync.data.store import HistoricalDataStore
from ohlcv_sync.logging import get_logger, setup_logging
from ohlcv_sync.models import Timeframe
from ohlcv_sync.pipeline import IngestionPipeline, RunSummary, build_jobs


def resolve_limits(settings: AppSettings, fetch_all: bool) -> dict[Timeframe, int]:
    """Per-timeframe limits for this run; -1 everywhere means full history."""
    if fetch_all:
        return {tf: -1 for tf in Timeframe}
    return {
        Timeframe.MINUTE: settings.fetch.limit_minute,
        Timeframe.HOURLY: settings.fetch.limit_hourly,
        Timeframe.DAILY: settings.fetch.limit_daily,
    }


async def run(settings: AppSettings, fetch_all: bool = False) -> RunSummary:
    """Run one sync pass and return its summary."""
    logger = get_logger("ohlcv_sync.main")

    if not settings.cryptocompare.api_key.get_secret_value():
        logger.warning(
            "no_api_key_configured",
            note="Anonymous requests are heavily rate limited upstream.",
        )

    symbols = settings.fetch.trading_symbols
    limits = resolve_limits(settings, fetch_all)
    if fetch_all:
        logger.warning("fetching_full_history", symbols=symbols)
    else:
        logger.info(
            "fetching_recent_data",
            symbols=symbols,
            limits={tf.value: n for tf, n in limits.items()},
        )

    async with HistoricalDatabase(settings.database.path) as database:
        store = HistoricalDataStore(database)
        async with CryptoCompareClient(settings.cryptocompare) as client:
            fetcher = HistoricalDataFetcher(client, settings.fetch)
            pipeline = IngestionPipeline(fetcher, store, settings.fetch)
            summary = await pipeline.run(
                build_jobs(symbols, settings.fetch.vs_currency, limits)
            )

    logger.info("data_fetch_completed", symbols=symbols)
    return summary


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Sync CryptoCompare OHLCV history into SQLite."
    )
    parser.add_argument(
        "--fetch-all",
        action="store_true",
        help="Backfill the entire available history instead of the recent window",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override LOG_LEVEL from the environment",
    )
    parser.add_argument(
        "--log-format",
        choices=["console", "json"],
        help="Override LOG_FORMAT from the environment",
    )
    args = parser.parse_args()

    settings = AppSettings()
    setup_logging(
        args.log_level or settings.log_level,
        args.log_format or settings.log_format,
    )

    summary = asyncio.run(run(settings, fetch_all=args.fetch_all))

    if summary.download_failures or summary.save_failures:
        sys.exit(1)


if __name__ == "__main__":
    main()
