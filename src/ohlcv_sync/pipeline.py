"""Two-stage download/save pipeline for OHLCV sync jobs.

A download stage and a save stage run as long-lived asyncio tasks, linked
by bounded queues. Each job is tracked through both stages by a shared
CompletionCounter: submission adds one, forwarding to the save stage adds
one, and each stage marks done exactly once per message it consumes.
run() returns only once the counter is back at zero.

Failures are isolated per job: a download that produces nothing is logged
and dropped, a save that is rejected is logged, and sibling jobs carry on.
"""

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import structlog

from ohlcv_sync.config import FetchSettings
from ohlcv_sync.data.fetcher import HistoricalDataFetcher, remove_zero_price_records
from ohlcv_sync.data.models import Bar
from ohlcv_sync.data.store import HistoricalDataStore
from ohlcv_sync.logging import get_logger, job_context
from ohlcv_sync.models import OHLCVRecord, Timeframe

# Job order within one symbol
JOB_TIMEFRAMES = (Timeframe.HOURLY, Timeframe.DAILY, Timeframe.MINUTE)


class CompletionCounter:
    """Counts outstanding stage work; wait() returns when it drops to zero."""

    def __init__(self) -> None:
        self._count = 0
        self._zero = asyncio.Event()
        self._zero.set()

    @property
    def count(self) -> int:
        return self._count

    def add(self, n: int = 1) -> None:
        self._count += n
        if self._count > 0:
            self._zero.clear()

    def done(self) -> None:
        if self._count <= 0:
            raise RuntimeError("CompletionCounter.done() called more times than add()")
        self._count -= 1
        if self._count == 0:
            self._zero.set()

    async def wait(self) -> None:
        await self._zero.wait()


@dataclass
class Job:
    """One (symbol, quote_currency, timeframe) unit of work.

    limit < 0 fetches the entire history, otherwise the most recent `limit`
    buckets.
    """

    symbol: str
    quote_currency: str
    timeframe: Timeframe
    limit: int

    @property
    def fetch_all(self) -> bool:
        return self.limit < 0


@dataclass
class _SaveJob:
    job: Job
    records: list[OHLCVRecord]


@dataclass
class RunSummary:
    """Per-run counters reported by IngestionPipeline.run()."""

    jobs_submitted: int = 0
    jobs_saved: int = 0
    download_failures: int = 0
    partial_downloads: int = 0
    save_failures: int = 0
    rows_written: int = 0


def build_jobs(
    symbols: Iterable[str],
    quote_currency: str,
    limits: Mapping[Timeframe, int],
) -> list[Job]:
    """Enumerate one job per (symbol, timeframe), hourly/daily/minute per symbol.

    Timeframes missing from limits are skipped.
    """
    return [
        Job(symbol=symbol, quote_currency=quote_currency, timeframe=tf, limit=limits[tf])
        for symbol in symbols
        for tf in JOB_TIMEFRAMES
        if tf in limits
    ]


class IngestionPipeline:
    """Runs jobs through a download stage and a save stage.

    Usage:
        pipeline = IngestionPipeline(fetcher, store, settings.fetch)
        summary = await pipeline.run(build_jobs(symbols, "USD", limits))
    """

    def __init__(
        self,
        fetcher: HistoricalDataFetcher,
        store: HistoricalDataStore,
        settings: FetchSettings,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._store = store
        self._settings = settings
        self._log = logger or get_logger(__name__)
        self._summary = RunSummary()

    async def run(self, jobs: Iterable[Job]) -> RunSummary:
        """Submit every job and block until all of them cleared both stages."""
        self._summary = RunSummary()
        counter = CompletionCounter()
        download_queue: asyncio.Queue[Job] = asyncio.Queue(maxsize=self._settings.queue_size)
        save_queue: asyncio.Queue[_SaveJob] = asyncio.Queue(maxsize=self._settings.queue_size)

        workers = [
            asyncio.create_task(
                self._download_worker(download_queue, save_queue, counter), name=f"download-{i}"
            )
            for i in range(max(1, self._settings.download_workers))
        ]
        workers.append(asyncio.create_task(self._save_worker(save_queue, counter), name="save"))

        try:
            for job in jobs:
                counter.add()
                self._summary.jobs_submitted += 1
                # Blocks while the download stage is behind (backpressure)
                await download_queue.put(job)

            await counter.wait()
        finally:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        self._log.info("pipeline_run_complete", **vars(self._summary))
        return self._summary

    # ──────────────────────────────────────────────
    # Stages
    # ──────────────────────────────────────────────

    async def _download_worker(
        self,
        download_queue: "asyncio.Queue[Job]",
        save_queue: "asyncio.Queue[_SaveJob]",
        counter: CompletionCounter,
    ) -> None:
        while True:
            job = await download_queue.get()
            try:
                with job_context(job.symbol, job.quote_currency, job.timeframe.value):
                    records = await self._download(job)
                    if records is not None:
                        counter.add()
                        await save_queue.put(_SaveJob(job=job, records=records))
            except Exception as e:
                self._summary.download_failures += 1
                self._log.error(
                    "download_worker_error",
                    symbol=job.symbol,
                    timeframe=job.timeframe.value,
                    error=str(e),
                    exc_info=True,
                )
            finally:
                counter.done()
                download_queue.task_done()

    async def _download(self, job: Job) -> list[OHLCVRecord] | None:
        """Fetch one job's records, or None when the job must be dropped."""
        self._log.info("download_started", limit=job.limit)
        try:
            if job.fetch_all:
                result = await self._fetcher.fetch_all(
                    job.symbol, job.quote_currency, job.timeframe
                )
                records, error = result.records, result.error
            else:
                records = await self._fetcher.fetch_recent(
                    job.symbol, job.quote_currency, job.timeframe, job.limit
                )
                error = None
        except Exception as e:
            self._summary.download_failures += 1
            self._log.error("download_failed", error=str(e), exc_info=True)
            return None

        if error is not None:
            self._summary.partial_downloads += 1
            self._log.warning(
                "download_incomplete_saving_partial",
                records=len(records),
                error=str(error),
            )
        else:
            self._log.info("download_complete", records=len(records))

        if job.fetch_all:
            cleaned = remove_zero_price_records(records)
            if len(cleaned) != len(records):
                self._log.info("zero_price_records_removed", removed=len(records) - len(cleaned))
            records = cleaned

        return records

    async def _save_worker(
        self,
        save_queue: "asyncio.Queue[_SaveJob]",
        counter: CompletionCounter,
    ) -> None:
        while True:
            item = await save_queue.get()
            job = item.job
            try:
                with job_context(job.symbol, job.quote_currency, job.timeframe.value):
                    await self._save(item)
            except Exception as e:
                self._summary.save_failures += 1
                self._log.error(
                    "save_worker_error",
                    symbol=job.symbol,
                    timeframe=job.timeframe.value,
                    error=str(e),
                    exc_info=True,
                )
            finally:
                counter.done()
                save_queue.task_done()

    async def _save(self, item: _SaveJob) -> None:
        job = item.job
        try:
            bars = [Bar.from_record(r, job.symbol, job.quote_currency) for r in item.records]
            self._log.info("save_started", bars=len(bars))
            written = await self._store.upsert_bars(job.timeframe, bars)
        except Exception as e:
            self._summary.save_failures += 1
            self._log.error("save_failed", error=str(e), exc_info=True)
            return

        self._summary.jobs_saved += 1
        self._summary.rows_written += written
        self._log.info("save_complete", rows=written)
