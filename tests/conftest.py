"""Shared test fixtures for the OHLCV sync pipeline."""

from collections.abc import AsyncIterator
from decimal import Decimal

import pytest
import pytest_asyncio

from ohlcv_sync.config import AppSettings, CryptoCompareSettings, DatabaseSettings, FetchSettings
from ohlcv_sync.data.database import HistoricalDatabase
from ohlcv_sync.data.store import HistoricalDataStore
from ohlcv_sync.models import OHLCVRecord


@pytest.fixture
def mock_settings(tmp_path) -> AppSettings:  # type: ignore[no-untyped-def]
    """Return AppSettings with test defaults (no delays, dummy API key, temp db)."""
    return AppSettings(
        log_level="DEBUG",
        cryptocompare=CryptoCompareSettings(
            api_key="test-api-key",  # type: ignore[arg-type]
            base_url="https://cc.test/data/v2",
        ),
        fetch=FetchSettings(
            trading_symbols=["BTC", "ETH"],
            vs_currency="USD",
            page_delay_seconds=0.0,
            clock_skew_seconds=5,
        ),
        database=DatabaseSettings(path=str(tmp_path / "ohlcv.db")),
    )


@pytest_asyncio.fixture
async def database(mock_settings: AppSettings) -> AsyncIterator[HistoricalDatabase]:
    """Connected HistoricalDatabase on a temporary file."""
    async with HistoricalDatabase(mock_settings.database.path) as db:
        yield db


@pytest.fixture
def store(database: HistoricalDatabase) -> HistoricalDataStore:
    return HistoricalDataStore(database)


def make_record(
    time: int,
    volume_from: str = "1",
    price: str = "100",
    volume_to: str = "100",
) -> OHLCVRecord:
    """Build a record with open=high=low=close=price."""
    p = Decimal(price)
    return OHLCVRecord(
        time=time,
        open=p,
        high=p,
        low=p,
        close=p,
        volume_from=Decimal(volume_from),
        volume_to=Decimal(volume_to),
    )
