"""OHLCV history persistence layer.

Provides the storage row model, SQLite database management, typed
upsert/query store, and the backward-paginating history fetcher.
"""

from ohlcv_sync.data.database import HistoricalDatabase
from ohlcv_sync.data.fetcher import HistoricalDataFetcher
from ohlcv_sync.data.models import Bar
from ohlcv_sync.data.store import HistoricalDataStore

__all__ = [
    "Bar",
    "HistoricalDataFetcher",
    "HistoricalDatabase",
    "HistoricalDataStore",
]
