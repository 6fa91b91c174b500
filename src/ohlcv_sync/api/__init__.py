"""Market-data client layer -- CryptoCompare API integration via httpx."""

from ohlcv_sync.api.client import MarketDataClient
from ohlcv_sync.api.cryptocompare_client import CryptoCompareClient

__all__ = ["CryptoCompareClient", "MarketDataClient"]
