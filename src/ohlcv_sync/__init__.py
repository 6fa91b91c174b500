"""Crypto OHLCV sync: backfill and refresh CryptoCompare price history into SQLite."""

__version__ = "0.1.0"
