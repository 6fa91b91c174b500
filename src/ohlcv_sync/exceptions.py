"""Custom exceptions for the OHLCV sync pipeline.

Upstream, decoding and persistence errors live here so the client,
fetcher, store and pipeline can share them without circular imports.
"""


class SyncError(Exception):
    """Base exception for all sync errors."""


class TransportError(SyncError):
    """Raised when the HTTP request itself fails (connect, read, timeout)."""


class UpstreamError(SyncError):
    """Raised when the API envelope reports an application-level error."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"upstream error: {message}")


class DecodeError(SyncError):
    """Raised when the API response cannot be decoded into OHLCV records."""


class PersistenceError(SyncError):
    """Raised when the store rejects a batch write."""
