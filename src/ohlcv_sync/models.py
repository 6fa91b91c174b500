"""Shared data models for the OHLCV sync pipeline.

CRITICAL: All price and volume values use Decimal. The zero-volume and
zero-price heuristics compare against zero exactly, so float is never allowed.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class Timeframe(str, Enum):
    """Bar granularity. Selects the upstream endpoint and the storage table."""

    MINUTE = "minute"
    HOURLY = "hourly"
    DAILY = "daily"

    @property
    def endpoint(self) -> str:
        return _ENDPOINTS[self]

    @property
    def bucket_seconds(self) -> int:
        return _BUCKET_SECONDS[self]

    @property
    def table(self) -> str:
        return f"crypto_ohlcv_{self.value}"

    @property
    def is_sub_hour(self) -> bool:
        return self.bucket_seconds < 3600


_ENDPOINTS = {
    Timeframe.MINUTE: "histominute",
    Timeframe.HOURLY: "histohour",
    Timeframe.DAILY: "histoday",
}

_BUCKET_SECONDS = {
    Timeframe.MINUTE: 60,
    Timeframe.HOURLY: 3600,
    Timeframe.DAILY: 86400,
}


@dataclass
class OHLCVRecord:
    """A single bar as returned by the upstream API.

    volume_from is the base-asset volume, volume_to the quote-currency volume.
    """

    time: int  # Unix seconds, bucket start
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume_from: Decimal
    volume_to: Decimal

    @property
    def is_zero_price(self) -> bool:
        """True when open, high, low and close are all exactly zero."""
        return self.open == 0 and self.high == 0 and self.low == 0 and self.close == 0


@dataclass
class FetchPage:
    """Result of one upstream call. time_from is the cursor for the next older page."""

    records: list[OHLCVRecord] = field(default_factory=list)
    time_from: int = 0
    time_to: int = 0

    def __len__(self) -> int:
        return len(self.records)


@dataclass
class FetchResult:
    """Outcome of a history walk.

    records may be non-empty while error is set: a walk interrupted after
    some pages still returns what it collected.
    """

    records: list[OHLCVRecord] = field(default_factory=list)
    error: Exception | None = None

    @property
    def partial(self) -> bool:
        return self.error is not None and bool(self.records)
