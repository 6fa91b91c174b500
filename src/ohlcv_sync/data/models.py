"""Storage row model for persisted OHLCV bars.

CRITICAL: All price and volume fields use Decimal. Stored in SQLite as TEXT
to preserve Decimal precision, restored as Decimal on read.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from ohlcv_sync.models import OHLCVRecord


@dataclass
class Bar:
    """A single persisted OHLCV observation.

    Natural key is (symbol, quote_currency, timestamp). The timeframe is not
    a field: it decides which table the bar lives in. id is the surrogate
    key assigned by the store and is None until the bar has been read back.
    """

    symbol: str
    quote_currency: str
    timestamp: datetime  # UTC, aligned to the bucket start
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume_base: Decimal
    volume_quote: Decimal
    id: int | None = None

    @classmethod
    def from_record(
        cls, record: OHLCVRecord, symbol: str, quote_currency: str
    ) -> "Bar":
        """Map an upstream record onto a storage row for symbol/quote_currency."""
        return cls(
            symbol=symbol,
            quote_currency=quote_currency,
            timestamp=datetime.fromtimestamp(record.time, tz=timezone.utc),
            open=record.open,
            high=record.high,
            low=record.low,
            close=record.close,
            volume_base=record.volume_from,
            volume_quote=record.volume_to,
        )

    @property
    def timestamp_s(self) -> int:
        return int(self.timestamp.timestamp())
