"""Abstract market-data client interface.

Defines the contract the fetcher depends on, keeping CryptoCompare-specific
details isolated in the concrete implementation.
"""

from abc import ABC, abstractmethod

from ohlcv_sync.models import FetchPage, Timeframe


class MarketDataClient(ABC):
    """Abstract base class for paged OHLCV history APIs."""

    max_page_size: int = 2000

    @abstractmethod
    async def connect(self) -> None:
        """Open the underlying HTTP session."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying HTTP session."""
        ...

    @abstractmethod
    async def fetch_page(
        self,
        symbol: str,
        quote_currency: str,
        timeframe: Timeframe,
        limit: int,
        cursor: int | None = None,
    ) -> FetchPage:
        """Fetch one page of bars ending at cursor (Unix seconds), or at now.

        limit is capped at max_page_size.

        Pagination is NOT handled here -- callers walk backward by passing
        the previous page's time_from as the next cursor.

        Raises TransportError, UpstreamError or DecodeError. Never retries.
        """
        ...
