"""CryptoCompare OHLCV client implementation via httpx async.

Wraps one httpx.AsyncClient for connection reuse. Application-level errors
are detected from the envelope's Response field, not from the HTTP status:
CryptoCompare answers most failures with a 200 and Response == "Error".
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Self

import httpx

from ohlcv_sync.api.client import MarketDataClient
from ohlcv_sync.config import CryptoCompareSettings
from ohlcv_sync.exceptions import DecodeError, TransportError, UpstreamError
from ohlcv_sync.logging import get_logger
from ohlcv_sync.models import FetchPage, OHLCVRecord, Timeframe

logger = get_logger(__name__)


class CryptoCompareClient(MarketDataClient):
    """Concrete CryptoCompare client for histominute/histohour/histoday."""

    def __init__(
        self,
        settings: CryptoCompareSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.max_page_size = settings.max_page_size

    async def connect(self) -> None:
        """Open the HTTP session. Safe to call twice."""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._settings.base_url,
            timeout=self._settings.request_timeout,
            headers={
                "Accept-Encoding": "gzip",
                "User-Agent": "ohlcv-sync/0.1",
            },
            transport=self._transport,
        )
        logger.info("cryptocompare_client_opened", base_url=self._settings.base_url)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("cryptocompare_client_closed")

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def fetch_page(
        self,
        symbol: str,
        quote_currency: str,
        timeframe: Timeframe,
        limit: int,
        cursor: int | None = None,
    ) -> FetchPage:
        """Fetch one page of bars from the timeframe's endpoint.

        Args:
            symbol: Base asset (e.g. 'BTC')
            quote_currency: Quote currency (e.g. 'USD')
            timeframe: Selects histominute/histohour/histoday
            limit: Page size, capped at max_page_size
            cursor: Unix seconds sent as toTs; omitted means "up to now"

        Returns:
            FetchPage with records in the order the API returned them

        Raises:
            TransportError: network failure or timeout
            UpstreamError: envelope reports Response == "Error"
            DecodeError: body is not a valid OHLCV envelope
        """
        if self._client is None:
            raise RuntimeError("Client not initialized. Use async context manager.")

        params: dict[str, Any] = {
            "fsym": symbol,
            "tsym": quote_currency,
            "limit": min(limit, self.max_page_size),
            "api_key": self._settings.api_key.get_secret_value(),
        }
        if cursor is not None:
            params["toTs"] = cursor

        logger.debug(
            "fetching_page",
            endpoint=timeframe.endpoint,
            symbol=symbol,
            quote_currency=quote_currency,
            limit=params["limit"],
            cursor=cursor,
        )

        try:
            response = await self._client.get(f"/{timeframe.endpoint}", params=params)
        except httpx.TransportError as e:
            logger.error(
                "http_request_failed",
                endpoint=timeframe.endpoint,
                symbol=symbol,
                error=str(e),
            )
            raise TransportError(f"GET {timeframe.endpoint} failed: {e}") from e

        try:
            payload = response.json(parse_float=Decimal)
        except ValueError as e:
            logger.error(
                "http_response_not_json",
                endpoint=timeframe.endpoint,
                status_code=response.status_code,
            )
            raise DecodeError(
                f"non-JSON response from {timeframe.endpoint} (HTTP {response.status_code})"
            ) from e

        if not isinstance(payload, dict):
            raise DecodeError(f"unexpected payload type from {timeframe.endpoint}")

        if payload.get("Response") == "Error":
            message = str(payload.get("Message") or "unknown error")
            logger.error("upstream_error", endpoint=timeframe.endpoint, message=message)
            raise UpstreamError(message)

        page = parse_page(payload)
        logger.debug(
            "fetched_page",
            endpoint=timeframe.endpoint,
            symbol=symbol,
            records=len(page),
            time_from=page.time_from,
        )
        return page


def parse_page(payload: dict) -> FetchPage:
    """Decode a success envelope into a FetchPage.

    Raises DecodeError on missing sections, non-numeric or non-finite fields,
    bar times outside the datetime range, or a non-empty page without TimeFrom.
    """
    try:
        data = payload["Data"]
        rows = data.get("Data") or []
        records = [_parse_record(row) for row in rows]
        if records:
            time_from, time_to = int(data["TimeFrom"]), int(data["TimeTo"])
        else:
            time_from, time_to = int(data.get("TimeFrom", 0)), int(data.get("TimeTo", 0))
        return FetchPage(records=records, time_from=time_from, time_to=time_to)
    except (KeyError, TypeError, ValueError, AttributeError, InvalidOperation) as e:
        raise DecodeError(f"malformed OHLCV payload: {e!r}") from e


def _parse_record(row: dict) -> OHLCVRecord:
    return OHLCVRecord(
        time=_epoch(row["time"]),
        open=_decimal(row["open"]),
        high=_decimal(row["high"]),
        low=_decimal(row["low"]),
        close=_decimal(row["close"]),
        volume_from=_decimal(row["volumefrom"]),
        volume_to=_decimal(row["volumeto"]),
    )


def _epoch(value: Any) -> int:
    if value is None or isinstance(value, bool):
        raise ValueError(f"not a timestamp: {value!r}")
    seconds = int(value)
    try:
        datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f"timestamp out of range: {seconds}") from e
    return seconds


def _decimal(value: Any) -> Decimal:
    # Integers arrive as int; floats were already parsed as Decimal
    if value is None or isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    d = value if isinstance(value, Decimal) else Decimal(str(value))
    # NaN/Infinity literals come through json as floats
    if not d.is_finite():
        raise ValueError(f"non-finite number: {value!r}")
    return d
