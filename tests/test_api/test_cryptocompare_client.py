"""Tests for CryptoCompareClient.

All tests route requests through httpx.MockTransport to avoid real API calls.
"""

from decimal import Decimal

import httpx
import pytest

from ohlcv_sync.api.cryptocompare_client import CryptoCompareClient, parse_page
from ohlcv_sync.config import CryptoCompareSettings
from ohlcv_sync.exceptions import DecodeError, TransportError, UpstreamError
from ohlcv_sync.models import Timeframe


# ---------------------------------------------------------------------------
# Sample payloads (mimic CryptoCompare data/v2 responses)
# ---------------------------------------------------------------------------

SUCCESS_BODY = """
{
  "Response": "Success",
  "Message": "",
  "HasWarning": false,
  "Type": 100,
  "Data": {
    "Aggregated": false,
    "TimeFrom": 1700000000,
    "TimeTo": 1700003600,
    "Data": [
      {"time": 1700000000, "open": 36500.12, "high": 36600.5, "low": 36400.01,
       "close": 36550.3, "volumefrom": 120.25, "volumeto": 4390000.17},
      {"time": 1700003600, "open": 36550.3, "high": 36700, "low": 36500,
       "close": 36690.9, "volumefrom": 0, "volumeto": 0}
    ]
  }
}
"""

ERROR_BODY = {
    "Response": "Error",
    "Message": "fsym param is invalid.",
    "HasWarning": False,
    "Type": 2,
    "Data": {},
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cc_settings() -> CryptoCompareSettings:
    return CryptoCompareSettings(
        api_key="test-key",  # type: ignore[arg-type]
        base_url="https://cc.test/data/v2",
        max_page_size=2000,
    )


class Recorder:
    """MockTransport handler that records requests and replays a fixed response."""

    def __init__(self, response: httpx.Response | None = None, exc: Exception | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self._response = response
        self._exc = exc

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._exc is not None:
            raise self._exc
        assert self._response is not None
        return self._response


def _client(settings: CryptoCompareSettings, handler: Recorder) -> CryptoCompareClient:
    return CryptoCompareClient(settings, transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# fetch_page
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_fetch_page_decodes_records_as_decimal(cc_settings: CryptoCompareSettings) -> None:
    handler = Recorder(httpx.Response(200, text=SUCCESS_BODY))

    async with _client(cc_settings, handler) as client:
        page = await client.fetch_page("BTC", "USD", Timeframe.HOURLY, 10)

    assert page.time_from == 1700000000
    assert page.time_to == 1700003600
    assert len(page) == 2
    first = page.records[0]
    assert first.time == 1700000000
    assert first.open == Decimal("36500.12")
    assert first.volume_from == Decimal("120.25")
    assert first.volume_to == Decimal("4390000.17")
    assert page.records[1].high == Decimal("36700")
    assert page.records[1].volume_from == 0


@pytest.mark.asyncio
async def test_fetch_page_builds_query(cc_settings: CryptoCompareSettings) -> None:
    handler = Recorder(httpx.Response(200, text=SUCCESS_BODY))

    async with _client(cc_settings, handler) as client:
        await client.fetch_page("ETH", "EUR", Timeframe.MINUTE, 50, cursor=1700000123)

    request = handler.requests[0]
    assert request.url.path == "/data/v2/histominute"
    assert request.url.params["fsym"] == "ETH"
    assert request.url.params["tsym"] == "EUR"
    assert request.url.params["limit"] == "50"
    assert request.url.params["toTs"] == "1700000123"
    assert request.url.params["api_key"] == "test-key"


@pytest.mark.asyncio
async def test_fetch_page_without_cursor_omits_to_ts(cc_settings: CryptoCompareSettings) -> None:
    handler = Recorder(httpx.Response(200, text=SUCCESS_BODY))

    async with _client(cc_settings, handler) as client:
        await client.fetch_page("BTC", "USD", Timeframe.DAILY, 7)

    request = handler.requests[0]
    assert request.url.path == "/data/v2/histoday"
    assert "toTs" not in request.url.params


@pytest.mark.asyncio
async def test_fetch_page_caps_limit(cc_settings: CryptoCompareSettings) -> None:
    handler = Recorder(httpx.Response(200, text=SUCCESS_BODY))

    async with _client(cc_settings, handler) as client:
        await client.fetch_page("BTC", "USD", Timeframe.HOURLY, 50_000)

    assert handler.requests[0].url.params["limit"] == "2000"


@pytest.mark.asyncio
async def test_envelope_error_raises_upstream_error(cc_settings: CryptoCompareSettings) -> None:
    # HTTP 200 on purpose: the envelope decides, not the status code
    handler = Recorder(httpx.Response(200, json=ERROR_BODY))

    async with _client(cc_settings, handler) as client:
        with pytest.raises(UpstreamError) as exc_info:
            await client.fetch_page("NOPE", "USD", Timeframe.HOURLY, 10)

    assert exc_info.value.message == "fsym param is invalid."


@pytest.mark.asyncio
async def test_non_json_body_raises_decode_error(cc_settings: CryptoCompareSettings) -> None:
    handler = Recorder(httpx.Response(502, text="<html>Bad Gateway</html>"))

    async with _client(cc_settings, handler) as client:
        with pytest.raises(DecodeError):
            await client.fetch_page("BTC", "USD", Timeframe.HOURLY, 10)


@pytest.mark.asyncio
async def test_nan_literal_in_body_raises_decode_error(cc_settings: CryptoCompareSettings) -> None:
    body = SUCCESS_BODY.replace('"volumefrom": 120.25', '"volumefrom": NaN')
    handler = Recorder(httpx.Response(200, text=body))

    async with _client(cc_settings, handler) as client:
        with pytest.raises(DecodeError):
            await client.fetch_page("BTC", "USD", Timeframe.HOURLY, 10)


@pytest.mark.asyncio
async def test_connect_error_raises_transport_error(cc_settings: CryptoCompareSettings) -> None:
    handler = Recorder(exc=httpx.ConnectError("connection refused"))

    async with _client(cc_settings, handler) as client:
        with pytest.raises(TransportError):
            await client.fetch_page("BTC", "USD", Timeframe.HOURLY, 10)


@pytest.mark.asyncio
async def test_timeout_raises_transport_error(cc_settings: CryptoCompareSettings) -> None:
    handler = Recorder(exc=httpx.ReadTimeout("read timed out"))

    async with _client(cc_settings, handler) as client:
        with pytest.raises(TransportError):
            await client.fetch_page("BTC", "USD", Timeframe.HOURLY, 10)


@pytest.mark.asyncio
async def test_fetch_page_requires_connect(cc_settings: CryptoCompareSettings) -> None:
    client = CryptoCompareClient(cc_settings)
    with pytest.raises(RuntimeError):
        await client.fetch_page("BTC", "USD", Timeframe.HOURLY, 10)


# ---------------------------------------------------------------------------
# parse_page
# ---------------------------------------------------------------------------


class TestParsePage:
    def test_missing_data_section(self) -> None:
        with pytest.raises(DecodeError):
            parse_page({"Response": "Success"})

    def test_missing_record_field(self) -> None:
        payload = {"Data": {"TimeFrom": 1, "TimeTo": 2, "Data": [{"time": 1, "open": 1}]}}
        with pytest.raises(DecodeError):
            parse_page(payload)

    def test_non_numeric_price(self) -> None:
        row = {
            "time": 1, "open": "abc", "high": 1, "low": 1,
            "close": 1, "volumefrom": 1, "volumeto": 1,
        }
        with pytest.raises(DecodeError):
            parse_page({"Data": {"TimeFrom": 1, "TimeTo": 1, "Data": [row]}})

    def test_null_volume(self) -> None:
        row = {
            "time": 1, "open": 1, "high": 1, "low": 1,
            "close": 1, "volumefrom": None, "volumeto": 1,
        }
        with pytest.raises(DecodeError):
            parse_page({"Data": {"TimeFrom": 1, "TimeTo": 1, "Data": [row]}})

    def test_empty_data_list(self) -> None:
        page = parse_page({"Data": {"TimeFrom": 0, "TimeTo": 0, "Data": []}})
        assert page.records == []

    def test_non_empty_page_requires_time_from(self) -> None:
        row = {
            "time": 1, "open": 1, "high": 1, "low": 1,
            "close": 1, "volumefrom": 1, "volumeto": 1,
        }
        with pytest.raises(DecodeError):
            parse_page({"Data": {"TimeTo": 1, "Data": [row]}})

    def test_empty_page_without_time_range(self) -> None:
        page = parse_page({"Data": {"Data": []}})
        assert len(page) == 0
        assert page.time_from == 0

    @pytest.mark.parametrize("bad_time", [10**18, -(10**18), None, "later"])
    def test_unrepresentable_bar_time(self, bad_time) -> None:  # type: ignore[no-untyped-def]
        row = {
            "time": bad_time, "open": 1, "high": 1, "low": 1,
            "close": 1, "volumefrom": 1, "volumeto": 1,
        }
        with pytest.raises(DecodeError):
            parse_page({"Data": {"TimeFrom": 1, "TimeTo": 1, "Data": [row]}})

    @pytest.mark.parametrize("bad_value", [float("nan"), float("inf"), Decimal("-Infinity")])
    def test_non_finite_price(self, bad_value) -> None:  # type: ignore[no-untyped-def]
        row = {
            "time": 1, "open": 1, "high": bad_value, "low": 1,
            "close": 1, "volumefrom": 1, "volumeto": 1,
        }
        with pytest.raises(DecodeError):
            parse_page({"Data": {"TimeFrom": 1, "TimeTo": 1, "Data": [row]}})
