"""
Tests for PriceSource base behaviour: decoding, ingest loop, HTTP helper.

Covers:
- decode_price: exact mantissa * 10^expo
- from_epoch_seconds / to_int parsing helpers
- IngestResult progress semantics
- PriceSource.ingest: per-item commit, partial failure, persistence faults,
  health notification
- HttpPriceSource._get_json: timeouts and HTTP errors become SourceUnavailableError
"""

from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from sei_prices.exceptions import PriceParseError, SourceUnavailableError
from sei_prices.price_feeds.base import (
    HttpPriceSource,
    IngestResult,
    PriceObservation,
    PriceSource,
    decode_price,
    from_epoch_seconds,
    to_int,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class ListSource(PriceSource):
    """Yields a fixed list; an Exception instance in the list is raised."""

    def __init__(self, items, health=None):
        super().__init__(name="list", health=health)
        self.items = items

    async def iter_observations(self):
        for item in self.items:
            if isinstance(item, Exception):
                raise item
            yield item


class JsonSource(HttpPriceSource):
    """Concrete HttpPriceSource for exercising _get_json."""

    def __init__(self, base_url, timeout=10.0):
        super().__init__(name="test", base_url=base_url, timeout=timeout)

    async def iter_observations(self):
        await self._get_json("/feeds")
        return
        yield


def _obs(price_id="BTC/USD", price=100):
    return PriceObservation(
        price_id=price_id, price=price, conf=1, expo=-2,
        publish_time=datetime(2024, 1, 1), source="list",
    )


def _mock_http_client(response=None, side_effect=None):
    client = AsyncMock()
    if side_effect is not None:
        client.get.side_effect = side_effect
    else:
        client.get.return_value = response
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return client


# ---------------------------------------------------------------------------
# Decoding helpers
# ---------------------------------------------------------------------------


class TestDecodePrice:
    def test_negative_exponent(self):
        assert decode_price(5000000000000, -8) == Decimal("50000")

    def test_positive_exponent(self):
        assert decode_price(15, 3) == Decimal("15000")

    def test_zero_exponent(self):
        assert decode_price(42, 0) == Decimal("42")

    def test_exact_for_small_prices(self):
        """No float rounding: 1 * 10^-18 stays exact."""
        assert decode_price(1, -18) == Decimal("1E-18")

    def test_observation_real_price_and_conf(self):
        obs = PriceObservation(
            price_id="ETH/USD", price=250012345678, conf=12345678, expo=-8,
            publish_time=datetime(2024, 1, 1),
        )
        assert obs.real_price == Decimal("2500.12345678")
        assert obs.real_conf == Decimal("0.12345678")


class TestParsingHelpers:
    def test_from_epoch_seconds(self):
        assert from_epoch_seconds(1700000000) == datetime(2023, 11, 14, 22, 13, 20)

    def test_from_epoch_seconds_string(self):
        assert from_epoch_seconds("1700000000") == datetime(2023, 11, 14, 22, 13, 20)

    def test_from_epoch_seconds_invalid(self):
        with pytest.raises(PriceParseError):
            from_epoch_seconds("soon")

    def test_to_int_accepts_strings(self):
        assert to_int("-8", "expo") == -8

    @pytest.mark.parametrize("value", [None, True, "abc", 1.5j])
    def test_to_int_rejects_garbage(self, value):
        with pytest.raises(PriceParseError):
            to_int(value, "price")


# ---------------------------------------------------------------------------
# IngestResult
# ---------------------------------------------------------------------------


class TestIngestResult:
    def test_progress_requires_writes(self):
        assert IngestResult(source="x", written=0).made_progress is False
        assert IngestResult(source="x", written=2).made_progress is True

    def test_error_is_never_progress(self):
        result = IngestResult(source="x", written=5, error="boom")
        assert result.failed is True
        assert result.made_progress is False


# ---------------------------------------------------------------------------
# PriceSource.ingest
# ---------------------------------------------------------------------------


class TestIngest:
    @pytest.mark.asyncio
    async def test_all_items_persisted_in_order(self, health):
        store = MagicMock()
        store.insert_observation = AsyncMock(return_value=True)
        items = [_obs("BTC/USD"), _obs("ETH/USD"), _obs("SOL/USD")]
        source = ListSource(items, health=health)

        result = await source.ingest(store)

        assert result.written == 3
        assert result.made_progress is True
        inserted = [c.args[0].price_id for c in store.insert_observation.await_args_list]
        assert inserted == ["BTC/USD", "ETH/USD", "SOL/USD"]
        assert health.write_count == 3
        assert health.last_write_at is not None

    @pytest.mark.asyncio
    async def test_late_failure_keeps_earlier_writes(self):
        """Failure: items before the exception stay committed, invocation fails."""
        store = MagicMock()
        store.insert_observation = AsyncMock(return_value=True)
        source = ListSource([_obs("BTC/USD"), SourceUnavailableError("connection reset")])

        result = await source.ingest(store)

        assert result.written == 1
        assert result.failed is True
        assert "connection reset" in result.error
        store.insert_observation.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_reported(self):
        store = MagicMock()
        store.insert_observation = AsyncMock(return_value=True)
        source = ListSource([KeyError("price")])

        result = await source.ingest(store)

        assert result.failed is True
        assert result.written == 0

    @pytest.mark.asyncio
    async def test_persistence_fault_marks_invocation_failed(self, health):
        store = MagicMock()
        store.insert_observation = AsyncMock(side_effect=[True, False])
        source = ListSource([_obs("BTC/USD"), _obs("ETH/USD")], health=health)

        result = await source.ingest(store)

        assert result.written == 1
        assert result.failed is True
        assert health.write_count == 1

    @pytest.mark.asyncio
    async def test_zero_writes_is_not_an_error(self):
        store = MagicMock()
        store.insert_observation = AsyncMock(return_value=True)

        result = await ListSource([]).ingest(store)

        assert result.failed is False
        assert result.made_progress is False


# ---------------------------------------------------------------------------
# HttpPriceSource._get_json
# ---------------------------------------------------------------------------


class TestGetJson:
    @pytest.mark.asyncio
    async def test_returns_decoded_json(self):
        response = MagicMock()
        response.json.return_value = [{"id": "abc"}]
        response.raise_for_status = MagicMock()
        client = _mock_http_client(response)
        source = JsonSource(base_url="https://example.com/", timeout=10.0)

        with patch("sei_prices.price_feeds.base.httpx.AsyncClient", return_value=client) as client_cls:
            data = await source._get_json("/feeds", params={"a": "1"})

        assert data == [{"id": "abc"}]
        client_cls.assert_called_once_with(timeout=10.0)
        client.get.assert_awaited_once_with("https://example.com/feeds", params={"a": "1"})

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        response = MagicMock()
        response.status_code = 503
        response.raise_for_status = MagicMock(
            side_effect=httpx.HTTPStatusError("503", request=MagicMock(), response=response)
        )
        client = _mock_http_client(response)
        source = JsonSource(base_url="https://example.com")

        with patch("sei_prices.price_feeds.base.httpx.AsyncClient", return_value=client):
            with pytest.raises(SourceUnavailableError) as exc_info:
                await source._get_json("/feeds")

        assert "503" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeout(self):
        client = _mock_http_client(side_effect=httpx.ReadTimeout("timed out"))
        source = JsonSource(base_url="https://example.com")

        with patch("sei_prices.price_feeds.base.httpx.AsyncClient", return_value=client):
            with pytest.raises(SourceUnavailableError):
                await source._get_json("/feeds")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        response = MagicMock()
        response.raise_for_status = MagicMock()
        response.json.side_effect = ValueError("Expecting value")
        response.text = "<html>maintenance</html>"
        client = _mock_http_client(response)
        source = JsonSource(base_url="https://example.com")

        with patch("sei_prices.price_feeds.base.httpx.AsyncClient", return_value=client):
            with pytest.raises(PriceParseError):
                await source._get_json("/feeds")


class TestOutOfRangeValues:
    """NaN, infinity and overflow become PriceParseError, never a raw ValueError."""

    @pytest.mark.parametrize("value", [1e20, -1e20, "nan", float("nan"), float("inf")])
    def test_from_epoch_seconds(self, value):
        with pytest.raises(PriceParseError):
            from_epoch_seconds(value)

    @pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan")])
    def test_to_int_non_finite(self, value):
        with pytest.raises(PriceParseError):
            to_int(value, "price")

    def test_to_int_rejects_fractional_float(self):
        with pytest.raises(PriceParseError):
            to_int(1.5, "price")

    def test_to_int_accepts_integral_float(self):
        assert to_int(2.0, "price") == 2
