"""Tests for the Keepa product client and payload parsing."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import httpx
import pytest
import respx

from src.engine.snapshot import OUT_OF_STOCK, Channel
from src.pipeline.keepa import KeepaClient, KeepaRateLimitError, parse_product

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

PRODUCT_URL = "https://keepa.test/product"
ISBN13 = "9780131103627"


def _raw_product(**overrides: Any) -> dict[str, Any]:
    csv: list[Any] = [None] * 19
    csv[Channel.AMAZON] = [7_000_000, 2999, 7_100_000, OUT_OF_STOCK]
    csv[Channel.NEW] = [7_000_000, 2500]
    csv[Channel.SALES_RANK] = [7_000_000, 850_000, 7_100_000, 910_000]
    csv[Channel.BUY_BOX] = [7_100_000, 3400, 7_150_000, 3600]

    avg: list[int] = [-1] * 19
    avg[Channel.SALES_RANK] = 900_000
    avg[Channel.NEW] = 2400

    raw = {
        "asin": "0131103628",
        "title": "The C Programming Language",
        "csv": csv,
        "stats": {"avg": avg, "avg90": [-1] * 19, "salesRankDrops90": 7},
        "itemWeight": 454,
        "packageWeight": 500,
        "binding": "Paperback",
    }
    raw.update(overrides)
    return raw


def _envelope(products: list[dict[str, Any]] | None = None, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"tokensLeft": 120, "tokensConsumed": 2, "refillIn": 5000}
    body["products"] = products if products is not None else [_raw_product()]
    body.update(extra)
    return body


def _client(**kwargs: Any) -> KeepaClient:
    kwargs.setdefault("api_key", "test-key")
    return KeepaClient(base_url="https://keepa.test", **kwargs)


# ---------------------------------------------------------------------------
# parse_product
# ---------------------------------------------------------------------------


class TestParseProduct:
    def test_full_payload(self) -> None:
        snapshot = parse_product(_raw_product())

        assert snapshot.asin == "0131103628"
        assert snapshot.channel(Channel.AMAZON) == ((7_000_000, 2999), (7_100_000, -1))
        assert snapshot.channel(Channel.BUY_BOX)[-1] == (7_150_000, 3600)
        assert snapshot.avg180 == {Channel.SALES_RANK: 900_000, Channel.NEW: 2400}
        assert snapshot.avg90 == {}
        assert snapshot.sales_rank_drops_90 == 7
        assert snapshot.binding == "Paperback"
        assert round(snapshot.weight_lbs(), 2) == Decimal("1.00")

    def test_malformed_channel_is_dropped(self) -> None:
        raw = _raw_product()
        raw["csv"][Channel.AMAZON] = [7_000_000, 2999, 7_100_000]
        raw["csv"][Channel.BUY_BOX] = [7_150_000, 3400, 7_100_000, 3600]

        snapshot = parse_product(raw)

        assert snapshot.channel(Channel.AMAZON) is None
        assert snapshot.channel(Channel.BUY_BOX) is None
        assert snapshot.channel(Channel.NEW) == ((7_000_000, 2500),)

    def test_short_csv_and_missing_stats(self) -> None:
        snapshot = parse_product({"asin": "X1", "csv": [[1, 100]], "stats": None})

        assert list(snapshot.series) == [Channel.AMAZON]
        assert snapshot.avg180 == {}
        assert snapshot.sales_rank_drops_90 == 0
        assert snapshot.weight_lbs() is None

    def test_non_list_csv_and_non_dict_stats_are_ignored(self) -> None:
        snapshot = parse_product({"asin": "X1", "csv": {"0": [1, 100]}, "stats": [900_000]})

        assert snapshot.series == {}
        assert snapshot.avg180 == {}
        assert snapshot.sales_rank_drops_90 == 0

    def test_negative_drops_become_zero(self) -> None:
        raw = _raw_product()
        raw["stats"]["salesRankDrops90"] = -1
        assert parse_product(raw).sales_rank_drops_90 == 0


# ---------------------------------------------------------------------------
# KeepaClient
# ---------------------------------------------------------------------------


class TestFetchProduct:
    async def test_success_returns_snapshot(self) -> None:
        with respx.mock:
            route = respx.get(PRODUCT_URL).mock(return_value=httpx.Response(200, json=_envelope()))

            async with _client() as client:
                snapshot = await client.fetch_product("978-0-13-110362-7")

            assert snapshot is not None
            assert snapshot.sales_rank_drops_90 == 7
            params = route.calls.last.request.url.params
            assert params["code"] == ISBN13
            assert params["key"] == "test-key"
            assert params["history"] == "1"
            assert params["stats"] == "180"
            assert params["domain"] == "1"

    async def test_rate_limit_raises(self) -> None:
        with respx.mock:
            respx.get(PRODUCT_URL).mock(return_value=httpx.Response(429, json={}))

            async with _client() as client:
                with pytest.raises(KeepaRateLimitError):
                    await client.fetch_product(ISBN13)

    async def test_server_error_returns_none(self) -> None:
        with respx.mock:
            respx.get(PRODUCT_URL).mock(return_value=httpx.Response(500))

            async with _client() as client:
                assert await client.fetch_product(ISBN13) is None

    async def test_error_payload_returns_none(self) -> None:
        body = _envelope(products=[], error={"type": "invalidParameter", "message": "bad code"})
        with respx.mock:
            respx.get(PRODUCT_URL).mock(return_value=httpx.Response(200, json=body))

            async with _client() as client:
                assert await client.fetch_product(ISBN13) is None

    async def test_error_payload_with_empty_bucket_raises(self) -> None:
        body = _envelope(products=[], error={"message": "not enough tokens"}, tokensLeft=-12)
        with respx.mock:
            respx.get(PRODUCT_URL).mock(return_value=httpx.Response(200, json=body))

            async with _client() as client:
                with pytest.raises(KeepaRateLimitError):
                    await client.fetch_product(ISBN13)

    async def test_no_products_returns_none(self) -> None:
        with respx.mock:
            respx.get(PRODUCT_URL).mock(return_value=httpx.Response(200, json=_envelope(products=[])))

            async with _client() as client:
                assert await client.fetch_product(ISBN13) is None

    async def test_non_json_body_returns_none(self) -> None:
        with respx.mock:
            respx.get(PRODUCT_URL).mock(
                return_value=httpx.Response(200, text="<html>gateway</html>")
            )

            async with _client() as client:
                assert await client.fetch_product(ISBN13) is None

    async def test_null_product_returns_none(self) -> None:
        with respx.mock:
            respx.get(PRODUCT_URL).mock(
                return_value=httpx.Response(200, json={"tokensLeft": 5, "products": [None]})
            )

            async with _client() as client:
                assert await client.fetch_product(ISBN13) is None

    async def test_mistyped_product_field_returns_none(self) -> None:
        product = _raw_product(title={"en": "The C Programming Language"})
        with respx.mock:
            respx.get(PRODUCT_URL).mock(
                return_value=httpx.Response(200, json=_envelope(products=[product]))
            )

            async with _client() as client:
                assert await client.fetch_product(ISBN13) is None

    async def test_network_error_returns_none(self) -> None:
        with respx.mock:
            respx.get(PRODUCT_URL).mock(side_effect=httpx.ConnectError("boom"))

            async with _client() as client:
                assert await client.fetch_product(ISBN13) is None

    async def test_invalid_isbn_skips_request(self) -> None:
        with respx.mock(assert_all_called=False) as respx_mock:
            route = respx_mock.get(PRODUCT_URL).mock(return_value=httpx.Response(200, json=_envelope()))

            async with _client() as client:
                assert await client.fetch_product("9780131103620") is None

            assert route.call_count == 0

    async def test_missing_api_key_skips_request(self) -> None:
        with respx.mock(assert_all_called=False) as respx_mock:
            route = respx_mock.get(PRODUCT_URL).mock(return_value=httpx.Response(200, json=_envelope()))

            async with _client(api_key="") as client:
                assert await client.fetch_product(ISBN13) is None

            assert route.call_count == 0

    async def test_requires_context_manager(self) -> None:
        with pytest.raises(AssertionError):
            await _client().fetch_product(ISBN13)
