"""Tests for data/rest_client.py — CLOB REST calls over httpx.MockTransport."""

from __future__ import annotations

import json
import time
from typing import Callable

import httpx
import pytest

from auth.clob_signer import (
    POLY_ADDRESS,
    POLY_API_KEY,
    POLY_NONCE,
    POLY_PASSPHRASE,
    POLY_SIGNATURE,
    POLY_TIMESTAMP,
    build_l2_signature,
    l1_headers,
)
from core.errors import OrderRejectedByVenue, SigningError, UpstreamAuthError, UpstreamError
from data.rest_client import CLOBRestClient
from execution.order_builder import OrderParams, OrderPayloadBuilder, format_signed_order
from models.credentials import PolymarketCredentials

HOST = "clob.polymarket.com"
TOKEN = "71321045679252212594626385532706912750332728571942532289631379312455583992563"


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> CLOBRestClient:
    return CLOBRestClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def _assert_l2(request: httpx.Request, creds: PolymarketCredentials) -> None:
    body = request.content.decode() if request.content else ""
    expected = build_l2_signature(
        creds.secret, request.headers[POLY_TIMESTAMP], request.method, request.url.path, body
    )
    assert request.headers[POLY_SIGNATURE] == expected
    assert request.headers[POLY_API_KEY] == creds.api_key
    assert request.headers[POLY_PASSPHRASE] == creds.passphrase


class TestServerTime:
    @pytest.mark.asyncio
    async def test_plain_integer_body(self) -> None:
        client = _client(lambda request: httpx.Response(200, text="1700000123"))
        assert await client.get_server_time() == 1700000123

    @pytest.mark.asyncio
    async def test_unexpected_body(self) -> None:
        client = _client(lambda request: httpx.Response(200, json={"weird": True}))
        with pytest.raises(UpstreamError):
            await client.get_server_time()


class TestClosedOnly:
    @pytest.mark.asyncio
    async def test_snake_case(self, poly_creds: PolymarketCredentials) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"closed_only": True})

        assert await _client(handler).get_closed_only(poly_creds) is True
        request = seen[0]
        assert request.url.host == HOST
        assert request.url.path == "/auth/ban-status/closed-only"
        assert request.headers[POLY_ADDRESS] == poly_creds.owner_address
        _assert_l2(request, poly_creds)

    @pytest.mark.asyncio
    async def test_camel_case_false(self, poly_creds: PolymarketCredentials) -> None:
        client = _client(lambda request: httpx.Response(200, json={"closedOnly": False}))
        assert await client.get_closed_only(poly_creds) is False

    @pytest.mark.asyncio
    async def test_401_requires_reconnect(self, poly_creds: PolymarketCredentials) -> None:
        client = _client(lambda request: httpx.Response(401, json={"error": "Unauthorized/Invalid api key"}))
        with pytest.raises(UpstreamAuthError) as exc_info:
            await client.get_closed_only(poly_creds)
        assert exc_info.value.reconnect_required is True

    @pytest.mark.asyncio
    async def test_non_object_body(self, poly_creds: PolymarketCredentials) -> None:
        client = _client(lambda request: httpx.Response(200, text="maybe"))
        with pytest.raises(UpstreamError):
            await client.get_closed_only(poly_creds)


class TestApiKeys:
    @pytest.mark.asyncio
    async def test_list(self, poly_creds: PolymarketCredentials) -> None:
        client = _client(lambda request: httpx.Response(200, json={"apiKeys": ["a", "b"]}))
        assert await client.get_api_keys(poly_creds) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_create(self) -> None:
        now = str(int(time.time()))
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"apiKey": "new-key", "secret": "c2VjcmV0", "passphrase": "pp"})

        creds = await _client(handler).create_or_derive_api_key(l1_headers("0xABC", "0xsig", now, nonce=0))
        assert creds.api_key == "new-key"
        assert creds.owner_address == "0xabc"
        assert [r.method for r in seen] == ["POST"]
        assert seen[0].url.path == "/auth/api-key"
        assert seen[0].headers[POLY_NONCE] == "0"
        assert seen[0].headers[POLY_SIGNATURE] == "0xsig"

    @pytest.mark.asyncio
    async def test_falls_back_to_derive(self) -> None:
        now = str(int(time.time()))
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.method == "POST":
                return httpx.Response(400, json={"error": "Could not create api key"})
            return httpx.Response(200, json={"key": "old-key", "secret": "c2VjcmV0", "passphrase": "pp"})

        creds = await _client(handler).create_or_derive_api_key(l1_headers("0xabc", "0xsig", now, nonce=5))
        assert creds.api_key == "old-key"
        assert seen[1].url.path == "/auth/derive-api-key"
        assert seen[1].url.params["nonce"] == "5"

    @pytest.mark.asyncio
    async def test_stale_timestamp_rejected_before_network(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={})

        stale = str(int(time.time()) - 3600)
        with pytest.raises(SigningError, match="drift"):
            await _client(handler).create_or_derive_api_key(l1_headers("0xabc", "0xsig", stale))
        assert calls == []

    def test_skew_window(self) -> None:
        client = CLOBRestClient(max_clock_skew_seconds=60)
        assert client.check_l1_timestamp("1000", now=1060) == 1000
        with pytest.raises(SigningError):
            client.check_l1_timestamp("1000", now=1061)
        with pytest.raises(SigningError):
            client.check_l1_timestamp("soon", now=1000)

    @pytest.mark.asyncio
    async def test_incomplete_issuance_response(self) -> None:
        now = str(int(time.time()))

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"apiKey": "k"})

        with pytest.raises(UpstreamError, match="incomplete"):
            await _client(handler).derive_api_key(l1_headers("0xabc", "0xsig", now))


class TestPostOrder:
    @pytest.fixture
    def signed_order(self):
        builder = OrderPayloadBuilder(clock=lambda: 1_700_000_000, salt_source=lambda: 99)
        order = builder.build(
            OrderParams(
                token_id=TOKEN,
                price="0.65",
                size="10",
                side="BUY",
                signer_address="0x90f8bf6a479f320ead074411a4b0e7944ea8c9c1",
            )
        )
        return format_signed_order(order, "0x" + "ab" * 65)

    @pytest.mark.asyncio
    async def test_body_and_signature(self, poly_creds: PolymarketCredentials, signed_order) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True, "orderID": "0xorder", "status": "live"})

        result = await _client(handler).post_order(poly_creds, signed_order)
        assert result["orderID"] == "0xorder"

        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/order"
        body = json.loads(request.content)
        assert body["owner"] == poly_creds.api_key
        assert body["orderType"] == "GTC"
        assert body["order"]["makerAmount"] == "6500000"
        assert body["order"]["signature"] == signed_order.signature
        _assert_l2(request, poly_creds)

    @pytest.mark.asyncio
    async def test_rejection_preserves_venue_text(self, poly_creds: PolymarketCredentials, signed_order) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"errorMsg": "not enough balance / allowance"})

        with pytest.raises(OrderRejectedByVenue) as exc_info:
            await _client(handler).post_order(poly_creds, signed_order, order_type="fok")
        assert exc_info.value.venue_message == "not enough balance / allowance"

    @pytest.mark.asyncio
    async def test_order_type_upper_cased(self, poly_creds: PolymarketCredentials, signed_order) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"orderID": "x"})

        await _client(handler).post_order(poly_creds, signed_order, order_type="fok")
        assert json.loads(seen[0].content)["orderType"] == "FOK"
