"""Tests for execution/order_builder.py — unsigned CTF exchange orders."""

from __future__ import annotations

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from core.errors import InvalidOrderParams
from execution.order_builder import (
    ORDER_TTL_SECONDS,
    USDC_UNIT,
    OrderParams,
    OrderPayloadBuilder,
    build_order,
    format_signed_order,
    validate_order_params,
)
from models.order import ZERO_ADDRESS, OrderSide, SignatureType

SIGNER = "0x90f8bf6a479f320ead074411a4b0e7944ea8c9c1"
FUNDER = "0xffcf8fdee72ac11b5c542428b35eef5769c409f0"
TOKEN = "71321045679252212594626385532706912750332728571942532289631379312455583992563"
NOW = 1_700_000_000.5


@pytest.fixture
def builder() -> OrderPayloadBuilder:
    return OrderPayloadBuilder(clock=lambda: NOW, salt_source=lambda: 42)


def _params(**overrides) -> OrderParams:
    base = dict(token_id=TOKEN, price="0.65", size="10", side="BUY", signer_address=SIGNER)
    base.update(overrides)
    return OrderParams(**base)


# ── Amounts ─────────────────────────────────────────────────────────


class TestAmounts:
    def test_buy_example(self, builder: OrderPayloadBuilder) -> None:
        order = builder.build(_params(price=0.65, size=10, side="BUY"))
        assert order.maker_amount == 6_500_000
        assert order.taker_amount == 10_000_000
        assert order.side == 0

    def test_sell_example(self, builder: OrderPayloadBuilder) -> None:
        order = builder.build(_params(price=0.40, size=5, side="SELL"))
        assert order.maker_amount == 5_000_000
        assert order.taker_amount == 2_000_000
        assert order.side == 1

    def test_fractional_size_floors(self, builder: OrderPayloadBuilder) -> None:
        order = builder.build(_params(price="0.5", size="10.9"))
        assert order.taker_amount == 10 * USDC_UNIT
        assert order.maker_amount == 5_000_000

    def test_sub_unit_price_floors(self, builder: OrderPayloadBuilder) -> None:
        order = builder.build(_params(price="0.1234567", size="2"))
        assert order.maker_amount == 123_456 * 2

    @given(
        price_units=st.integers(min_value=1, max_value=999_999),
        shares=st.integers(min_value=1, max_value=100_000),
        side=st.sampled_from(["BUY", "SELL"]),
    )
    def test_legs_mirror(self, price_units: int, shares: int, side: str) -> None:
        builder = OrderPayloadBuilder(clock=lambda: NOW, salt_source=lambda: 1)
        price = Decimal(price_units) / USDC_UNIT
        order = builder.build(_params(price=str(price), size=shares, side=side))
        usdc = price_units * shares
        tokens = shares * USDC_UNIT
        if side == "BUY":
            assert (order.maker_amount, order.taker_amount) == (usdc, tokens)
        else:
            assert (order.maker_amount, order.taker_amount) == (tokens, usdc)


# ── Order fields ────────────────────────────────────────────────────


class TestOrderFields:
    def test_defaults(self, builder: OrderPayloadBuilder) -> None:
        order = builder.build(_params())
        assert order.salt == 42
        assert order.taker == ZERO_ADDRESS
        assert order.token_id == int(TOKEN)
        assert order.expiration == int(NOW) + ORDER_TTL_SECONDS
        assert order.nonce == 1_700_000_000_500
        assert order.fee_rate_bps == 0
        assert order.signature_type == SignatureType.BROWSER_WALLET

    def test_maker_is_signer_without_funder(self, builder: OrderPayloadBuilder) -> None:
        order = builder.build(_params())
        assert order.maker == order.signer
        assert order.signer == "0x90F8bf6A479f320ead074411a4B0e7944Ea8c9C1"

    def test_maker_is_funder_when_given(self, builder: OrderPayloadBuilder) -> None:
        order = builder.build(_params(funder_address=FUNDER))
        assert order.maker.lower() == FUNDER
        assert order.signer.lower() == SIGNER

    def test_side_enum_and_lowercase(self, builder: OrderPayloadBuilder) -> None:
        assert builder.build(_params(side=OrderSide.SELL)).side == 1
        assert builder.build(_params(side="buy")).side == 0

    def test_signature_type_override(self, builder: OrderPayloadBuilder) -> None:
        order = builder.build(_params(signature_type=SignatureType.EOA))
        assert order.signature_type == 0

    def test_random_salt_by_default(self) -> None:
        salts = {build_order(_params()).salt for _ in range(5)}
        assert len(salts) > 1

    def test_message_uses_camel_case(self, builder: OrderPayloadBuilder) -> None:
        message = builder.build(_params()).to_message()
        assert set(message) == {
            "salt", "maker", "signer", "taker", "tokenId", "makerAmount", "takerAmount",
            "expiration", "nonce", "feeRateBps", "side", "signatureType",
        }


# ── Validation ──────────────────────────────────────────────────────


class TestValidation:
    @pytest.mark.parametrize("price", ["0", "1", 0, 1, "-0.1", "1.5"])
    def test_price_bounds(self, price) -> None:
        with pytest.raises(InvalidOrderParams) as exc_info:
            validate_order_params(_params(price=price))
        assert exc_info.value.field == "price"

    @pytest.mark.parametrize("size", ["0", "-3", 0])
    def test_non_positive_size(self, size) -> None:
        with pytest.raises(InvalidOrderParams, match="positive"):
            validate_order_params(_params(size=size))

    def test_size_below_one_share(self) -> None:
        with pytest.raises(InvalidOrderParams, match="whole share"):
            validate_order_params(_params(size="0.5"))

    def test_price_below_usdc_precision(self) -> None:
        with pytest.raises(InvalidOrderParams, match="precision"):
            validate_order_params(_params(price="0.0000001"))

    def test_not_a_number(self) -> None:
        with pytest.raises(InvalidOrderParams):
            validate_order_params(_params(price="abc"))

    def test_nan_rejected(self) -> None:
        with pytest.raises(InvalidOrderParams):
            validate_order_params(_params(price=float("nan")))

    def test_bad_side(self) -> None:
        with pytest.raises(InvalidOrderParams, match="side"):
            validate_order_params(_params(side="HOLD"))

    def test_token_must_be_decimal(self) -> None:
        with pytest.raises(InvalidOrderParams, match="token_id"):
            validate_order_params(_params(token_id="0xabc"))

    def test_bad_signer_address(self, builder: OrderPayloadBuilder) -> None:
        with pytest.raises(InvalidOrderParams, match="signer_address"):
            builder.build(_params(signer_address="0x1234"))

    def test_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            validate_order_params(_params(price="1"))


# ── Signed form ─────────────────────────────────────────────────────


class TestFormatSignedOrder:
    def test_stringifies_and_attaches_signature(self, builder: OrderPayloadBuilder) -> None:
        order = builder.build(_params())
        signed = format_signed_order(order, "0xdeadbeef")
        payload = signed.to_payload()
        assert payload["salt"] == "42"
        assert payload["tokenId"] == TOKEN
        assert payload["makerAmount"] == "6500000"
        assert payload["takerAmount"] == "10000000"
        assert payload["feeRateBps"] == "0"
        assert payload["side"] == 0
        assert payload["signatureType"] == 2
        assert payload["signature"] == "0xdeadbeef"

    def test_empty_signature_rejected(self, builder: OrderPayloadBuilder) -> None:
        with pytest.raises(InvalidOrderParams):
            format_signed_order(builder.build(_params()), "")
