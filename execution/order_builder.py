"""OrderPayloadBuilder — unsigned EIP-712 orders for the CTF exchange.

Pure construction; no network access and no signing.  The result goes
to an external wallet (``web3_infra.eip712_types.order_payload``) and the
wallet's signature is slotted back in with ``format_signed_order``.

Amounts use USDC's 6 decimals::

    price_units = floor(price * 1e6)
    shares      = floor(size)
    BUY:  maker_amount = price_units * shares   (USDC offered)
          taker_amount = shares * 1e6           (tokens received)
    SELL: mirror image
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Optional, Union

import structlog
from py_clob_client.order_builder.constants import BUY, SELL

from core.errors import InvalidOrderParams
from models.order import ZERO_ADDRESS, OrderSide, SignatureType, SignedOrder, UnsignedOrder
from web3_infra.addresses import to_checksum

logger = structlog.get_logger("execution.order_builder")

USDC_UNIT = 1_000_000
ORDER_TTL_SECONDS = 86_400
_MAX_SALT = 2**53

Number = Union[int, float, str, Decimal]


@dataclass(frozen=True)
class OrderParams:
    """Caller-facing order request."""

    token_id: str
    price: Number
    size: Number
    side: Union[OrderSide, str]
    signer_address: str
    funder_address: Optional[str] = None
    signature_type: SignatureType = SignatureType.BROWSER_WALLET


def _to_decimal(value: Number, field: str) -> Decimal:
    try:
        dec = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidOrderParams(f"{field} is not a number: {value!r}", field=field) from exc
    if not dec.is_finite():
        raise InvalidOrderParams(f"{field} must be finite: {value!r}", field=field)
    return dec


def _parse_side(side: Union[OrderSide, str]) -> OrderSide:
    if isinstance(side, OrderSide):
        return side
    normalized = str(side).strip().upper()
    if normalized == BUY:
        return OrderSide.BUY
    if normalized == SELL:
        return OrderSide.SELL
    raise InvalidOrderParams(f"side must be BUY or SELL, got {side!r}", field="side")


def validate_order_params(params: OrderParams) -> tuple[Decimal, Decimal, OrderSide, int]:
    """Reject bad input before any signing or network activity.

    Returns ``(price, size, side, token_id)`` in parsed form.
    """
    price = _to_decimal(params.price, "price")
    if not (Decimal(0) < price < Decimal(1)):
        raise InvalidOrderParams(f"price must be strictly between 0 and 1, got {price}", field="price")

    size = _to_decimal(params.size, "size")
    if size <= 0:
        raise InvalidOrderParams(f"size must be positive, got {size}", field="size")
    if size < 1:
        raise InvalidOrderParams(f"size must be at least one whole share, got {size}", field="size")

    if (price * USDC_UNIT).to_integral_value(rounding=ROUND_FLOOR) == 0:
        raise InvalidOrderParams(f"price {price} is below USDC precision", field="price")

    token = str(params.token_id).strip()
    if not token.isdigit():
        raise InvalidOrderParams(f"token_id must be a decimal string, got {params.token_id!r}", field="token_id")

    return price, size, _parse_side(params.side), int(token)


class OrderPayloadBuilder:
    """Builds ``UnsignedOrder`` structs.

    ``clock`` and ``salt_source`` exist so tests can pin time and salt.
    """

    def __init__(
        self,
        clock=time.time,
        salt_source=None,
    ) -> None:
        self._clock = clock
        self._salt_source = salt_source or (lambda: random.randrange(_MAX_SALT))

    def build(self, params: OrderParams) -> UnsignedOrder:
        price, size, side, token_id = validate_order_params(params)

        signer = to_checksum(params.signer_address, field="signer_address")
        maker = to_checksum(params.funder_address, field="funder_address") if params.funder_address else signer

        price_units = int((price * USDC_UNIT).to_integral_value(rounding=ROUND_FLOOR))
        shares = int(size.to_integral_value(rounding=ROUND_FLOOR))
        usdc_amount = price_units * shares
        token_amount = shares * USDC_UNIT

        if side is OrderSide.BUY:
            maker_amount, taker_amount = usdc_amount, token_amount
        else:
            maker_amount, taker_amount = token_amount, usdc_amount

        now = self._clock()
        order = UnsignedOrder(
            salt=self._salt_source(),
            maker=maker,
            signer=signer,
            taker=ZERO_ADDRESS,
            token_id=token_id,
            maker_amount=maker_amount,
            taker_amount=taker_amount,
            expiration=int(now) + ORDER_TTL_SECONDS,
            nonce=int(now * 1000),
            fee_rate_bps=0,
            side=side.code,
            signature_type=int(params.signature_type),
        )

        logger.debug(
            "order_builder.built",
            token_id=str(token_id)[:20],
            side=side.value,
            price=str(price),
            shares=shares,
            maker_amount=maker_amount,
            taker_amount=taker_amount,
            proxy=maker != signer,
        )
        return order


def build_order(params: OrderParams) -> UnsignedOrder:
    """Module-level shortcut using the wall clock and a random salt."""
    return OrderPayloadBuilder().build(params)


def format_signed_order(order: UnsignedOrder, signature: str) -> SignedOrder:
    """Stringify integer fields for transport and attach the wallet signature."""
    if not signature:
        raise InvalidOrderParams("signature is empty", field="signature")
    return SignedOrder(
        salt=str(order.salt),
        maker=order.maker,
        signer=order.signer,
        taker=order.taker,
        token_id=str(order.token_id),
        maker_amount=str(order.maker_amount),
        taker_amount=str(order.taker_amount),
        expiration=str(order.expiration),
        nonce=str(order.nonce),
        fee_rate_bps=str(order.fee_rate_bps),
        side=order.side,
        signature_type=order.signature_type,
        signature=signature,
    )
