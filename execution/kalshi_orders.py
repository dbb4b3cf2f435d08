"""Kalshi order payloads (``POST /portfolio/orders``).

Limit orders carry exactly one of ``yes_price`` / ``no_price`` in whole
cents.  Market orders carry no price: buys are capped by
``buy_max_cost`` and sells by ``sell_position_capped`` so a market sell
can never flip the position.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from core.errors import InvalidOrderParams


class KalshiAction(str, Enum):
    BUY = "buy"
    SELL = "sell"


class KalshiSide(str, Enum):
    YES = "yes"
    NO = "no"


class KalshiOrderType(str, Enum):
    LIMIT = "limit"
    MARKET = "market"


def _enum(enum_cls, value, field: str):
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError as exc:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidOrderParams(f"{field} must be one of: {allowed}; got {value!r}", field=field) from exc


def build_kalshi_order(
    ticker: str,
    action: str | KalshiAction,
    side: str | KalshiSide,
    count: int,
    order_type: str | KalshiOrderType = KalshiOrderType.LIMIT,
    yes_price: Optional[int] = None,
    no_price: Optional[int] = None,
    client_order_id: Optional[str] = None,
) -> dict[str, Any]:
    """Validate and assemble an order body.  Prices are cents (1..99)."""
    if not ticker:
        raise InvalidOrderParams("ticker is required", field="ticker")
    act = _enum(KalshiAction, action, "action")
    sd = _enum(KalshiSide, side, "side")
    otype = _enum(KalshiOrderType, order_type, "type")

    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        raise InvalidOrderParams(f"count must be a positive integer, got {count!r}", field="count")

    payload: dict[str, Any] = {
        "ticker": ticker,
        "action": act.value,
        "side": sd.value,
        "count": count,
        "type": otype.value,
        "client_order_id": client_order_id or str(uuid.uuid4()),
    }

    if otype is KalshiOrderType.MARKET:
        payload["time_in_force"] = "immediate_or_cancel"
        if act is KalshiAction.BUY:
            payload["buy_max_cost"] = count * 100
        else:
            payload["sell_position_capped"] = True
        return payload

    price = yes_price if sd is KalshiSide.YES else no_price
    field = "yes_price" if sd is KalshiSide.YES else "no_price"
    if price is None:
        raise InvalidOrderParams(f"{field} is required for a limit order on {sd.value}", field=field)
    price = int(round(price))
    if not 1 <= price <= 99:
        raise InvalidOrderParams(f"{field} must be between 1 and 99 cents, got {price}", field=field)
    payload[field] = price
    return payload


def required_buy_amount(payload: dict[str, Any]) -> Decimal:
    """Worst-case USD needed to fill ``payload``; sells need none."""
    if payload.get("action") != KalshiAction.BUY.value:
        return Decimal("0")
    count = Decimal(payload["count"])
    if payload.get("type") == KalshiOrderType.MARKET.value:
        return count  # $1 per contract worst case
    cents = payload.get("yes_price", payload.get("no_price", 0))
    return count * Decimal(cents) / Decimal(100)
