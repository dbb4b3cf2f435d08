"""Venue terminal core — execution package."""

from .kalshi_orders import build_kalshi_order, required_buy_amount
from .order_builder import (
    OrderParams,
    OrderPayloadBuilder,
    build_order,
    format_signed_order,
    validate_order_params,
)

__all__ = [
    "OrderParams",
    "OrderPayloadBuilder",
    "build_kalshi_order",
    "build_order",
    "format_signed_order",
    "required_buy_amount",
    "validate_order_params",
]
