"""Venue terminal core — models package."""

from .credentials import KalshiCredentials, PolymarketCredentials
from .event import (
    AggregatedEvent,
    AggregatedMarket,
    AggregationResult,
    AggregationSource,
    format_dollars,
)
from .order import ZERO_ADDRESS, OrderSide, SignatureType, SignedOrder, UnsignedOrder
from .trading_gate import GateCondition, TradingGateResult

__all__ = [
    "AggregatedEvent",
    "AggregatedMarket",
    "AggregationResult",
    "AggregationSource",
    "GateCondition",
    "KalshiCredentials",
    "OrderSide",
    "PolymarketCredentials",
    "SignatureType",
    "SignedOrder",
    "TradingGateResult",
    "UnsignedOrder",
    "ZERO_ADDRESS",
    "format_dollars",
]
