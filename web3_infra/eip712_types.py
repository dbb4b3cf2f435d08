"""EIP-712 domains, types and payloads for the Polymarket CLOB.

Nothing here signs.  Payloads are handed to an external wallet through
the ``WalletSigner`` protocol and the returned signature string is
combined back with the payload by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from config.settings import settings
from models.order import UnsignedOrder

CLOB_AUTH_DOMAIN_NAME = "ClobAuthDomain"
CLOB_AUTH_VERSION = "1"
CLOB_AUTH_MESSAGE = "This message attests that I control the given wallet"

ORDER_DOMAIN_VERSION = "1"

EIP712_DOMAIN_TYPE: list[dict[str, str]] = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
]

CLOB_AUTH_TYPES: dict[str, list[dict[str, str]]] = {
    "ClobAuth": [
        {"name": "address", "type": "address"},
        {"name": "timestamp", "type": "string"},
        {"name": "nonce", "type": "uint256"},
        {"name": "message", "type": "string"},
    ],
}

ORDER_TYPES: dict[str, list[dict[str, str]]] = {
    "Order": [
        {"name": "salt", "type": "uint256"},
        {"name": "maker", "type": "address"},
        {"name": "signer", "type": "address"},
        {"name": "taker", "type": "address"},
        {"name": "tokenId", "type": "uint256"},
        {"name": "makerAmount", "type": "uint256"},
        {"name": "takerAmount", "type": "uint256"},
        {"name": "expiration", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "feeRateBps", "type": "uint256"},
        {"name": "side", "type": "uint8"},
        {"name": "signatureType", "type": "uint8"},
    ],
}


@runtime_checkable
class WalletSigner(Protocol):
    """External wallet capability (browser wallet, hardware signer...)."""

    async def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, list[dict[str, str]]],
        message: dict[str, Any],
    ) -> str: ...


@dataclass(frozen=True)
class TypedDataPayload:
    """Everything a wallet needs for ``signTypedData``."""

    domain: dict[str, Any]
    types: dict[str, list[dict[str, str]]]
    primary_type: str
    message: dict[str, Any] = field(default_factory=dict)

    def as_full_message(self) -> dict[str, Any]:
        """Single-dict form including the ``EIP712Domain`` type."""
        return {
            "domain": dict(self.domain),
            "types": {"EIP712Domain": EIP712_DOMAIN_TYPE, **self.types},
            "primaryType": self.primary_type,
            "message": dict(self.message),
        }

    async def request_signature(self, wallet: WalletSigner) -> str:
        return await wallet.sign_typed_data(self.domain, self.types, self.message)


def clob_auth_domain(chain_id: int | None = None) -> dict[str, Any]:
    return {
        "name": CLOB_AUTH_DOMAIN_NAME,
        "version": CLOB_AUTH_VERSION,
        "chainId": chain_id or settings.CLOB_CHAIN_ID,
    }


def order_domain(
    exchange_name: str | None = None,
    chain_id: int | None = None,
) -> dict[str, Any]:
    return {
        "name": exchange_name or settings.CLOB_EXCHANGE_NAME,
        "version": ORDER_DOMAIN_VERSION,
        "chainId": chain_id or settings.CLOB_CHAIN_ID,
    }


def clob_auth_payload(
    address: str,
    timestamp: str | int,
    nonce: int = 0,
    chain_id: int | None = None,
) -> TypedDataPayload:
    """L1 ``ClobAuth`` payload.  ``timestamp`` is epoch seconds."""
    return TypedDataPayload(
        domain=clob_auth_domain(chain_id),
        types=CLOB_AUTH_TYPES,
        primary_type="ClobAuth",
        message={
            "address": address,
            "timestamp": str(timestamp),
            "nonce": nonce,
            "message": CLOB_AUTH_MESSAGE,
        },
    )


def order_payload(
    order: UnsignedOrder,
    exchange_name: str | None = None,
    chain_id: int | None = None,
) -> TypedDataPayload:
    return TypedDataPayload(
        domain=order_domain(exchange_name, chain_id),
        types=ORDER_TYPES,
        primary_type="Order",
        message=order.to_message(),
    )
