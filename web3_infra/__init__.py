"""Venue terminal core — web3_infra package.

EIP-712 payload construction and address helpers.  Signing itself is
delegated to an external wallet via ``WalletSigner``.
"""

from .addresses import same_address, to_checksum
from .eip712_types import (
    CLOB_AUTH_MESSAGE,
    CLOB_AUTH_TYPES,
    ORDER_TYPES,
    TypedDataPayload,
    WalletSigner,
    clob_auth_domain,
    clob_auth_payload,
    order_domain,
    order_payload,
)

__all__ = [
    "CLOB_AUTH_MESSAGE",
    "CLOB_AUTH_TYPES",
    "ORDER_TYPES",
    "TypedDataPayload",
    "WalletSigner",
    "clob_auth_domain",
    "clob_auth_payload",
    "order_domain",
    "order_payload",
    "same_address",
    "to_checksum",
]
