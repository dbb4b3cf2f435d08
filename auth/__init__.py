"""Venue terminal core — request signing for Kalshi and the Polymarket CLOB."""

from .clob_signer import (
    ClobL1Headers,
    ClobL2Headers,
    build_l2_signature,
    decode_secret,
    l1_headers,
    l2_headers,
    serialize_body,
)
from .kalshi_signer import KalshiSignedHeaders, KalshiSigner, sign_kalshi_request
from .key_material import KeyMaterial, normalize_private_key

__all__ = [
    "ClobL1Headers",
    "ClobL2Headers",
    "KalshiSignedHeaders",
    "KalshiSigner",
    "KeyMaterial",
    "build_l2_signature",
    "decode_secret",
    "l1_headers",
    "l2_headers",
    "normalize_private_key",
    "serialize_body",
    "sign_kalshi_request",
]
