"""CLOB request authentication — HMAC "L2" and wallet-signed "L1" headers.

L2: ``base64(HMAC_SHA256(secret, timestamp + METHOD + path + body))``
with the timestamp in epoch seconds.  Deterministic for identical input.

L1: headers around an EIP-712 ``ClobAuth`` signature produced by an
external wallet (see ``web3_infra.eip712_types``).  Only API-key issuance
uses L1.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import re
import time
from dataclasses import dataclass
from typing import Any

import structlog

from core.errors import SigningError
from core.logger import redact
from models.credentials import PolymarketCredentials

logger = structlog.get_logger("auth.clob_signer")

POLY_ADDRESS = "POLY_ADDRESS"
POLY_SIGNATURE = "POLY_SIGNATURE"
POLY_TIMESTAMP = "POLY_TIMESTAMP"
POLY_NONCE = "POLY_NONCE"
POLY_API_KEY = "POLY_API_KEY"
POLY_PASSPHRASE = "POLY_PASSPHRASE"

_B64_STD = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")


def timestamp_s() -> str:
    """Current epoch seconds as a decimal string."""
    return str(int(time.time()))


def decode_secret(secret: str) -> bytes:
    """Decode a base64 or base64url API secret.

    URL-safe characters are mapped back and padding restored to a
    multiple of four.  A secret that still is not base64 is used as raw
    UTF-8, which is how older credential rows were signed.
    """
    if not secret:
        raise SigningError("HMAC secret is empty")
    normalized = secret.strip().replace("-", "+").replace("_", "/")
    normalized += "=" * (-len(normalized) % 4)
    if _B64_STD.match(normalized):
        try:
            return base64.b64decode(normalized, validate=True)
        except (binascii.Error, ValueError):
            logger.debug("clob_signer.secret_not_base64")
    return secret.encode("utf-8")


def serialize_body(body: Any) -> str:
    """Exact string that is both signed and sent.  ``None`` → ``""``."""
    if body is None:
        return ""
    if isinstance(body, (bytes, bytearray)):
        return body.decode("utf-8")
    if isinstance(body, str):
        return body
    return json.dumps(body, separators=(",", ":"))


def build_l2_signature(
    secret: str,
    timestamp: str,
    method: str,
    path: str,
    body: str = "",
) -> str:
    """HMAC-SHA256 over ``timestamp+METHOD+path+body``, standard base64."""
    message = f"{timestamp}{method.upper()}{path}{body}"
    digest = hmac.new(decode_secret(secret), message.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


@dataclass(frozen=True)
class ClobL2Headers:
    address: str
    api_key: str
    passphrase: str
    signature: str
    timestamp: str

    def as_dict(self) -> dict[str, str]:
        return {
            POLY_ADDRESS: self.address,
            POLY_API_KEY: self.api_key,
            POLY_PASSPHRASE: self.passphrase,
            POLY_SIGNATURE: self.signature,
            POLY_TIMESTAMP: self.timestamp,
        }


@dataclass(frozen=True)
class ClobL1Headers:
    address: str
    signature: str
    timestamp: str
    nonce: int = 0

    def as_dict(self) -> dict[str, str]:
        return {
            POLY_ADDRESS: self.address,
            POLY_SIGNATURE: self.signature,
            POLY_TIMESTAMP: self.timestamp,
            POLY_NONCE: str(self.nonce),
        }


def l2_headers(
    creds: PolymarketCredentials,
    method: str,
    path: str,
    body: str = "",
    timestamp: str | None = None,
    address: str | None = None,
) -> ClobL2Headers:
    """Sign one L2 request with a freshly-read credential record.

    ``address`` defaults to the credential owner (the EOA that created
    the API key).
    """
    if not creds.is_complete:
        raise SigningError("L2 credentials incomplete (key, secret and passphrase required)")
    ts = timestamp or timestamp_s()
    signature = build_l2_signature(creds.secret, ts, method, path, body)
    addr = address or creds.owner_address
    logger.debug(
        "clob_signer.l2_signed",
        method=method.upper(),
        path=path,
        address=addr,
        key=redact(creds.api_key),
        ts=ts,
        sig=signature[:12],
    )
    return ClobL2Headers(
        address=addr,
        api_key=creds.api_key,
        passphrase=creds.passphrase,
        signature=signature,
        timestamp=ts,
    )


def l1_headers(address: str, signature: str, timestamp: str | int, nonce: int = 0) -> ClobL1Headers:
    """Wrap an externally produced ``ClobAuth`` signature into L1 headers."""
    if not signature:
        raise SigningError("L1 signature is empty")
    return ClobL1Headers(address=address, signature=signature, timestamp=str(timestamp), nonce=nonce)
