"""KalshiSigner — RSA-PSS request signing for the Kalshi trade API.

Message is ``timestamp + METHOD + path`` with no delimiters, signed with
RSA-PSS / SHA-256 / 32-byte salt and sent base64-encoded.  PSS salts are
random, so two signatures over identical input differ.

Callers must sign immediately before each network call.  A retry needs
a new timestamp and a new signature; stale timestamps are rejected by
the venue.
"""

from __future__ import annotations

import base64
import time
from dataclasses import dataclass

import structlog
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from auth.key_material import KeyMaterial, normalize_private_key
from core.errors import SigningError

logger = structlog.get_logger("auth.kalshi_signer")

PSS_SALT_LENGTH = 32

HEADER_ACCESS_KEY = "KALSHI-ACCESS-KEY"
HEADER_SIGNATURE = "KALSHI-ACCESS-SIGNATURE"
HEADER_TIMESTAMP = "KALSHI-ACCESS-TIMESTAMP"


def timestamp_ms() -> str:
    """Current epoch milliseconds as a decimal string."""
    return str(int(time.time() * 1000))


def signing_path(path: str) -> str:
    """Path component that goes into the signature (query string dropped)."""
    path = path.split("?", 1)[0]
    return path if path.startswith("/") else f"/{path}"


def sign_kalshi_request(key_pem: str, timestamp: str, method: str, path: str) -> str:
    """Sign one Kalshi request and return the base64 signature.

    Raises
    ------
    KeyFormatError
        PEM is encrypted or not a recognised RSA key armor.
    SigningError
        Key import or the RSA-PSS operation failed.
    """
    material = KeyMaterial.from_pem(key_pem)
    private_key = material.load()
    message = f"{timestamp}{method.upper()}{signing_path(path)}".encode("utf-8")
    try:
        signature = private_key.sign(
            message,
            padding.PSS(
                mgf=padding.MGF1(hashes.SHA256()),
                salt_length=PSS_SALT_LENGTH,
            ),
            hashes.SHA256(),
        )
    except (ValueError, TypeError) as exc:
        raise SigningError(f"RSA-PSS signing failed: {exc}") from exc
    return base64.b64encode(signature).decode("ascii")


@dataclass(frozen=True)
class KalshiSignedHeaders:
    """Per-call authentication headers.  Never reuse across retries."""

    access_key: str
    signature: str
    timestamp: str

    def as_dict(self) -> dict[str, str]:
        return {
            HEADER_ACCESS_KEY: self.access_key,
            HEADER_SIGNATURE: self.signature,
            HEADER_TIMESTAMP: self.timestamp,
        }


class KalshiSigner:
    """Single signing entry point for every Kalshi call site.

    The PEM is validated eagerly so a bad key fails before any request
    is built; the DER itself is re-derived for each signature and never
    kept on the instance.

    Parameters
    ----------
    access_key:
        Kalshi API key id (sent as ``KALSHI-ACCESS-KEY``).
    private_key_pem:
        PKCS#1 or PKCS#8 PEM text.
    """

    def __init__(self, access_key: str, private_key_pem: str) -> None:
        normalize_private_key(private_key_pem)
        self._access_key = access_key
        self._private_key_pem = private_key_pem

    @property
    def access_key(self) -> str:
        return self._access_key

    def sign(self, method: str, path: str, timestamp: str) -> str:
        return sign_kalshi_request(self._private_key_pem, timestamp, method, path)

    def headers(
        self,
        method: str,
        path: str,
        timestamp: str | None = None,
    ) -> KalshiSignedHeaders:
        """Build the three ``KALSHI-ACCESS-*`` headers for one request."""
        ts = timestamp or timestamp_ms()
        signature = self.sign(method, path, ts)
        logger.debug(
            "kalshi_signer.signed",
            method=method.upper(),
            path=signing_path(path),
            ts=ts,
            sig=signature[:12],
        )
        return KalshiSignedHeaders(
            access_key=self._access_key,
            signature=signature,
            timestamp=ts,
        )
