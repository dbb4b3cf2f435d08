"""KeyMaterial — normalise RSA private keys to PKCS#8 DER.

Kalshi hands out keys as PKCS#1 (``BEGIN RSA PRIVATE KEY``) while some
users paste PKCS#8 (``BEGIN PRIVATE KEY``).  Both are reduced to one
canonical encoding here so the signer has a single import path.

The PKCS#1 → PKCS#8 wrap is done by hand: it is a fixed three-field
ASN.1 SEQUENCE and never needs a general encoder::

    PrivateKeyInfo ::= SEQUENCE {
        version              INTEGER (0),
        algorithm            SEQUENCE { rsaEncryption OID, NULL },
        privateKey           OCTET STRING (PKCS#1 bytes)
    }
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass, field

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from core.errors import DecodeError, KeyFormatError, SigningError

PKCS8_LABEL = "PRIVATE KEY"
PKCS1_LABEL = "RSA PRIVATE KEY"

# DER tags
_SEQUENCE = 0x30
_INTEGER = 0x02
_OCTET_STRING = 0x04

# OID 1.2.840.113549.1.1.1 (rsaEncryption), full TLV
_RSA_ENCRYPTION_OID = bytes(
    [0x06, 0x09, 0x2A, 0x86, 0x48, 0x86, 0xF7, 0x0D, 0x01, 0x01, 0x01]
)
_DER_NULL = bytes([0x05, 0x00])
_VERSION_ZERO = bytes([_INTEGER, 0x01, 0x00])

_ENCRYPTED_MARKERS = re.compile(r"Proc-Type:|DEK-Info:|ENCRYPTED", re.IGNORECASE)
_ARMOR = re.compile(
    r"-----BEGIN (?P<label>[A-Z0-9 ]+)-----(?P<body>.*?)-----END (?P=label)-----",
    re.DOTALL,
)


def der_length(n: int) -> bytes:
    """Encode a DER length: short form below 128, long form otherwise."""
    if n < 0:
        raise ValueError("DER length cannot be negative")
    if n < 0x80:
        return bytes([n])
    body = n.to_bytes((n.bit_length() + 7) // 8, "big")
    return bytes([0x80 | len(body)]) + body


def der_tlv(tag: int, content: bytes) -> bytes:
    return bytes([tag]) + der_length(len(content)) + content


def wrap_pkcs1(pkcs1_der: bytes) -> bytes:
    """Wrap PKCS#1 RSAPrivateKey bytes in a PKCS#8 PrivateKeyInfo."""
    algorithm = der_tlv(_SEQUENCE, _RSA_ENCRYPTION_OID + _DER_NULL)
    private_key = der_tlv(_OCTET_STRING, pkcs1_der)
    return der_tlv(_SEQUENCE, _VERSION_ZERO + algorithm + private_key)


def normalize_private_key(pem: str) -> bytes:
    """Return PKCS#8 DER bytes for a PKCS#1 or PKCS#8 PEM string.

    Raises
    ------
    KeyFormatError
        Key is encrypted, or the armor label is neither accepted variant.
    DecodeError
        The armored body is not valid base64.
    """
    if not pem or not pem.strip():
        raise KeyFormatError("private key is empty")

    # Keys stored in env vars / JSON columns often carry literal "\n".
    text = pem.replace("\\n", "\n").strip()

    if _ENCRYPTED_MARKERS.search(text):
        raise KeyFormatError(
            "Encrypted private keys are not supported; provide an unencrypted key"
        )

    match = _ARMOR.search(text)
    if match is None:
        raise KeyFormatError(
            "Unsupported key format: expected PKCS#8 (BEGIN PRIVATE KEY) "
            "or PKCS#1 (BEGIN RSA PRIVATE KEY)"
        )

    label = match.group("label")
    if label not in (PKCS8_LABEL, PKCS1_LABEL):
        raise KeyFormatError(f"Unsupported PEM label: {label!r}")

    body = re.sub(r"\s+", "", match.group("body"))
    try:
        der = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"PEM body is not valid base64: {exc}") from exc
    if not der:
        raise DecodeError("PEM body decoded to zero bytes")

    if label == PKCS1_LABEL:
        return wrap_pkcs1(der)
    return der


@dataclass(frozen=True)
class KeyMaterial:
    """Canonical PKCS#8 DER for a single signing operation.

    Built per call from caller-supplied PEM text and never persisted.
    """

    der: bytes = field(repr=False)
    source_label: str = PKCS8_LABEL

    @classmethod
    def from_pem(cls, pem: str) -> KeyMaterial:
        der = normalize_private_key(pem)
        match = _ARMOR.search(pem.replace("\\n", "\n"))
        label = match.group("label") if match else PKCS8_LABEL
        return cls(der=der, source_label=label)

    @property
    def was_legacy(self) -> bool:
        """True when the input was PKCS#1 and had to be wrapped."""
        return self.source_label == PKCS1_LABEL

    def load(self) -> RSAPrivateKey:
        """Import the DER as an RSA private key.

        Raises
        ------
        SigningError
            DER is structurally invalid or holds a non-RSA key.
        """
        try:
            key = serialization.load_der_private_key(self.der, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise SigningError(f"private key import failed: {exc}") from exc
        if not isinstance(key, RSAPrivateKey):
            raise SigningError(f"expected an RSA private key, got {type(key).__name__}")
        return key
