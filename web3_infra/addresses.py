"""Address helpers backed by web3's checksum utilities."""

from __future__ import annotations

from web3 import Web3

from core.errors import InvalidOrderParams


def to_checksum(address: str, field: str = "address") -> str:
    """Validate a hex address and return its EIP-55 checksum form."""
    if not address or not Web3.is_address(address):
        raise InvalidOrderParams(f"invalid {field}: {address!r}", field=field)
    return Web3.to_checksum_address(address)


def same_address(a: str | None, b: str | None) -> bool:
    """Case-insensitive equality; blank on either side never matches."""
    if not a or not b:
        return False
    return a.strip().lower() == b.strip().lower()
