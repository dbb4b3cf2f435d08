"""Order models for the Polymarket CTF exchange (EIP-712 ``Order``)."""

from __future__ import annotations

from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class OrderSide(str, Enum):
    """Order side as accepted from callers."""

    BUY = "BUY"
    SELL = "SELL"

    @property
    def code(self) -> int:
        """On-chain encoding: BUY=0, SELL=1."""
        return 0 if self is OrderSide.BUY else 1


class SignatureType(IntEnum):
    """How the maker's funds are controlled."""

    EOA = 0
    POLY_PROXY = 1  # email / magic-link wallets
    BROWSER_WALLET = 2  # Gnosis-safe proxy behind a browser wallet


class UnsignedOrder(BaseModel):
    """Integer/address order struct ready for ``signTypedData``.

    BUY: ``maker_amount`` is USDC (6 decimals), ``taker_amount`` is
    outcome tokens.  SELL is the mirror image.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    salt: int = Field(..., ge=0)
    maker: str
    signer: str
    taker: str = ZERO_ADDRESS
    token_id: int = Field(..., ge=0)
    maker_amount: int = Field(..., ge=0)
    taker_amount: int = Field(..., ge=0)
    expiration: int = Field(..., ge=0)
    nonce: int = Field(..., ge=0)
    fee_rate_bps: int = Field(default=0, ge=0)
    side: int = Field(..., ge=0, le=1)
    signature_type: int = Field(default=SignatureType.BROWSER_WALLET, ge=0, le=2)

    def to_message(self) -> dict[str, int | str]:
        """EIP-712 message dict (camelCase keys, native ints)."""
        return self.model_dump(by_alias=True)


class SignedOrder(BaseModel):
    """Transport form of an order: integers stringified, signature attached."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    salt: str
    maker: str
    signer: str
    taker: str
    token_id: str
    maker_amount: str
    taker_amount: str
    expiration: str
    nonce: str
    fee_rate_bps: str
    side: int
    signature_type: int
    signature: str = Field(..., min_length=1)

    def to_payload(self) -> dict[str, int | str]:
        """JSON-ready dict with the venue's camelCase field names."""
        return self.model_dump(by_alias=True)
