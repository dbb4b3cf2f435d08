"""Credential records read from the external credential store."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from py_clob_client.clob_types import ApiCreds


class KalshiCredentials(BaseModel):
    """RSA key pair registration for the Kalshi trade API."""

    model_config = ConfigDict(frozen=True)

    api_key_id: str = Field(..., min_length=1, description="Kalshi access key id")
    private_key: str = Field(..., min_length=1, repr=False, description="PEM private key text")


class PolymarketCredentials(BaseModel):
    """L2 API credential tuple plus the wallet that owns it.

    Every field may be missing in a partially-connected account; the
    trading gate turns those gaps into diagnostics instead of raising.
    """

    model_config = ConfigDict(frozen=True)

    api_key: str = ""
    secret: str = Field(default="", repr=False)
    passphrase: str = Field(default="", repr=False)
    owner_address: str = ""
    funder_address: Optional[str] = None

    @property
    def has_key(self) -> bool:
        return bool(self.api_key)

    @property
    def has_secret(self) -> bool:
        return bool(self.secret)

    @property
    def has_passphrase(self) -> bool:
        return bool(self.passphrase)

    @property
    def is_complete(self) -> bool:
        return self.has_key and self.has_secret and self.has_passphrase

    def to_api_creds(self) -> ApiCreds:
        """Return the tuple in the shape py-clob-client expects."""
        return ApiCreds(
            api_key=self.api_key,
            api_secret=self.secret,
            api_passphrase=self.passphrase,
        )
