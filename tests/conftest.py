"""Shared fixtures: one RSA key per session and a stand-in wallet."""

from __future__ import annotations

from typing import Any

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from eth_account import Account
from eth_account.messages import encode_typed_data

from models.credentials import PolymarketCredentials

WALLET_KEY = "0x" + "4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"


@pytest.fixture(scope="session")
def rsa_key() -> RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def pkcs1_pem(rsa_key: RSAPrivateKey) -> str:
    return rsa_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    ).decode()


@pytest.fixture(scope="session")
def pkcs8_pem(rsa_key: RSAPrivateKey) -> str:
    return rsa_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()


class LocalWallet:
    """eth-account backed ``WalletSigner`` used in place of a browser wallet."""

    def __init__(self, private_key: str = WALLET_KEY) -> None:
        self.account = Account.from_key(private_key)
        self.calls: list[dict[str, Any]] = []

    @property
    def address(self) -> str:
        return self.account.address

    async def sign_typed_data(self, domain: dict, types: dict, message: dict) -> str:
        self.calls.append({"domain": domain, "types": types, "message": message})
        signable = encode_typed_data(domain_data=domain, message_types=types, message_data=message)
        return "0x" + self.account.sign_message(signable).signature.hex().removeprefix("0x")


@pytest.fixture
def wallet() -> LocalWallet:
    return LocalWallet()


@pytest.fixture
def poly_creds(wallet: LocalWallet) -> PolymarketCredentials:
    return PolymarketCredentials(
        api_key="11111111-2222-3333-4444-555555555555",
        secret="c2VjcmV0LWtleS1mb3ItdGVzdHMtb25seQ==",
        passphrase="pass-phrase",
        owner_address=wallet.address.lower(),
    )
