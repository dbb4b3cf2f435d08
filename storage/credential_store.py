"""Credential store — the one piece of shared state the core reads.

Records are keyed by user id and replaced wholesale on write
(last-write-wins).  Callers fetch a fresh record immediately before each
signing operation and never keep it around, so a rotated secret takes
effect on the next request.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Protocol, runtime_checkable

import structlog

from core.logger import redact
from models.credentials import KalshiCredentials, PolymarketCredentials

logger = structlog.get_logger("storage.credential_store")

__all__ = ["CredentialStore", "InMemoryCredentialStore"]


@runtime_checkable
class CredentialStore(Protocol):
    """Read side of the external credential store."""

    async def get_kalshi_credentials(self, user_id: str) -> Optional[KalshiCredentials]: ...

    async def get_polymarket_credentials(self, user_id: str) -> Optional[PolymarketCredentials]: ...


class InMemoryCredentialStore:
    """Dict-backed store with last-write-wins upserts."""

    def __init__(self) -> None:
        self._kalshi: dict[str, KalshiCredentials] = {}
        self._polymarket: dict[str, PolymarketCredentials] = {}
        self._lock = asyncio.Lock()

    async def get_kalshi_credentials(self, user_id: str) -> Optional[KalshiCredentials]:
        async with self._lock:
            return self._kalshi.get(user_id)

    async def get_polymarket_credentials(self, user_id: str) -> Optional[PolymarketCredentials]:
        async with self._lock:
            return self._polymarket.get(user_id)

    async def put_kalshi_credentials(self, user_id: str, creds: KalshiCredentials) -> None:
        async with self._lock:
            self._kalshi[user_id] = creds
        logger.info("credential_store.kalshi_upserted", user_id=user_id, key=redact(creds.api_key_id))

    async def put_polymarket_credentials(self, user_id: str, creds: PolymarketCredentials) -> None:
        async with self._lock:
            self._polymarket[user_id] = creds
        logger.info("credential_store.polymarket_upserted", user_id=user_id, key=redact(creds.api_key))

    async def delete(self, user_id: str) -> None:
        async with self._lock:
            self._kalshi.pop(user_id, None)
            self._polymarket.pop(user_id, None)
