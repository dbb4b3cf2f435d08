"""TradingTerminal — the surface the outer application talks to.

Wraps the signers, order builder, trading gate and aggregator behind a
handful of calls.  Per-user operations read the credential record from
the store right before signing; nothing here caches credentials, gate
results or clients across calls.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

import httpx
import structlog

from auth.clob_signer import ClobL2Headers, l1_headers, l2_headers, serialize_body
from auth.kalshi_signer import KalshiSignedHeaders, KalshiSigner
from config.settings import settings
from core.errors import CredentialsNotFound, TradingDisabled
from core.trading_gate import TradingGateEvaluator
from data.event_aggregator import EventAggregator
from data.kalshi_client import KalshiClient
from data.rest_client import CLOBRestClient
from execution.order_builder import OrderParams, OrderPayloadBuilder, format_signed_order
from models.credentials import KalshiCredentials, PolymarketCredentials
from models.event import AggregationResult
from models.order import SignedOrder, UnsignedOrder
from models.trading_gate import TradingGateResult
from storage.credential_store import CredentialStore
from web3_infra.eip712_types import WalletSigner, clob_auth_payload, order_payload

logger = structlog.get_logger("core.terminal")


class TradingTerminal:
    """Facade over both venues for one process.

    Parameters
    ----------
    store:
        Credential store, read before every signed call.
    http_client:
        Shared ``httpx.AsyncClient``; created by ``start()`` if omitted.
    order_builder:
        Builder used by ``build_order`` (tests pin its clock and salt).
    """

    def __init__(
        self,
        store: CredentialStore,
        http_client: Optional[httpx.AsyncClient] = None,
        order_builder: Optional[OrderPayloadBuilder] = None,
    ) -> None:
        self._store = store
        self._http = http_client
        self._owns_http = http_client is None
        self._order_builder = order_builder or OrderPayloadBuilder()

    # ── Lifecycle ────────────────────────────────────────────────

    async def start(self) -> None:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS))
            self._owns_http = True

    async def stop(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> TradingTerminal:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("TradingTerminal not started — call start() first")
        return self._http

    def rest_client(self) -> CLOBRestClient:
        return CLOBRestClient(http_client=self._client())

    def kalshi_client(self, signer: Optional[KalshiSigner] = None) -> KalshiClient:
        return KalshiClient(signer=signer, http_client=self._client())

    # ── Stateless primitives ─────────────────────────────────────

    @staticmethod
    def sign_venue_a(
        access_key: str,
        key_pem: str,
        timestamp: str,
        method: str,
        path: str,
    ) -> KalshiSignedHeaders:
        """Kalshi RSA-PSS headers for one request."""
        return KalshiSigner(access_key, key_pem).headers(method, path, timestamp)

    @staticmethod
    def sign_venue_b(
        creds: PolymarketCredentials,
        timestamp: str,
        method: str,
        path: str,
        body: Any = "",
    ) -> ClobL2Headers:
        """CLOB L2 HMAC headers for one request."""
        return l2_headers(creds, method, path, serialize_body(body), timestamp=timestamp)

    def build_order(self, params: OrderParams) -> UnsignedOrder:
        return self._order_builder.build(params)

    @staticmethod
    async def sign_order(order: UnsignedOrder, wallet: WalletSigner) -> SignedOrder:
        """Hand the order's typed data to the wallet and attach its signature."""
        signature = await order_payload(order).request_signature(wallet)
        return format_signed_order(order, signature)

    async def aggregate_events(self, **overrides: Any) -> AggregationResult:
        """Merged, ranked public event catalog.  Keyword arguments are
        passed to ``EventAggregator``."""
        aggregator = EventAggregator(self.kalshi_client(), **overrides)
        return await aggregator.aggregate()

    # ── Credential reads ─────────────────────────────────────────

    async def _kalshi_creds(self, user_id: str) -> KalshiCredentials:
        creds = await self._store.get_kalshi_credentials(user_id)
        if creds is None:
            raise CredentialsNotFound(user_id, "kalshi")
        return creds

    async def _polymarket_creds(self, user_id: str) -> PolymarketCredentials:
        creds = await self._store.get_polymarket_credentials(user_id)
        if creds is None:
            raise CredentialsNotFound(user_id, "polymarket")
        return creds

    # ── Per-user operations ──────────────────────────────────────

    async def kalshi_headers(self, user_id: str, method: str, path: str) -> KalshiSignedHeaders:
        creds = await self._kalshi_creds(user_id)
        return KalshiSigner(creds.api_key_id, creds.private_key).headers(method, path)

    async def clob_headers(self, user_id: str, method: str, path: str, body: Any = None) -> ClobL2Headers:
        creds = await self._polymarket_creds(user_id)
        return l2_headers(creds, method, path, serialize_body(body))

    async def evaluate_trading_gate(self, user_id: str, connected_address: Optional[str]) -> TradingGateResult:
        """Gate for ``user_id``.  A missing record yields NO_CREDENTIALS."""
        creds = await self._store.get_polymarket_credentials(user_id)
        return await TradingGateEvaluator(self.rest_client()).evaluate(creds, connected_address)

    async def connect_clob(self, address: str, wallet: WalletSigner, nonce: int = 0) -> PolymarketCredentials:
        """Obtain L2 credentials for ``address`` via a wallet-signed ClobAuth.

        The returned record is not persisted; storing it is the caller's job.
        """
        rest = self.rest_client()
        timestamp = await rest.get_server_time()
        payload = clob_auth_payload(address, timestamp, nonce)
        signature = await payload.request_signature(wallet)
        creds = await rest.create_or_derive_api_key(l1_headers(address, signature, timestamp, nonce))
        logger.info("terminal.clob_connected", address=address)
        return creds

    async def submit_clob_order(
        self,
        user_id: str,
        params: OrderParams,
        wallet: WalletSigner,
        connected_address: Optional[str] = None,
        order_type: str = "GTC",
    ) -> dict[str, Any]:
        """Gate, build, wallet-sign and post one CLOB order.

        Raises
        ------
        TradingDisabled
            Gate closed; nothing was built or sent.
        """
        creds = await self._polymarket_creds(user_id)
        connected = connected_address or params.signer_address
        rest = self.rest_client()
        gate = await TradingGateEvaluator(rest).evaluate(creds, connected)
        if not gate.trading_enabled:
            raise TradingDisabled(gate)

        order = self.build_order(params)
        signed = await self.sign_order(order, wallet)
        # Fresh read before L2 signing.
        creds = await self._polymarket_creds(user_id)
        return await rest.post_order(creds, signed, order_type=order_type)

    async def submit_kalshi_order(
        self,
        user_id: str,
        payload: dict[str, Any],
        check_balance: bool = True,
    ) -> dict[str, Any]:
        """Post a payload from ``build_kalshi_order`` with the user's key."""
        creds = await self._kalshi_creds(user_id)
        client = self.kalshi_client(KalshiSigner(creds.api_key_id, creds.private_key))
        return await client.submit_order(payload, check_balance=check_balance)

    async def kalshi_balance(self, user_id: str) -> Decimal:
        creds = await self._kalshi_creds(user_id)
        client = self.kalshi_client(KalshiSigner(creds.api_key_id, creds.private_key))
        return await client.get_balance()
