"""CLOBRestClient — authenticated REST client for the Polymarket CLOB.

Covers:
- Server time (``GET /time``) for L1 timestamps
- API key issuance via L1 headers: create, falling back to derive
- Credential check (``GET /auth/api-keys``) and the closed-only
  restriction status (``GET /auth/ban-status/closed-only``) via L2 HMAC
- Order submission (``POST /order``) with the signed body bytes

Errors are never retried here.  401 surfaces as ``UpstreamAuthError``
(reconnect required), 429 as ``UpstreamRateLimited``, and order
rejections as ``OrderRejectedByVenue`` with the venue's text intact.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import httpx
import structlog

from auth.clob_signer import ClobL1Headers, l2_headers, serialize_body
from config.settings import settings
from core.errors import SigningError, UpstreamError
from core.logger import redact
from data.http import send
from models.credentials import PolymarketCredentials
from models.order import SignedOrder

logger = structlog.get_logger("data.rest_client")

_ACCEPT_JSON = {"Accept": "application/json"}


class CLOBRestClient:
    """Async REST client for the Polymarket CLOB API.

    Parameters
    ----------
    base_url:
        CLOB REST API base URL.
    http_client:
        Injected ``httpx.AsyncClient``; created by ``start()`` if omitted.
    timeout:
        Per-request timeout in seconds.
    max_clock_skew_seconds:
        Maximum allowed drift between an L1 timestamp and local time.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        max_clock_skew_seconds: Optional[int] = None,
    ) -> None:
        self._base_url = (base_url or settings.CLOB_REST_BASE_URL).rstrip("/")
        self._timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self._max_skew = max_clock_skew_seconds or settings.CLOB_MAX_CLOCK_SKEW_SECONDS
        self._client = http_client
        self._owns_client = http_client is None

    # ── Lifecycle ────────────────────────────────────────────────

    async def start(self) -> None:
        """Open the HTTP client.  Idempotent."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
            self._owns_client = True
            logger.info("rest_client.started", base_url=self._base_url)

    async def stop(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
            logger.info("rest_client.stopped")

    async def __aenter__(self) -> CLOBRestClient:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("CLOBRestClient not started — call start() first")
        return self._client

    # ── L2 plumbing ──────────────────────────────────────────────

    async def _l2_request(
        self,
        creds: PolymarketCredentials,
        method: str,
        path: str,
        body: Any = None,
        address: Optional[str] = None,
        order_endpoint: bool = False,
    ) -> Any:
        """Sign and send one L2 request; the signed string is the sent body."""
        raw_body = serialize_body(body)
        headers = l2_headers(creds, method, path, raw_body, address=address).as_dict()
        extra: dict[str, Any] = {}
        if raw_body:
            headers["Content-Type"] = "application/json"
            extra["content"] = raw_body.encode("utf-8")
        return await send(
            self._http(),
            method,
            f"{self._base_url}{path}",
            order_endpoint=order_endpoint,
            headers={**_ACCEPT_JSON, **headers},
            **extra,
        )

    # ── Public ───────────────────────────────────────────────────

    async def get_server_time(self) -> int:
        """Server unix timestamp (seconds)."""
        body = await send(self._http(), "GET", f"{self._base_url}/time", headers=_ACCEPT_JSON)
        if isinstance(body, dict):
            body = body.get("timestamp", body.get("time"))
        try:
            return int(str(body).strip())
        except (TypeError, ValueError) as exc:
            raise UpstreamError("unexpected /time response", body=body, url=f"{self._base_url}/time") from exc

    # ── L1: API key issuance ─────────────────────────────────────

    def check_l1_timestamp(self, timestamp: str | int, now: Optional[float] = None) -> int:
        """Reject L1 timestamps that drift more than the allowed skew."""
        try:
            ts = int(str(timestamp).strip())
        except ValueError as exc:
            raise SigningError(f"L1 timestamp must be epoch seconds, got {timestamp!r}") from exc
        if ts <= 0:
            raise SigningError(f"L1 timestamp must be positive, got {ts}")
        current = int(now if now is not None else time.time())
        if abs(current - ts) > self._max_skew:
            raise SigningError(f"L1 timestamp drift too large: local={current} yours={ts}")
        return ts

    @staticmethod
    def _creds_from_body(body: Any, address: str) -> PolymarketCredentials:
        if not isinstance(body, dict):
            raise UpstreamError("unexpected API key response", body=body)
        key = body.get("apiKey") or body.get("key")
        secret = body.get("secret")
        passphrase = body.get("passphrase")
        if not (key and secret and passphrase):
            raise UpstreamError("incomplete API credentials from venue", body={"apiKey": bool(key)})
        return PolymarketCredentials(
            api_key=key,
            secret=secret,
            passphrase=passphrase,
            owner_address=address.lower(),
        )

    async def create_api_key(self, l1: ClobL1Headers) -> PolymarketCredentials:
        body = await send(
            self._http(),
            "POST",
            f"{self._base_url}/auth/api-key",
            headers={**_ACCEPT_JSON, "Content-Type": "application/json", **l1.as_dict()},
            content=b"{}",
        )
        return self._creds_from_body(body, l1.address)

    async def derive_api_key(self, l1: ClobL1Headers) -> PolymarketCredentials:
        body = await send(
            self._http(),
            "GET",
            f"{self._base_url}/auth/derive-api-key",
            params={"nonce": l1.nonce},
            headers={**_ACCEPT_JSON, **l1.as_dict()},
        )
        return self._creds_from_body(body, l1.address)

    async def create_or_derive_api_key(self, l1: ClobL1Headers) -> PolymarketCredentials:
        """Create a new key; if the venue refuses, derive the existing one."""
        self.check_l1_timestamp(l1.timestamp)
        try:
            creds = await self.create_api_key(l1)
            logger.info("rest_client.api_key_created", address=l1.address, key=redact(creds.api_key))
            return creds
        except UpstreamError as exc:
            logger.info("rest_client.api_key_create_failed", address=l1.address, status=exc.status_code)
        creds = await self.derive_api_key(l1)
        logger.info("rest_client.api_key_derived", address=l1.address, key=redact(creds.api_key))
        return creds

    # ── L2: account status ───────────────────────────────────────

    async def get_api_keys(self, creds: PolymarketCredentials) -> list[str]:
        """Keys registered to the owner; a 401 means the tuple is invalid."""
        body = await self._l2_request(creds, "GET", "/auth/api-keys")
        if isinstance(body, dict):
            body = body.get("apiKeys", [])
        return list(body or [])

    async def get_closed_only(self, creds: PolymarketCredentials) -> bool:
        """True when the account is restricted to closing positions."""
        body = await self._l2_request(creds, "GET", "/auth/ban-status/closed-only")
        if not isinstance(body, dict):
            raise UpstreamError("unexpected closed-only status response", body=body)
        return body.get("closed_only") is True or body.get("closedOnly") is True

    # ── L2: orders ───────────────────────────────────────────────

    async def post_order(
        self,
        creds: PolymarketCredentials,
        signed_order: SignedOrder,
        order_type: str = "GTC",
        address: Optional[str] = None,
    ) -> dict[str, Any]:
        """Submit a wallet-signed order.

        ``address`` is the ``POLY_ADDRESS`` header; defaults to the
        credential owner.
        """
        payload = {
            "order": signed_order.to_payload(),
            "owner": creds.api_key,
            "orderType": order_type.upper(),
        }
        logger.info(
            "rest_client.posting_order",
            maker=signed_order.maker,
            side=signed_order.side,
            token_id=signed_order.token_id[:20],
            order_type=order_type,
        )
        body = await self._l2_request(creds, "POST", "/order", payload, address=address, order_endpoint=True)
        result = body if isinstance(body, dict) else {"response": body}
        logger.info("rest_client.order_posted", order_id=result.get("orderID") or result.get("orderId"))
        return result
