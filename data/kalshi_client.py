"""KalshiClient — async REST client for the Kalshi trade API.

Covers two kinds of traffic:
- Public, unauthenticated event/market data served from mirror base URLs
  (consumed by the event aggregator).
- Authenticated portfolio calls (balance, order submission) signed with
  RSA-PSS.  Each request is signed right before it is sent with a fresh
  millisecond timestamp; nothing here retries.

Environment routing (demo / live / auto) and mirror failover both go
through ``EndpointResolver``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

import httpx
import structlog

from auth.kalshi_signer import KalshiSigner
from config.settings import settings
from core.errors import OrderRejectedByVenue
from data.endpoint_resolver import EndpointResolver
from data.http import send
from data.kalshi_adapter import (
    parse_balance,
    parse_events_page,
    parse_image_url,
    parse_markets_page,
)
from execution.kalshi_orders import required_buy_amount

logger = structlog.get_logger("data.kalshi_client")

_JSON_HEADERS = {"Accept": "application/json", "Content-Type": "application/json"}


def environment_base_urls(environment: str) -> list[str]:
    """``demo`` / ``live`` / ``auto`` (demo first, then production)."""
    if environment == "demo":
        return [settings.KALSHI_DEMO_BASE_URL]
    if environment == "live":
        return [settings.KALSHI_PROD_BASE_URL]
    if environment == "auto":
        return [settings.KALSHI_DEMO_BASE_URL, settings.KALSHI_PROD_BASE_URL]
    raise ValueError(f"unknown Kalshi environment: {environment!r}")


class KalshiClient:
    """Async Kalshi REST client.

    Parameters
    ----------
    signer:
        Required only for portfolio calls.  Build it from a freshly read
        credential record; do not keep one across credential rotations.
    public_base_urls:
        Mirrors for public event data, tried in order.
    environment:
        Routing for authenticated reads (balance).
    trade_environment:
        Routing for order submission.  Defaults to production only.
    sticky:
        Remember the last mirror / environment that answered.
    http_client:
        Injected ``httpx.AsyncClient`` (tests pass one with a
        ``MockTransport``).  When omitted, ``start()`` creates one.
    """

    def __init__(
        self,
        signer: Optional[KalshiSigner] = None,
        public_base_urls: Optional[list[str]] = None,
        environment: Optional[str] = None,
        trade_environment: Optional[str] = None,
        sticky: bool = False,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._signer = signer
        self._prefix = settings.KALSHI_API_PREFIX
        self._timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self._public = EndpointResolver(
            public_base_urls or settings.KALSHI_PUBLIC_BASE_URLS, sticky=sticky, name="kalshi.public"
        )
        self._portfolio = EndpointResolver(
            environment_base_urls(environment or settings.KALSHI_ENVIRONMENT), sticky=sticky, name="kalshi.portfolio"
        )
        self._trading = EndpointResolver(
            environment_base_urls(trade_environment or settings.KALSHI_TRADE_ENVIRONMENT),
            sticky=sticky,
            name="kalshi.trading",
        )
        self._client = http_client
        self._owns_client = http_client is None

    # ── Lifecycle ────────────────────────────────────────────────

    async def start(self) -> None:
        """Open the HTTP client.  Idempotent."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
            self._owns_client = True
            logger.info("kalshi_client.started", public=self._public.candidates)

    async def stop(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
            logger.info("kalshi_client.stopped")

    async def __aenter__(self) -> KalshiClient:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("KalshiClient not started — call start() first")
        return self._client

    def _path(self, suffix: str) -> str:
        return f"{self._prefix}{suffix}"

    # ── Public data ──────────────────────────────────────────────

    async def _public_get(self, path: str, params: dict[str, Any], timeout: Optional[float]) -> Any:
        client = self._http()

        async def attempt(base: str) -> Any:
            return await send(
                client,
                "GET",
                f"{base}{path}",
                params=params,
                headers={"Accept": "application/json"},
                timeout=timeout or self._timeout,
            )

        return await self._public.call(attempt)

    async def get_events_page(
        self,
        cursor: Optional[str] = None,
        limit: int = 200,
        series_ticker: Optional[str] = None,
        status: str = "open",
        timeout: Optional[float] = None,
    ) -> tuple[list[dict[str, Any]], Optional[str]]:
        """One page of ``/events`` with nested markets → (events, next cursor)."""
        params: dict[str, Any] = {"status": status, "limit": limit, "with_nested_markets": "true"}
        if cursor:
            params["cursor"] = cursor
        if series_ticker:
            params["series_ticker"] = series_ticker
        body = await self._public_get(self._path("/events"), params, timeout)
        return parse_events_page(body)

    async def get_markets(
        self,
        limit: int = 1000,
        status: str = "open",
        timeout: Optional[float] = None,
    ) -> list[dict[str, Any]]:
        body = await self._public_get(self._path("/markets"), {"status": status, "limit": limit}, timeout)
        return parse_markets_page(body)

    async def get_event_image(self, event_ticker: str, timeout: Optional[float] = None) -> Optional[str]:
        body = await self._public_get(self._path(f"/events/{event_ticker}/metadata"), {}, timeout)
        return parse_image_url(body)

    # ── Authenticated portfolio ──────────────────────────────────

    def _require_signer(self) -> KalshiSigner:
        if self._signer is None:
            raise RuntimeError("KalshiClient has no signer; portfolio calls need credentials")
        return self._signer

    async def _signed(
        self,
        resolver: EndpointResolver,
        method: str,
        path: str,
        json_body: Optional[dict[str, Any]] = None,
        order_endpoint: bool = False,
    ) -> Any:
        client = self._http()
        signer = self._require_signer()

        async def attempt(base: str) -> Any:
            # Fresh timestamp + signature per attempt, never reused.
            headers = signer.headers(method, path).as_dict()
            return await send(
                client,
                method,
                f"{base}{path}",
                order_endpoint=order_endpoint,
                headers={**_JSON_HEADERS, **headers},
                json=json_body,
            )

        return await resolver.call(attempt)

    async def get_balance(self) -> Decimal:
        """Available cash in dollars."""
        body = await self._signed(self._portfolio, "GET", self._path("/portfolio/balance"))
        balance = parse_balance(body)
        logger.info("kalshi_client.balance", balance=str(balance))
        return balance

    async def submit_order(self, payload: dict[str, Any], check_balance: bool = True) -> dict[str, Any]:
        """Post an order built by ``execution.kalshi_orders.build_kalshi_order``.

        Buys are checked against available cash first.  Venue rejections
        surface as ``OrderRejectedByVenue`` with the venue's text.
        """
        required = required_buy_amount(payload)
        if check_balance and required > 0:
            body = await self._signed(self._trading, "GET", self._path("/portfolio/balance"))
            available = parse_balance(body)
            if available < required:
                raise OrderRejectedByVenue(
                    f"insufficient funds: need ${required:.2f}, have ${available:.2f}",
                    body={"required": str(required), "available": str(available)},
                )

        logger.info(
            "kalshi_client.submitting_order",
            ticker=payload.get("ticker"),
            action=payload.get("action"),
            side=payload.get("side"),
            count=payload.get("count"),
            type=payload.get("type"),
        )
        body = await self._signed(
            self._trading, "POST", self._path("/portfolio/orders"), json_body=payload, order_endpoint=True
        )
        order = body.get("order", body) if isinstance(body, dict) else body
        logger.info("kalshi_client.order_submitted", order_id=order.get("order_id") if isinstance(order, dict) else None)
        return order
