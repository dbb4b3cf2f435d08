"""TradingGateEvaluator — may this account place CLOB orders right now?

Readiness is a short-circuit AND over five predicates:

- stored API key / secret / passphrase present
- stored owner address equals the connected wallet (case-insensitive)
- account not restricted to closed-only, checked live on every call

Credential and ownership failures never reach the network.  Otherwise
the key is validated against ``/auth/api-keys`` before the restriction
check; a 401 from either call gives ``RECONNECT_REQUIRED``.  Any other
failure gives ``STATUS_CHECK_FAILED``; an unknown restriction is never
treated as "unrestricted".
"""

from __future__ import annotations

from typing import Optional, Protocol

import structlog

from core.errors import UpstreamAuthError, UpstreamError
from models.credentials import PolymarketCredentials
from models.trading_gate import TradingGateResult
from web3_infra.addresses import same_address

logger = structlog.get_logger("core.trading_gate")


class RestrictionStatusSource(Protocol):
    """Anything that can validate the key and answer the closed-only
    question (``CLOBRestClient``)."""

    async def get_api_keys(self, creds: PolymarketCredentials) -> list[str]: ...

    async def get_closed_only(self, creds: PolymarketCredentials) -> bool: ...


def evaluate_gate(
    creds: Optional[PolymarketCredentials],
    connected_address: Optional[str],
    closed_only: Optional[bool] = None,
    status_check_error: Optional[str] = None,
    reconnect_required: bool = False,
) -> TradingGateResult:
    """Pure evaluation from already-known predicate values."""
    creds = creds or PolymarketCredentials()
    return TradingGateResult(
        has_key=creds.has_key,
        has_secret=creds.has_secret,
        has_passphrase=creds.has_passphrase,
        owner_match=same_address(creds.owner_address, connected_address),
        closed_only=closed_only,
        owner_address=creds.owner_address,
        connected_address=connected_address or "",
        status_check_error=status_check_error,
        reconnect_required=reconnect_required,
    )


class TradingGateEvaluator:
    """Stateless gate.  Each ``evaluate()`` call validates the key and hits
    the status endpoint again; nothing is cached between calls.

    Parameters
    ----------
    status_source:
        Client exposing ``get_api_keys(creds)`` and ``get_closed_only(creds)``.
    """

    def __init__(self, status_source: RestrictionStatusSource) -> None:
        self._status_source = status_source

    async def evaluate(
        self,
        creds: Optional[PolymarketCredentials],
        connected_address: Optional[str],
    ) -> TradingGateResult:
        precheck = evaluate_gate(creds, connected_address)
        if creds is None or not creds.is_complete or not precheck.owner_match:
            logger.info(
                "trading_gate.blocked",
                condition=precheck.condition.value,
                connected=connected_address or "",
            )
            return precheck

        try:
            await self._status_source.get_api_keys(creds)
            closed_only = await self._status_source.get_closed_only(creds)
        except UpstreamAuthError as exc:
            logger.warning(
                "trading_gate.reconnect_required",
                status=exc.status_code,
                owner=creds.owner_address,
            )
            return evaluate_gate(
                creds, connected_address, status_check_error=str(exc), reconnect_required=True
            )
        except UpstreamError as exc:
            logger.warning(
                "trading_gate.status_check_failed",
                status=exc.status_code,
                error=str(exc)[:200],
            )
            return evaluate_gate(creds, connected_address, status_check_error=str(exc))

        result = evaluate_gate(creds, connected_address, closed_only=closed_only)
        logger.info(
            "trading_gate.evaluated",
            trading_enabled=result.trading_enabled,
            condition=result.condition.value,
        )
        return result
