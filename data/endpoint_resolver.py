"""EndpointResolver — ordered base-URL failover.

Tries candidate base URLs in sequence and returns the first success.
Used for Kalshi's public mirrors and for demo/production routing.  With
``sticky=True`` the last candidate that succeeded is tried first for the
rest of the resolver's lifetime instead of re-probing from the top.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Sequence, TypeVar

import structlog

from core.errors import EndpointExhaustedError, OrderRejectedByVenue, UpstreamError

logger = structlog.get_logger("data.endpoint_resolver")

T = TypeVar("T")


class EndpointResolver:
    """Ordered failover across base URLs.

    Parameters
    ----------
    candidates:
        Base URLs in priority order.
    sticky:
        Remember the last successful candidate and try it first.
    name:
        Label used in logs.
    """

    def __init__(
        self,
        candidates: Sequence[str],
        sticky: bool = False,
        name: str = "",
    ) -> None:
        if not candidates:
            raise ValueError("At least one candidate base URL is required")
        self._candidates = [c.rstrip("/") for c in candidates]
        self._sticky = sticky
        self._name = name
        self._preferred: str | None = None

    @property
    def candidates(self) -> list[str]:
        return list(self._candidates)

    @property
    def preferred(self) -> str | None:
        return self._preferred

    def ordered(self) -> list[str]:
        """Candidates in the order they will be tried for the next call."""
        if self._preferred is None:
            return list(self._candidates)
        return [self._preferred] + [c for c in self._candidates if c != self._preferred]

    def reset(self) -> None:
        self._preferred = None

    async def call(self, fn: Callable[[str], Awaitable[T]]) -> T:
        """Run ``fn(base_url)`` against each candidate until one succeeds.

        Venue business rejections are never failed over; they propagate
        immediately.  With a single candidate the original error
        propagates unchanged, otherwise ``EndpointExhaustedError`` carries
        every candidate's error.
        """
        errors: dict[str, Exception] = {}
        order = self.ordered()

        for base in order:
            try:
                result = await fn(base)
            except OrderRejectedByVenue:
                raise
            except UpstreamError as exc:
                errors[base] = exc
                logger.info(
                    "endpoint_resolver.candidate_failed",
                    resolver=self._name,
                    base_url=base,
                    status=exc.status_code,
                    error=str(exc)[:200],
                )
                continue

            if self._sticky and base != self._preferred:
                self._preferred = base
                logger.debug("endpoint_resolver.preferred", resolver=self._name, base_url=base)
            return result

        if len(order) == 1:
            raise errors[order[0]]
        raise EndpointExhaustedError(
            f"all {len(order)} endpoints failed for {self._name or 'call'}",
            errors=errors,
        )
