"""Error taxonomy shared by the signers, venue clients and aggregator.

Upstream errors keep the venue's status code and raw body intact so
operators see the original diagnostics.  Nothing here hides an upstream
failure; handlers may only add context.
"""

from __future__ import annotations

from typing import Any


class TerminalError(Exception):
    """Root of every error raised by this package."""


# ── Local (synchronous) errors ──────────────────────────────────


class KeyFormatError(TerminalError):
    """Private key is encrypted or its PEM armor is not recognised."""


class DecodeError(KeyFormatError):
    """PEM body is not valid base64."""


class SigningError(TerminalError):
    """Key import or the signature operation itself failed."""


class InvalidOrderParams(TerminalError, ValueError):
    """Order price/size/side rejected before any signing or network I/O."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class TradingDisabled(TerminalError):
    """Trading gate is closed for this account; ``result`` says why."""

    def __init__(self, result: Any) -> None:
        condition = getattr(result, "condition", None)
        super().__init__(f"trading disabled: {getattr(condition, 'value', condition)}")
        self.result = result


class CredentialsNotFound(TerminalError):
    """The credential store has no record for the requested user."""

    def __init__(self, user_id: str, venue: str) -> None:
        super().__init__(f"no {venue} credentials stored for user {user_id}")
        self.user_id = user_id
        self.venue = venue


# ── Upstream errors ─────────────────────────────────────────────


class UpstreamError(TerminalError):
    """Venue returned a non-2xx response or the request could not complete."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: Any = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.url = url

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is None:
            return base
        return f"{base} (HTTP {self.status_code}: {str(self.body)[:300]})"


class UpstreamAuthError(UpstreamError):
    """HTTP 401 — the stored credentials were rejected; reconnect required."""

    reconnect_required = True


class UpstreamRateLimited(UpstreamError):
    """HTTP 429 — the caller must back off; nothing here retries."""

    def __init__(
        self,
        message: str,
        status_code: int | None = 429,
        body: Any = None,
        url: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, body=body, url=url)
        self.retry_after = retry_after


class OrderRejectedByVenue(UpstreamError):
    """Venue business error (tick size, balance, market closed...).

    ``venue_message`` is the venue's own error text, unmodified.
    """

    def __init__(
        self,
        venue_message: str,
        status_code: int | None = None,
        body: Any = None,
        url: str | None = None,
    ) -> None:
        super().__init__(venue_message, status_code=status_code, body=body, url=url)
        self.venue_message = venue_message


class EndpointExhaustedError(UpstreamError):
    """Every candidate base URL failed for a single logical call."""

    def __init__(self, message: str, errors: dict[str, Exception] | None = None) -> None:
        self.errors = dict(errors or {})
        last = next(reversed(self.errors.values()), None) if self.errors else None
        super().__init__(
            message,
            status_code=getattr(last, "status_code", None),
            body=getattr(last, "body", None),
            url=getattr(last, "url", None),
        )
        self.last_error = last


# ── Aggregation outcomes (recorded, never raised by aggregate()) ─


class PartialAggregationFailure(TerminalError):
    """One or two of the three aggregation sources failed."""

    def __init__(self, source: str, cause: BaseException) -> None:
        super().__init__(f"aggregation source {source!r} failed: {cause}")
        self.source = source
        self.cause = cause


class TotalAggregationFailure(TerminalError):
    """All aggregation sources failed or returned nothing."""
