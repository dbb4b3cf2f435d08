"""HTTP plumbing shared by the venue clients.

All status-code → exception mapping lives here so every call site
treats 401 / 429 / business errors the same way.  Response bodies are
attached to the raised error unmodified.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog

from core.errors import (
    OrderRejectedByVenue,
    UpstreamAuthError,
    UpstreamError,
    UpstreamRateLimited,
)

logger = structlog.get_logger("data.http")

_BUSINESS_STATUSES = frozenset({400, 403, 404, 409, 422})


def parse_body(response: httpx.Response) -> Any:
    """JSON body when it parses, raw text otherwise."""
    text = response.text
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def venue_error_text(body: Any) -> str:
    """Pull the venue's own error message out of a response body.

    Kalshi nests ``{"error": {"code", "message"}}``; the CLOB answers
    ``{"error": "..."}`` or ``{"errorMsg": "..."}``.
    """
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict):
            msg = err.get("message") or err.get("details") or err.get("code")
            if msg:
                return str(msg)
        elif err:
            return str(err)
        for key in ("errorMsg", "message", "detail"):
            if body.get(key):
                return str(body[key])
        return json.dumps(body)[:500]
    if body is None:
        return ""
    return str(body)[:500]


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("retry-after")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def raise_for_venue_status(response: httpx.Response, order_endpoint: bool = False) -> Any:
    """Return the parsed body on 2xx, otherwise raise the mapped error.

    Parameters
    ----------
    order_endpoint:
        When True, 4xx business statuses raise ``OrderRejectedByVenue``
        carrying the venue's text instead of a generic ``UpstreamError``.
    """
    body = parse_body(response)
    status = response.status_code
    if 200 <= status < 300:
        return body

    url = str(response.request.url) if response.request is not None else None
    text = venue_error_text(body)

    if status == 401:
        raise UpstreamAuthError("credentials rejected; reconnect required", status_code=status, body=body, url=url)
    if status == 429:
        raise UpstreamRateLimited(
            "rate limited by venue", status_code=status, body=body, url=url, retry_after=_retry_after(response)
        )
    if order_endpoint and status in _BUSINESS_STATUSES:
        raise OrderRejectedByVenue(text or f"HTTP {status}", status_code=status, body=body, url=url)
    raise UpstreamError(f"venue returned HTTP {status}", status_code=status, body=body, url=url)


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    order_endpoint: bool = False,
    **kwargs: Any,
) -> Any:
    """Perform one request and map both transport and HTTP failures."""
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.TimeoutException as exc:
        raise UpstreamError(f"request timed out: {method} {url}", url=url) from exc
    except httpx.HTTPError as exc:
        raise UpstreamError(f"request failed: {method} {url}: {exc}", url=url) from exc
    return raise_for_venue_status(response, order_endpoint=order_endpoint)
