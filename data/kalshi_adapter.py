"""Kalshi response adapter — the only place venue field names appear.

Kalshi reports money as ``*_dollars`` strings on newer payloads and as
integer cents / contract counts on older ones.  Everything is reduced
here to floats in dollars, integer cents for prices and timezone-aware
datetimes, so the aggregator never touches raw venue dicts.
"""

from __future__ import annotations

import re
from collections import OrderedDict
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from models.event import AggregatedEvent, AggregatedMarket, AggregationSource

_PARLAY_FLAGS = re.compile(r"MULTIGAME|PARLAY|BUNDLE", re.IGNORECASE)
_PARLAY_TITLE = re.compile(r",\s*(and|&)\s*[A-Z]")
_MULTI_OUTCOME_TITLE = re.compile(r",\s*[A-Z][^,]+,")
# Numeric timestamps above this are epoch milliseconds.
EPOCH_MS_THRESHOLD = 100_000_000_000


# ── Scalars ──────────────────────────────────────────────────────


def parse_number(value: Any) -> Optional[float]:
    """``"12.50"`` / ``12.5`` / ``None`` → float or None (bools rejected)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def dollars(raw: dict[str, Any], dollars_field: str, fallback_field: str | None = None, fallback_scale: float = 1.0) -> float:
    """Dollar amount from ``*_dollars`` or a scaled legacy field; 0 if absent."""
    value = parse_number(raw.get(dollars_field))
    if value is None and fallback_field is not None:
        legacy = parse_number(raw.get(fallback_field))
        value = legacy * fallback_scale if legacy is not None else None
    if value is None or value != value or value < 0:
        return 0.0
    return value


def to_cents(number: Any, dollar_string: Any) -> Optional[int]:
    """Price in whole cents from an integer-cents field or a dollars string."""
    if isinstance(number, (int, float)) and not isinstance(number, bool):
        return int(round(number))
    value = parse_number(dollar_string)
    if value is None:
        return None
    return int(round(value * 100))


def parse_datetime(value: Any) -> Optional[datetime]:
    """ISO-8601 (with ``Z``) or epoch seconds/milliseconds → aware UTC datetime.

    Unparseable or out-of-range values give ``None``.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if abs(value) > EPOCH_MS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _clamp_cents(value: int) -> int:
    return max(0, min(100, value))


# ── Markets ──────────────────────────────────────────────────────


def market_yes_no_cents(raw: dict[str, Any]) -> tuple[int, int]:
    """Yes/no prices: last trade, else bid/ask mid, else one side, else 50/50."""
    last = to_cents(raw.get("last_price"), raw.get("last_price_dollars"))
    yes_ask = to_cents(raw.get("yes_ask"), raw.get("yes_ask_dollars"))
    yes_bid = to_cents(raw.get("yes_bid"), raw.get("yes_bid_dollars"))
    no_ask = to_cents(raw.get("no_ask"), raw.get("no_ask_dollars"))
    no_bid = to_cents(raw.get("no_bid"), raw.get("no_bid_dollars"))

    yes = last or None
    if yes is None and yes_ask is not None and yes_bid is not None:
        yes = round((yes_ask + yes_bid) / 2)
    if yes is None:
        yes = yes_ask if yes_ask is not None else yes_bid

    no = 100 - yes if yes is not None else None
    if no is None and no_ask is not None and no_bid is not None:
        no = round((no_ask + no_bid) / 2)
    if no is None:
        no = no_ask if no_ask is not None else no_bid

    return _clamp_cents(yes if yes is not None else 50), _clamp_cents(no if no is not None else 50)


def normalize_market(raw: dict[str, Any]) -> AggregatedMarket:
    yes, no = market_yes_no_cents(raw)
    return AggregatedMarket(
        ticker=str(raw.get("ticker", "")),
        title=str(raw.get("title") or raw.get("ticker") or ""),
        yes_price=yes,
        no_price=no,
        volume_24h=dollars(raw, "volume_24h_dollars", "volume_24h"),
        volume_total=dollars(raw, "volume_dollars", "volume"),
        liquidity=dollars(raw, "liquidity_dollars", "liquidity", fallback_scale=0.01),
        close_time=parse_datetime(raw.get("close_time") or raw.get("expiration_time")),
        status=str(raw.get("status") or ""),
    )


def is_parlay(raw: dict[str, Any]) -> bool:
    """Multi-leg markets: flagged tickers or "A, and B" style titles."""
    ticker = str(raw.get("ticker") or "")
    event_ticker = str(raw.get("event_ticker") or "")
    if _PARLAY_FLAGS.search(ticker) or _PARLAY_FLAGS.search(event_ticker):
        return True
    title = str(raw.get("title") or "")
    return bool(_PARLAY_TITLE.search(title) or _MULTI_OUTCOME_TITLE.search(title))


def group_markets_by_event(
    markets: Iterable[dict[str, Any]],
    include_parlays: bool = False,
) -> list[dict[str, Any]]:
    """Synthesize raw event dicts from a flat market list.

    Output mirrors the ``/events`` shape (``event_ticker``, ``title``,
    ``category``, ``markets``) so it goes through ``normalize_event``.
    Markets without an ``event_ticker`` are dropped.
    """
    groups: OrderedDict[str, dict[str, Any]] = OrderedDict()
    for raw in markets:
        ticker = raw.get("event_ticker")
        if not ticker:
            continue
        if not include_parlays and is_parlay(raw):
            continue
        group = groups.get(ticker)
        if group is None:
            group = {
                "event_ticker": ticker,
                "title": raw.get("event_title") or raw.get("title") or ticker,
                "sub_title": raw.get("subtitle") or "",
                "category": raw.get("category") or "General",
                "markets": [],
            }
            groups[ticker] = group
        group["markets"].append(raw)
    return list(groups.values())


# ── Events ───────────────────────────────────────────────────────


def normalize_event(raw: dict[str, Any], source: AggregationSource) -> Optional[AggregatedEvent]:
    """Raw ``/events`` entry → ``AggregatedEvent``; None without a ticker."""
    ticker = raw.get("event_ticker")
    if not ticker:
        return None

    markets = [normalize_market(m) for m in (raw.get("markets") or []) if isinstance(m, dict)]

    headline: Optional[AggregatedMarket] = None
    for market in markets:
        if headline is None or market.volume_24h > headline.volume_24h:
            headline = market

    yes, no = (headline.yes_price, headline.no_price) if headline else (50, 50)

    return AggregatedEvent(
        event_ticker=str(ticker),
        title=str(raw.get("title") or raw.get("sub_title") or ticker),
        subtitle=str(raw.get("sub_title") or ""),
        category=str(raw.get("category") or "General"),
        volume_24h_raw=sum(m.volume_24h for m in markets),
        volume_total_raw=sum(m.volume_total for m in markets),
        liquidity_raw=sum(m.liquidity for m in markets),
        end_date=headline.close_time if headline else None,
        markets=markets,
        source_tag=source.value,
        yes_price=yes,
        no_price=no,
    )


def parse_events_page(body: Any) -> tuple[list[dict[str, Any]], Optional[str]]:
    """``{"events": [...], "cursor": "..."}`` → (events, cursor or None)."""
    if not isinstance(body, dict):
        return [], None
    events = [e for e in (body.get("events") or []) if isinstance(e, dict)]
    cursor = body.get("cursor") or None
    return events, cursor


def parse_markets_page(body: Any) -> list[dict[str, Any]]:
    if not isinstance(body, dict):
        return []
    return [m for m in (body.get("markets") or []) if isinstance(m, dict)]


def parse_image_url(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    url = body.get("image_url")
    return str(url) if url else None


def parse_balance(body: Any) -> Decimal:
    """``{"balance": <cents>}`` → dollars."""
    if not isinstance(body, dict):
        return Decimal("0")
    try:
        return Decimal(str(body.get("balance") or 0)) / Decimal(100)
    except InvalidOperation:
        return Decimal("0")
