"""EventAggregator — merged, ranked Kalshi event catalog.

Three fetch strategies run concurrently against the public event API:

1. deep     — cursor pagination over ``/events`` (up to ``AGG_MAX_PAGES``)
2. series   — one ``/events?series_ticker=`` call per known series
3. markets  — one bulk ``/markets`` call grouped client-side by event

The join waits for all three; a failed source is recorded in the result
and never aborts its siblings.  Variants are merged by ``event_ticker``
keeping the higher-volume one, scored, sorted and the top slice is
enriched with images.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional, Sequence

import structlog

from config.settings import settings
from core.errors import PartialAggregationFailure, TotalAggregationFailure, UpstreamError
from data.kalshi_adapter import group_markets_by_event, normalize_event
from data.kalshi_client import KalshiClient
from models.event import AggregatedEvent, AggregationResult, AggregationSource

logger = structlog.get_logger("data.event_aggregator")

RECENCY_WINDOW = timedelta(days=365)
RECENCY_BONUS = 1.5
VOLUME_24H_WEIGHT = 2.0
VOLUME_TOTAL_WEIGHT = 0.1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Pure helpers ─────────────────────────────────────────────────


def score_event(event: AggregatedEvent, now: datetime) -> float:
    """``(vol24h*2 + volTotal*0.1) * recency`` where recency is 1.5 for
    events ending within a year.  A missing end date counts as ending now."""
    base = event.volume_24h_raw * VOLUME_24H_WEIGHT + event.volume_total_raw * VOLUME_TOTAL_WEIGHT
    end_date = event.end_date or now
    bonus = RECENCY_BONUS if end_date < now + RECENCY_WINDOW else 1.0
    return base * bonus


def merge_events(variants: Iterable[AggregatedEvent]) -> list[AggregatedEvent]:
    """One event per ticker, keeping the variant with the higher volume.

    First-seen order is preserved.  When a later variant wins, its
    ``source_tag`` records both contributors (``"deep+markets"``).
    """
    merged: dict[str, AggregatedEvent] = {}
    for event in variants:
        existing = merged.get(event.event_ticker)
        if existing is None:
            merged[event.event_ticker] = event
            continue
        if event.merge_volume > existing.merge_volume:
            tag = f"{existing.source_tag}+{event.source_tag}" if existing.source_tag else event.source_tag
            merged[event.event_ticker] = event.model_copy(update={"source_tag": tag})
    return list(merged.values())


def rank_events(events: Sequence[AggregatedEvent], now: datetime) -> list[AggregatedEvent]:
    """Attach scores and sort descending.  Ties keep their merge order."""
    for event in events:
        event.score = score_event(event, now)
    return sorted(events, key=lambda e: e.score, reverse=True)


# ── Aggregator ───────────────────────────────────────────────────


class EventAggregator:
    """Fan-out / merge / rank pipeline over a ``KalshiClient``.

    Parameters
    ----------
    client:
        Started ``KalshiClient``; only its public endpoints are used.
    series_tickers:
        Series queried by the series strategy.
    clock:
        Returns the current aware datetime; used for recency scoring.
    """

    def __init__(
        self,
        client: KalshiClient,
        max_pages: Optional[int] = None,
        page_limit: Optional[int] = None,
        markets_limit: Optional[int] = None,
        series_tickers: Optional[Sequence[str]] = None,
        request_timeout: Optional[float] = None,
        markets_timeout: Optional[float] = None,
        image_timeout: Optional[float] = None,
        enrich_top_n: Optional[int] = None,
        include_parlays: Optional[bool] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client = client
        self._max_pages = max_pages if max_pages is not None else settings.AGG_MAX_PAGES
        self._page_limit = page_limit or settings.AGG_PAGE_LIMIT
        self._markets_limit = markets_limit or settings.AGG_MARKETS_LIMIT
        self._series_tickers = list(
            series_tickers if series_tickers is not None else settings.AGG_SERIES_TICKERS
        )
        self._request_timeout = request_timeout or settings.AGG_REQUEST_TIMEOUT_SECONDS
        self._markets_timeout = markets_timeout or settings.AGG_MARKETS_TIMEOUT_SECONDS
        self._image_timeout = image_timeout or settings.AGG_IMAGE_TIMEOUT_SECONDS
        self._enrich_top_n = enrich_top_n if enrich_top_n is not None else settings.AGG_ENRICH_TOP_N
        self._include_parlays = (
            include_parlays if include_parlays is not None else settings.AGG_INCLUDE_PARLAYS
        )
        self._clock = clock

    # ── Strategies ───────────────────────────────────────────────

    async def fetch_deep(self) -> list[AggregatedEvent]:
        """Follow ``/events`` cursors.  A failure after page one keeps
        what was collected; a failure on the first page raises."""
        events: list[AggregatedEvent] = []
        cursor: Optional[str] = None

        for page in range(self._max_pages):
            try:
                raw_events, cursor = await self._client.get_events_page(
                    cursor=cursor, limit=self._page_limit, timeout=self._request_timeout
                )
            except UpstreamError as exc:
                if page == 0:
                    raise
                logger.warning("aggregator.deep_page_failed", page=page, error=str(exc)[:200])
                break

            for raw in raw_events:
                event = normalize_event(raw, AggregationSource.DEEP)
                if event is not None:
                    events.append(event)

            if not cursor:
                break

        logger.debug("aggregator.deep_done", events=len(events))
        return events

    async def fetch_series(self) -> list[AggregatedEvent]:
        """One call per series ticker; raises only if every ticker fails."""
        events: list[AggregatedEvent] = []
        last_error: Optional[UpstreamError] = None
        failed = 0

        for ticker in self._series_tickers:
            try:
                raw_events, _ = await self._client.get_events_page(
                    limit=self._page_limit, series_ticker=ticker, timeout=self._request_timeout
                )
            except UpstreamError as exc:
                failed += 1
                last_error = exc
                logger.info("aggregator.series_failed", series=ticker, error=str(exc)[:200])
                continue
            for raw in raw_events:
                event = normalize_event(raw, AggregationSource.SERIES)
                if event is not None:
                    events.append(event)

        if last_error is not None and failed == len(self._series_tickers):
            raise last_error

        logger.debug("aggregator.series_done", events=len(events), failed=failed)
        return events

    async def fetch_markets(self) -> list[AggregatedEvent]:
        """Bulk ``/markets`` grouped into synthesized events."""
        markets = await self._client.get_markets(limit=self._markets_limit, timeout=self._markets_timeout)
        groups = group_markets_by_event(markets, include_parlays=self._include_parlays)
        events = [
            event
            for event in (normalize_event(raw, AggregationSource.MARKETS) for raw in groups)
            if event is not None
        ]
        logger.debug("aggregator.markets_done", markets=len(markets), events=len(events))
        return events

    # ── Pipeline ─────────────────────────────────────────────────

    async def enrich_images(self, events: Sequence[AggregatedEvent]) -> int:
        """Fetch images for the leading events one at a time; best effort."""
        enriched = 0
        for event in events[: self._enrich_top_n]:
            try:
                event.image_url = await self._client.get_event_image(
                    event.event_ticker, timeout=self._image_timeout
                )
            except UpstreamError as exc:
                logger.debug("aggregator.image_failed", event=event.event_ticker, status=exc.status_code)
                continue
            if event.image_url:
                enriched += 1
        return enriched

    async def aggregate(self) -> AggregationResult:
        """Run all strategies, merge, rank and enrich.  Never raises for
        upstream failures; check ``degraded`` / ``failures`` instead."""
        sources = (AggregationSource.DEEP, AggregationSource.SERIES, AggregationSource.MARKETS)
        outcomes = await asyncio.gather(
            self.fetch_deep(),
            self.fetch_series(),
            self.fetch_markets(),
            return_exceptions=True,
        )

        variants: list[AggregatedEvent] = []
        failures: dict[str, str] = {}
        counts: dict[str, int] = {}

        for source, outcome in zip(sources, outcomes):
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome
            if isinstance(outcome, Exception):
                failure = PartialAggregationFailure(source.value, outcome)
                failures[source.value] = str(failure)
                counts[source.value] = 0
                logger.warning(
                    "aggregator.source_failed",
                    source=source.value,
                    error_type=type(outcome).__name__,
                    error=str(outcome)[:300],
                )
                continue
            counts[source.value] = len(outcome)
            variants.extend(outcome)

        if len(failures) == len(sources):
            failures["all"] = str(TotalAggregationFailure("all aggregation sources failed"))

        ranked = rank_events(merge_events(variants), self._clock())
        enriched = await self.enrich_images(ranked) if ranked else 0

        result = AggregationResult(
            events=ranked,
            degraded=bool(failures) or not ranked,
            failures=failures,
            source_counts=counts,
        )
        logger.info(
            "aggregator.merged",
            events=len(ranked),
            variants=len(variants),
            enriched=enriched,
            degraded=result.degraded,
            **{f"{k}_count": v for k, v in counts.items()},
        )
        return result
