"""Tests for data/event_aggregator.py — fan-out, merge, rank, enrich."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from core.errors import UpstreamError
from data.event_aggregator import EventAggregator, merge_events, rank_events, score_event
from data.kalshi_adapter import normalize_event
from models.event import AggregatedEvent, AggregationSource

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _iso(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def _raw(ticker: str, vol24: float, total: float = 0.0, close: Optional[datetime] = None) -> dict[str, Any]:
    market: dict[str, Any] = {"ticker": f"{ticker}-M", "volume_24h": vol24, "volume": total}
    if close is not None:
        market["close_time"] = _iso(close)
    return {"event_ticker": ticker, "title": ticker, "markets": [market]}


def _event(ticker: str, vol24: float, total: float = 0.0, close: Optional[datetime] = None,
           source: AggregationSource = AggregationSource.DEEP) -> AggregatedEvent:
    event = normalize_event(_raw(ticker, vol24, total, close), source)
    assert event is not None
    return event


class FakeKalshi:
    """Stands in for ``KalshiClient``'s public endpoints."""

    def __init__(
        self,
        pages: Optional[list[list[dict]]] = None,
        series: Optional[dict[str, list[dict]]] = None,
        markets: Optional[list[dict]] = None,
        images: Optional[dict[str, str]] = None,
        fail: tuple[str, ...] = (),
        fail_pages: tuple[int, ...] = (),
    ) -> None:
        self.pages = pages or []
        self.series = series or {}
        self.markets = markets or []
        self.images = images or {}
        self.fail = set(fail)
        self.fail_pages = set(fail_pages)
        self.page_calls: list[Optional[str]] = []
        self.series_calls: list[str] = []
        self.image_calls: list[str] = []

    async def get_events_page(self, cursor=None, limit=200, series_ticker=None, status="open", timeout=None):
        if series_ticker is not None:
            self.series_calls.append(series_ticker)
            if "series" in self.fail or series_ticker not in self.series:
                raise UpstreamError(f"series {series_ticker} failed", status_code=503)
            return self.series[series_ticker], None

        self.page_calls.append(cursor)
        index = int(cursor or 0)
        if "deep" in self.fail or index in self.fail_pages:
            raise UpstreamError("deep failed", status_code=500)
        if index >= len(self.pages):
            return [], None
        next_cursor = str(index + 1) if index + 1 < len(self.pages) else None
        return self.pages[index], next_cursor

    async def get_markets(self, limit=1000, status="open", timeout=None):
        if "markets" in self.fail:
            raise UpstreamError("markets failed", status_code=504)
        return self.markets

    async def get_event_image(self, event_ticker, timeout=None):
        self.image_calls.append(event_ticker)
        if event_ticker not in self.images:
            raise UpstreamError("no image", status_code=404)
        return self.images[event_ticker]


def _aggregator(client: FakeKalshi, **kwargs) -> EventAggregator:
    kwargs.setdefault("series_tickers", list(client.series) or ["NONE"])
    kwargs.setdefault("enrich_top_n", 0)
    return EventAggregator(client, clock=lambda: NOW, **kwargs)


# ── Pure helpers ────────────────────────────────────────────────────


class TestScoring:
    def test_recency_bonus(self) -> None:
        soon = _event("A", 100, close=NOW + timedelta(days=30))
        later = _event("B", 100, close=NOW + timedelta(days=800))
        assert score_event(soon, NOW) == pytest.approx(300.0)
        assert score_event(later, NOW) == pytest.approx(200.0)

    def test_no_end_date_counts_as_ending_now(self) -> None:
        event = _event("A", 100)
        assert event.end_date is None
        assert score_event(event, NOW) == pytest.approx(300.0)
        assert score_event(_event("B", 0, total=1000), NOW) == pytest.approx(150.0)

    def test_higher_base_ranks_first_with_equal_bonus(self) -> None:
        low = _event("LOW", 10, total=100)
        high = _event("HIGH", 20, total=0)
        ranked = rank_events([low, high], NOW)
        assert [e.event_ticker for e in ranked] == ["HIGH", "LOW"]

    def test_ties_keep_order(self) -> None:
        a, b = _event("A", 5), _event("B", 5)
        assert [e.event_ticker for e in rank_events([a, b], NOW)] == ["A", "B"]


class TestMergeEvents:
    def test_higher_volume_replaces(self) -> None:
        merged = merge_events([
            _event("E1", 10),
            _event("E1", 30, source=AggregationSource.SERIES),
        ])
        assert len(merged) == 1
        assert merged[0].volume_24h_raw == 30
        assert merged[0].source_tag == "deep+series"

    def test_lower_volume_ignored(self) -> None:
        merged = merge_events([
            _event("E1", 30),
            _event("E1", 10, source=AggregationSource.MARKETS),
        ])
        assert merged[0].volume_24h_raw == 30
        assert merged[0].source_tag == "deep"

    def test_lifetime_volume_used_when_no_24h(self) -> None:
        merged = merge_events([
            _event("E1", 0, total=50),
            _event("E1", 0, total=500, source=AggregationSource.MARKETS),
        ])
        assert merged[0].volume_total_raw == 500


# ── Pipeline ────────────────────────────────────────────────────────


class TestAggregate:
    @pytest.mark.asyncio
    async def test_dedup_across_sources(self) -> None:
        client = FakeKalshi(
            pages=[[_raw("E1", 10)]],
            series={"S": [_raw("E1", 30), _raw("E2", 5)]},
        )
        result = await _aggregator(client).aggregate()

        tickers = [e.event_ticker for e in result.events]
        assert sorted(tickers) == ["E1", "E2"]
        e1 = next(e for e in result.events if e.event_ticker == "E1")
        assert e1.volume_24h_raw == 30
        assert e1.markets[0].volume_24h == 30
        assert e1.source_tag == "deep+series"
        assert result.degraded is False
        assert result.source_counts == {"deep": 1, "series": 2, "markets": 0}

    @pytest.mark.asyncio
    async def test_all_empty_is_degraded_not_error(self) -> None:
        client = FakeKalshi(pages=[[]], series={"S": []})
        result = await _aggregator(client).aggregate()
        assert result.events == []
        assert result.is_empty
        assert result.degraded is True
        assert result.failures == {}

    @pytest.mark.asyncio
    async def test_all_sources_fail(self) -> None:
        client = FakeKalshi(fail=("deep", "series", "markets"))
        result = await _aggregator(client, series_tickers=["S"]).aggregate()
        assert result.events == []
        assert result.degraded is True
        assert set(result.failures) == {"deep", "series", "markets", "all"}

    @pytest.mark.asyncio
    async def test_one_source_failure_is_absorbed(self) -> None:
        client = FakeKalshi(pages=[[_raw("E1", 10)]], series={"S": [_raw("E2", 5)]}, fail=("markets",))
        result = await _aggregator(client).aggregate()
        assert {e.event_ticker for e in result.events} == {"E1", "E2"}
        assert result.degraded is True
        assert "markets" in result.failures
        assert "504" in result.failures["markets"]

    @pytest.mark.asyncio
    async def test_ranked_descending(self) -> None:
        client = FakeKalshi(
            pages=[[
                _raw("SMALL", 1, close=NOW + timedelta(days=10)),
                _raw("FAR", 100, close=NOW + timedelta(days=800)),
                _raw("NEAR", 100, close=NOW + timedelta(days=10)),
            ]],
        )
        result = await _aggregator(client).aggregate()
        assert [e.event_ticker for e in result.events] == ["NEAR", "FAR", "SMALL"]
        assert result.events[0].score == pytest.approx(300.0)

    @pytest.mark.asyncio
    async def test_markets_grouped_into_events(self) -> None:
        client = FakeKalshi(
            markets=[
                {"ticker": "G-1", "event_ticker": "G", "volume_24h": 4},
                {"ticker": "G-2", "event_ticker": "G", "volume_24h": 6},
                {"ticker": "KXMULTIGAME-1", "event_ticker": "KXMULTIGAME", "volume_24h": 999},
            ],
        )
        result = await _aggregator(client).aggregate()
        assert [e.event_ticker for e in result.events] == ["G"]
        assert result.events[0].volume_24h_raw == 10
        assert result.events[0].source_tag == "markets"


class TestDeepPagination:
    @pytest.mark.asyncio
    async def test_follows_cursor_until_exhausted(self) -> None:
        client = FakeKalshi(pages=[[_raw("A", 1)], [_raw("B", 1)], [_raw("C", 1)]])
        events = await _aggregator(client).fetch_deep()
        assert [e.event_ticker for e in events] == ["A", "B", "C"]
        assert client.page_calls == [None, "1", "2"]

    @pytest.mark.asyncio
    async def test_page_cap(self) -> None:
        client = FakeKalshi(pages=[[_raw("A", 1)], [_raw("B", 1)], [_raw("C", 1)]])
        events = await _aggregator(client, max_pages=2).fetch_deep()
        assert [e.event_ticker for e in events] == ["A", "B"]
        assert len(client.page_calls) == 2

    @pytest.mark.asyncio
    async def test_later_page_failure_keeps_partial(self) -> None:
        client = FakeKalshi(pages=[[_raw("A", 1)], [_raw("B", 1)]], fail_pages=(1,))
        events = await _aggregator(client).fetch_deep()
        assert [e.event_ticker for e in events] == ["A"]

    @pytest.mark.asyncio
    async def test_first_page_failure_raises(self) -> None:
        client = FakeKalshi(pages=[[_raw("A", 1)]], fail_pages=(0,))
        with pytest.raises(UpstreamError):
            await _aggregator(client).fetch_deep()


class TestSeries:
    @pytest.mark.asyncio
    async def test_partial_series_failure_tolerated(self) -> None:
        client = FakeKalshi(series={"OK": [_raw("A", 1)]})
        events = await _aggregator(client, series_tickers=["BROKEN", "OK"]).fetch_series()
        assert [e.event_ticker for e in events] == ["A"]
        assert client.series_calls == ["BROKEN", "OK"]

    @pytest.mark.asyncio
    async def test_every_series_failing_raises(self) -> None:
        client = FakeKalshi()
        with pytest.raises(UpstreamError):
            await _aggregator(client, series_tickers=["X", "Y"]).fetch_series()


class TestEnrichment:
    @pytest.mark.asyncio
    async def test_only_top_slice_enriched(self) -> None:
        client = FakeKalshi(
            pages=[[_raw("TOP", 100), _raw("MID", 50), _raw("LOW", 1)]],
            images={"TOP": "https://img/top.png", "MID": "https://img/mid.png", "LOW": "https://img/low.png"},
        )
        result = await _aggregator(client, enrich_top_n=2).aggregate()
        images = {e.event_ticker: e.image_url for e in result.events}
        assert images == {"TOP": "https://img/top.png", "MID": "https://img/mid.png", "LOW": None}
        assert client.image_calls == ["TOP", "MID"]

    @pytest.mark.asyncio
    async def test_failed_image_left_empty(self) -> None:
        client = FakeKalshi(pages=[[_raw("A", 10), _raw("B", 5)]], images={"B": "https://img/b.png"})
        result = await _aggregator(client, enrich_top_n=50).aggregate()
        images = {e.event_ticker: e.image_url for e in result.events}
        assert images == {"A": None, "B": "https://img/b.png"}
        assert "enrich" not in result.failures
