"""AggregatedEvent — one catalog entry per Kalshi event ticker."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field


class AggregationSource(str, Enum):
    """Fetch strategy that produced an event variant."""

    DEEP = "deep"
    SERIES = "series"
    MARKETS = "markets"


class AggregatedMarket(BaseModel):
    """Single market inside an event, in dollars and integer cents."""

    ticker: str
    title: str = ""
    yes_price: int = Field(default=50, ge=0, le=100, description="cents")
    no_price: int = Field(default=50, ge=0, le=100, description="cents")
    volume_24h: float = Field(default=0.0, ge=0)
    volume_total: float = Field(default=0.0, ge=0)
    liquidity: float = Field(default=0.0, ge=0)
    close_time: Optional[datetime] = None
    status: str = ""


class AggregatedEvent(BaseModel):
    """Normalised event record.  ``event_ticker`` is the merge key."""

    event_ticker: str = Field(..., min_length=1)
    title: str
    subtitle: str = ""
    category: str = "General"
    volume_24h_raw: float = Field(default=0.0, ge=0)
    volume_total_raw: float = Field(default=0.0, ge=0)
    liquidity_raw: float = Field(default=0.0, ge=0)
    end_date: Optional[datetime] = None
    markets: list[AggregatedMarket] = Field(default_factory=list)
    source_tag: str = ""
    image_url: Optional[str] = None
    yes_price: int = Field(default=50, ge=0, le=100)
    no_price: int = Field(default=50, ge=0, le=100)
    score: float = 0.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def market_count(self) -> int:
        return len(self.markets)

    @property
    def merge_volume(self) -> float:
        """24h volume, falling back to lifetime volume when 24h is zero."""
        return self.volume_24h_raw or self.volume_total_raw

    @computed_field  # type: ignore[prop-decorator]
    @property
    def volume_display(self) -> str:
        return format_dollars(self.merge_volume)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def liquidity_display(self) -> str:
        return format_dollars(self.liquidity_raw)


class AggregationResult(BaseModel):
    """Ranked events plus a flag telling "no data yet" apart from a crash."""

    events: list[AggregatedEvent] = Field(default_factory=list)
    degraded: bool = False
    failures: dict[str, str] = Field(default_factory=dict)
    source_counts: dict[str, int] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.events


def format_dollars(value: float) -> str:
    """``1234.6`` → ``"$1,235"``; non-positive values render as ``"$0"``."""
    if value <= 0:
        return "$0"
    return f"${round(value):,}"
