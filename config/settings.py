"""Pydantic BaseSettings — venue endpoints, timeouts and aggregation knobs."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration loaded from env / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ─────────────────────────────────────────────
    APP_ENV: Literal["dev", "staging", "prod"] = "dev"
    APP_NAME: str = "venue-terminal-core"
    LOG_LEVEL: str = "INFO"

    # ── Kalshi (RSA-PSS venue) ──────────────────────────────────
    # Public event data is served from the elections mirror first.
    KALSHI_PUBLIC_BASE_URLS: list[str] = Field(
        default_factory=lambda: [
            "https://api.elections.kalshi.com",
            "https://api.kalshi.com",
        ]
    )
    KALSHI_DEMO_BASE_URL: str = "https://demo-api.kalshi.co"
    KALSHI_PROD_BASE_URL: str = "https://api.kalshi.com"
    KALSHI_API_PREFIX: str = "/trade-api/v2"
    KALSHI_ENVIRONMENT: Literal["demo", "live", "auto"] = "auto"
    # Order submission is production-only unless explicitly overridden.
    KALSHI_TRADE_ENVIRONMENT: Literal["demo", "live", "auto"] = "live"

    # ── Polymarket CLOB (HMAC / EIP-712 venue) ──────────────────
    CLOB_REST_BASE_URL: str = "https://clob.polymarket.com"
    CLOB_CHAIN_ID: int = 137
    CLOB_EXCHANGE_NAME: str = "Polymarket CTF Exchange"
    CLOB_MAX_CLOCK_SKEW_SECONDS: int = 60

    # ── Event aggregation ───────────────────────────────────────
    AGG_MAX_PAGES: int = 30
    AGG_PAGE_LIMIT: int = 200
    AGG_MARKETS_LIMIT: int = 1000
    AGG_SERIES_TICKERS: list[str] = Field(
        default_factory=lambda: [
            # Politics
            "PRESIDENT", "CONGRESS", "SENATE", "HOUSE", "ELECTION",
            # Sports
            "NFL", "NBA", "MLB", "WORLDCUP", "SUPERBOWL",
            # Finance
            "FED", "FOMC", "CPI", "GDP", "STOCKS", "SPX",
            # Crypto
            "BTC", "ETH", "CRYPTO",
            # Other
            "WEATHER", "OSCAR", "EMMYS",
        ]
    )
    AGG_REQUEST_TIMEOUT_SECONDS: float = 15.0
    AGG_MARKETS_TIMEOUT_SECONDS: float = 10.0
    AGG_IMAGE_TIMEOUT_SECONDS: float = 3.0
    AGG_ENRICH_TOP_N: int = 50
    AGG_INCLUDE_PARLAYS: bool = False

    # ── Network ─────────────────────────────────────────────────
    HTTP_TIMEOUT_SECONDS: float = 10.0


settings = Settings()
