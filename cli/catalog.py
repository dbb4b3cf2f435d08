"""Catalog CLI — operator access to the aggregator, signers and gate.

Usage:
    python3 -m cli.catalog events --top 20
    python3 -m cli.catalog sign-kalshi --method GET --path /trade-api/v2/portfolio/balance
    python3 -m cli.catalog sign-clob --method GET --path /auth/api-keys
    python3 -m cli.catalog gate --address 0xabc...

Credentials come from environment variables, never from arguments.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any

import structlog

# Add project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from auth.clob_signer import timestamp_s
from auth.kalshi_signer import timestamp_ms
from core.errors import TerminalError
from core.logger import setup_logging
from core.terminal import TradingTerminal
from models.credentials import PolymarketCredentials
from storage.credential_store import InMemoryCredentialStore

logger = structlog.get_logger("cli.catalog")

CLI_USER = "cli"


def _kalshi_env() -> tuple[str, str]:
    key_id = os.environ.get("KALSHI_API_KEY_ID", "")
    pem = os.environ.get("KALSHI_PRIVATE_KEY", "")
    pem_path = os.environ.get("KALSHI_PRIVATE_KEY_PATH", "")
    if not pem and pem_path:
        pem = Path(pem_path).read_text()

    if not key_id or not pem:
        print("ERROR: Missing required environment variables:")
        print("  KALSHI_API_KEY_ID and KALSHI_PRIVATE_KEY (or KALSHI_PRIVATE_KEY_PATH)")
        sys.exit(1)
    return key_id, pem


def _polymarket_env() -> PolymarketCredentials:
    return PolymarketCredentials(
        api_key=os.environ.get("POLYMARKET_API_KEY", ""),
        secret=os.environ.get("POLYMARKET_API_SECRET", "") or os.environ.get("POLYMARKET_SECRET", ""),
        passphrase=os.environ.get("POLYMARKET_PASSPHRASE", ""),
        owner_address=os.environ.get("POLYMARKET_ADDRESS", ""),
        funder_address=os.environ.get("POLYMARKET_FUNDER_ADDRESS") or None,
    )


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


async def cmd_events(args: argparse.Namespace) -> int:
    """Aggregate and print the ranked event catalog."""
    overrides: dict[str, Any] = {"enrich_top_n": args.enrich}
    if args.max_pages is not None:
        overrides["max_pages"] = args.max_pages
    if args.include_parlays:
        overrides["include_parlays"] = True

    async with TradingTerminal(InMemoryCredentialStore()) as terminal:
        result = await terminal.aggregate_events(**overrides)

    if args.json:
        _print_json(result.model_dump(mode="json"))
        return 0 if not result.degraded else 2

    print(f"\n{'='*72}")
    print(f"  Kalshi events: {len(result.events)}  (degraded={result.degraded})")
    print(f"  Sources: {result.source_counts}")
    for source, failure in result.failures.items():
        print(f"  FAILED {source}: {failure}")
    print(f"{'='*72}")
    for rank, event in enumerate(result.events[: args.top], start=1):
        print(
            f"  {rank:>3}. {event.event_ticker:<28} {event.volume_display:>12}  "
            f"yes={event.yes_price:>2}c  [{event.source_tag}]  {event.title[:40]}"
        )
    print(f"{'='*72}\n")
    return 0 if not result.degraded else 2


async def cmd_sign_kalshi(args: argparse.Namespace) -> int:
    key_id, pem = _kalshi_env()
    headers = TradingTerminal.sign_venue_a(key_id, pem, args.timestamp or timestamp_ms(), args.method, args.path)
    _print_json(headers.as_dict())
    return 0


async def cmd_sign_clob(args: argparse.Namespace) -> int:
    creds = _polymarket_env()
    headers = TradingTerminal.sign_venue_b(creds, args.timestamp or timestamp_s(), args.method, args.path, args.body)
    _print_json(headers.as_dict())
    return 0


async def cmd_gate(args: argparse.Namespace) -> int:
    store = InMemoryCredentialStore()
    await store.put_polymarket_credentials(CLI_USER, _polymarket_env())
    async with TradingTerminal(store) as terminal:
        result = await terminal.evaluate_trading_gate(CLI_USER, args.address)
    _print_json(result.model_dump(mode="json"))
    return 0 if result.trading_enabled else 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog",
        description="Kalshi / Polymarket terminal core — operator tools",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_events = sub.add_parser("events", help="Aggregate the Kalshi event catalog")
    p_events.add_argument("--top", type=int, default=25, help="Rows to print")
    p_events.add_argument("--max-pages", type=int, default=None, help="Deep pagination page cap")
    p_events.add_argument("--enrich", type=int, default=0, help="Events to enrich with images")
    p_events.add_argument("--include-parlays", action="store_true", help="Keep multi-leg markets")
    p_events.add_argument("--json", action="store_true", help="Print the full result as JSON")
    p_events.set_defaults(func=cmd_events)

    p_kalshi = sub.add_parser("sign-kalshi", help="Print KALSHI-ACCESS-* headers")
    p_kalshi.add_argument("--method", default="GET")
    p_kalshi.add_argument("--path", required=True, help="Full path, e.g. /trade-api/v2/portfolio/balance")
    p_kalshi.add_argument("--timestamp", default=None, help="Epoch milliseconds (default: now)")
    p_kalshi.set_defaults(func=cmd_sign_kalshi)

    p_clob = sub.add_parser("sign-clob", help="Print POLY_* L2 headers")
    p_clob.add_argument("--method", default="GET")
    p_clob.add_argument("--path", required=True)
    p_clob.add_argument("--body", default="", help="Exact request body")
    p_clob.add_argument("--timestamp", default=None, help="Epoch seconds (default: now)")
    p_clob.set_defaults(func=cmd_sign_clob)

    p_gate = sub.add_parser("gate", help="Evaluate the trading gate")
    p_gate.add_argument("--address", required=True, help="Connected wallet address")
    p_gate.set_defaults(func=cmd_gate)

    return parser


def main(argv: list[str] | None = None) -> int:
    setup_logging()
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(args.func(args))
    except TerminalError as exc:
        logger.error("catalog.command_failed", command=args.command, error=str(exc))
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
