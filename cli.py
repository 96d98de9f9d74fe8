#!/usr/bin/env python3
"""Simple CLI for checking the token dashboard locally"""

import argparse
import asyncio
from typing import Optional

from tokendash.logging_config import setup_logging
from tokendash.main import build_registry
from tokendash.services.address import is_valid_evm_address
from tokendash.services.amounts import format_display
from tokendash.tokens import configured_token_list
from tokendash.types import CycleStatus, PortfolioSnapshot


def print_portfolio(snapshot: Optional[PortfolioSnapshot]):
    """Pretty print a published snapshot"""
    if not snapshot:
        print("❌ No portfolio data available")
        return

    print("\n🔄 Portfolio Summary")
    print("=" * 50)
    print(f"Address: {snapshot.address}")
    print(f"Total Value: ${format_display(snapshot.total_usd, 2)} USD")
    print(f"Last updated: {snapshot.last_updated.astimezone():%Y-%m-%d %H:%M:%S}")

    if snapshot.tokens:
        print("\nTokens:")
        print("-" * 50)
        for i, token in enumerate(snapshot.tokens, 1):
            value_str = f"${format_display(token.usd_value, 6)}"
            price_str = f"@ ${token.price_usd:,.4f}" if token.price_usd else "No price"
            print(f"{i:2d}. {format_display(token.formatted, 6):>16} {token.symbol:<6} {value_str:>14} {price_str}")
            if token.name != token.symbol:
                print(f"    {token.name}  ({token.address})")

    metrics = snapshot.metrics
    if metrics:
        individual = f"{metrics.individual_time_ms:.2f}ms" if metrics.individual_time_ms > 0 else "Not used"
        print("\nPerformance Metrics:")
        print(f"  Batch method:      {metrics.batch_time_ms:.2f}ms, {metrics.batch_call_count} call(s)")
        print(f"  Individual method: {individual}, {metrics.individual_call_count} call(s)")


async def cli_portfolio(address: str):
    """CLI command to run one fetch cycle"""
    if not is_valid_evm_address(address):
        print(f"❌ Invalid wallet address: {address}")
        return

    print(f"🔍 Fetching token balances for {address}...")
    registry = build_registry()
    session = await registry.get(address)
    try:
        session.start(address)
        state = await session.wait()
    finally:
        await registry.close_all()

    if state.status == CycleStatus.SUCCEEDED:
        print_portfolio(state.snapshot)
    else:
        print(f"❌ Error: {state.error or state.status.value}")


def cli_tokens():
    """List the configured token table"""
    for token in configured_token_list():
        print(f"{token.symbol:<6} {token.name:<14} decimals={token.decimals:<3} {token.address}  [{token.coingecko_id}]")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Token Balance Dashboard CLI")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command")

    portfolio_parser = subparsers.add_parser("portfolio", help="Fetch and value token balances")
    portfolio_parser.add_argument("address", help="Wallet address")

    subparsers.add_parser("tokens", help="List configured tokens")

    return parser


async def main():
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    setup_logging(args.log_level)
    command = args.command.lower()

    if command == "portfolio":
        await cli_portfolio(args.address)

    elif command == "tokens":
        cli_tokens()

    else:
        print(f"❌ Unknown command: {command}")
        parser.print_help()


if __name__ == "__main__":
    asyncio.run(main())
