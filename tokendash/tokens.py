"""Token table valued by the dashboard (Arbitrum Sepolia by default)."""

import json
from pathlib import Path
from typing import Optional

from .config import Settings, settings as default_settings
from .types import NATIVE_TOKEN_ADDRESS, TokenDescriptor, TokenList


_ARBITRUM_SEPOLIA_TOKENS = (
    {
        "name": "Ethereum",
        "symbol": "ETH",
        "address": NATIVE_TOKEN_ADDRESS,
        "decimals": 18,
        "coingecko_id": "ethereum",
    },
    {
        "name": "Chainlink",
        "symbol": "LINK",
        "address": "0xb1D4538B4571d411F07960EF2838Ce337FE1E80E",
        "decimals": 18,
        "coingecko_id": "chainlink",
    },
    {
        "name": "USD Coin",
        "symbol": "USDC",
        "address": "0x75faf114eafb1BDbe2F0316DF893fd58CE46AA4d",
        "decimals": 6,
        "coingecko_id": "usd-coin",
    },
    {
        "name": "Tether",
        "symbol": "USDT",
        "address": "0x93d67359a0f6f117150a70fdde6bb96782497248",
        "decimals": 6,
        "coingecko_id": "tether",
    },
    {
        "name": "Wrapped BTC",
        "symbol": "WBTC",
        "address": "0x92f3b59a79bff5dc60c0d59ea13a44d082b2bdfc",
        "decimals": 8,
        "coingecko_id": "wrapped-bitcoin",
    },
    {
        "name": "Polygon",
        "symbol": "MATIC",
        "address": "0x37dBD10E7994AAcF6132cac7d33bcA899bd2C660",
        "decimals": 18,
        "coingecko_id": "polygon",
    },
)


def default_token_list() -> TokenList:
    return tuple(TokenDescriptor(**entry) for entry in _ARBITRUM_SEPOLIA_TOKENS)


def load_token_list(path: Path) -> TokenList:
    """Read a JSON array of token entries (same keys as TokenDescriptor)."""
    with open(path, "r", encoding="utf-8") as fh:
        entries = json.load(fh)
    if not isinstance(entries, list):
        raise ValueError(f"Token list in {path} must be a JSON array")
    return tuple(TokenDescriptor(**entry) for entry in entries)


def configured_token_list(config: Optional[Settings] = None) -> TokenList:
    config = config or default_settings
    if config.token_list_path:
        return load_token_list(config.token_list_path)
    return default_token_list()
