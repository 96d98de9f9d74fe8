import os

from pathlib import Path
from typing import Any, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Pick up the key under the frontend's public variable name."""

        super().model_post_init(__context)

        if not self.alchemy_api_key:
            fallback = os.getenv("NEXT_PUBLIC_ALCHEMY_API_KEY")
            if fallback:
                object.__setattr__(self, "alchemy_api_key", fallback)

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # External API Keys
    alchemy_api_key: str = Field(default="", description="Alchemy API key")
    coingecko_api_key: str = Field(default="", description="Coingecko demo API key (optional)")

    # Provider endpoints
    alchemy_network: str = Field(
        default="arb-sepolia",
        description="Alchemy network slug, e.g. arb-sepolia or eth-mainnet",
    )
    coingecko_base_url: str = Field(
        default="https://api.coingecko.com/api/v3",
        description="Coingecko API base URL",
    )
    request_timeout_seconds: int = Field(default=30, description="Request timeout")

    # Pacing (milliseconds between consecutive external calls)
    balance_pacing_ms: int = Field(default=120, ge=0, description="Delay after each per-contract balance call")
    price_pacing_ms: int = Field(default=120, ge=0, description="Delay before each price feed call")
    token_pacing_ms: int = Field(default=150, ge=0, description="Delay between tokens while valuing")

    # Valuation
    compare_strategies: bool = Field(
        default=True,
        description="Always run the per-contract balance calls to compare against the batched call",
    )
    format_precision: int = Field(default=6, ge=0, description="Fraction digits kept in formatted amounts")
    token_list_path: Optional[Path] = Field(
        default=None,
        description="JSON file overriding the built-in token table",
    )

    # Per-wallet sessions
    max_sessions: int = Field(default=1000, ge=1, description="Wallet sessions kept before the least recently used is evicted")
    session_ttl_seconds: int = Field(default=300, ge=0, description="Idle seconds before a wallet session expires")


settings = Settings()
