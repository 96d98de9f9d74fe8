from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


NATIVE_TOKEN_ADDRESS = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"


class TokenDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Full token name")
    symbol: str = Field(description="Token symbol (e.g. ETH, USDC)")
    address: str = Field(description="Token contract address, or the native sentinel address")
    decimals: int = Field(ge=0, description="Token decimal places")
    coingecko_id: str = Field(default="", description="Coingecko price feed id")

    @property
    def is_native(self) -> bool:
        return self.address.lower() == NATIVE_TOKEN_ADDRESS.lower()


TokenList = Tuple[TokenDescriptor, ...]


class RawBalance(BaseModel):
    contract_address: str = Field(description="Lower-cased contract address")
    token_balance: str = Field(description="Raw integer balance, hex (0x..) or decimal as received")


class ValuedToken(BaseModel):
    name: str
    symbol: str
    address: str
    decimals: int
    coingecko_id: str
    balance_raw: str = Field(description="Raw balance in smallest unit, base-10")
    formatted: str = Field(description="Fixed-point human readable balance")
    price_usd: float = Field(default=0.0, ge=0, description="Price per token in USD")
    usd_value: float = Field(default=0.0, ge=0, description="Total value in USD, 6 fraction digits")


class FetchMetrics(BaseModel):
    batch_time_ms: float = Field(default=0.0, description="Elapsed time of the batched balance call")
    individual_time_ms: float = Field(default=0.0, description="Elapsed time of the per-contract calls")
    batch_call_count: int = Field(default=0, description="Batched requests issued")
    individual_call_count: int = Field(default=0, description="Per-contract requests issued")


class PortfolioSnapshot(BaseModel):
    address: str = Field(description="Wallet address")
    tokens: List[ValuedToken] = Field(default_factory=list, description="Valued tokens in declared order")
    total_usd: float = Field(default=0.0, description="Sum of token USD values")
    metrics: Optional[FetchMetrics] = Field(default=None, description="Batch vs individual fetch metrics")
    last_updated: datetime = Field(description="When the cycle completed (UTC)")
