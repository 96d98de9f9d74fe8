from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .portfolio import FetchMetrics, ValuedToken
from .session import CycleStatus


class TokenRow(BaseModel):
    token: ValuedToken
    amount_display: str = Field(description="Grouped balance, up to 6 fraction digits")
    value_display: str = Field(description="Grouped USD value, up to 6 fraction digits")


class PortfolioResponse(BaseModel):
    success: bool
    address: Optional[str] = None
    status: CycleStatus = CycleStatus.IDLE
    tokens: List[TokenRow] = Field(default_factory=list)
    total_usd: float = 0.0
    total_display: str = Field(default="0", description="Grouped total, 2 fraction digits")
    metrics: Optional[FetchMetrics] = None
    last_updated: Optional[datetime] = None
    error: Optional[str] = None
