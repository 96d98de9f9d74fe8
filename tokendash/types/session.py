from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .portfolio import PortfolioSnapshot


class CycleStatus(str, Enum):
    """States of a dashboard fetch cycle."""

    IDLE = "idle"                 # No address, nothing requested yet
    LOADING = "loading"           # Cycle in flight
    SUCCEEDED = "succeeded"       # Snapshot published
    CANCELLED = "cancelled"       # Superseded or torn down, nothing published
    FAILED = "failed"             # Error published, tokens cleared


class SessionState(BaseModel):
    address: Optional[str] = Field(default=None, description="Wallet address of the session")
    status: CycleStatus = Field(default=CycleStatus.IDLE)
    cycle_id: int = Field(default=0, description="Monotonic id of the latest started cycle")
    snapshot: Optional[PortfolioSnapshot] = Field(default=None)
    error: Optional[str] = Field(default=None, description="User-facing error for a failed cycle")

    @property
    def loading(self) -> bool:
        return self.status == CycleStatus.LOADING
