from .portfolio import (
    NATIVE_TOKEN_ADDRESS,
    FetchMetrics,
    PortfolioSnapshot,
    RawBalance,
    TokenDescriptor,
    TokenList,
    ValuedToken,
)
from .session import CycleStatus, SessionState
from .responses import PortfolioResponse, TokenRow

__all__ = [
    "NATIVE_TOKEN_ADDRESS",
    "FetchMetrics",
    "PortfolioSnapshot",
    "RawBalance",
    "TokenDescriptor",
    "TokenList",
    "ValuedToken",
    "CycleStatus",
    "SessionState",
    "PortfolioResponse",
    "TokenRow",
]
