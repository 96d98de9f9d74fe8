from .alchemy import AlchemyProvider, AlchemyRPCError
from .base import (
    BalanceProvider,
    ConfigurationError,
    PriceProvider,
    Provider,
    SequentialResult,
)
from .coingecko import CoingeckoProvider

__all__ = [
    "AlchemyProvider",
    "AlchemyRPCError",
    "BalanceProvider",
    "ConfigurationError",
    "PriceProvider",
    "Provider",
    "SequentialResult",
    "CoingeckoProvider",
]
