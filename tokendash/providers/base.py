from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..services.cancellation import CancellationToken
from ..types import RawBalance


class ConfigurationError(Exception):
    """A provider is missing configuration it cannot work without."""


class SequentialResult:
    """Balances gathered one contract at a time, plus how many calls were made."""

    def __init__(self, balances: Optional[List[RawBalance]] = None, call_count: int = 0):
        self.balances = balances or []
        self.call_count = call_count


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: int = 10

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass

    def ensure_ready(self) -> None:
        """Raise ConfigurationError when required configuration is missing"""
        return None


class BalanceProvider(Provider):
    """Provider for on-chain balances of a fixed contract set"""

    @abstractmethod
    async def resolve_batch(
        self,
        owner: str,
        contracts: Sequence[str],
        cancel: Optional[CancellationToken] = None,
    ) -> List[RawBalance]:
        """Balances for all contracts in one request; empty list on failure"""
        pass

    @abstractmethod
    async def resolve_sequential(
        self,
        owner: str,
        contracts: Sequence[str],
        cancel: Optional[CancellationToken] = None,
    ) -> SequentialResult:
        """Balances fetched one contract per request, skipping failures"""
        pass

    @abstractmethod
    async def resolve_native(self, owner: str, cancel: Optional[CancellationToken] = None) -> str:
        """Native asset balance as a base-10 string, "0" on failure"""
        pass


class PriceProvider(Provider):
    """Provider for token price data"""

    @abstractmethod
    async def resolve_price(self, feed_id: str, cancel: Optional[CancellationToken] = None) -> float:
        """USD unit price for a feed id; 0.0 on any failure"""
        pass
