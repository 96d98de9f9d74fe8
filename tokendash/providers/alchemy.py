import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import httpx

from ..config import Settings, settings as default_settings
from ..services.amounts import normalize_raw_amount
from ..services.cancellation import CancellationToken, is_cancelled, pace
from ..types import RawBalance
from .base import BalanceProvider, ConfigurationError, SequentialResult

logger = logging.getLogger(__name__)

CONTRACT_ADDRESS_FIELDS = ("contractAddress", "contract")
TOKEN_BALANCE_FIELDS = ("tokenBalance", "token_balance", "tokenBalanceHex")


class AlchemyRPCError(Exception):
    """JSON-RPC level error returned in an otherwise successful response."""


def _first_present(entry: Dict[str, Any], fields: Sequence[str]) -> Any:
    for name in fields:
        value = entry.get(name)
        if value is not None:
            return value
    return None


def parse_token_balances(data: Any) -> List[RawBalance]:
    """Pull ``result.tokenBalances`` out of a response, tolerating field aliases."""
    result = data.get("result") if isinstance(data, dict) else None
    entries = result.get("tokenBalances") if isinstance(result, dict) else None
    if not isinstance(entries, list):
        return []

    balances = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        contract = _first_present(entry, CONTRACT_ADDRESS_FIELDS) or ""
        balance = _first_present(entry, TOKEN_BALANCE_FIELDS)
        balances.append(RawBalance(
            contract_address=str(contract).lower(),
            token_balance=str(balance) if balance is not None else "0",
        ))
    return balances


class AlchemyProvider(BalanceProvider):
    """Alchemy JSON-RPC provider for wallet balances"""

    name = "alchemy"
    timeout_s = 30

    def __init__(self, config: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or default_settings
        self.api_key = self.config.alchemy_api_key
        self.base_url = f"https://{self.config.alchemy_network}.g.alchemy.com/v2/{self.api_key}"
        self.timeout_s = self.config.request_timeout_seconds
        self._client = client

    async def ready(self) -> bool:
        return bool(self.api_key)

    def ensure_ready(self) -> None:
        if not self.api_key:
            raise ConfigurationError("Missing ALCHEMY_API_KEY - set it in your environment.")

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {
                "status": "unavailable",
                "reason": "API key not configured"
            }

        try:
            await self._rpc("eth_chainId", [])
            return {"status": "healthy", "network": self.config.alchemy_network}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient() as client:
            yield client

    async def _rpc(self, method: str, params: List[Any]) -> Dict[str, Any]:
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": params,
        }

        async with self._session() as client:
            response = await client.post(
                self.base_url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout_s
            )
            response.raise_for_status()
            data = response.json()

        if isinstance(data, dict) and "error" in data:
            raise AlchemyRPCError(f"Alchemy error: {data['error']}")
        return data

    async def resolve_batch(
        self,
        owner: str,
        contracts: Sequence[str],
        cancel: Optional[CancellationToken] = None,
    ) -> List[RawBalance]:
        """Balances of every contract via a single alchemy_getTokenBalances call"""
        if is_cancelled(cancel):
            return []
        try:
            data = await self._rpc("alchemy_getTokenBalances", [owner, list(contracts)])
        except (httpx.HTTPError, AlchemyRPCError, ValueError) as e:
            logger.warning("Batch balance call failed for %s: %s", owner, e)
            return []
        return parse_token_balances(data)

    async def resolve_sequential(
        self,
        owner: str,
        contracts: Sequence[str],
        cancel: Optional[CancellationToken] = None,
    ) -> SequentialResult:
        """One alchemy_getTokenBalances call per contract, paced"""
        result = SequentialResult()
        for contract in contracts:
            if is_cancelled(cancel):
                break
            result.call_count += 1
            try:
                data = await self._rpc("alchemy_getTokenBalances", [owner, [contract]])
                parsed = parse_token_balances(data)
                if parsed:
                    entry = parsed[0]
                    result.balances.append(RawBalance(
                        contract_address=entry.contract_address or contract.lower(),
                        token_balance=entry.token_balance,
                    ))
            except (httpx.HTTPError, AlchemyRPCError, ValueError) as e:
                logger.warning("Balance call failed for %s: %s", contract, e)
            await pace(self.config.balance_pacing_ms, cancel)
        return result

    async def resolve_native(self, owner: str, cancel: Optional[CancellationToken] = None) -> str:
        """Native balance via eth_getBalance, as a base-10 string"""
        if is_cancelled(cancel):
            return "0"
        try:
            data = await self._rpc("eth_getBalance", [owner, "latest"])
            raw = normalize_raw_amount(str(data.get("result") or "0"))
            return str(max(int(raw, 10), 0))
        except (httpx.HTTPError, AlchemyRPCError, ValueError, AttributeError) as e:
            logger.warning("Native balance call failed for %s: %s", owner, e)
            return "0"
