"""
Valuation pipeline for one fetch cycle.

Balances come from one batched call when it returns anything, otherwise from
the per-contract calls. The per-contract calls also run after a successful
batch when ``compare_strategies`` is on, purely to fill FetchMetrics.
Tokens are then valued strictly in the order they were declared.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..config import Settings, settings as default_settings
from ..providers.base import BalanceProvider, PriceProvider
from ..types import (
    FetchMetrics,
    PortfolioSnapshot,
    RawBalance,
    TokenDescriptor,
    TokenList,
    ValuedToken,
)
from .amounts import format_amount, normalize_raw_amount
from .cancellation import CancellationToken, pace

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def value_token(token: TokenDescriptor, raw: str, price_usd: float, precision: int) -> ValuedToken:
    """Build the ValuedToken for a raw balance and a unit price."""
    normalized = normalize_raw_amount(raw)
    formatted = format_amount(normalized, token.decimals, precision)
    # malformed input still gets a degraded formatted value, but the stored
    # raw amount stays a plain base-10 integer
    balance_raw = str(int(normalized)) if normalized.isascii() and normalized.isdigit() else "0"
    price = price_usd or 0.0
    return ValuedToken(
        name=token.name,
        symbol=token.symbol,
        address=token.address,
        decimals=token.decimals,
        coingecko_id=token.coingecko_id,
        balance_raw=balance_raw,
        formatted=formatted,
        price_usd=price,
        usd_value=round(float(formatted) * price, 6),
    )


class ValuationAggregator:
    def __init__(
        self,
        balances: BalanceProvider,
        prices: PriceProvider,
        tokens: TokenList,
        config: Optional[Settings] = None,
    ):
        self.balances = balances
        self.prices = prices
        self.tokens = tuple(tokens)
        self.config = config or default_settings

    async def run_cycle(self, owner: str, cancel: Optional[CancellationToken] = None) -> PortfolioSnapshot:
        """Value every configured token for ``owner``.

        Raises CycleCancelled once ``cancel`` fires; a cancelled cycle never
        returns a snapshot.
        """
        cancel = cancel or CancellationToken()
        self.balances.ensure_ready()

        contracts = [t.address for t in self.tokens if not t.is_native]
        metrics = FetchMetrics()

        cancel.raise_if_cancelled()
        start = time.perf_counter()
        batch_results: List[RawBalance] = []
        if contracts:
            metrics.batch_call_count = 1
            batch_results = await self.balances.resolve_batch(owner, contracts, cancel)
        metrics.batch_time_ms = _elapsed_ms(start)
        cancel.raise_if_cancelled()

        individual_results: List[RawBalance] = []
        if contracts and (self.config.compare_strategies or not batch_results):
            start = time.perf_counter()
            sequential = await self.balances.resolve_sequential(owner, contracts, cancel)
            metrics.individual_time_ms = _elapsed_ms(start)
            metrics.individual_call_count = sequential.call_count
            individual_results = sequential.balances
            cancel.raise_if_cancelled()

        final_balances = batch_results if batch_results else individual_results
        logger.info(
            "Balances for %s: batch=%d entries in %.1fms, individual=%d entries in %.1fms (%d calls), using %s",
            owner,
            len(batch_results),
            metrics.batch_time_ms,
            len(individual_results),
            metrics.individual_time_ms,
            metrics.individual_call_count,
            "batch" if batch_results else "individual",
        )

        by_address: Dict[str, str] = {}
        for balance in final_balances:
            by_address.setdefault(balance.contract_address.lower(), balance.token_balance)

        valued: List[ValuedToken] = []
        for token in self.tokens:
            cancel.raise_if_cancelled()

            if token.is_native:
                raw = await self.balances.resolve_native(owner, cancel)
            else:
                raw = by_address.get(token.address.lower(), "0")
            cancel.raise_if_cancelled()

            price = await self.prices.resolve_price(token.coingecko_id, cancel)
            cancel.raise_if_cancelled()

            valued.append(value_token(token, raw, price, self.config.format_precision))
            await pace(self.config.token_pacing_ms, cancel)

        cancel.raise_if_cancelled()
        return PortfolioSnapshot(
            address=owner,
            tokens=valued,
            total_usd=sum(t.usd_value for t in valued),
            metrics=metrics,
            last_updated=datetime.now(timezone.utc),
        )
