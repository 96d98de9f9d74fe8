from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..providers.base import BalanceProvider, PriceProvider
from .deps import get_balance_provider, get_price_provider

router = APIRouter()


@router.get("/healthz")
async def health_check(
    balances: BalanceProvider = Depends(get_balance_provider),
    prices: PriceProvider = Depends(get_price_provider),
) -> Dict[str, Any]:
    """Health check endpoint that verifies provider status"""

    provider_status = {
        balances.name: await balances.health_check(),
        prices.name: await prices.health_check(),
    }

    all_healthy = all(
        status["status"] in ["healthy", "unavailable"]
        for status in provider_status.values()
    )

    available_providers = sum(
        1 for status in provider_status.values()
        if status["status"] == "healthy"
    )

    return {
        "status": "healthy" if all_healthy and available_providers > 0 else "degraded",
        "providers": provider_status,
        "available_providers": available_providers,
        "total_providers": len(provider_status)
    }
