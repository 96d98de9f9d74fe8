import logging
import math
from typing import Any, Dict, Optional

import httpx

from ..config import Settings, settings as default_settings
from ..services.cancellation import CancellationToken, is_cancelled, pace
from .base import PriceProvider

logger = logging.getLogger(__name__)


class CoingeckoProvider(PriceProvider):
    """Coingecko API provider for token prices"""

    name = "coingecko"
    timeout_s = 15

    def __init__(self, config: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or default_settings
        self.api_key = self.config.coingecko_api_key
        self.base_url = self.config.coingecko_base_url.rstrip("/")
        self._client = client

    def _build_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.api_key:
            headers["X-CG-Demo-API-Key"] = self.api_key
        return headers

    async def ready(self) -> bool:
        return True  # API key is optional for basic tier

    async def health_check(self) -> Dict[str, Any]:
        try:
            response = await self._get("/ping", params=None)
            response.raise_for_status()
            return {"status": "healthy", "latency_ms": int(response.elapsed.total_seconds() * 1000)}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def _get(self, path: str, params: Optional[Dict[str, str]]) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(
                f"{self.base_url}{path}",
                headers=self._build_headers(),
                params=params,
                timeout=self.timeout_s
            )
        async with httpx.AsyncClient() as client:
            return await client.get(
                f"{self.base_url}{path}",
                headers=self._build_headers(),
                params=params,
                timeout=self.timeout_s
            )

    async def resolve_price(self, feed_id: str, cancel: Optional[CancellationToken] = None) -> float:
        """USD price for a coingecko id via /simple/price; 0.0 on any failure"""
        if not feed_id or is_cancelled(cancel):
            return 0.0

        # shared public rate limit
        await pace(self.config.price_pacing_ms, cancel)
        if is_cancelled(cancel):
            return 0.0

        try:
            response = await self._get(
                "/simple/price",
                params={"ids": feed_id, "vs_currencies": "usd"},
            )
            if not response.is_success:
                logger.info("Coingecko returned %s for %s", response.status_code, feed_id)
                return 0.0
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Price lookup failed for %s: %s", feed_id, e)
            return 0.0

        entry = data.get(feed_id) if isinstance(data, dict) else None
        price = entry.get("usd") if isinstance(entry, dict) else None
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            return 0.0
        price = float(price)
        if not math.isfinite(price) or price < 0:
            return 0.0
        return price
