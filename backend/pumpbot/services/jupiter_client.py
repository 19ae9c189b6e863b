import logging
import time
from typing import Any

import httpx

from pumpbot.config import settings
from pumpbot.schemas.market import PriceSample

logger = logging.getLogger(__name__)


def sample_from_price_entry(entry: dict[str, Any], timestamp: int) -> PriceSample | None:
    """Build a sample from one `data[mint]` entry of the Jupiter price API."""
    extra = entry.get("extraInfo") or {}
    last_swapped = extra.get("lastSwappedPrice") or {}
    raw_price = last_swapped.get("lastJupiterSellPrice")
    if raw_price is None:
        return None
    price = float(raw_price)
    return PriceSample(
        price=price,
        volume=float(extra.get("oneDayVolume") or 0.0),
        high=float(extra.get("high24h") or price),
        low=float(extra.get("low24h") or price),
        timestamp=timestamp,
    )


class JupiterPriceClient:
    """Token prices quoted in SOL."""

    def __init__(self, price_url: str | None = None) -> None:
        self._price_url = price_url or settings.jupiter_price_url

    async def _get_prices(self, ids: str) -> dict[str, Any]:
        params = {"ids": ids, "vsToken": settings.wsol_mint, "showExtraInfo": "true"}
        async with httpx.AsyncClient(timeout=settings.tx.get_timeout_ms / 1000) as client:
            response = await client.get(self._price_url, params=params)
            response.raise_for_status()
        return response.json().get("data") or {}

    async def get_samples(self, token_id: str) -> list[PriceSample]:
        """Latest sample for the token, or [] when no swap price exists yet."""
        try:
            data = await self._get_prices(token_id)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Price data unavailable for %s: %s", token_id, e)
            return []
        entry = data.get(token_id)
        if not entry:
            return []
        sample = sample_from_price_entry(entry, int(time.time() * 1000))
        return [sample] if sample else []

    async def get_current_price(self, token_id: str) -> float | None:
        try:
            data = await self._get_prices(token_id)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Price unavailable for %s: %s", token_id, e)
            return None
        price = (data.get(token_id) or {}).get("price")
        return float(price) if price else None
