"""Swap execution through the PumpPortal trade API (server-side signing)."""

import logging
from typing import Any

import httpx

from pumpbot.config import SwapSettings, settings
from pumpbot.errors import ExternalServiceError
from pumpbot.schemas.trading import SellResult

logger = logging.getLogger(__name__)


class PumpPortalSwapClient:
    def __init__(
        self,
        api_key: str | None = None,
        trade_url: str | None = None,
        swap_settings: SwapSettings | None = None,
    ) -> None:
        self._api_key = api_key or settings.pumpportal_api_key
        self._trade_url = trade_url or settings.pumpportal_trade_url
        self._swap = swap_settings or settings.swap

    async def _trade(self, action: str, token_id: str, amount: float, in_sol: bool) -> str:
        body = {
            "action": action,
            "mint": token_id,
            "amount": amount,
            "denominatedInSol": "true" if in_sol else "false",
            "slippage": self._swap.slippage_percent,
            "priorityFee": self._swap.priority_fee_sol,
            "pool": self._swap.pool,
        }
        async with httpx.AsyncClient(timeout=settings.tx.get_timeout_ms / 1000) as client:
            response = await client.post(self._trade_url, params={"api-key": self._api_key}, json=body)
            response.raise_for_status()
        payload: dict[str, Any] = response.json()
        errors = payload.get("errors") or []
        signature = payload.get("signature")
        if errors or not signature:
            raise ExternalServiceError(f"{action} {token_id} rejected", payload=payload)
        return signature

    async def buy(self, token_id: str, amount_sol: float) -> str | None:
        """Spend `amount_sol` SOL on the token. Returns the transaction signature."""
        try:
            signature = await self._trade("buy", token_id, amount_sol, in_sol=True)
        except (httpx.HTTPError, ExternalServiceError) as e:
            logger.error("Buy failed for %s: %s", token_id, e)
            return None
        logger.info("Buy submitted: https://solscan.io/tx/%s", signature)
        return signature

    async def sell(self, token_id: str, amount: float) -> SellResult:
        try:
            signature = await self._trade("sell", token_id, amount, in_sol=False)
        except (httpx.HTTPError, ExternalServiceError) as e:
            return SellResult(success=False, message=str(e))
        return SellResult(success=True, message=signature)
