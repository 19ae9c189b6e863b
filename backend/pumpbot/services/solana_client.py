import asyncio
import itertools
import logging
from typing import Any

import httpx

from pumpbot.config import TxSettings, settings
from pumpbot.errors import ExternalServiceError

logger = logging.getLogger(__name__)


class SolanaRpcClient:
    """Minimal JSON-RPC client for the calls the strategy needs."""

    def __init__(self, rpc_url: str | None = None, tx_settings: TxSettings | None = None) -> None:
        self._rpc_url = rpc_url or settings.rpc_http_url
        self._tx = tx_settings or settings.tx
        self._ids = itertools.count(1)

    async def _call(self, method: str, params: list[Any]) -> Any:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        async with httpx.AsyncClient(timeout=self._tx.get_timeout_ms / 1000) as client:
            response = await client.post(self._rpc_url, json=body)
            response.raise_for_status()
        payload = response.json()
        if payload.get("error"):
            raise ExternalServiceError(f"{method} failed", payload=payload["error"])
        return payload.get("result")

    async def get_balance(self, wallet: str) -> int:
        """Wallet balance in lamports."""
        result = await self._call("getBalance", [wallet, {"commitment": "processed"}])
        return int(result.get("value", 0)) if isinstance(result, dict) else int(result or 0)

    async def get_transaction(self, signature: str) -> dict[str, Any] | None:
        return await self._call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "commitment": "confirmed",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )

    async def fetch_transaction_details(self, signature: str) -> dict[str, Any] | None:
        """Fetch a freshly landed transaction, retrying while the node has not indexed it.

        Waits the initial delay first, then makes up to `fetch_tx_max_retries`
        attempts spaced by `retry_delay_ms`. Returns None once retries run out.
        """
        await asyncio.sleep(self._tx.fetch_tx_initial_delay_ms / 1000)
        for attempt in range(1, self._tx.fetch_tx_max_retries + 1):
            try:
                details = await self.get_transaction(signature)
                if details:
                    return details
                logger.debug("Transaction %s not available yet (attempt %d)", signature, attempt)
            except (httpx.HTTPError, ExternalServiceError) as e:
                logger.debug("Transaction %s fetch attempt %d failed: %s", signature, attempt, e)
            await asyncio.sleep(self._tx.retry_delay_ms / 1000)
        logger.warning(
            "Transaction %s unavailable after %d attempts", signature, self._tx.fetch_tx_max_retries
        )
        return None
