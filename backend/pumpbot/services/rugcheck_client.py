import logging
from typing import Any

import httpx

from pumpbot.config import RugCheckSettings, settings

logger = logging.getLogger(__name__)


def evaluate_report(report: dict[str, Any], cfg: RugCheckSettings) -> list[str]:
    """Return the reasons a rugcheck.xyz token report fails the configured rules."""
    failures: list[str] = []
    token_meta = report.get("tokenMeta") or {}
    markets = report.get("markets") or []
    top_holders = report.get("topHolders") or []
    risks = report.get("risks") or []

    if cfg.exclude_lp_from_topholders and markets:
        lp_addresses = {
            addr
            for m in markets
            for addr in ((m.get("lp") or {}).get("lpMintAccount"), m.get("liquidityA"), m.get("liquidityB"))
            if addr
        }
        top_holders = [h for h in top_holders if h.get("address") not in lp_addresses]

    if not cfg.allow_mint_authority and report.get("mintAuthority"):
        failures.append("mint authority set")
    if not cfg.allow_freeze_authority and report.get("freezeAuthority"):
        failures.append("freeze authority set")
    if not cfg.allow_rugged and report.get("rugged"):
        failures.append("token is rugged")
    if not cfg.allow_mutable and token_meta.get("mutable"):
        failures.append("metadata is mutable")
    if token_meta.get("symbol", "") in cfg.block_symbols:
        failures.append(f"blocked symbol {token_meta.get('symbol')}")
    if token_meta.get("name", "") in cfg.block_names:
        failures.append(f"blocked name {token_meta.get('name')}")
    if not cfg.allow_insider_topholders and any(h.get("insider") for h in top_holders):
        failures.append("insider among top holders")
    if any(float(h.get("pct", 0) or 0) > cfg.max_allowed_pct_topholders for h in top_holders):
        failures.append("top holder above allowed share")
    if float(report.get("totalMarketLiquidity", 0) or 0) < cfg.min_total_market_liquidity:
        failures.append("market liquidity too low")
    if cfg.max_score and int(report.get("score_normalised", report.get("score", 0)) or 0) > cfg.max_score:
        failures.append("risk score too high")
    blocked = [r.get("name") for r in risks if r.get("name") in cfg.legacy_not_allowed]
    if blocked:
        failures.append(f"risks: {', '.join(blocked)}")
    return failures


class RugCheckClient:
    def __init__(self, base_url: str | None = None, cfg: RugCheckSettings | None = None) -> None:
        self._base_url = base_url or settings.rugcheck_base_url
        self._cfg = cfg or settings.rug_check

    async def get_report(self, token_id: str) -> dict[str, Any]:
        url = f"{self._base_url}/tokens/{token_id}/report"
        async with httpx.AsyncClient(timeout=settings.tx.get_timeout_ms / 1000) as client:
            response = await client.get(url)
            response.raise_for_status()
        return response.json()

    async def check(self, token_id: str) -> bool:
        """True when the token passes every configured rule. Unreachable service counts as a fail."""
        try:
            report = await self.get_report(token_id)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Rug check unavailable for %s: %s", token_id, e)
            return False
        failures = evaluate_report(report, self._cfg)
        if failures:
            logger.info("Rug check failed for %s: %s", token_id, "; ".join(failures))
            return False
        return True
