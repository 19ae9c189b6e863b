"""Strategy API: read-only view of the running agent."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from pumpbot.schemas.trading import PnLUpdate, Position, StrategyStatus
from pumpbot.services.trading_strategy.pump_fun_strategy import PumpFunStrategy

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["strategy"])


def get_strategy() -> PumpFunStrategy:
    # Dependency override in main.py will supply singleton.
    raise RuntimeError("strategy dependency is not configured")


@router.get("/status", response_model=StrategyStatus)
async def get_status(strategy: PumpFunStrategy = Depends(get_strategy)) -> StrategyStatus:
    """Enabled/simulation flags, last known wallet balance, open position count and last signal."""
    return strategy.status()


@router.get("/positions", response_model=list[Position])
async def list_positions(strategy: PumpFunStrategy = Depends(get_strategy)) -> list[Position]:
    return strategy.ledger.positions()


@router.get("/pnl", response_model=list[PnLUpdate])
async def get_pnl(strategy: PumpFunStrategy = Depends(get_strategy)) -> list[PnLUpdate]:
    """Unrealized PnL per open position. Throttled: repeated calls inside the
    price-check interval return the previous snapshot."""
    return await strategy.ledger.snapshot_pnl()


@router.get("/trades")
async def list_trades(
    since: int | None = Query(default=None, description="Only exits at or after this unix ms"),
    strategy: PumpFunStrategy = Depends(get_strategy),
) -> dict:
    """Completed trades from the trade journal, plus realized PnL of this run."""
    journal = strategy.journal
    if journal is None:
        raise HTTPException(status_code=404, detail="Trade journal is not enabled.")
    return {
        "trades": journal.get_trades(since=since),
        "realizedPnl": strategy.ledger.realized_pnl,
    }
