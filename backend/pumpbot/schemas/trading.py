from typing import Literal

from pydantic import BaseModel


class Position(BaseModel):
    token_id: str
    entry_price: float
    amount: float
    opened_at: int  # Unix ms


class ClosedTrade(BaseModel):
    token_id: str
    entry_price: float
    exit_price: float
    amount: float
    pnl: float
    pnl_pct: float
    opened_at: int
    closed_at: int
    reason: str = "signal"


class PnLUpdate(BaseModel):
    token_id: str
    current_price: float
    unrealized_pnl: float
    percentage_change: float


class SellResult(BaseModel):
    success: bool
    message: str = ""


class SignalView(BaseModel):
    type: Literal["buy", "sell"]
    token: str
    price: float
    timestamp: int
    confidence: float


class StrategyStatus(BaseModel):
    name: str
    enabled: bool
    simulation_mode: bool
    wallet_balance: float
    open_positions: int
    max_concurrent_trades: int
    last_signal: SignalView | None = None
