"""Trading strategy module: decision policy and the PumpFun lifecycle orchestrator."""

from pumpbot.services.trading_strategy.decision_policy import DecisionPolicy
from pumpbot.services.trading_strategy.pump_fun_strategy import PumpFunStrategy
from pumpbot.services.trading_strategy.types import (
    Strategy,
    StrategyState,
    TokenState,
    TradeSignal,
)

__all__ = [
    "DecisionPolicy",
    "PumpFunStrategy",
    "Strategy",
    "StrategyState",
    "TokenState",
    "TradeSignal",
]
