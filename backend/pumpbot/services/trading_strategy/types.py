"""Trading strategy types."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Protocol

from pumpbot.schemas.market import PriceSample
from pumpbot.services.position_ledger import PositionLedger


@dataclass(frozen=True)
class TradeSignal:
    """A buy/sell decision emitted by the decision policy."""

    type: Literal["buy", "sell"]
    token: str
    price: float
    timestamp: int  # Unix ms
    confidence: float  # Share of entry conditions met / exit triggers fired, 0..1


@dataclass(frozen=True)
class Decision:
    """Outcome of one threshold check over an indicator snapshot."""

    triggered: bool
    confidence: float
    reasons: tuple[str, ...] = ()


class TokenState(str, Enum):
    DETECTED = "detected"
    SAFETY_CHECKING = "safety_checking"
    SAMPLING = "sampling"
    EVALUATING = "evaluating"
    HOLDING = "holding"
    EXITING = "exiting"
    REJECTED = "rejected"
    CLOSED = "closed"


@dataclass
class StrategyState:
    """Process-wide strategy state. Only the strategy's own tasks write to it.

    Open positions live in the ledger alone; `active_positions` is a view over it
    so the two can never disagree.
    """

    ledger: PositionLedger
    wallet_balance: float = 0.0
    last_signal: TradeSignal | None = None
    token_states: dict[str, TokenState] = field(default_factory=dict)

    @property
    def active_positions(self) -> dict[str, float]:
        return {p.token_id: p.amount for p in self.ledger.positions()}


class Strategy(Protocol):
    async def analyze(self, samples: Sequence[PriceSample]) -> bool: ...

    async def execute(self) -> None: ...

    def get_name(self) -> str: ...

    def is_enabled(self) -> bool: ...
