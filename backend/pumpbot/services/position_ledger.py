"""Position ledger: open positions, realized and unrealized PnL.

Mutating methods are synchronous, so on a single event loop each one runs to
completion without interleaving; at most one position exists per token id.
"""

import logging
import time
from collections.abc import Awaitable, Callable

from pumpbot.schemas.trading import ClosedTrade, PnLUpdate, Position
from pumpbot.services.trade_log import TradeJournal

logger = logging.getLogger(__name__)

PriceLookup = Callable[[str], Awaitable[float | None]]


def _now_ms() -> int:
    return int(time.time() * 1000)


class PositionLedger:
    def __init__(
        self,
        price_lookup: PriceLookup,
        *,
        pnl_interval_s: float = 5.0,
        journal: TradeJournal | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._price_lookup = price_lookup
        self._pnl_interval_s = pnl_interval_s
        self._journal = journal
        self._clock = clock
        self._positions: dict[str, Position] = {}
        self._closed: list[ClosedTrade] = []
        self._last_pnl_check: float | None = None
        self._last_pnl: list[PnLUpdate] = []

    def __contains__(self, token_id: object) -> bool:
        return token_id in self._positions

    def __len__(self) -> int:
        return len(self._positions)

    def get(self, token_id: str) -> Position | None:
        return self._positions.get(token_id)

    def positions(self) -> list[Position]:
        return list(self._positions.values())

    @property
    def closed_trades(self) -> list[ClosedTrade]:
        return list(self._closed)

    @property
    def realized_pnl(self) -> float:
        return sum(t.pnl for t in self._closed)

    def open(
        self,
        token_id: str,
        entry_price: float | None,
        amount: float,
        *,
        opened_at: int | None = None,
    ) -> Position | None:
        """Record a new position, replacing any stale one for the same token.

        No-op when the entry price could not be obtained.
        """
        if not entry_price or entry_price <= 0:
            logger.warning("Not opening %s: entry price unavailable", token_id)
            return None
        if token_id in self._positions:
            logger.warning("Replacing stale position for %s", token_id)

        position = Position(
            token_id=token_id,
            entry_price=entry_price,
            amount=amount,
            opened_at=opened_at if opened_at is not None else _now_ms(),
        )
        self._positions[token_id] = position
        logger.info(
            "OPEN %s: %.4f tokens @ %.9f SOL", token_id, amount, entry_price
        )
        if self._journal:
            self._journal.append_entry(position)
            self._journal.save_open_positions(self.positions())
        return position

    def close(self, token_id: str, exit_price: float, *, reason: str = "signal") -> ClosedTrade | None:
        position = self._positions.pop(token_id, None)
        if position is None:
            return None

        pnl = (exit_price - position.entry_price) * position.amount
        pnl_pct = (exit_price - position.entry_price) / position.entry_price * 100
        trade = ClosedTrade(
            token_id=token_id,
            entry_price=position.entry_price,
            exit_price=exit_price,
            amount=position.amount,
            pnl=pnl,
            pnl_pct=pnl_pct,
            opened_at=position.opened_at,
            closed_at=_now_ms(),
            reason=reason,
        )
        self._closed.append(trade)
        logger.info(
            "CLOSE %s @ %.9f SOL: PnL %s %.6f SOL (%.2f%%) [%s]",
            token_id,
            exit_price,
            "+" if pnl >= 0 else "-",
            abs(pnl),
            pnl_pct,
            reason,
        )
        if self._journal:
            self._journal.append_exit(trade)
            self._journal.save_open_positions(self.positions())
        return trade

    def remove(self, token_id: str, *, reason: str) -> Position | None:
        """Drop a position whose exit price is unknown. No PnL is recorded."""
        position = self._positions.pop(token_id, None)
        if position is None:
            return None
        logger.warning("Removed %s without exit price (%s)", token_id, reason)
        if self._journal:
            self._journal.save_open_positions(self.positions())
        return position

    def restore(self, positions: list[Position]) -> None:
        for position in positions:
            self._positions[position.token_id] = position
        if positions:
            logger.info("Restored %d open positions", len(positions))

    async def snapshot_pnl(self) -> list[PnLUpdate]:
        """Unrealized PnL for every open position.

        Runs at most once per interval; calls inside the interval get the
        previous result back.
        """
        now = self._clock()
        if self._last_pnl_check is not None and now - self._last_pnl_check < self._pnl_interval_s:
            return list(self._last_pnl)
        self._last_pnl_check = now

        updates: list[PnLUpdate] = []
        for position in self.positions():
            current_price = await self._price_lookup(position.token_id)
            if not current_price:
                continue
            unrealized = (current_price - position.entry_price) * position.amount
            change = (current_price - position.entry_price) / position.entry_price * 100
            updates.append(
                PnLUpdate(
                    token_id=position.token_id,
                    current_price=current_price,
                    unrealized_pnl=unrealized,
                    percentage_change=change,
                )
            )
            logger.info(
                "%s | entry %.9f | current %.9f | unrealized %.6f SOL (%.2f%%)",
                position.token_id,
                position.entry_price,
                current_price,
                unrealized,
                change,
            )
        self._last_pnl = updates
        return list(updates)
