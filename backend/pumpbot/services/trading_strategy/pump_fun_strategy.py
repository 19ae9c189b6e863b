"""PumpFun strategy: drives each new listing from detection to a closed position.

Per-token lifecycle:
    detected -> safety_checking -> sampling -> evaluating -> holding -> exiting -> closed
with `rejected` reachable from every pre-entry step. Work is spread over a few
asyncio tasks: one global balance/PnL sweep, one monitor per open position, and
one short-lived handler per listing. All of them run on one event loop and the
ledger is only mutated through synchronous calls, so no locking is needed for
the at-most-one-position-per-token rule.
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Sequence
from dataclasses import asdict

from pumpbot.config import LAMPORTS_PER_SOL, Settings, settings
from pumpbot.errors import TransactionFetchError
from pumpbot.schemas.market import NewListingEvent, PriceSample
from pumpbot.schemas.trading import SellResult, SignalView, StrategyStatus
from pumpbot.services.collaborators import (
    BalanceQuery,
    ListingFeed,
    PriceQuoteService,
    SafetyChecker,
    SwapExecutor,
    TransactionFetcher,
)
from pumpbot.services.position_ledger import PositionLedger
from pumpbot.services.trade_log import TradeJournal
from pumpbot.services.trading_strategy.decision_policy import DecisionPolicy
from pumpbot.services.trading_strategy.types import (
    Decision,
    StrategyState,
    TokenState,
    TradeSignal,
)

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class PumpFunStrategy:
    def __init__(
        self,
        *,
        listing_feed: ListingFeed,
        tx_fetcher: TransactionFetcher,
        balance_query: BalanceQuery,
        safety_checker: SafetyChecker,
        price_service: PriceQuoteService,
        swap_executor: SwapExecutor,
        config: Settings = settings,
        journal: TradeJournal | None = None,
    ) -> None:
        self.config = config
        self._cfg = config.strategy
        self._feed = listing_feed
        self._tx_fetcher = tx_fetcher
        self._balance_query = balance_query
        self._safety_checker = safety_checker
        self._prices = price_service
        self._swap = swap_executor
        self._journal = journal

        self.policy = DecisionPolicy(self._cfg)
        self.ledger = PositionLedger(
            price_service.get_current_price,
            pnl_interval_s=self._interval_s,
            journal=journal,
        )
        self.state = StrategyState(ledger=self.ledger)

        self._history: dict[str, deque[PriceSample]] = {}
        self._monitor_tasks: dict[str, asyncio.Task[None]] = {}
        # In-flight listing handlers (detection through entry)
        self._listing_tasks: set[asyncio.Task[None]] = set()
        self._sweep_task: asyncio.Task[None] | None = None
        self._closing = False
        self._subscription_id: int | None = None
        # Tokens past the capacity check that have not opened (or failed) yet
        self._pending_entries: set[str] = set()
        self._emergency_lock = asyncio.Lock()

    @property
    def journal(self) -> TradeJournal | None:
        return self._journal

    @property
    def _interval_s(self) -> float:
        return self._cfg.price_check_interval_ms / 1000

    @property
    def simulation_mode(self) -> bool:
        return self.config.rug_check.simulation_mode

    def get_name(self) -> str:
        return "PumpFun Strategy"

    def is_enabled(self) -> bool:
        return self._cfg.enabled

    # -- lifecycle ---------------------------------------------------------

    async def start(self) -> None:
        if not self.is_enabled():
            logger.warning("PumpFun strategy is disabled in config")
            return
        self._closing = False

        if self._journal:
            self.ledger.restore(self._journal.load_open_positions())
            for position in self.ledger.positions():
                self._set_state(position.token_id, TokenState.HOLDING)

        # Monitors read the cached balance, so refresh it before they start
        await self.check_wallet_balance()
        for position in self.ledger.positions():
            self._start_monitor(position.token_id)
        self._subscription_id = self._feed.subscribe(self.handle_new_listing)
        self._sweep_task = asyncio.create_task(self._run_sweep())

        logger.info(
            "PumpFun strategy started | simulation=%s | min balance=%s SOL | trade amount=%s SOL | "
            "price check every %sms | max concurrent trades=%d",
            self.simulation_mode,
            self._cfg.minimum_sol_balance,
            self.config.swap.amount_sol,
            self._cfg.price_check_interval_ms,
            self._cfg.max_concurrent_trades,
        )

    async def cleanup(self) -> None:
        logger.info("Cleaning up PumpFun strategy...")
        self._closing = True
        if self._subscription_id is not None:
            await self._feed.unsubscribe(self._subscription_id)
            self._subscription_id = None

        tasks = list(self._listing_tasks) + list(self._monitor_tasks.values())
        if self._sweep_task is not None:
            tasks.append(self._sweep_task)
            self._sweep_task = None
        self._listing_tasks.clear()
        self._monitor_tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Cleanup complete")

    def status(self) -> StrategyStatus:
        signal = self.state.last_signal
        return StrategyStatus(
            name=self.get_name(),
            enabled=self.is_enabled(),
            simulation_mode=self.simulation_mode,
            wallet_balance=self.state.wallet_balance,
            open_positions=len(self.ledger),
            max_concurrent_trades=self._cfg.max_concurrent_trades,
            last_signal=SignalView(**asdict(signal)) if signal else None,
        )

    # -- periodic sweep ----------------------------------------------------

    async def execute(self) -> None:
        """One sweep: refresh the wallet balance and log unrealized PnL."""
        await self.check_wallet_balance()
        logger.info("Current SOL balance: %.4f SOL", self.state.wallet_balance)
        if len(self.ledger):
            await self.ledger.snapshot_pnl()

    async def _run_sweep(self) -> None:
        while True:
            try:
                await self.execute()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Error updating positions")
            await asyncio.sleep(self._interval_s)

    # -- balance & emergency exit -----------------------------------------

    async def check_wallet_balance(self) -> bool:
        """Refresh the balance; below the minimum every open position is liquidated."""
        try:
            lamports = await self._balance_query.get_balance(self.config.wallet_address)
        except Exception:
            logger.exception("Error checking balance")
            return False

        self.state.wallet_balance = lamports / LAMPORTS_PER_SOL
        sufficient = self.state.wallet_balance >= self._cfg.minimum_sol_balance
        if not sufficient:
            logger.warning("Insufficient balance: %.4f SOL", self.state.wallet_balance)
            await self.emergency_exit()
        return sufficient

    async def emergency_exit(self) -> None:
        """Try to sell every open position. Failures stay open for the next balance check."""
        if self._emergency_lock.locked():
            return
        async with self._emergency_lock:
            positions = self.ledger.positions()
            if not positions:
                return
            logger.warning("Emergency exit - closing %d positions", len(positions))
            for position in positions:
                try:
                    await self._exit_position(position.token_id, reason="emergency")
                except Exception:
                    logger.exception("Failed to close %s", position.token_id)

    # -- entry path --------------------------------------------------------

    async def analyze(self, samples: Sequence[PriceSample], *, token_id: str = "") -> bool:
        if not self.is_enabled() or not samples:
            return False
        if not await self.check_wallet_balance():
            return False
        decision = self.policy.evaluate_entry(samples, wallet_balance=self.state.wallet_balance)
        if decision.triggered:
            self._emit_signal("buy", token_id, samples, decision)
        return decision.triggered

    async def handle_new_listing(self, event: NewListingEvent) -> None:
        logger.info(
            "New PumpFun token detected: %s (%s) mint=%s creator=%s slot=%d signature=%s",
            event.name,
            event.symbol,
            event.token_id,
            event.creator_id,
            event.slot,
            event.signature,
        )
        if self._closing:
            return
        task = asyncio.current_task()
        if task is not None:
            self._listing_tasks.add(task)
        try:
            await self.process_new_token(event.token_id, event.signature)
        except asyncio.CancelledError:
            if event.token_id not in self.ledger:
                self._release(event.token_id)
            raise
        except Exception:
            logger.exception("Error processing token %s", event.token_id)
            if event.token_id not in self.ledger:
                self._release(event.token_id)
        finally:
            self._listing_tasks.discard(task)

    async def process_new_token(self, token_id: str, signature: str) -> TokenState:
        """Run one listing through the entry pipeline and return where it ended."""
        current = self.state.token_states.get(token_id)
        if current is not None or token_id in self.ledger:
            logger.debug("Ignoring %s: already tracked (%s)", token_id, current)
            return current or TokenState.HOLDING
        self._set_state(token_id, TokenState.DETECTED)

        self._set_state(token_id, TokenState.SAFETY_CHECKING)
        try:
            details = await asyncio.wait_for(
                self._tx_fetcher.fetch_transaction_details(signature),
                timeout=self.config.tx.fetch_tx_timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            return self._reject(token_id, "transaction fetch timeout")
        except TransactionFetchError as e:
            return self._reject(token_id, f"transaction fetch failed: {e}")
        if not details:
            return self._reject(token_id, "transaction fetch failed")

        if not await self.check_wallet_balance():
            return self._reject(token_id, "insufficient wallet balance")
        if not self._has_capacity():
            return self._reject(token_id, "max concurrent trades reached")
        if not await self._safety_checker.check(token_id):
            return self._reject(token_id, "rug check failed")

        self._set_state(token_id, TokenState.SAMPLING)
        samples = await self._collect_warmup_samples(token_id)
        if len(samples) < self._cfg.warmup_samples:
            return self._reject(token_id, "insufficient price data for analysis")

        self._set_state(token_id, TokenState.EVALUATING)
        if not await self.analyze(samples, token_id=token_id):
            return self._reject(token_id, "analysis indicates no trade opportunity")

        if self.simulation_mode:
            logger.info("Simulation mode - logging trade signal for %s only", token_id)
            self._release(token_id)
            return TokenState.EVALUATING

        return await self._enter_position(token_id, samples)

    async def _collect_warmup_samples(self, token_id: str) -> list[PriceSample]:
        await asyncio.sleep(self._cfg.warmup_delay_ms / 1000)
        collected: list[PriceSample] = []
        for _ in range(self._cfg.warmup_samples):
            fetched = await self._prices.get_samples(token_id)
            if fetched:
                collected.append(fetched[0])
            await asyncio.sleep(self._cfg.warmup_sample_delay_ms / 1000)
        return collected

    def _has_capacity(self) -> bool:
        return len(self.ledger) + len(self._pending_entries) < self._cfg.max_concurrent_trades

    async def _enter_position(self, token_id: str, samples: Sequence[PriceSample]) -> TokenState:
        if self._closing:
            return self._reject(token_id, "strategy is shutting down")
        # Capacity may have been taken while this token was sampling
        if not self._has_capacity():
            return self._reject(token_id, "max concurrent trades reached")

        self._pending_entries.add(token_id)
        try:
            amount_sol = self.config.swap.amount_sol
            tx = await self._swap.buy(token_id, amount_sol)
            if not tx:
                return self._reject(token_id, "swap transaction failed")

            entry_price = await self._prices.get_current_price(token_id) or samples[-1].price
            position = self.ledger.open(token_id, entry_price, amount_sol / entry_price)
            if position is None:
                logger.error("Bought %s (tx %s) but could not record the position", token_id, tx)
                return self._reject(token_id, "entry price unavailable")
        finally:
            self._pending_entries.discard(token_id)

        self._record_samples(token_id, samples)
        self._set_state(token_id, TokenState.HOLDING)
        self._start_monitor(token_id)
        return TokenState.HOLDING

    # -- holding path ------------------------------------------------------

    def _start_monitor(self, token_id: str) -> None:
        if self._closing:
            logger.warning("Not monitoring %s: strategy is shutting down", token_id)
            return
        self._monitor_tasks[token_id] = asyncio.create_task(self._monitor_position(token_id))

    async def _monitor_position(self, token_id: str) -> None:
        while token_id in self.ledger:
            try:
                if await self.check_position(token_id):
                    return
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Error monitoring position %s", token_id)
            await asyncio.sleep(self._interval_s)

    async def check_position(self, token_id: str) -> bool:
        """One monitoring tick. Returns True once the position is gone."""
        fetched = await self._prices.get_samples(token_id)
        if not fetched:
            return token_id not in self.ledger
        window = self._record_samples(token_id, fetched)

        # Balance is refreshed by the sweep; an emergency exit may have run meanwhile
        if token_id not in self.ledger:
            return True

        decision = self.policy.evaluate_exit(window, wallet_balance=self.state.wallet_balance)
        if not decision.triggered:
            return False
        self._emit_signal("sell", token_id, window, decision)
        return await self._exit_position(token_id, reason="signal")

    async def _exit_position(self, token_id: str, *, reason: str) -> bool:
        position = self.ledger.get(token_id)
        if position is None:
            return True
        if self.state.token_states.get(token_id) == TokenState.EXITING:
            return False

        self._set_state(token_id, TokenState.EXITING)
        try:
            result = await self._sell(token_id, position.amount)
        except Exception:
            self._set_state(token_id, TokenState.HOLDING)
            raise
        if not result.success:
            logger.error("Sell failed for %s: %s", token_id, result.message)
            self._set_state(token_id, TokenState.HOLDING)
            return False

        exit_price = await self._prices.get_current_price(token_id)
        if exit_price:
            self.ledger.close(token_id, exit_price, reason=reason)
        else:
            self.ledger.remove(token_id, reason=reason)
        logger.info("Sold position for %s (%s)", token_id, reason)
        self._set_state(token_id, TokenState.CLOSED)
        self._release(token_id)
        return True

    async def _sell(self, token_id: str, amount: float) -> SellResult:
        if self.simulation_mode:
            logger.info("Simulation mode - not selling %.4f of %s", amount, token_id)
            return SellResult(success=True, message="simulated")
        return await self._swap.sell(token_id, amount)

    # -- helpers -----------------------------------------------------------

    def _record_samples(self, token_id: str, samples: Sequence[PriceSample]) -> list[PriceSample]:
        window = self._history.get(token_id)
        if window is None:
            window = self._history[token_id] = deque(maxlen=self._cfg.sample_window)
        for sample in samples:
            if window and sample.timestamp < window[-1].timestamp:
                continue
            window.append(sample)
        return list(window)

    def _emit_signal(
        self,
        kind: str,
        token_id: str,
        samples: Sequence[PriceSample],
        decision: Decision,
    ) -> None:
        last = samples[-1]
        signal = TradeSignal(
            type=kind,
            token=token_id,
            price=last.price,
            timestamp=_now_ms(),
            confidence=decision.confidence,
        )
        self.state.last_signal = signal
        logger.info(
            "%s signal for %s @ %.9f (confidence %.2f: %s)",
            kind.upper(),
            signal.token,
            signal.price,
            signal.confidence,
            ", ".join(decision.reasons),
        )

    def _set_state(self, token_id: str, new_state: TokenState) -> None:
        previous = self.state.token_states.get(token_id)
        self.state.token_states[token_id] = new_state
        logger.debug("%s: %s -> %s", token_id, previous.value if previous else "-", new_state.value)

    def _reject(self, token_id: str, reason: str) -> TokenState:
        logger.warning("Rejected %s: %s", token_id, reason)
        self._set_state(token_id, TokenState.REJECTED)
        self._release(token_id)
        return TokenState.REJECTED

    def _release(self, token_id: str) -> None:
        """Drop everything held for a token that reached a terminal state."""
        self.state.token_states.pop(token_id, None)
        self._history.pop(token_id, None)
        self._pending_entries.discard(token_id)
        task = self._monitor_tasks.pop(token_id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()
