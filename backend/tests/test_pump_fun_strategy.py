import asyncio
from unittest.mock import MagicMock

import pytest

from conftest import LAMPORTS, make_samples, make_settings
from pumpbot.errors import TransactionFetchError
from pumpbot.schemas.market import NewListingEvent
from pumpbot.schemas.trading import Position, SellResult
from pumpbot.services.trade_log import TradeJournal
from pumpbot.services.trading_strategy.types import Decision, TokenState

BUY = Decision(triggered=True, confidence=1.0, reasons=("rsi_oversold", "macd_bullish", "buy_pressure", "bid_depth"))
SELL = Decision(triggered=True, confidence=1 / 3, reasons=("rsi_overbought",))
HOLD = Decision(triggered=False, confidence=0.0)


def stub_policy(strategy, entry=BUY, exit=HOLD):
    strategy.policy.evaluate_entry = MagicMock(return_value=entry)
    strategy.policy.evaluate_exit = MagicMock(return_value=exit)


# -- balance & emergency exit ---------------------------------------------


async def test_low_balance_liquidates_what_it_can(build_strategy, collaborators):
    strategy = build_strategy()
    strategy.ledger.open("mintA", 1.0, 10.0)
    strategy.ledger.open("mintB", 1.0, 20.0)
    collaborators["balance_query"].get_balance.return_value = int(0.05 * LAMPORTS)
    collaborators["swap_executor"].sell.side_effect = [
        SellResult(success=True, message="sig"),
        SellResult(success=False, message="slippage"),
    ]

    assert not await strategy.check_wallet_balance()

    assert strategy.state.wallet_balance == pytest.approx(0.05)
    assert collaborators["swap_executor"].sell.await_count == 2
    assert "mintA" not in strategy.ledger
    assert "mintB" in strategy.ledger
    assert strategy.state.token_states["mintB"] == TokenState.HOLDING
    assert strategy.ledger.closed_trades[0].reason == "emergency"


async def test_emergency_exit_continues_after_sell_error(build_strategy, collaborators):
    strategy = build_strategy()
    strategy.ledger.open("mintA", 1.0, 10.0)
    strategy.ledger.open("mintB", 1.0, 20.0)
    collaborators["swap_executor"].sell.side_effect = [
        RuntimeError("rpc down"),
        SellResult(success=True, message="sig"),
    ]

    await strategy.emergency_exit()

    assert [p.token_id for p in strategy.ledger.positions()] == ["mintA"]
    assert strategy.state.token_states["mintA"] == TokenState.HOLDING


async def test_balance_query_failure_is_not_fatal(build_strategy, collaborators):
    strategy = build_strategy()
    strategy.ledger.open("mintA", 1.0, 10.0)
    collaborators["balance_query"].get_balance.side_effect = RuntimeError("timeout")

    assert not await strategy.check_wallet_balance()
    assert "mintA" in strategy.ledger
    collaborators["swap_executor"].sell.assert_not_awaited()


# -- entry pipeline -----------------------------------------------------------


async def test_listing_enters_position(build_strategy, collaborators):
    strategy = build_strategy()
    stub_policy(strategy)
    collaborators["price_service"].get_current_price.return_value = 0.5

    state = await strategy.process_new_token("mintA", "sig")

    assert state == TokenState.HOLDING
    collaborators["swap_executor"].buy.assert_awaited_once_with("mintA", 0.01)
    position = strategy.ledger.get("mintA")
    assert position.entry_price == 0.5
    assert position.amount == pytest.approx(0.02)
    assert strategy.state.active_positions == {"mintA": position.amount}
    assert strategy.state.last_signal.type == "buy"
    assert strategy.state.last_signal.token == "mintA"
    assert "mintA" in strategy._monitor_tasks

    await strategy.cleanup()


async def test_simulation_mode_logs_signal_only(build_strategy, collaborators):
    strategy = build_strategy(make_settings(simulation_mode=True))
    stub_policy(strategy)

    state = await strategy.process_new_token("mintA", "sig")

    assert state == TokenState.EVALUATING
    collaborators["swap_executor"].buy.assert_not_awaited()
    assert len(strategy.ledger) == 0
    assert strategy.state.token_states == {}
    assert strategy.state.last_signal.token == "mintA"


async def test_already_held_token_is_ignored(build_strategy, collaborators):
    strategy = build_strategy()
    strategy.ledger.open("mintA", 1.0, 1.0)

    assert await strategy.process_new_token("mintA", "sig") == TokenState.HOLDING
    collaborators["tx_fetcher"].fetch_transaction_details.assert_not_awaited()


async def test_capacity_limit_rejects_new_listing(build_strategy, collaborators):
    strategy = build_strategy(make_settings(max_concurrent_trades=2))
    stub_policy(strategy)
    strategy.ledger.open("mintA", 1.0, 1.0)
    strategy.ledger.open("mintB", 1.0, 1.0)

    assert await strategy.process_new_token("mintC", "sig") == TokenState.REJECTED
    collaborators["swap_executor"].buy.assert_not_awaited()
    assert len(strategy.ledger) == 2


async def test_concurrent_listings_respect_capacity(build_strategy, collaborators):
    strategy = build_strategy(make_settings(max_concurrent_trades=1))
    stub_policy(strategy)

    results = await asyncio.gather(
        strategy.process_new_token("mintA", "sigA"),
        strategy.process_new_token("mintB", "sigB"),
    )

    assert sorted(results) == sorted([TokenState.HOLDING, TokenState.REJECTED])
    assert collaborators["swap_executor"].buy.await_count == 1
    assert len(strategy.ledger) == 1

    await strategy.cleanup()


@pytest.mark.parametrize(
    "failure",
    [asyncio.TimeoutError(), TransactionFetchError("not found")],
)
async def test_transaction_fetch_failure_rejects(build_strategy, collaborators, failure):
    strategy = build_strategy()
    collaborators["tx_fetcher"].fetch_transaction_details.side_effect = failure

    assert await strategy.process_new_token("mintA", "sig") == TokenState.REJECTED
    collaborators["safety_checker"].check.assert_not_awaited()
    assert strategy.state.token_states == {}


async def test_missing_transaction_rejects(build_strategy, collaborators):
    strategy = build_strategy()
    collaborators["tx_fetcher"].fetch_transaction_details.return_value = None

    assert await strategy.process_new_token("mintA", "sig") == TokenState.REJECTED


async def test_failed_rug_check_rejects(build_strategy, collaborators):
    strategy = build_strategy()
    collaborators["safety_checker"].check.return_value = False

    assert await strategy.process_new_token("mintA", "sig") == TokenState.REJECTED
    collaborators["price_service"].get_samples.assert_not_awaited()


async def test_insufficient_samples_rejects(build_strategy, collaborators):
    strategy = build_strategy()
    stub_policy(strategy)
    collaborators["price_service"].get_samples.side_effect = [make_samples([1.0]), [], []]

    assert await strategy.process_new_token("mintA", "sig") == TokenState.REJECTED
    collaborators["swap_executor"].buy.assert_not_awaited()


async def test_no_signal_rejects(build_strategy, collaborators):
    strategy = build_strategy()
    stub_policy(strategy, entry=Decision(triggered=False, confidence=0.75))

    assert await strategy.process_new_token("mintA", "sig") == TokenState.REJECTED
    assert strategy.state.last_signal is None


async def test_failed_buy_rejects(build_strategy, collaborators):
    strategy = build_strategy()
    stub_policy(strategy)
    collaborators["swap_executor"].buy.return_value = None

    assert await strategy.process_new_token("mintA", "sig") == TokenState.REJECTED
    assert len(strategy.ledger) == 0
    assert strategy._pending_entries == set()


async def test_listing_handler_survives_errors(build_strategy, collaborators):
    strategy = build_strategy()
    collaborators["safety_checker"].check.side_effect = RuntimeError("boom")
    event = NewListingEvent(token_id="mintA", creator_id="creator", signature="sig", slot=1)

    await strategy.handle_new_listing(event)

    assert strategy.state.token_states == {}


# -- holding path ---------------------------------------------------------------


async def test_exit_signal_closes_position(build_strategy, collaborators):
    strategy = build_strategy()
    stub_policy(strategy, exit=SELL)
    strategy.ledger.open("mintA", 1.0, 10.0)
    collaborators["price_service"].get_current_price.return_value = 1.5

    assert await strategy.check_position("mintA")

    collaborators["swap_executor"].sell.assert_awaited_once_with("mintA", 10.0)
    trade = strategy.ledger.closed_trades[0]
    assert trade.pnl == pytest.approx(5.0)
    assert trade.reason == "signal"
    assert strategy.state.last_signal.type == "sell"
    assert "mintA" not in strategy.state.token_states


async def test_failed_sell_keeps_position(build_strategy, collaborators):
    strategy = build_strategy()
    stub_policy(strategy, exit=SELL)
    strategy.ledger.open("mintA", 1.0, 10.0)
    collaborators["swap_executor"].sell.return_value = SellResult(success=False, message="no route")

    assert not await strategy.check_position("mintA")
    assert "mintA" in strategy.ledger
    assert strategy.state.token_states["mintA"] == TokenState.HOLDING


async def test_exit_without_price_removes_position(build_strategy, collaborators):
    strategy = build_strategy()
    stub_policy(strategy, exit=SELL)
    strategy.ledger.open("mintA", 1.0, 10.0)
    collaborators["price_service"].get_current_price.return_value = None

    assert await strategy.check_position("mintA")
    assert len(strategy.ledger) == 0
    assert strategy.ledger.closed_trades == []


async def test_no_samples_keeps_holding(build_strategy, collaborators):
    strategy = build_strategy()
    stub_policy(strategy, exit=SELL)
    strategy.ledger.open("mintA", 1.0, 10.0)
    collaborators["price_service"].get_samples.return_value = []

    assert not await strategy.check_position("mintA")
    strategy.policy.evaluate_exit.assert_not_called()


async def test_sample_window_is_bounded(build_strategy, collaborators):
    strategy = build_strategy(make_settings(sample_window=3))
    stub_policy(strategy)
    strategy.ledger.open("mintA", 1.0, 10.0)

    for ts in range(5):
        collaborators["price_service"].get_samples.return_value = make_samples([1.0], start_ts=ts)
        await strategy.check_position("mintA")

    window = strategy.policy.evaluate_exit.call_args.args[0]
    assert [s.timestamp for s in window] == [2, 3, 4]


async def test_monitor_survives_failing_tick(build_strategy, collaborators):
    strategy = build_strategy()
    stub_policy(strategy, exit=SELL)
    strategy.ledger.open("mintA", 1.0, 10.0)
    collaborators["price_service"].get_samples.side_effect = [
        RuntimeError("rate limited"),
        make_samples([2.0]),
    ]

    await asyncio.wait_for(strategy._monitor_position("mintA"), timeout=1)

    assert "mintA" not in strategy.ledger
    assert len(strategy.ledger.closed_trades) == 1


async def test_simulation_mode_simulates_sells(build_strategy, collaborators):
    strategy = build_strategy(make_settings(simulation_mode=True))
    stub_policy(strategy, exit=SELL)
    strategy.ledger.open("mintA", 1.0, 10.0)

    assert await strategy.check_position("mintA")
    collaborators["swap_executor"].sell.assert_not_awaited()


# -- lifecycle ---------------------------------------------------------------------


async def test_start_restores_positions_and_cleanup_stops_tasks(build_strategy, collaborators, tmp_path):
    journal = TradeJournal(tmp_path)
    journal.save_open_positions([Position(token_id="mintA", entry_price=1.0, amount=5.0, opened_at=1)])
    strategy = build_strategy(journal=journal)
    stub_policy(strategy)

    await strategy.start()

    assert "mintA" in strategy.ledger
    assert strategy.state.token_states["mintA"] == TokenState.HOLDING
    collaborators["listing_feed"].subscribe.assert_called_once_with(strategy.handle_new_listing)
    monitor = strategy._monitor_tasks["mintA"]
    await asyncio.sleep(0)

    await strategy.cleanup()

    collaborators["listing_feed"].unsubscribe.assert_awaited_once_with(1)
    assert monitor.done()
    assert strategy._monitor_tasks == {}


async def test_disabled_strategy_does_not_subscribe(build_strategy, collaborators):
    strategy = build_strategy(make_settings(enabled=False))

    await strategy.start()

    collaborators["listing_feed"].subscribe.assert_not_called()
    assert not await strategy.analyze(make_samples([1.0]))


async def test_execute_refreshes_balance_and_status(build_strategy, collaborators):
    strategy = build_strategy()
    strategy.ledger.open("mintA", 1.0, 10.0)
    collaborators["balance_query"].get_balance.return_value = 2 * LAMPORTS

    await strategy.execute()

    status = strategy.status()
    assert status.wallet_balance == 2.0
    assert status.open_positions == 1
    assert status.last_signal is None
    collaborators["price_service"].get_current_price.assert_awaited_with("mintA")


async def test_low_balance_rejects_listing_and_liquidates(build_strategy, collaborators):
    strategy = build_strategy()
    stub_policy(strategy)
    strategy.ledger.open("mintA", 1.0, 10.0)
    collaborators["balance_query"].get_balance.return_value = int(0.05 * LAMPORTS)

    assert await strategy.process_new_token("mintB", "sig") == TokenState.REJECTED

    collaborators["safety_checker"].check.assert_not_awaited()
    collaborators["swap_executor"].sell.assert_awaited_once_with("mintA", 10.0)
    collaborators["swap_executor"].buy.assert_not_awaited()
    assert "mintA" not in strategy.ledger
    assert "mintB" not in strategy.state.token_states


async def test_monitor_tick_uses_cached_balance(build_strategy, collaborators):
    strategy = build_strategy()
    stub_policy(strategy)
    strategy.ledger.open("mintA", 1.0, 10.0)
    strategy.state.wallet_balance = 0.7

    assert not await strategy.check_position("mintA")

    collaborators["balance_query"].get_balance.assert_not_awaited()
    assert strategy.policy.evaluate_exit.call_args.kwargs["wallet_balance"] == 0.7


# -- shutdown ------------------------------------------------------------------------


async def test_cleanup_cancels_listing_in_warmup(build_strategy, collaborators):
    strategy = build_strategy(make_settings(warmup_delay_ms=200))
    stub_policy(strategy)
    event = NewListingEvent(token_id="mintA", creator_id="creator", signature="sig", slot=1)

    handler = asyncio.create_task(strategy.handle_new_listing(event))
    await asyncio.sleep(0.05)
    assert strategy.state.token_states["mintA"] == TokenState.SAMPLING

    await strategy.cleanup()
    await asyncio.sleep(0.3)

    assert handler.cancelled()
    collaborators["swap_executor"].buy.assert_not_awaited()
    assert len(strategy.ledger) == 0
    assert strategy._monitor_tasks == {}
    assert strategy.state.token_states == {}


async def test_no_entry_after_cleanup(build_strategy, collaborators):
    strategy = build_strategy()
    stub_policy(strategy)
    await strategy.cleanup()

    assert await strategy.process_new_token("mintA", "sig") == TokenState.REJECTED
    collaborators["swap_executor"].buy.assert_not_awaited()

    event = NewListingEvent(token_id="mintB", creator_id="creator", signature="sig", slot=1)
    await strategy.handle_new_listing(event)
    collaborators["tx_fetcher"].fetch_transaction_details.assert_not_awaited()


async def test_buy_landing_during_shutdown_is_not_monitored(build_strategy, collaborators):
    strategy = build_strategy()
    stub_policy(strategy)

    async def buy_then_shut_down(token_id, amount_sol):
        await strategy.cleanup()
        return "txsig"

    collaborators["swap_executor"].buy.side_effect = buy_then_shut_down

    assert await strategy.process_new_token("mintA", "sig") == TokenState.HOLDING
    # The bought position stays on the books for the next start to restore
    assert "mintA" in strategy.ledger
    assert strategy._monitor_tasks == {}
