from unittest.mock import AsyncMock, MagicMock

import pytest

from pumpbot.config import (
    RugCheckSettings,
    Settings,
    StrategySettings,
    TxSettings,
)
from pumpbot.schemas.market import PriceSample
from pumpbot.schemas.trading import SellResult
from pumpbot.services.trading_strategy.pump_fun_strategy import PumpFunStrategy

LAMPORTS = 1_000_000_000


def make_samples(prices, volumes=None, start_ts=1_000):
    volumes = volumes or [1.0] * len(prices)
    return [
        PriceSample(price=p, volume=v, high=p, low=p, timestamp=start_ts + i * 1000)
        for i, (p, v) in enumerate(zip(prices, volumes))
    ]


def make_settings(simulation_mode=False, **strategy_overrides):
    strategy_kwargs = {
        "warmup_delay_ms": 0,
        "warmup_sample_delay_ms": 0,
        "price_check_interval_ms": 10,
    }
    strategy_kwargs.update(strategy_overrides)
    return Settings(
        _env_file=None,
        wallet_address="Wallet1111111111111111111111111111111111111",
        strategy=StrategySettings(**strategy_kwargs),
        tx=TxSettings(fetch_tx_timeout_ms=1000),
        rug_check=RugCheckSettings(simulation_mode=simulation_mode),
    )


@pytest.fixture
def collaborators():
    feed = MagicMock()
    feed.subscribe = MagicMock(return_value=1)
    feed.unsubscribe = AsyncMock()

    tx_fetcher = MagicMock()
    tx_fetcher.fetch_transaction_details = AsyncMock(return_value={"slot": 1})

    balance = MagicMock()
    balance.get_balance = AsyncMock(return_value=LAMPORTS)

    safety = MagicMock()
    safety.check = AsyncMock(return_value=True)

    prices = MagicMock()
    prices.get_samples = AsyncMock(return_value=make_samples([1.0]))
    prices.get_current_price = AsyncMock(return_value=1.0)

    swap = MagicMock()
    swap.buy = AsyncMock(return_value="txsig")
    swap.sell = AsyncMock(return_value=SellResult(success=True, message="sellsig"))

    return {
        "listing_feed": feed,
        "tx_fetcher": tx_fetcher,
        "balance_query": balance,
        "safety_checker": safety,
        "price_service": prices,
        "swap_executor": swap,
    }


@pytest.fixture
def build_strategy(collaborators):
    def _build(config=None, journal=None):
        return PumpFunStrategy(
            **collaborators,
            config=config or make_settings(),
            journal=journal,
        )

    return _build
