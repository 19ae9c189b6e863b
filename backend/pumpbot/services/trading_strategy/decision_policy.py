"""Threshold-based buy/sell decisions over the indicator library.

Entry requires every condition (RSI oversold, MACD histogram above the buy
threshold, buy pressure, bid/ask depth). Exit fires on any one trigger (RSI
overbought, MACD histogram below the sell threshold, sell pressure).
"""

import logging
from collections.abc import Sequence

from pumpbot.config import StrategySettings
from pumpbot.schemas.market import PriceSample
from pumpbot.services.indicators.macd import MACD
from pumpbot.services.indicators.market_depth import MarketDepth
from pumpbot.services.indicators.moving_average import MovingAverage
from pumpbot.services.indicators.rsi import RSI
from pumpbot.services.indicators.stochastic import StochasticOscillator
from pumpbot.services.indicators.types import IndicatorSnapshot
from pumpbot.services.indicators.volatility import Volatility
from pumpbot.services.indicators.volume_profile import VolumeProfile
from pumpbot.services.trading_strategy.types import Decision

logger = logging.getLogger(__name__)

ENTRY_CONDITIONS = 4
EXIT_TRIGGERS = 3


class DecisionPolicy:
    def __init__(
        self,
        config: StrategySettings,
        *,
        rsi: RSI | None = None,
        macd: MACD | None = None,
        volume: VolumeProfile | None = None,
        depth: MarketDepth | None = None,
    ) -> None:
        self.config = config
        self.rsi = rsi or RSI(
            period=config.rsi.period,
            overbought=config.rsi.overbought,
            oversold=config.rsi.oversold,
        )
        self.macd = macd or MACD(
            fast_period=config.macd.fast_period,
            slow_period=config.macd.slow_period,
            signal_period=config.macd.signal_period,
        )
        self.volume = volume or VolumeProfile()
        self.depth = depth or MarketDepth()
        self.volatility = Volatility(
            period=config.volatility.period, multiplier=config.volatility.multiplier
        )
        self.stochastic = StochasticOscillator(period=config.rsi.period)
        self.ma_short = MovingAverage(config.moving_average.short_period)
        self.ma_long = MovingAverage(config.moving_average.long_period)

    def snapshot(self, samples: Sequence[PriceSample]) -> IndicatorSnapshot:
        return IndicatorSnapshot(
            rsi=self.rsi.calculate(samples),
            macd=self.macd.calculate(samples),
            volume=self.volume.calculate(samples),
            depth=self.depth.calculate(samples),
            volatility=self.volatility.calculate(samples),
            stochastic=self.stochastic.calculate(samples),
            ma_short=self.ma_short.last(samples),
            ma_long=self.ma_long.last(samples),
            sample_count=len(samples),
        )

    def is_active(self, wallet_balance: float) -> bool:
        """Both predicates are off while disabled or below the minimum balance."""
        return self.config.enabled and wallet_balance >= self.config.minimum_sol_balance

    def entry_decision(self, snap: IndicatorSnapshot) -> Decision:
        cfg = self.config
        checks = {
            "rsi_oversold": snap.rsi.value < cfg.rsi.oversold,
            "macd_bullish": snap.macd.histogram > cfg.macd.buy_threshold,
            "buy_pressure": snap.volume.buy_pressure > cfg.volume_profile.buy_pressure_threshold,
            "bid_depth": snap.depth.ratio > cfg.market_depth.min_bid_ask_ratio,
        }
        met = tuple(name for name, ok in checks.items() if ok)
        return Decision(
            triggered=len(met) == ENTRY_CONDITIONS,
            confidence=len(met) / ENTRY_CONDITIONS,
            reasons=met,
        )

    def exit_decision(self, snap: IndicatorSnapshot) -> Decision:
        cfg = self.config
        checks = {
            "rsi_overbought": snap.rsi.value > cfg.rsi.overbought,
            "macd_bearish": snap.macd.histogram < cfg.macd.sell_threshold,
            "sell_pressure": snap.volume.sell_pressure > cfg.volume_profile.sell_pressure_threshold,
        }
        fired = tuple(name for name, ok in checks.items() if ok)
        return Decision(
            triggered=bool(fired),
            confidence=len(fired) / EXIT_TRIGGERS,
            reasons=fired,
        )

    def should_enter(self, samples: Sequence[PriceSample], *, wallet_balance: float) -> bool:
        return self.evaluate_entry(samples, wallet_balance=wallet_balance).triggered

    def should_exit(self, samples: Sequence[PriceSample], *, wallet_balance: float) -> bool:
        return self.evaluate_exit(samples, wallet_balance=wallet_balance).triggered

    def evaluate_entry(self, samples: Sequence[PriceSample], *, wallet_balance: float) -> Decision:
        if not self.is_active(wallet_balance) or not samples:
            return Decision(triggered=False, confidence=0.0)
        snap = self.snapshot(samples)
        log_snapshot("Technical analysis", snap)
        return self.entry_decision(snap)

    def evaluate_exit(self, samples: Sequence[PriceSample], *, wallet_balance: float) -> Decision:
        if not self.is_active(wallet_balance) or not samples:
            return Decision(triggered=False, confidence=0.0)
        snap = self.snapshot(samples)
        decision = self.exit_decision(snap)
        if decision.triggered:
            logger.info(
                "Sell signals detected (%s): RSI %.2f (> %s) | MACD histogram %.6f | sell pressure %.2f%%",
                ", ".join(decision.reasons),
                snap.rsi.value,
                self.config.rsi.overbought,
                snap.macd.histogram,
                snap.volume.sell_pressure * 100,
            )
        return decision


def log_snapshot(title: str, snap: IndicatorSnapshot) -> None:
    logger.info(
        "%s over %d samples: RSI %.2f | MACD histogram %.6f | volume ratio %.2f | depth ratio %.2f",
        title,
        snap.sample_count,
        snap.rsi.value,
        snap.macd.histogram,
        snap.volume.volume_ratio,
        snap.depth.ratio,
    )
    logger.debug(
        "volatility %.4f (high=%s) | stochastic %%K %.1f %%D %.1f | MA short %s long %s",
        snap.volatility.value,
        snap.volatility.is_high,
        snap.stochastic.k,
        snap.stochastic.d,
        snap.ma_short,
        snap.ma_long,
    )
