"""Relative Strength Index with simple-mean averaging (no Wilder smoothing)."""

from collections.abc import Sequence

from pumpbot.schemas.market import PriceSample
from pumpbot.services.indicators.types import RSIResult

DEFAULT_PERIOD = 14
DEFAULT_OVERBOUGHT = 70.0
DEFAULT_OVERSOLD = 30.0
# RS used when there were no losing deltas in the window
ZERO_LOSS_RS = 100.0
NEUTRAL = RSIResult(value=50.0, overbought=False, oversold=False)


class RSI:
    def __init__(
        self,
        period: int = DEFAULT_PERIOD,
        overbought: float = DEFAULT_OVERBOUGHT,
        oversold: float = DEFAULT_OVERSOLD,
    ) -> None:
        if period < 1:
            raise ValueError("period must be >= 1")
        self.period = period
        self.overbought = overbought
        self.oversold = oversold

    def calculate(self, samples: Sequence[PriceSample]) -> RSIResult:
        """
        RSI over the trailing `period` price deltas.

        With fewer than period + 1 samples the neutral default (50, no flags) is
        returned; it is not a measurement.
        """
        if len(samples) < self.period + 1:
            return NEUTRAL

        window = samples[-(self.period + 1) :]
        deltas = [window[i].price - window[i - 1].price for i in range(1, len(window))]
        avg_gain = sum(d for d in deltas if d > 0) / self.period
        avg_loss = sum(-d for d in deltas if d < 0) / self.period

        rs = ZERO_LOSS_RS if avg_loss == 0 else avg_gain / avg_loss
        value = 100 - 100 / (1 + rs)
        return RSIResult(
            value=value,
            overbought=value > self.overbought,
            oversold=value < self.oversold,
        )
