from collections.abc import Sequence

from pumpbot.schemas.market import PriceSample
from pumpbot.services.indicators.types import StochasticResult

DEFAULT_PERIOD = 14
D_SMOOTHING = 3
NEUTRAL_K = 50.0


class StochasticOscillator:
    """%K over the trailing period of prices, %D as the mean of the last three %K."""

    def __init__(self, period: int = DEFAULT_PERIOD) -> None:
        self.period = period

    def _k_at(self, samples: Sequence[PriceSample], end: int) -> float:
        window = samples[end - self.period + 1 : end + 1]
        prices = [s.price for s in window]
        highest, lowest = max(prices), min(prices)
        if highest == lowest:
            return NEUTRAL_K
        return (samples[end].price - lowest) / (highest - lowest) * 100

    def calculate(self, samples: Sequence[PriceSample]) -> StochasticResult:
        if len(samples) < self.period:
            return StochasticResult(k=NEUTRAL_K, d=NEUTRAL_K)

        last = len(samples) - 1
        first = max(self.period - 1, last - D_SMOOTHING + 1)
        ks = [self._k_at(samples, i) for i in range(first, last + 1)]
        return StochasticResult(k=ks[-1], d=sum(ks) / len(ks))
