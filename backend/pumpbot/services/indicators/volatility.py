import math
from collections.abc import Sequence

from pumpbot.schemas.market import PriceSample
from pumpbot.services.indicators.types import VolatilityResult

DEFAULT_PERIOD = 14
DEFAULT_MULTIPLIER = 2.0


class Volatility:
    """Population standard deviation of percentage returns across the window."""

    def __init__(self, period: int = DEFAULT_PERIOD, multiplier: float = DEFAULT_MULTIPLIER) -> None:
        self.period = period
        self.high_threshold = multiplier

    def calculate(self, samples: Sequence[PriceSample]) -> VolatilityResult:
        returns = [
            (samples[i].price - samples[i - 1].price) / samples[i - 1].price
            for i in range(1, len(samples))
            if samples[i - 1].price != 0
        ]
        if not returns:
            return VolatilityResult(value=0.0, is_high=False)

        mean = sum(returns) / len(returns)
        variance = sum((r - mean) ** 2 for r in returns) / len(returns)
        value = math.sqrt(variance)
        return VolatilityResult(value=value, is_high=value > self.high_threshold)
