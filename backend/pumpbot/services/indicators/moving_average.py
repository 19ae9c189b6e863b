"""Simple moving average over sample prices."""

from collections.abc import Sequence

from pumpbot.schemas.market import PriceSample
from pumpbot.services.indicators.types import MovingAverageResult

DEFAULT_PERIOD = 14


class MovingAverage:
    def __init__(self, period: int = DEFAULT_PERIOD) -> None:
        if period < 1:
            raise ValueError("period must be >= 1")
        self.period = period

    def calculate(self, samples: Sequence[PriceSample]) -> list[MovingAverageResult]:
        """
        Trailing average for every index i >= period - 1.
        Returns [] when fewer than `period` samples are supplied (insufficient data).
        """
        if len(samples) < self.period:
            return []

        results: list[MovingAverageResult] = []
        for i in range(self.period - 1, len(samples)):
            window = samples[i - self.period + 1 : i + 1]
            results.append(
                MovingAverageResult(
                    value=sum(s.price for s in window) / self.period,
                    timestamp=samples[i].timestamp,
                )
            )
        return results

    def last(self, samples: Sequence[PriceSample]) -> float | None:
        results = self.calculate(samples)
        return results[-1].value if results else None
