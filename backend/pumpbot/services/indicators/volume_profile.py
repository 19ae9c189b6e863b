"""Volume profile: splits traded volume into buy and sell pressure.

A sample counts as buy volume when its price is above the first sample of the
window, otherwise as sell volume.
"""

from collections.abc import Sequence

from pumpbot.schemas.market import PriceSample
from pumpbot.services.indicators.types import VolumeProfileResult


class VolumeProfile:
    def calculate(self, samples: Sequence[PriceSample]) -> VolumeProfileResult:
        total_volume = sum(s.volume for s in samples)
        if not samples or total_volume <= 0:
            return VolumeProfileResult(buy_pressure=0.0, sell_pressure=0.0, volume_ratio=0.0)

        reference = samples[0].price
        buy_volume = sum(s.volume for s in samples if s.price > reference)
        sell_volume = total_volume - buy_volume
        return VolumeProfileResult(
            buy_pressure=buy_volume / total_volume,
            sell_pressure=sell_volume / total_volume,
            volume_ratio=buy_volume / (sell_volume or 1),
        )
