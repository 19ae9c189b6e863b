"""Bid/ask depth proxy from trade-tape samples.

This is not an order book: volume traded below the latest price counts as bid
depth, volume traded above it as ask depth.
"""

from collections.abc import Sequence

from pumpbot.schemas.market import PriceSample
from pumpbot.services.indicators.types import MarketDepthResult


class MarketDepth:
    def calculate(self, samples: Sequence[PriceSample]) -> MarketDepthResult:
        if not samples:
            return MarketDepthResult(bid_depth=0.0, ask_depth=0.0, ratio=0.0)

        current_price = samples[-1].price
        bid_volume = sum(s.volume for s in samples if s.price < current_price)
        ask_volume = sum(s.volume for s in samples if s.price > current_price)
        return MarketDepthResult(
            bid_depth=bid_volume,
            ask_depth=ask_volume,
            ratio=bid_volume / (ask_volume or 1),
        )
