"""Indicator result records. All are plain values with no identity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class MovingAverageResult:
    value: float
    timestamp: int


@dataclass(frozen=True)
class RSIResult:
    value: float
    overbought: bool
    oversold: bool


@dataclass(frozen=True)
class MACDResult:
    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class VolumeProfileResult:
    buy_pressure: float
    sell_pressure: float
    volume_ratio: float


@dataclass(frozen=True)
class MarketDepthResult:
    bid_depth: float
    ask_depth: float
    ratio: float


@dataclass(frozen=True)
class VolatilityResult:
    value: float
    is_high: bool


@dataclass(frozen=True)
class StochasticResult:
    k: float
    d: float


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Every indicator the strategy looks at, computed over one sample window."""

    rsi: RSIResult
    macd: MACDResult
    volume: VolumeProfileResult
    depth: MarketDepthResult
    volatility: VolatilityResult
    stochastic: StochasticResult
    ma_short: float | None  # None while the window is shorter than the period
    ma_long: float | None
    sample_count: int
