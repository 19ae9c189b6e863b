from pydantic import BaseModel, ConfigDict


class PriceSample(BaseModel):
    """One price/volume observation for a token. Timestamp is unix milliseconds."""

    model_config = ConfigDict(frozen=True)

    price: float
    volume: float
    high: float
    low: float
    timestamp: int


class NewListingEvent(BaseModel):
    """A token creation seen on the pump.fun program."""

    token_id: str
    creator_id: str
    signature: str
    slot: int
    name: str = ""
    symbol: str = ""
    bonding_curve: str = ""
