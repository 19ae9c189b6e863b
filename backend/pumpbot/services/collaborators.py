"""Contracts for the external services the strategy talks to."""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from pumpbot.schemas.market import NewListingEvent, PriceSample
from pumpbot.schemas.trading import SellResult

ListingCallback = Callable[[NewListingEvent], Awaitable[None]]


class ListingFeed(Protocol):
    def subscribe(self, callback: ListingCallback) -> int: ...

    async def unsubscribe(self, subscription_id: int) -> None: ...


class TransactionFetcher(Protocol):
    async def fetch_transaction_details(self, signature: str) -> dict[str, Any] | None: ...


class BalanceQuery(Protocol):
    async def get_balance(self, wallet: str) -> int: ...


class SafetyChecker(Protocol):
    async def check(self, token_id: str) -> bool: ...


class PriceQuoteService(Protocol):
    async def get_samples(self, token_id: str) -> list[PriceSample]: ...

    async def get_current_price(self, token_id: str) -> float | None: ...


class SwapExecutor(Protocol):
    async def buy(self, token_id: str, amount_sol: float) -> str | None: ...

    async def sell(self, token_id: str, amount: float) -> SellResult: ...
