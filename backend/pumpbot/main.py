from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pumpbot import __version__
from pumpbot.api.strategy import get_strategy, router as strategy_router
from pumpbot.config import Settings, settings
from pumpbot.services.jupiter_client import JupiterPriceClient
from pumpbot.services.listing_stream import ListingStream
from pumpbot.services.pumpportal_client import PumpPortalSwapClient
from pumpbot.services.rugcheck_client import RugCheckClient
from pumpbot.services.solana_client import SolanaRpcClient
from pumpbot.services.trade_log import TradeJournal
from pumpbot.services.trading_strategy.pump_fun_strategy import PumpFunStrategy


def build_strategy(config: Settings = settings) -> PumpFunStrategy:
    rpc_client = SolanaRpcClient(config.rpc_http_url, config.tx)
    return PumpFunStrategy(
        listing_feed=ListingStream(config.rpc_ws_url, config.pump_fun_program_id),
        tx_fetcher=rpc_client,
        balance_query=rpc_client,
        safety_checker=RugCheckClient(config.rugcheck_base_url, config.rug_check),
        price_service=JupiterPriceClient(config.jupiter_price_url),
        swap_executor=PumpPortalSwapClient(
            config.pumpportal_api_key, config.pumpportal_trade_url, config.swap
        ),
        config=config,
        journal=TradeJournal(config.trade_log_dir),
    )


strategy = build_strategy()


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    await strategy.start()
    try:
        yield
    finally:
        await strategy.cleanup()


app = FastAPI(title=settings.app_name, version=__version__, lifespan=lifespan)


@app.get("/healthz")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(strategy_router)
app.dependency_overrides[get_strategy] = lambda: strategy
