from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

from pumpbot.errors import ConfigurationError

LAMPORTS_PER_SOL = 1_000_000_000


class RSISettings(BaseModel):
    period: int = 14
    oversold: float = 30
    overbought: float = 70


class MACDSettings(BaseModel):
    fast_period: int = 12
    slow_period: int = 26
    signal_period: int = 9
    buy_threshold: float = 0.02
    sell_threshold: float = -0.02


class MovingAverageSettings(BaseModel):
    short_period: int = 10
    long_period: int = 21


class VolumeProfileSettings(BaseModel):
    buy_pressure_threshold: float = 0.6
    sell_pressure_threshold: float = 0.4


class MarketDepthSettings(BaseModel):
    min_bid_ask_ratio: float = 1.2


class VolatilitySettings(BaseModel):
    period: int = 14
    multiplier: float = 2.0


class StrategySettings(BaseModel):
    enabled: bool = True
    minimum_sol_balance: float = 0.1
    rsi: RSISettings = RSISettings()
    macd: MACDSettings = MACDSettings()
    moving_average: MovingAverageSettings = MovingAverageSettings()
    volume_profile: VolumeProfileSettings = VolumeProfileSettings()
    market_depth: MarketDepthSettings = MarketDepthSettings()
    volatility: VolatilitySettings = VolatilitySettings()
    max_concurrent_trades: int = 3
    price_check_interval_ms: int = 5000
    # Warm-up before the first evaluation of a fresh listing
    warmup_delay_ms: int = 5000
    warmup_samples: int = 3
    warmup_sample_delay_ms: int = 2000
    # Rolling per-token window fed to the indicators while holding
    sample_window: int = 50


class TxSettings(BaseModel):
    fetch_tx_max_retries: int = 10
    fetch_tx_initial_delay_ms: int = 3000
    retry_delay_ms: int = 500
    fetch_tx_timeout_ms: int = 15000
    get_timeout_ms: int = 10000


class SwapSettings(BaseModel):
    amount_sol: float = 0.01
    slippage_percent: float = 2
    priority_fee_sol: float = 0.001
    pool: str = "pump"


class RugCheckSettings(BaseModel):
    simulation_mode: bool = True
    # Dangerous
    allow_mint_authority: bool = False
    allow_freeze_authority: bool = False
    allow_rugged: bool = False
    # Critical
    allow_mutable: bool = False
    allow_insider_topholders: bool = False
    max_allowed_pct_topholders: float = 1
    exclude_lp_from_topholders: bool = False
    block_symbols: list[str] = ["XXX"]
    block_names: list[str] = ["XXX"]
    # Warning
    min_total_market_liquidity: float = 0
    # 0 disables the score check
    max_score: int = 1
    legacy_not_allowed: list[str] = [
        "Low Liquidity",
        "Single holder ownership",
        "High holder concentration",
        "Freeze Authority still enabled",
        "Large Amount of LP Unlocked",
        "Copycat token",
        "Low amount of LP Providers",
    ]


class Settings(BaseSettings):
    app_name: str = "PumpFun Trading Agent"
    log_level: str = "INFO"
    api_host: str = "127.0.0.1"
    api_port: int = 9000
    trade_log_dir: str = "logs/trades"

    rpc_http_url: str = ""
    rpc_ws_url: str = ""
    wallet_address: str = ""
    pumpportal_api_key: str = ""
    pumpportal_trade_url: str = "https://pumpportal.fun/api/trade"
    jupiter_price_url: str = "https://api.jup.ag/price/v2"
    rugcheck_base_url: str = "https://api.rugcheck.xyz/v1"
    pump_fun_program_id: str = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"
    wsol_mint: str = "So11111111111111111111111111111111111111112"

    strategy: StrategySettings = StrategySettings()
    tx: TxSettings = TxSettings()
    swap: SwapSettings = SwapSettings()
    rug_check: RugCheckSettings = RugCheckSettings()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )


def validate_runtime(config: Settings) -> None:
    """Fail fast when identifiers needed to talk to the chain are missing.

    Only called at startup; the caller reports the error and exits.
    """
    missing = [
        name
        for name in ("rpc_http_url", "rpc_ws_url", "wallet_address")
        if not getattr(config, name)
    ]
    if not config.rug_check.simulation_mode and not config.pumpportal_api_key:
        missing.append("pumpportal_api_key")
    if missing:
        raise ConfigurationError(
            f"Missing required configuration: {', '.join(missing)}"
        )


settings = Settings()
