import pytest

from pumpbot.config import RugCheckSettings, Settings, validate_runtime
from pumpbot.errors import ConfigurationError


def test_defaults():
    config = Settings(_env_file=None)
    assert config.strategy.minimum_sol_balance == 0.1
    assert config.strategy.max_concurrent_trades == 3
    assert config.strategy.rsi.period == 14
    assert config.strategy.macd.buy_threshold == 0.02
    assert config.rug_check.simulation_mode is True


def test_nested_env_override(monkeypatch):
    monkeypatch.setenv("STRATEGY__RSI__PERIOD", "7")
    monkeypatch.setenv("RUG_CHECK__SIMULATION_MODE", "false")
    config = Settings(_env_file=None)
    assert config.strategy.rsi.period == 7
    assert config.strategy.rsi.oversold == 30
    assert config.rug_check.simulation_mode is False


def test_validate_runtime_lists_missing_values():
    config = Settings(_env_file=None, rpc_http_url="", rpc_ws_url="", wallet_address="")
    with pytest.raises(ConfigurationError) as excinfo:
        validate_runtime(config)
    assert "rpc_http_url" in str(excinfo.value)
    assert "wallet_address" in str(excinfo.value)


def test_live_trading_needs_api_key():
    config = Settings(
        _env_file=None,
        rpc_http_url="http://rpc",
        rpc_ws_url="ws://rpc",
        wallet_address="wallet",
        pumpportal_api_key="",
        rug_check=RugCheckSettings(simulation_mode=False),
    )
    with pytest.raises(ConfigurationError, match="pumpportal_api_key"):
        validate_runtime(config)

    config.rug_check.simulation_mode = True
    validate_runtime(config)
