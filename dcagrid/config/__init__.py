"""Configuration management modules"""

from dcagrid.config.manager import ConfigManager
from dcagrid.config.schemas import (
    AppConfig,
    BacktestSettings,
    BotConfig,
    ComboComponentConfig,
    ComboStrategyConfig,
    DCAStrategyConfig,
    GridStrategyConfig,
    RiskManagementConfig,
    StrategyType,
    parse_duration,
)

__all__ = [
    "ConfigManager",
    "AppConfig",
    "BacktestSettings",
    "BotConfig",
    "ComboComponentConfig",
    "ComboStrategyConfig",
    "DCAStrategyConfig",
    "GridStrategyConfig",
    "RiskManagementConfig",
    "StrategyType",
    "parse_duration",
]
