"""Core trading logic modules"""

from dcagrid.core.base import StrategyEngine
from dcagrid.core.combo_engine import ComboEngine
from dcagrid.core.dca_engine import DCAEngine
from dcagrid.core.grid_engine import GridEngine, calculate_grid_levels
from dcagrid.core.models import (
    Candle,
    ComboComponent,
    ComboConfig,
    ConfigError,
    DCAConfig,
    DCAState,
    GridConfig,
    GridLevel,
    GridSpacing,
    LevelPosition,
    OrderSide,
    SimulatedOrder,
    StrategyConfig,
)
from dcagrid.core.order_sink import OrderLedger, OrderSink
from dcagrid.core.risk_manager import AllowAllGate, RiskCheckResult, RiskGate, RiskManager

__all__ = [
    "StrategyEngine",
    "GridEngine",
    "calculate_grid_levels",
    "DCAEngine",
    "ComboEngine",
    "Candle",
    "ComboComponent",
    "ComboConfig",
    "ConfigError",
    "DCAConfig",
    "DCAState",
    "GridConfig",
    "GridLevel",
    "GridSpacing",
    "LevelPosition",
    "OrderSide",
    "SimulatedOrder",
    "StrategyConfig",
    "OrderSink",
    "OrderLedger",
    "RiskGate",
    "AllowAllGate",
    "RiskManager",
    "RiskCheckResult",
]
