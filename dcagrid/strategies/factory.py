"""
Strategy factory - builds the engine for a strategy configuration.

Configurations are a closed set of variants (grid, DCA, combo); each is
validated once when its engine is constructed.
"""

from decimal import Decimal

from dcagrid.core.base import StrategyEngine
from dcagrid.core.combo_engine import ComboEngine
from dcagrid.core.dca_engine import DCAEngine
from dcagrid.core.grid_engine import GridEngine
from dcagrid.core.models import (
    ComboConfig,
    ConfigError,
    DCAConfig,
    GridConfig,
    StrategyConfig,
)
from dcagrid.core.order_sink import OrderSink
from dcagrid.core.risk_manager import RiskGate
from dcagrid.core.time_provider import TimeProvider
from dcagrid.utils.logger import get_logger

logger = get_logger(__name__)

_ENGINES: dict[type, type[StrategyEngine]] = {
    GridConfig: GridEngine,
    DCAConfig: DCAEngine,
    ComboConfig: ComboEngine,
}


def strategy_type_of(config: StrategyConfig) -> str:
    """Name of the variant ('grid', 'dca' or 'combo')."""
    engine_cls = _ENGINES.get(type(config))
    if engine_cls is None:
        raise ConfigError(f"unsupported strategy config: {type(config).__name__}")
    return engine_cls.strategy_name


def create_engine(
    config: StrategyConfig,
    order_sink: OrderSink | None = None,
    risk_gate: RiskGate | None = None,
    time_provider: TimeProvider | None = None,
    initial_capital: Decimal | None = None,
) -> StrategyEngine:
    """
    Create the engine matching ``config``.

    Raises:
        ConfigError: If the config type is unknown or its values are invalid
    """
    engine_cls = _ENGINES.get(type(config))
    if engine_cls is None:
        raise ConfigError(f"unsupported strategy config: {type(config).__name__}")

    engine = engine_cls(
        config,
        order_sink=order_sink,
        risk_gate=risk_gate,
        time_provider=time_provider,
        initial_capital=initial_capital,
    )
    logger.debug("engine_created", strategy=engine.strategy_name, symbol=engine.symbol)
    return engine
