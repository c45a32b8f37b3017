"""Tests for the strategy factory"""

from decimal import Decimal

import pytest

from dcagrid.core.combo_engine import ComboEngine
from dcagrid.core.dca_engine import DCAEngine
from dcagrid.core.grid_engine import GridEngine
from dcagrid.core.models import ComboComponent, ComboConfig, ConfigError, GridConfig
from dcagrid.core.order_sink import OrderLedger
from dcagrid.strategies import create_engine, strategy_type_of


class TestCreateEngine:
    def test_grid(self, grid_config):
        engine = create_engine(grid_config)

        assert isinstance(engine, GridEngine)
        assert strategy_type_of(grid_config) == "grid"

    def test_dca(self, dca_config):
        engine = create_engine(dca_config, initial_capital=Decimal("500"))

        assert isinstance(engine, DCAEngine)
        assert engine.capital == Decimal("500")
        assert strategy_type_of(dca_config) == "dca"

    def test_combo(self, grid_config, dca_config):
        config = ComboConfig(
            symbol="BTCUSDT",
            components=[ComboComponent(grid_config), ComboComponent(dca_config)],
        )

        engine = create_engine(config, initial_capital=Decimal("1000"))

        assert isinstance(engine, ComboEngine)
        assert strategy_type_of(config) == "combo"
        assert engine.capital == Decimal("1000")

    def test_injected_collaborators(self, dca_config, deny_all_gate):
        sink = OrderLedger()

        engine = create_engine(dca_config, order_sink=sink, risk_gate=deny_all_gate)

        assert engine.order_sink is sink
        assert engine.risk_gate is deny_all_gate

    def test_invalid_config_is_rejected(self):
        config = GridConfig(
            symbol="BTCUSDT",
            lower_price=Decimal("50000"),
            upper_price=Decimal("40000"),
            grid_levels=5,
            investment_per_level=Decimal("100"),
        )

        with pytest.raises(ConfigError, match="upper_price must be greater"):
            create_engine(config)

    def test_unknown_config_type(self):
        with pytest.raises(ConfigError, match="unsupported strategy config"):
            create_engine(object())

        with pytest.raises(ConfigError, match="unsupported strategy config"):
            strategy_type_of("grid")
