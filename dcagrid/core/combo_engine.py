"""
ComboEngine - grid and DCA components run side by side on one symbol.

Capital is split between components by normalised allocation weight. Every
component keeps its own cash and positions; the combo steps them in
declaration order and reports the aggregate.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from dcagrid.core.base import StrategyEngine
from dcagrid.core.dca_engine import DCAEngine
from dcagrid.core.grid_engine import GridEngine
from dcagrid.core.models import (
    ZERO,
    Candle,
    ComboConfig,
    DCAConfig,
    GridConfig,
    SimulatedOrder,
    to_decimal,
)
from dcagrid.core.order_sink import OrderSink
from dcagrid.core.risk_manager import RiskGate
from dcagrid.core.time_provider import TimeProvider
from dcagrid.utils.logger import get_logger

logger = get_logger(__name__)


class ComboEngine(StrategyEngine):
    """Composite engine over grid and DCA components."""

    strategy_name = "combo"

    def __init__(
        self,
        config: ComboConfig,
        order_sink: OrderSink | None = None,
        risk_gate: RiskGate | None = None,
        time_provider: TimeProvider | None = None,
        initial_capital: Decimal | None = None,
    ):
        config.validate()
        self.config = config
        super().__init__(
            symbol=config.symbol,
            order_sink=order_sink,
            risk_gate=risk_gate,
            time_provider=time_provider,
            initial_capital=initial_capital,
        )

        total_weight = sum((c.allocation for c in config.components), ZERO)
        self.weights = [c.allocation / total_weight for c in config.components]

        self.components: list[StrategyEngine] = []
        for component, capital in zip(config.components, self._split(initial_capital)):
            self.components.append(self._build_component(component.config, capital))

        logger.info(
            "combo_engine_initialized",
            symbol=config.symbol,
            components=[e.strategy_name for e in self.components],
            weights=[float(w) for w in self.weights],
        )

    def _build_component(
        self, config: GridConfig | DCAConfig, capital: Decimal | None
    ) -> StrategyEngine:
        # Components share the combo's sink, gate and clock
        engine_cls = GridEngine if isinstance(config, GridConfig) else DCAEngine
        return engine_cls(
            config,
            order_sink=self.order_sink,
            risk_gate=self.risk_gate,
            time_provider=self.time_provider,
            initial_capital=capital,
        )

    def _split(self, initial_capital: Decimal | None) -> list[Decimal | None]:
        if initial_capital is None:
            return [None] * len(self.weights)
        capital = to_decimal(initial_capital)
        return [capital * w for w in self.weights]

    def _init_ledger(self, initial_capital: Decimal | None) -> None:
        # Cash, fees and counters live in the components
        self.enforce_capital = initial_capital is not None
        self.initial_capital = to_decimal(initial_capital) if initial_capital is not None else ZERO

    def reset(self, initial_capital: Decimal | None = None) -> None:
        with self._lock:
            self._init_ledger(initial_capital)
            for engine, capital in zip(self.components, self._split(initial_capital)):
                engine.reset(capital)

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    @property
    def capital(self) -> Decimal:
        return sum((e.capital for e in self.components), ZERO)

    @property
    def total_fees(self) -> Decimal:
        return sum((e.total_fees for e in self.components), ZERO)

    @property
    def trade_count(self) -> int:
        return sum(e.trade_count for e in self.components)

    @property
    def win_count(self) -> int:
        return sum(e.win_count for e in self.components)

    @property
    def realized_pnl(self) -> Decimal:
        return sum((e.realized_pnl for e in self.components), ZERO)

    @property
    def position_quantity(self) -> Decimal:
        with self._lock:
            return sum((e.position_quantity for e in self.components), ZERO)

    def equity(self, mark_price: Decimal) -> Decimal:
        with self._lock:
            return sum((e.equity(mark_price) for e in self.components), ZERO)

    def winning_trades(self, mark_price: Decimal) -> int:
        with self._lock:
            return sum(e.winning_trades(mark_price) for e in self.components)

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def tick(
        self,
        current_price: Decimal,
        now: datetime | None = None,
        fee_rate: Decimal = ZERO,
    ) -> list[SimulatedOrder]:
        with self._lock:
            if not self.config.enabled:
                return []
            orders: list[SimulatedOrder] = []
            for engine in self.components:
                orders.extend(engine.tick(current_price, now=now, fee_rate=fee_rate))
            return orders

    def evaluate(self, candle: Candle, fee_rate: Decimal = ZERO) -> list[SimulatedOrder]:
        with self._lock:
            if not self.config.enabled:
                return []
            orders: list[SimulatedOrder] = []
            for engine in self.components:
                orders.extend(engine.evaluate(candle, fee_rate))
            return orders

    def get_status(self) -> dict[str, Any]:
        with self._lock:
            return {
                "symbol": self.symbol,
                "strategy": self.strategy_name,
                "enabled": self.config.enabled,
                "capital": float(self.capital),
                "trade_count": self.trade_count,
                "total_fees": float(self.total_fees),
                "components": [
                    {"weight": float(w), **engine.get_status()}
                    for w, engine in zip(self.weights, self.components)
                ],
            }
