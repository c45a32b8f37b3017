"""
StrategyEngine - shared skeleton of the grid, DCA and combo engines.

Every engine owns:
- a cash ledger (``capital``) debited by buys and credited by sells
- an injected order sink, risk gate and clock
- one lock taken for the whole of a step and by every status read

The backtest runner and the live runner drive engines only through this
interface, so both paths execute identical strategy code.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any

from dcagrid.core.models import ZERO, Candle, SimulatedOrder, to_decimal
from dcagrid.core.order_sink import OrderLedger, OrderSink
from dcagrid.core.risk_manager import AllowAllGate, RiskGate
from dcagrid.core.time_provider import LiveTimeProvider, TimeProvider


class StrategyEngine(ABC):
    """Base class for engines driven tick by tick."""

    strategy_name: str = "base"

    def __init__(
        self,
        symbol: str,
        order_sink: OrderSink | None = None,
        risk_gate: RiskGate | None = None,
        time_provider: TimeProvider | None = None,
        initial_capital: Decimal | None = None,
    ):
        """
        Args:
            symbol: Trading pair symbol
            order_sink: Receives emitted orders (default: in-memory ledger)
            risk_gate: Queried before every buy (default: allow all)
            time_provider: Clock used when a step gets no timestamp
            initial_capital: Cash available to the engine. None leaves cash
                unchecked and lets the risk gate alone decide.
        """
        self.symbol = symbol
        self.order_sink: OrderSink = order_sink if order_sink is not None else OrderLedger()
        self.risk_gate: RiskGate = risk_gate if risk_gate is not None else AllowAllGate()
        self.time_provider: TimeProvider = time_provider or LiveTimeProvider()
        self._lock = threading.RLock()
        self._init_ledger(initial_capital)

    def _init_ledger(self, initial_capital: Decimal | None) -> None:
        self.enforce_capital = initial_capital is not None
        self.initial_capital = to_decimal(initial_capital) if initial_capital is not None else ZERO
        self.capital = self.initial_capital
        self.total_fees = ZERO
        self.trade_count = 0
        self.win_count = 0
        self.realized_pnl = ZERO

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    @abstractmethod
    def tick(
        self,
        current_price: Decimal,
        now: datetime | None = None,
        fee_rate: Decimal = ZERO,
    ) -> list[SimulatedOrder]:
        """Run one step at ``current_price`` and return the emitted orders."""

    def evaluate(self, candle: Candle, fee_rate: Decimal = ZERO) -> list[SimulatedOrder]:
        """Run one backtest step on a closed candle."""
        return self.tick(candle.close, now=candle.timestamp, fee_rate=fee_rate)

    @abstractmethod
    def reset(self, initial_capital: Decimal | None = None) -> None:
        """Drop all positions and counters and start over with fresh cash."""

    # ------------------------------------------------------------------
    # Valuation
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def position_quantity(self) -> Decimal:
        """Base-currency quantity currently held."""

    def equity(self, mark_price: Decimal) -> Decimal:
        """Cash plus mark-to-market value of the open position."""
        with self._lock:
            return self.capital + self.position_quantity * to_decimal(mark_price)

    def winning_trades(self, mark_price: Decimal) -> int:
        """Number of winning trades as of ``mark_price``."""
        return self.win_count

    def has_capital_for(self, amount: Decimal) -> bool:
        return not self.enforce_capital or self.capital >= amount

    def _submit(self, orders: list[SimulatedOrder]) -> None:
        for order in orders:
            self.order_sink.submit(order)

    def _now(self, now: datetime | None) -> datetime:
        return now if now is not None else self.time_provider.now()

    @abstractmethod
    def get_status(self) -> dict[str, Any]:
        """Status snapshot, taken under the engine lock."""
