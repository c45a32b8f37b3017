"""
OrderSink - where engines deliver the orders they emit.

Both the live order-placement adapter and the backtest's in-memory ledger
implement the same protocol, so engines never know which one they feed.
"""

from decimal import Decimal
from typing import Protocol, runtime_checkable

from dcagrid.core.models import ZERO, OrderSide, SimulatedOrder


@runtime_checkable
class OrderSink(Protocol):
    """Receives every order an engine step emits."""

    def submit(self, order: SimulatedOrder) -> None:
        ...


class OrderLedger:
    """In-memory order sink used by backtests and dry runs."""

    def __init__(self) -> None:
        self.orders: list[SimulatedOrder] = []

    def submit(self, order: SimulatedOrder) -> None:
        self.orders.append(order)

    @property
    def buys(self) -> list[SimulatedOrder]:
        return [o for o in self.orders if o.side == OrderSide.BUY]

    @property
    def sells(self) -> list[SimulatedOrder]:
        return [o for o in self.orders if o.side == OrderSide.SELL]

    @property
    def total_fees(self) -> Decimal:
        return sum((o.fee for o in self.orders), ZERO)

    def clear(self) -> None:
        self.orders.clear()

    def __len__(self) -> int:
        return len(self.orders)
