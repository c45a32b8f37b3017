"""Tests for the in-memory order ledger"""

from decimal import Decimal

from dcagrid.core.models import OrderSide, SimulatedOrder
from dcagrid.core.order_sink import OrderLedger, OrderSink


def order(side: OrderSide, fee: str = "0") -> SimulatedOrder:
    return SimulatedOrder(
        symbol="BTCUSDT",
        side=side,
        quantity=Decimal("0.01"),
        price=Decimal("40000"),
        fee=Decimal(fee),
    )


def test_ledger_is_order_sink():
    assert isinstance(OrderLedger(), OrderSink)


def test_ledger_splits_sides_and_sums_fees():
    ledger = OrderLedger()
    ledger.submit(order(OrderSide.BUY, "0.4"))
    ledger.submit(order(OrderSide.SELL, "0.5"))
    ledger.submit(order(OrderSide.BUY, "0.1"))

    assert len(ledger) == 3
    assert len(ledger.buys) == 2
    assert len(ledger.sells) == 1
    assert ledger.total_fees == Decimal("1.0")


def test_clear():
    ledger = OrderLedger()
    ledger.submit(order(OrderSide.BUY))

    ledger.clear()

    assert len(ledger) == 0
    assert ledger.total_fees == 0
