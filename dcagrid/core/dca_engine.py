"""
DCAEngine - Dollar Cost Averaging strategy implementation
Handles interval pacing, investment caps and position averaging
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from dcagrid.core.base import StrategyEngine
from dcagrid.core.models import (
    ZERO,
    DCAConfig,
    DCAState,
    OrderSide,
    SimulatedOrder,
    to_decimal,
)
from dcagrid.core.order_sink import OrderSink
from dcagrid.core.risk_manager import RiskGate
from dcagrid.core.time_provider import TimeProvider
from dcagrid.utils.logger import get_logger

logger = get_logger(__name__)


class DCAEngine(StrategyEngine):
    """
    Dollar Cost Averaging engine implementation.

    Features:
    - Buy a fixed quote amount once per interval
    - Stop buying after max_investments buys
    - Optional price ceiling above which buys are held
    - Quantity-weighted average entry price across all buys
    """

    strategy_name = "dca"

    def __init__(
        self,
        config: DCAConfig,
        order_sink: OrderSink | None = None,
        risk_gate: RiskGate | None = None,
        time_provider: TimeProvider | None = None,
        initial_capital: Decimal | None = None,
    ):
        """
        Initialize DCA Engine.

        Args:
            config: DCA configuration, validated here
            order_sink: Receives emitted orders
            risk_gate: Queried before every buy
            time_provider: Clock used when a step gets no timestamp
            initial_capital: Cash available for buys

        Raises:
            ConfigError: If the configuration is invalid
        """
        config.validate()
        super().__init__(
            symbol=config.symbol,
            order_sink=order_sink,
            risk_gate=risk_gate,
            time_provider=time_provider,
            initial_capital=initial_capital,
        )
        self.config = config
        self.state = DCAState()

        logger.info(
            "dca_engine_initialized",
            symbol=config.symbol,
            investment_amount=float(config.investment_amount),
            interval_seconds=config.interval.total_seconds(),
            max_investments=config.max_investments,
        )

    def reset(self, initial_capital: Decimal | None = None) -> None:
        with self._lock:
            self._init_ledger(initial_capital)
            self.state = DCAState()

    @property
    def position_quantity(self) -> Decimal:
        with self._lock:
            return self.state.total_quantity

    def step(
        self,
        current_price: Decimal,
        now: datetime | None = None,
        fee_rate: Decimal = ZERO,
    ) -> SimulatedOrder | None:
        """
        Decide whether to buy at ``current_price``.

        Holds are checked in order: disabled, interval not elapsed, cap
        reached, price above threshold, insufficient cash, risk gate denial.

        Args:
            current_price: Current market price
            now: Step time (default: engine clock)
            fee_rate: Fee charged on the invested amount

        Returns:
            The buy order, or None on hold
        """
        price = to_decimal(current_price)
        fee_rate = to_decimal(fee_rate)

        with self._lock:
            now = self._now(now)
            reason = self._hold_reason(price, now)
            if reason is not None:
                logger.debug("dca_hold", symbol=self.symbol, reason=reason)
                return None

            amount = self.config.investment_amount
            if not self.has_capital_for(amount):
                logger.debug("dca_hold", symbol=self.symbol, reason="insufficient_capital")
                return None
            if not self.risk_gate.can_trade(amount, self.symbol):
                logger.debug("dca_hold", symbol=self.symbol, reason="risk_gate")
                return None

            fee = amount * fee_rate
            quantity = (amount - fee) / price

            state = self.state
            state.average_price = (state.total_invested + amount) / (
                state.total_quantity + quantity
            )
            state.total_invested += amount
            state.total_quantity += quantity
            state.buy_count += 1
            state.last_buy_timestamp = now

            self.capital -= amount
            self.total_fees += fee
            self.trade_count += 1

            logger.info(
                "dca_buy",
                symbol=self.symbol,
                buy_number=state.buy_count,
                price=float(price),
                quantity=float(quantity),
                average_price=float(state.average_price),
            )

            order = SimulatedOrder(
                symbol=self.symbol,
                side=OrderSide.BUY,
                quantity=quantity,
                price=price,
                fee=fee,
                timestamp=now,
            )
            self._submit([order])
            return order

    def _hold_reason(self, price: Decimal, now: datetime) -> str | None:
        if not self.config.enabled:
            return "disabled"
        last = self.state.last_buy_timestamp
        if last is not None and now - last < self.config.interval:
            return "interval"
        if self.state.buy_count >= self.config.max_investments:
            return "max_investments"
        if self.config.price_threshold > 0 and price > self.config.price_threshold:
            return "price_threshold"
        return None

    def tick(
        self,
        current_price: Decimal,
        now: datetime | None = None,
        fee_rate: Decimal = ZERO,
    ) -> list[SimulatedOrder]:
        order = self.step(current_price, now=now, fee_rate=fee_rate)
        return [order] if order is not None else []

    def winning_trades(self, mark_price: Decimal) -> int:
        """All buys count as wins while the mark is above the average price."""
        with self._lock:
            if self.state.is_active and to_decimal(mark_price) > self.state.average_price:
                return self.trade_count
            return 0

    def get_pnl(self, current_price: Decimal) -> Decimal:
        """Unrealized profit/loss of the accumulated position."""
        with self._lock:
            return self.state.total_quantity * to_decimal(current_price) - self.state.total_invested

    def get_status(self) -> dict[str, Any]:
        """
        Get current DCA status.

        Returns:
            Dictionary with pacing state and totals
        """
        with self._lock:
            last = self.state.last_buy_timestamp
            return {
                "symbol": self.symbol,
                "strategy": self.strategy_name,
                "enabled": self.config.enabled,
                "active": self.state.is_active,
                "buy_count": self.state.buy_count,
                "max_investments": self.config.max_investments,
                "total_invested": float(self.state.total_invested),
                "total_quantity": float(self.state.total_quantity),
                "average_price": float(self.state.average_price),
                "last_buy_timestamp": last.isoformat() if last else None,
                "capital": float(self.capital),
                "total_fees": float(self.total_fees),
            }
