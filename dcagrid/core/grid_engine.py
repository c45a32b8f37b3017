"""
GridEngine - Grid trading strategy implementation
Handles grid level calculation, per-level buy/sell decisions and adaptive rebalancing
"""

from collections import deque
from datetime import datetime
from decimal import Decimal
from typing import Any

from dcagrid.core.base import StrategyEngine
from dcagrid.core.indicators import average_true_range
from dcagrid.core.models import (
    ZERO,
    Candle,
    GridConfig,
    GridLevel,
    GridSpacing,
    LevelPosition,
    OrderSide,
    SimulatedOrder,
    to_decimal,
)
from dcagrid.core.order_sink import OrderSink
from dcagrid.core.risk_manager import RiskGate
from dcagrid.core.time_provider import TimeProvider
from dcagrid.utils.logger import get_logger

logger = get_logger(__name__)


def calculate_grid_levels(
    lower_price: Decimal,
    upper_price: Decimal,
    grid_levels: int,
    spacing: GridSpacing = GridSpacing.ARITHMETIC,
) -> list[Decimal]:
    """
    Calculate grid price levels.

    Returns:
        Ascending list of ``grid_levels`` prices; the first equals
        ``lower_price`` and the last equals ``upper_price``.
    """
    if grid_levels < 2:
        raise ValueError("grid_levels must be at least 2")
    if upper_price <= lower_price:
        raise ValueError("upper_price must be greater than lower_price")

    last = grid_levels - 1
    if spacing == GridSpacing.GEOMETRIC:
        ratio = (upper_price / lower_price) ** (Decimal(1) / Decimal(last))
        levels = [lower_price * ratio**i for i in range(grid_levels)]
    else:
        step = (upper_price - lower_price) / last
        levels = [lower_price + step * i for i in range(grid_levels)]

    # Pin the endpoints so rounding never moves the bounds
    levels[0] = lower_price
    levels[last] = upper_price
    return levels


class GridEngine(StrategyEngine):
    """
    Grid trading engine implementation.

    Features:
    - Partition [lower_price, upper_price] into arithmetic or geometric levels
    - Buy once per empty level when price is at or below it
    - Sell a filled level once price reaches the next level up
    - Optional ATR-adaptive spacing that rebuilds the level set
    - Optional reinvestment of booked profit into the per-level order size
    - Track realized PnL, volume, fees and win count
    """

    strategy_name = "grid"

    def __init__(
        self,
        config: GridConfig,
        order_sink: OrderSink | None = None,
        risk_gate: RiskGate | None = None,
        time_provider: TimeProvider | None = None,
        initial_capital: Decimal | None = None,
    ):
        """
        Initialize Grid Engine.

        Args:
            config: Grid configuration, validated here
            order_sink: Receives emitted orders
            risk_gate: Queried before every buy
            time_provider: Clock for order timestamps
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
        self._reset_state()

        logger.info(
            "grid_engine_initialized",
            symbol=config.symbol,
            lower_price=float(config.lower_price),
            upper_price=float(config.upper_price),
            grid_levels=config.grid_levels,
            spacing=config.spacing.value,
            adaptive=config.adaptive_spacing,
        )

    def _reset_state(self) -> None:
        self.levels: list[Decimal] = calculate_grid_levels(
            self.config.lower_price,
            self.config.upper_price,
            self.config.grid_levels,
            self.config.spacing,
        )
        # Keyed by level price so a rebuild can tell surviving levels apart
        self.positions: dict[Decimal, LevelPosition] = {
            price: LevelPosition() for price in self.levels
        }
        self._candles: deque[Candle] = deque(maxlen=self.config.atr_period + 1)

        # Statistics
        self.buy_count = 0
        self.sell_count = 0
        self.total_volume = ZERO
        self.total_profit = ZERO
        self.total_loss = ZERO
        self.rebalance_count = 0
        self.investment_per_level = self.config.investment_per_level
        self.reinvested_total = ZERO

    def reset(self, initial_capital: Decimal | None = None) -> None:
        with self._lock:
            self._init_ledger(initial_capital)
            self._reset_state()

    @property
    def level_count(self) -> int:
        return len(self.levels)

    @property
    def position_quantity(self) -> Decimal:
        with self._lock:
            return sum((p.quantity for p in self.positions.values()), ZERO)

    def is_price_in_range(self, price: Decimal) -> bool:
        return self.config.lower_price <= price <= self.config.upper_price

    # ------------------------------------------------------------------
    # Step
    # ------------------------------------------------------------------

    def step(
        self,
        current_price: Decimal,
        fee_rate: Decimal = ZERO,
        now: datetime | None = None,
    ) -> tuple[list[SimulatedOrder], Decimal]:
        """
        Evaluate every level at ``current_price``.

        Args:
            current_price: Current market price
            fee_rate: Fee charged on each order's notional (0.001 = 0.1%)
            now: Order timestamp (default: engine clock)

        Returns:
            Tuple of (emitted orders, realized PnL booked by this step)
        """
        price = to_decimal(current_price)
        fee_rate = to_decimal(fee_rate)

        with self._lock:
            if not self.config.enabled:
                return [], ZERO

            if not self.is_price_in_range(price):
                logger.debug(
                    "price_outside_grid",
                    symbol=self.symbol,
                    price=float(price),
                    lower=float(self.config.lower_price),
                    upper=float(self.config.upper_price),
                )
                return [], ZERO

            timestamp = self._now(now)
            orders: list[SimulatedOrder] = []
            realized = ZERO

            for idx, level_price in enumerate(self.levels):
                position = self.positions[level_price]

                if price <= level_price and position.is_empty:
                    order = self._buy_level(idx, level_price, price, fee_rate, timestamp)
                    if order is not None:
                        orders.append(order)

                if (
                    not position.is_empty
                    and idx + 1 < len(self.levels)
                    and price >= self.levels[idx + 1]
                ):
                    order, pnl = self._sell_level(idx, level_price, price, fee_rate, timestamp)
                    orders.append(order)
                    realized += pnl

            self._submit(orders)
            return orders, realized

    def tick(
        self,
        current_price: Decimal,
        now: datetime | None = None,
        fee_rate: Decimal = ZERO,
    ) -> list[SimulatedOrder]:
        orders, _ = self.step(current_price, fee_rate=fee_rate, now=now)
        return orders

    def evaluate(self, candle: Candle, fee_rate: Decimal = ZERO) -> list[SimulatedOrder]:
        orders = self.observe(candle, fee_rate)
        orders.extend(self.tick(candle.close, now=candle.timestamp, fee_rate=fee_rate))
        return orders

    def _buy_level(
        self,
        idx: int,
        level_price: Decimal,
        price: Decimal,
        fee_rate: Decimal,
        timestamp: datetime,
    ) -> SimulatedOrder | None:
        amount = self.investment_per_level

        if not self.has_capital_for(amount):
            logger.debug("insufficient_capital", level_index=idx, capital=float(self.capital))
            return None
        if not self.risk_gate.can_trade(amount, self.symbol):
            logger.debug("buy_denied_by_risk_gate", level_index=idx, amount=float(amount))
            return None

        fee = amount * fee_rate
        quantity = (amount - fee) / price
        self.positions[level_price] = LevelPosition(quantity=quantity, average_entry_price=price)
        self.capital -= amount

        self.buy_count += 1
        self.trade_count += 1
        self.total_fees += fee
        self.total_volume += amount

        logger.info(
            "grid_buy",
            symbol=self.symbol,
            level_index=idx,
            level_price=float(level_price),
            price=float(price),
            quantity=float(quantity),
        )

        return SimulatedOrder(
            symbol=self.symbol,
            side=OrderSide.BUY,
            quantity=quantity,
            price=price,
            fee=fee,
            timestamp=timestamp,
            level=idx,
        )

    def _sell_level(
        self,
        idx: int,
        level_price: Decimal,
        price: Decimal,
        fee_rate: Decimal,
        timestamp: datetime,
        reason: str = "",
    ) -> tuple[SimulatedOrder, Decimal]:
        position = self.positions[level_price]
        quantity = position.quantity
        proceeds = quantity * price
        fee = proceeds * fee_rate
        pnl = (price - position.average_entry_price) * quantity

        self.capital += proceeds - fee
        self.positions[level_price] = LevelPosition()

        self.sell_count += 1
        self.trade_count += 1
        self.total_fees += fee
        self.total_volume += proceeds
        self.realized_pnl += pnl
        if price >= position.average_entry_price:
            self.win_count += 1
        if pnl >= 0:
            self.total_profit += pnl
        else:
            self.total_loss += -pnl
        if pnl > 0:
            self._reinvest(pnl)

        logger.info(
            "grid_sell",
            symbol=self.symbol,
            level_index=idx,
            price=float(price),
            quantity=float(quantity),
            pnl=float(pnl),
            reason=reason or "level_crossed",
        )

        order = SimulatedOrder(
            symbol=self.symbol,
            side=OrderSide.SELL,
            quantity=quantity,
            price=price,
            fee=fee,
            timestamp=timestamp,
            level=idx,
            reason=reason,
            entry_price=position.average_entry_price,
        )
        return order, pnl

    def _reinvest(self, profit: Decimal) -> None:
        """Grow the per-level order size by a share of a booked profit."""
        rate = self.config.reinvest_rate
        if rate <= 0 or profit < self.config.reinvest_threshold:
            return

        amount = profit * rate
        grid_capital = self.investment_per_level * len(self.levels)
        self.investment_per_level *= 1 + amount / grid_capital
        self.reinvested_total += amount

        logger.info(
            "grid_profit_reinvested",
            symbol=self.symbol,
            amount=float(amount),
            investment_per_level=float(self.investment_per_level),
        )

    # ------------------------------------------------------------------
    # Adaptive spacing
    # ------------------------------------------------------------------

    def observe(self, candle: Candle, fee_rate: Decimal = ZERO) -> list[SimulatedOrder]:
        """
        Feed a closed candle to the adaptive-spacing logic.

        Once ``atr_period + 1`` candles are buffered, the spacing becomes
        ATR x adaptive_factor (clamped) and the level count is re-derived
        from it, bounded by min_levels and max_levels. The level set is
        rebuilt only when that count changes.

        Returns:
            Forced-close sell orders for positions on removed levels
        """
        if not self.config.adaptive_spacing:
            return []

        with self._lock:
            self._candles.append(candle)
            if len(self._candles) < self.config.atr_period + 1:
                return []

            atr = average_true_range(list(self._candles), self.config.atr_period)
            if atr <= 0:
                return []

            spacing = atr * self.config.adaptive_factor
            if self.config.min_spacing > 0:
                spacing = max(spacing, self.config.min_spacing)
            if self.config.max_spacing > 0:
                spacing = min(spacing, self.config.max_spacing)

            price_range = self.config.upper_price - self.config.lower_price
            level_count = min(
                max(int(price_range / spacing), self.config.min_levels),
                self.config.max_levels,
            )
            if level_count == len(self.levels):
                return []

            return self.rebuild_levels(
                level_count, candle.close, to_decimal(fee_rate), candle.timestamp
            )

    def rebuild_levels(
        self,
        level_count: int,
        current_price: Decimal,
        fee_rate: Decimal = ZERO,
        now: datetime | None = None,
    ) -> list[SimulatedOrder]:
        """
        Rebuild the grid with ``level_count`` levels between the same bounds.

        Positions on levels that survive the rebuild are kept. Positions on
        removed levels are closed at ``current_price``.

        Returns:
            The forced-close sell orders
        """
        with self._lock:
            new_levels = calculate_grid_levels(
                self.config.lower_price,
                self.config.upper_price,
                level_count,
                self.config.spacing,
            )
            surviving = set(new_levels)
            timestamp = self._now(now)
            price = to_decimal(current_price)

            forced: list[SimulatedOrder] = []
            for idx, level_price in enumerate(self.levels):
                if level_price in surviving or self.positions[level_price].is_empty:
                    continue
                order, _ = self._sell_level(
                    idx, level_price, price, fee_rate, timestamp, reason="rebalance"
                )
                forced.append(order)

            self.positions = {
                p: self.positions.get(p, LevelPosition()) for p in new_levels
            }
            old_count = len(self.levels)
            self.levels = new_levels
            self.rebalance_count += 1

            logger.info(
                "grid_rebalanced",
                symbol=self.symbol,
                old_levels=old_count,
                new_levels=level_count,
                forced_closes=len(forced),
            )

            self._submit(forced)
            return forced

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_levels(self) -> list[GridLevel]:
        """Snapshot of every level with a copy of its position."""
        with self._lock:
            return [
                GridLevel(
                    index=i,
                    price=price,
                    position=LevelPosition(
                        quantity=self.positions[price].quantity,
                        average_entry_price=self.positions[price].average_entry_price,
                    ),
                )
                for i, price in enumerate(self.levels)
            ]

    def get_grid_status(self) -> dict[str, Any]:
        """
        Get current grid status and statistics.

        Returns:
            Dictionary with grid status information
        """
        with self._lock:
            return {
                "symbol": self.symbol,
                "strategy": self.strategy_name,
                "enabled": self.config.enabled,
                "lower_price": float(self.config.lower_price),
                "upper_price": float(self.config.upper_price),
                "grid_levels": len(self.levels),
                "filled_levels": sum(1 for p in self.positions.values() if not p.is_empty),
                "position_quantity": float(self.position_quantity),
                "capital": float(self.capital),
                "trade_count": self.trade_count,
                "buy_count": self.buy_count,
                "sell_count": self.sell_count,
                "win_count": self.win_count,
                "total_volume": float(self.total_volume),
                "total_profit": float(self.total_profit),
                "total_loss": float(self.total_loss),
                "realized_pnl": float(self.realized_pnl),
                "total_fees": float(self.total_fees),
                "rebalance_count": self.rebalance_count,
                "investment_per_level": float(self.investment_per_level),
                "reinvested_total": float(self.reinvested_total),
            }

    def get_status(self) -> dict[str, Any]:
        return self.get_grid_status()
