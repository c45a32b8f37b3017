"""
Risk gate queried by the engines before every buy.

A denied check is a normal "skip this opportunity" outcome, never an error.
RiskManager tracks per-symbol exposure, drawdown from the equity peak and
the daily realized loss, and refuses new buys once a limit is hit.
"""

from decimal import Decimal
from typing import Protocol, runtime_checkable

from dcagrid.core.models import ZERO, OrderSide, SimulatedOrder
from dcagrid.utils.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class RiskGate(Protocol):
    """Yes/no capital and risk check for a prospective buy."""

    def can_trade(self, amount: Decimal, symbol: str) -> bool:
        ...


class AllowAllGate:
    """Gate that never denies. Default for backtests."""

    def can_trade(self, amount: Decimal, symbol: str) -> bool:
        return True


class RiskCheckResult:
    """Result of a risk check"""

    def __init__(self, allowed: bool, reason: str | None = None):
        self.allowed = allowed
        self.reason = reason

    def __bool__(self) -> bool:
        return self.allowed

    def __repr__(self) -> str:
        if self.allowed:
            return "RiskCheckResult(allowed=True)"
        return f"RiskCheckResult(allowed=False, reason='{self.reason}')"


class RiskManager:
    """
    Exposure and loss limits behind the RiskGate protocol.

    Features:
    - Minimum order size
    - Per-symbol position size limit (quote currency)
    - Maximum drawdown from the equity peak
    - Daily realized loss limit
    """

    def __init__(
        self,
        max_position_size: Decimal,
        min_order_size: Decimal = Decimal("0"),
        max_drawdown_pct: Decimal | None = None,
        max_daily_loss: Decimal | None = None,
    ):
        """
        Initialize Risk Manager.

        Args:
            max_position_size: Maximum open position per symbol in quote currency
            min_order_size: Minimum order size in quote currency
            max_drawdown_pct: Optional drawdown limit (0.2 = 20%)
            max_daily_loss: Optional maximum daily realized loss in quote currency
        """
        if max_position_size <= 0:
            raise ValueError("max_position_size must be positive")
        if min_order_size < 0:
            raise ValueError("min_order_size must be non-negative")
        if max_drawdown_pct is not None and (max_drawdown_pct <= 0 or max_drawdown_pct > 1):
            raise ValueError("max_drawdown_pct must be between 0 and 1")
        if max_daily_loss is not None and max_daily_loss <= 0:
            raise ValueError("max_daily_loss must be positive")

        self.max_position_size = max_position_size
        self.min_order_size = min_order_size
        self.max_drawdown_pct = max_drawdown_pct
        self.max_daily_loss = max_daily_loss

        # State tracking
        self.position_sizes: dict[str, Decimal] = {}
        self.peak_equity: Decimal | None = None
        self.current_equity: Decimal | None = None
        self.daily_pnl = ZERO

        # Statistics
        self.approved_trades = 0
        self.rejected_trades = 0

    def check_trade(self, amount: Decimal, symbol: str) -> RiskCheckResult:
        """
        Check a prospective buy of ``amount`` quote currency on ``symbol``.

        Returns:
            RiskCheckResult indicating if the buy is allowed
        """
        if amount < self.min_order_size:
            return self._reject(f"Order size {amount} below minimum {self.min_order_size}")

        drawdown = self.get_drawdown()
        if self.max_drawdown_pct is not None and drawdown >= self.max_drawdown_pct:
            return self._reject(f"Drawdown {float(drawdown):.2%} at limit")

        current = self.position_sizes.get(symbol, ZERO)
        if current + amount > self.max_position_size:
            return self._reject(
                f"Position {current + amount} would exceed max {self.max_position_size}"
            )

        if self.max_daily_loss is not None and self.daily_pnl <= -self.max_daily_loss:
            return self._reject(f"Daily loss limit reached: {self.daily_pnl}")

        self.approved_trades += 1
        return RiskCheckResult(True)

    def can_trade(self, amount: Decimal, symbol: str) -> bool:
        return bool(self.check_trade(amount, symbol))

    def _reject(self, reason: str) -> RiskCheckResult:
        self.rejected_trades += 1
        logger.debug("trade_rejected", reason=reason)
        return RiskCheckResult(False, reason)

    def record_fill(self, order: SimulatedOrder) -> None:
        """Update per-symbol exposure after an order fills.

        Buys add their notional. Sells release the cost of what was sold,
        so a profitable exit leaves the open positions' cost untouched.
        """
        current = self.position_sizes.get(order.symbol, ZERO)
        if order.side == OrderSide.BUY:
            self.position_sizes[order.symbol] = current + order.notional
        else:
            self.position_sizes[order.symbol] = max(ZERO, current - order.cost_basis)

    def record_pnl(self, realized_pnl: Decimal) -> None:
        """Add realized profit/loss to the daily counter."""
        self.daily_pnl += realized_pnl

    def update_equity(self, equity: Decimal) -> None:
        """Track equity for drawdown checks."""
        self.current_equity = equity
        if self.peak_equity is None or equity > self.peak_equity:
            self.peak_equity = equity

    def get_drawdown(self) -> Decimal:
        """Current drawdown from the equity peak as a fraction (0 if unknown)."""
        if self.peak_equity is None or self.current_equity is None or self.peak_equity <= 0:
            return ZERO
        return (self.peak_equity - self.current_equity) / self.peak_equity

    def reset_daily_loss(self) -> None:
        """Reset daily PnL counter (call at start of new day)"""
        self.daily_pnl = ZERO
        logger.info("daily_loss_reset")

    def get_risk_status(self) -> dict:
        """Current limits, exposure and counters."""
        return {
            "position_sizes": {k: float(v) for k, v in self.position_sizes.items()},
            "max_position_size": float(self.max_position_size),
            "min_order_size": float(self.min_order_size),
            "drawdown": float(self.get_drawdown()),
            "max_drawdown_pct": float(self.max_drawdown_pct) if self.max_drawdown_pct else None,
            "daily_pnl": float(self.daily_pnl),
            "max_daily_loss": float(self.max_daily_loss) if self.max_daily_loss else None,
            "approved_trades": self.approved_trades,
            "rejected_trades": self.rejected_trades,
        }
