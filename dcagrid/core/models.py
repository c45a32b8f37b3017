"""
Core data model for the grid and DCA engines.

Defines:
- Candle and SimulatedOrder value objects
- Engine-facing strategy configurations (grid, DCA, combo) with validation
- Mutable per-level grid positions and DCA pacing state
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Union

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Convert int/float/str to Decimal without binary float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class ConfigError(ValueError):
    """Invalid strategy configuration. Raised once, at engine construction."""


class OrderSide(str, Enum):
    """Order side enumeration"""

    BUY = "buy"
    SELL = "sell"


class GridSpacing(str, Enum):
    """Grid spacing type."""

    ARITHMETIC = "arithmetic"
    GEOMETRIC = "geometric"


# =============================================================================
# Market data & orders
# =============================================================================


@dataclass(frozen=True)
class Candle:
    """OHLCV candle. Sequences are ordered ascending by timestamp."""

    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = ZERO

    @classmethod
    def from_values(
        cls,
        timestamp: datetime,
        open: Any,
        high: Any,
        low: Any,
        close: Any,
        volume: Any = 0,
    ) -> "Candle":
        return cls(
            timestamp=timestamp,
            open=to_decimal(open),
            high=to_decimal(high),
            low=to_decimal(low),
            close=to_decimal(close),
            volume=to_decimal(volume),
        )


@dataclass(frozen=True)
class SimulatedOrder:
    """An order emitted by an engine step. fee = notional x fee rate."""

    symbol: str
    side: OrderSide
    quantity: Decimal
    price: Decimal
    fee: Decimal
    timestamp: datetime | None = None
    level: int | None = None
    reason: str = ""
    entry_price: Decimal | None = None  # set on sells: average cost of what was sold

    @property
    def notional(self) -> Decimal:
        return self.quantity * self.price

    @property
    def cost_basis(self) -> Decimal:
        if self.entry_price is None:
            return self.notional
        return self.quantity * self.entry_price

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "side": self.side.value,
            "quantity": str(self.quantity),
            "price": str(self.price),
            "fee": str(self.fee),
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "level": self.level,
            "reason": self.reason,
            "entry_price": str(self.entry_price) if self.entry_price is not None else None,
        }


# =============================================================================
# Strategy configurations
# =============================================================================


@dataclass
class GridConfig:
    """Grid strategy configuration."""

    symbol: str
    lower_price: Decimal
    upper_price: Decimal
    grid_levels: int
    investment_per_level: Decimal
    enabled: bool = True
    spacing: GridSpacing = GridSpacing.ARITHMETIC

    # ATR-adaptive spacing
    adaptive_spacing: bool = False
    adaptive_factor: Decimal = Decimal("0.15")
    min_spacing: Decimal = ZERO  # 0 = no lower clamp
    max_spacing: Decimal = ZERO  # 0 = no upper clamp
    atr_period: int = 14
    min_levels: int = 2
    max_levels: int = 100

    # Profit reinvestment: a sell booking at least reinvest_threshold profit
    # grows investment_per_level by profit x reinvest_rate spread over the grid
    reinvest_rate: Decimal = ZERO  # 0 = off
    reinvest_threshold: Decimal = ZERO

    def validate(self) -> None:
        """Validate config values. Raises ConfigError on invalid config."""
        if not self.symbol:
            raise ConfigError("symbol is required")
        if self.upper_price <= self.lower_price:
            raise ConfigError("upper_price must be greater than lower_price")
        if self.grid_levels < 2:
            raise ConfigError("grid_levels must be at least 2")
        if self.investment_per_level <= 0:
            raise ConfigError("investment_per_level must be positive")
        if self.spacing == GridSpacing.GEOMETRIC and self.lower_price <= 0:
            raise ConfigError("lower_price must be positive for geometric grid")
        if self.adaptive_spacing:
            if self.adaptive_factor <= 0:
                raise ConfigError("adaptive_factor must be positive")
            if self.atr_period < 1:
                raise ConfigError("atr_period must be at least 1")
            if self.min_spacing < 0 or self.max_spacing < 0:
                raise ConfigError("spacing clamps must be non-negative")
            if 0 < self.max_spacing < self.min_spacing:
                raise ConfigError("max_spacing must not be below min_spacing")
            if self.min_levels < 2:
                raise ConfigError("min_levels must be at least 2")
            if self.max_levels < self.min_levels:
                raise ConfigError("max_levels must not be below min_levels")
        if not 0 <= self.reinvest_rate <= 1:
            raise ConfigError("reinvest_rate must be between 0 and 1")
        if self.reinvest_threshold < 0:
            raise ConfigError("reinvest_threshold must be non-negative")


@dataclass
class DCAConfig:
    """DCA (Dollar Cost Averaging) configuration."""

    symbol: str
    investment_amount: Decimal
    interval: timedelta
    max_investments: int
    price_threshold: Decimal = ZERO  # 0 = buy at any price
    enabled: bool = True

    def validate(self) -> None:
        """Validate config values. Raises ConfigError on invalid config."""
        if not self.symbol:
            raise ConfigError("symbol is required")
        if self.investment_amount <= 0:
            raise ConfigError("investment_amount must be positive")
        if self.interval <= timedelta(0):
            raise ConfigError("interval must be positive")
        if self.max_investments <= 0:
            raise ConfigError("max_investments must be positive")


@dataclass
class ComboComponent:
    """One strategy inside a combo, with its share of capital."""

    config: Union[GridConfig, DCAConfig]
    allocation: Decimal = Decimal("1")


@dataclass
class ComboConfig:
    """Several grid/DCA components run side by side on one symbol."""

    symbol: str
    components: list[ComboComponent] = field(default_factory=list)
    enabled: bool = True

    def validate(self) -> None:
        """Validate every component. Raises ConfigError on invalid config."""
        if not self.symbol:
            raise ConfigError("symbol is required")
        if not self.components:
            raise ConfigError("at least one strategy is required")
        for i, component in enumerate(self.components):
            if not isinstance(component.config, (GridConfig, DCAConfig)):
                raise ConfigError(f"unsupported strategy config for component {i}")
            if component.allocation <= 0:
                raise ConfigError(f"allocation must be positive for component {i}")
            try:
                component.config.validate()
            except ConfigError as e:
                raise ConfigError(f"component {i}: {e}") from e


StrategyConfig = Union[GridConfig, DCAConfig, ComboConfig]


# =============================================================================
# Engine state
# =============================================================================


@dataclass
class LevelPosition:
    """Holding at one grid level. Zero quantity means the level is empty."""

    quantity: Decimal = ZERO
    average_entry_price: Decimal = ZERO

    @property
    def is_empty(self) -> bool:
        return self.quantity == 0


@dataclass
class GridLevel:
    """Snapshot of a grid level: its index, price threshold and position."""

    index: int
    price: Decimal
    position: LevelPosition

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "price": str(self.price),
            "quantity": str(self.position.quantity),
            "average_entry_price": str(self.position.average_entry_price),
        }


@dataclass
class DCAState:
    """Pacing state of a DCA engine."""

    last_buy_timestamp: datetime | None = None
    buy_count: int = 0
    total_invested: Decimal = ZERO
    total_quantity: Decimal = ZERO
    average_price: Decimal = ZERO

    @property
    def is_active(self) -> bool:
        return self.buy_count > 0
