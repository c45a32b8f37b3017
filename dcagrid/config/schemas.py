"""
Pydantic schemas for configuration validation.
Defines the structure and validation rules for bot and backtest configurations.
"""

import re
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from dcagrid.core.models import (
    ComboComponent,
    ComboConfig,
    DCAConfig,
    GridConfig,
    GridSpacing,
    StrategyConfig,
)
from dcagrid.core.risk_manager import RiskManager

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}


def parse_duration(value: str) -> timedelta:
    """
    Parse a compact duration such as '24h', '30m' or '1h30m'.

    Raises:
        ValueError: If the string is not a valid duration
    """
    text = value.strip().lower()
    if not text:
        raise ValueError("empty duration")

    total = timedelta(0)
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return total


class StrategyType(str, Enum):
    """Trading strategy types"""

    GRID = "grid"
    DCA = "dca"
    COMBO = "combo"


class GridStrategyConfig(BaseModel):
    """Grid trading strategy configuration"""

    type: Literal["grid"] = "grid"
    enabled: bool = Field(default=True, description="Enable grid trading")
    lower_price: Decimal = Field(..., gt=0, description="Lower price boundary for grid")
    upper_price: Decimal = Field(..., gt=0, description="Upper price boundary for grid")
    grid_levels: int = Field(..., ge=2, le=1000, description="Number of grid levels")
    investment_per_level: Decimal = Field(
        ...,
        gt=0,
        description="Quote amount invested at each level",
    )
    spacing: GridSpacing = Field(default=GridSpacing.ARITHMETIC, description="Level spacing")

    adaptive_spacing: bool = Field(default=False, description="Derive spacing from ATR")
    adaptive_factor: Decimal = Field(default=Decimal("0.15"), gt=0, description="ATR multiplier")
    min_spacing: Decimal = Field(default=Decimal("0"), ge=0, description="0 = unbounded")
    max_spacing: Decimal = Field(default=Decimal("0"), ge=0, description="0 = unbounded")
    atr_period: int = Field(default=14, ge=1, le=500, description="ATR period in candles")
    min_levels: int = Field(
        default=2, ge=2, le=1000, description="Fewest levels an ATR rebuild may produce"
    )
    max_levels: int = Field(
        default=100, ge=2, le=1000, description="Most levels an ATR rebuild may produce"
    )

    reinvest_rate: Decimal = Field(
        default=Decimal("0"), ge=0, le=1, description="Share of each profit reinvested"
    )
    reinvest_threshold: Decimal = Field(
        default=Decimal("0"), ge=0, description="Minimum profit per sell to reinvest"
    )

    @model_validator(mode="after")
    def validate_price_range(self) -> "GridStrategyConfig":
        """Ensure upper price is greater than lower price"""
        if self.upper_price <= self.lower_price:
            raise ValueError("upper_price must be greater than lower_price")
        if self.max_levels < self.min_levels:
            raise ValueError("max_levels must not be below min_levels")
        return self

    def to_engine_config(self, symbol: str) -> GridConfig:
        return GridConfig(
            symbol=symbol,
            lower_price=self.lower_price,
            upper_price=self.upper_price,
            grid_levels=self.grid_levels,
            investment_per_level=self.investment_per_level,
            enabled=self.enabled,
            spacing=self.spacing,
            adaptive_spacing=self.adaptive_spacing,
            adaptive_factor=self.adaptive_factor,
            min_spacing=self.min_spacing,
            max_spacing=self.max_spacing,
            atr_period=self.atr_period,
            min_levels=self.min_levels,
            max_levels=self.max_levels,
            reinvest_rate=self.reinvest_rate,
            reinvest_threshold=self.reinvest_threshold,
        )


class DCAStrategyConfig(BaseModel):
    """DCA (Dollar Cost Averaging) configuration"""

    type: Literal["dca"] = "dca"
    enabled: bool = Field(default=True, description="Enable DCA")
    investment_amount: Decimal = Field(..., gt=0, description="Quote amount per buy")
    interval: timedelta = Field(
        default=timedelta(hours=24),
        description="Minimum time between buys ('24h', '30m' or seconds)",
    )
    max_investments: int = Field(default=100, ge=1, description="Maximum number of buys")
    price_threshold: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Hold while price is above this (0 = no ceiling)",
    )

    @field_validator("interval", mode="before")
    @classmethod
    def parse_interval(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.upper().startswith("P"):
            return parse_duration(value)
        return value

    @field_validator("interval")
    @classmethod
    def validate_interval(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("interval must be positive")
        return value

    def to_engine_config(self, symbol: str) -> DCAConfig:
        return DCAConfig(
            symbol=symbol,
            investment_amount=self.investment_amount,
            interval=self.interval,
            max_investments=self.max_investments,
            price_threshold=self.price_threshold,
            enabled=self.enabled,
        )


ComponentStrategy = Annotated[
    Union[GridStrategyConfig, DCAStrategyConfig], Field(discriminator="type")
]


class ComboComponentConfig(BaseModel):
    """One strategy inside a combo and its capital weight"""

    strategy: ComponentStrategy
    allocation: Decimal = Field(default=Decimal("1"), gt=0, description="Capital weight")


class ComboStrategyConfig(BaseModel):
    """Grid and DCA components run side by side"""

    type: Literal["combo"] = "combo"
    enabled: bool = Field(default=True, description="Enable combo strategy")
    components: list[ComboComponentConfig] = Field(..., min_length=1)

    def to_engine_config(self, symbol: str) -> ComboConfig:
        return ComboConfig(
            symbol=symbol,
            components=[
                ComboComponent(
                    config=c.strategy.to_engine_config(symbol),
                    allocation=c.allocation,
                )
                for c in self.components
            ],
            enabled=self.enabled,
        )


StrategySettings = Annotated[
    Union[GridStrategyConfig, DCAStrategyConfig, ComboStrategyConfig],
    Field(discriminator="type"),
]


class RiskManagementConfig(BaseModel):
    """Risk management configuration"""

    max_position_size: Decimal = Field(
        ...,
        gt=0,
        description="Maximum position size in quote currency",
    )
    min_order_size: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Minimum order size in quote currency",
    )
    max_drawdown_pct: Decimal | None = Field(
        default=None,
        gt=0,
        le=1,
        description="Stop buying at this drawdown from peak equity (0.2 = 20%)",
    )
    max_daily_loss: Decimal | None = Field(
        default=None,
        gt=0,
        description="Maximum daily loss in quote currency",
    )

    def to_risk_manager(self) -> RiskManager:
        return RiskManager(
            max_position_size=self.max_position_size,
            min_order_size=self.min_order_size,
            max_drawdown_pct=self.max_drawdown_pct,
            max_daily_loss=self.max_daily_loss,
        )


class BotConfig(BaseModel):
    """Configuration of one live strategy bot"""

    version: int = Field(default=1, ge=1, description="Configuration version")
    name: str = Field(..., min_length=1, max_length=100, description="Bot name")
    symbol: str = Field(..., min_length=1, description="Trading pair symbol (e.g., 'BTCUSDT')")
    strategy: StrategySettings
    risk_management: RiskManagementConfig | None = None

    initial_capital: Decimal | None = Field(
        default=None,
        gt=0,
        description="Cash available to the engine (unset = risk gate decides)",
    )
    fee_rate: Decimal = Field(default=Decimal("0.001"), ge=0, lt=1, description="Fee rate")
    dry_run: bool = Field(default=True, description="Run in simulation mode without real orders")
    tick_interval_seconds: float = Field(default=30.0, gt=0, description="Seconds between ticks")
    step_timeout_seconds: float = Field(default=10.0, gt=0, description="Price fetch timeout")

    @property
    def strategy_type(self) -> StrategyType:
        return StrategyType(self.strategy.type)

    def to_engine_config(self) -> StrategyConfig:
        return self.strategy.to_engine_config(self.symbol)


class BacktestSettings(BaseModel):
    """Defaults for the backtester command line"""

    symbol: str = Field(default="BTCUSDT", min_length=1)
    data_file: str | None = Field(default=None, description="CSV candle file")
    start: datetime | None = None
    end: datetime | None = None
    initial_capital: Decimal = Field(default=Decimal("10000"), gt=0)
    fee_rate: Decimal = Field(default=Decimal("0.001"), ge=0, lt=1)
    dca: DCAStrategyConfig = Field(
        default_factory=lambda: DCAStrategyConfig(
            investment_amount=Decimal("100"),
            interval=timedelta(hours=24),
            max_investments=100,
        )
    )
    grid: GridStrategyConfig = Field(
        default_factory=lambda: GridStrategyConfig(
            lower_price=Decimal("30000"),
            upper_price=Decimal("60000"),
            grid_levels=20,
            investment_per_level=Decimal("100"),
        )
    )


class AppConfig(BaseModel):
    """Application-wide configuration"""

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_to_file: bool = Field(default=True, description="Enable file logging")
    log_to_console: bool = Field(default=True, description="Enable console logging")
    json_logs: bool = Field(default=False, description="Use JSON format for logs")

    backtest: BacktestSettings = Field(default_factory=BacktestSettings)

    # Bots
    bots: list[BotConfig] = Field(default_factory=list, description="Bot configurations")

    @model_validator(mode="after")
    def validate_unique_bot_names(self) -> "AppConfig":
        names = [bot.name for bot in self.bots]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate bot names: {', '.join(duplicates)}")
        return self
