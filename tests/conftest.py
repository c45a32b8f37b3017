"""Shared test fixtures and helpers"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import numpy as np
import pytest

from dcagrid.core.models import Candle, DCAConfig, GridConfig

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_candles(
    n: int = 100,
    start_price: float = 45000.0,
    volatility: float = 0.01,
    seed: int = 42,
    start: datetime = START,
    step: timedelta = timedelta(hours=1),
) -> list[Candle]:
    """Generate synthetic OHLCV candles with realistic price movement."""
    rng = np.random.RandomState(seed)
    prices = [start_price]
    for _ in range(n - 1):
        change = rng.normal(0, volatility)
        prices.append(prices[-1] * (1 + change))

    candles = []
    for i, close in enumerate(prices):
        high = close * (1 + abs(rng.normal(0, volatility / 2)))
        low = close * (1 - abs(rng.normal(0, volatility / 2)))
        open_price = prices[i - 1] if i > 0 else close
        candles.append(
            Candle.from_values(
                timestamp=start + step * i,
                open=round(open_price, 2),
                high=round(max(high, open_price, close), 2),
                low=round(min(low, open_price, close), 2),
                close=round(close, 2),
                volume=round(float(rng.uniform(100, 1000)), 4),
            )
        )
    return candles


def candles_from_closes(
    closes: list,
    start: datetime = START,
    step: timedelta = timedelta(hours=1),
) -> list[Candle]:
    """Flat candles (open = high = low = close) from a list of closes."""
    return [
        Candle.from_values(start + step * i, c, c, c, c, 1)
        for i, c in enumerate(closes)
    ]


@pytest.fixture
def candle_factory():
    return make_candles


@pytest.fixture
def closes_factory():
    return candles_from_closes


@pytest.fixture
def grid_config() -> GridConfig:
    return GridConfig(
        symbol="BTCUSDT",
        lower_price=Decimal("40000"),
        upper_price=Decimal("50000"),
        grid_levels=5,
        investment_per_level=Decimal("100"),
    )


@pytest.fixture
def dca_config() -> DCAConfig:
    return DCAConfig(
        symbol="BTCUSDT",
        investment_amount=Decimal("100"),
        interval=timedelta(hours=24),
        max_investments=2,
    )


class DenyAllGate:
    """Risk gate that refuses every buy."""

    def __init__(self) -> None:
        self.calls = 0

    def can_trade(self, amount: Decimal, symbol: str) -> bool:
        self.calls += 1
        return False


@pytest.fixture
def deny_all_gate() -> DenyAllGate:
    return DenyAllGate()
