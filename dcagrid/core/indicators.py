"""Volatility indicators used for adaptive grid spacing."""

from collections.abc import Sequence
from decimal import Decimal

from dcagrid.core.models import Candle


def true_ranges(candles: Sequence[Candle]) -> list[Decimal]:
    """True range of each candle against the previous close (first candle skipped)."""
    ranges: list[Decimal] = []
    for i in range(1, len(candles)):
        high = candles[i].high
        low = candles[i].low
        prev_close = candles[i - 1].close
        ranges.append(max(high - low, abs(high - prev_close), abs(low - prev_close)))
    return ranges


def average_true_range(candles: Sequence[Candle], period: int = 14) -> Decimal:
    """
    Average True Range over the last ``period`` true ranges.

    Args:
        candles: Ascending candles, at least 2
        period: Number of true ranges to average

    Returns:
        Simple mean of the most recent true ranges
    """
    if len(candles) < 2:
        raise ValueError("at least 2 candles are required")
    if period < 1:
        raise ValueError("period must be >= 1")

    ranges = true_ranges(candles)
    recent = ranges[-period:]
    return sum(recent, Decimal("0")) / len(recent)
