"""
Performance metrics computed from an equity curve.

compute_performance is a pure function of its arguments: the same equity
curve always yields the same metrics. Degenerate inputs (empty curve, zero
variance, non-positive period) produce zero-valued metrics instead of errors.
"""

import math
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any

import numpy as np

SECONDS_PER_YEAR = 365 * 24 * 3600


@dataclass(frozen=True)
class PerformanceMetrics:
    """Standard metric set of one backtest run. Percentages are 0-100 scaled."""

    total_return_pct: float = 0.0
    annualized_return_pct: float = 0.0
    max_drawdown_pct: float = 0.0
    # Per-step mean/stddev of returns: no risk-free rate, no annualization
    sharpe_ratio: float = 0.0
    trade_count: int = 0
    win_rate: float = 0.0
    total_fees: float = 0.0
    volatility_impact: float = 0.0

    @classmethod
    def zero(cls) -> "PerformanceMetrics":
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def summary_lines(self) -> list[str]:
        return [
            f"  Total Return:      {self.total_return_pct:.2f}%",
            f"  Annualized Return: {self.annualized_return_pct:.2f}%",
            f"  Max Drawdown:      {self.max_drawdown_pct:.2f}%",
            f"  Sharpe Ratio:      {self.sharpe_ratio:.4f}",
            f"  Total Trades:      {self.trade_count}",
            f"  Win Rate:          {self.win_rate:.2f}%",
            f"  Total Fees:        ${self.total_fees:,.2f}",
            f"  Volatility Impact: {self.volatility_impact:.4f}%",
        ]


def step_returns(equity_curve: Sequence[float]) -> np.ndarray:
    """Per-step returns; steps whose previous value is 0 are skipped."""
    values = np.asarray(equity_curve, dtype=float)
    if values.size < 2:
        return np.empty(0)
    prev = values[:-1]
    curr = values[1:]
    mask = prev != 0
    return curr[mask] / prev[mask] - 1.0


def max_drawdown(equity_curve: Sequence[float]) -> float:
    """Largest peak-to-trough decline as a fraction in [0, 1]."""
    if len(equity_curve) == 0:
        return 0.0
    peak = equity_curve[0]
    worst = 0.0
    for value in equity_curve:
        if value > peak:
            peak = value
        if peak <= 0:
            continue
        drawdown = (peak - value) / peak
        if drawdown > worst:
            worst = drawdown
    return min(worst, 1.0)


def sharpe_ratio(returns: np.ndarray) -> float:
    if returns.size == 0:
        return 0.0
    std = float(np.std(returns))
    if std == 0:
        return 0.0
    return float(np.mean(returns)) / std


def compute_performance(
    equity_curve: Sequence[float],
    period: timedelta,
    trade_count: int = 0,
    win_count: int = 0,
    total_fees: float = 0.0,
) -> PerformanceMetrics:
    """
    Compute performance metrics from an equity curve.

    Args:
        equity_curve: Portfolio value (cash + marked position) at each step
        period: Length of the evaluated window, used to annualize
        trade_count: Number of trades executed
        win_count: Number of winning trades
        total_fees: Fees paid over the run

    Returns:
        PerformanceMetrics, all-zero for an empty curve
    """
    if len(equity_curve) == 0:
        return PerformanceMetrics.zero()

    first = float(equity_curve[0])
    last = float(equity_curve[-1])

    total_return = 0.0
    annualized = 0.0
    if first != 0:
        ratio = last / first
        total_return = (ratio - 1.0) * 100.0

        years = period.total_seconds() / SECONDS_PER_YEAR
        if years > 0 and ratio >= 0:
            try:
                annualized = (math.pow(ratio, 1.0 / years) - 1.0) * 100.0
            except OverflowError:
                annualized = math.inf

    returns = step_returns(equity_curve)
    volatility = float(np.std(returns)) if returns.size else 0.0

    win_rate = 0.0
    if trade_count > 0:
        win_rate = min(win_count, trade_count) / trade_count * 100.0

    return PerformanceMetrics(
        total_return_pct=total_return,
        annualized_return_pct=annualized,
        max_drawdown_pct=max_drawdown(equity_curve) * 100.0,
        sharpe_ratio=sharpe_ratio(returns),
        trade_count=trade_count,
        win_rate=win_rate,
        total_fees=float(total_fees),
        volatility_impact=volatility * 100.0,
    )
