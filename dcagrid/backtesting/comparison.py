"""
Strategy Comparison - run grid and DCA on the same window and compare.

Usage:
    comparator = StrategyComparator(fee_rate=Decimal("0.001"))
    comparison = comparator.compare(
        "BTCUSDT", candles, start, end, Decimal("10000"), dca_config, grid_config
    )
    print(StrategyComparator.format_report(comparison))
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any

from dcagrid.backtesting.performance import PerformanceMetrics
from dcagrid.backtesting.runner import BacktestRunner
from dcagrid.core.dca_engine import DCAEngine
from dcagrid.core.grid_engine import GridEngine
from dcagrid.core.models import ZERO, Candle, DCAConfig, GridConfig
from dcagrid.core.time_provider import as_utc
from dcagrid.utils.logger import get_logger

logger = get_logger(__name__)

TREND_THRESHOLD = Decimal("0.10")


class MarketCondition(str, Enum):
    """Coarse label for the price behaviour over a window."""

    BULL = "bull"
    BEAR = "bear"
    SIDEWAYS = "sideways"
    # Never produced by classify_market; reserved for a volatility rule
    HIGH_VOLATILITY = "high_volatility"


def classify_market(
    candles: Sequence[Candle], start: datetime, end: datetime
) -> MarketCondition:
    """
    Classify the window by the change from first to last close.

    More than +10% is bull, less than -10% is bear, anything else (including
    an empty window) is sideways.
    """
    start, end = as_utc(start), as_utc(end)
    closes = [c.close for c in candles if start <= as_utc(c.timestamp) <= end]
    if not closes or closes[0] == 0:
        return MarketCondition.SIDEWAYS

    change = closes[-1] / closes[0] - 1
    if change > TREND_THRESHOLD:
        return MarketCondition.BULL
    if change < -TREND_THRESHOLD:
        return MarketCondition.BEAR
    return MarketCondition.SIDEWAYS


@dataclass(frozen=True)
class StrategyComparison:
    """Grid and DCA metrics over the same window."""

    symbol: str
    grid_metrics: PerformanceMetrics
    dca_metrics: PerformanceMetrics
    period: timedelta
    market_condition: MarketCondition

    def get_winner(self, metric: str = "total_return_pct") -> str | None:
        """Strategy with the better value of ``metric`` (None on a tie)."""
        grid_value = getattr(self.grid_metrics, metric)
        dca_value = getattr(self.dca_metrics, metric)
        if grid_value == dca_value:
            return None
        lower_is_better = metric == "max_drawdown_pct"
        grid_wins = (grid_value < dca_value) if lower_is_better else (grid_value > dca_value)
        return "grid" if grid_wins else "dca"

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "grid_results": self.grid_metrics.to_dict(),
            "dca_results": self.dca_metrics.to_dict(),
            "backtest_period_seconds": self.period.total_seconds(),
            "market_condition": self.market_condition.value,
        }


class StrategyComparator:
    """
    Run both strategies through the backtest runner with the same capital
    and window, and classify the market over that window.
    """

    def __init__(self, fee_rate: Decimal = ZERO, runner: BacktestRunner | None = None) -> None:
        self.fee_rate = fee_rate
        self.runner = runner or BacktestRunner()

    def compare(
        self,
        symbol: str,
        candles: Sequence[Candle],
        start: datetime,
        end: datetime,
        initial_capital: Decimal,
        dca_config: DCAConfig,
        grid_config: GridConfig,
    ) -> StrategyComparison:
        """
        Compare DCA and grid over [start, end].

        Raises:
            ConfigError: If either configuration is invalid
        """
        start, end = as_utc(start), as_utc(end)
        market_condition = classify_market(candles, start, end)

        grid_engine = GridEngine(grid_config, initial_capital=initial_capital)
        dca_engine = DCAEngine(dca_config, initial_capital=initial_capital)

        grid_metrics = self.runner.run(
            candles, start, end, grid_engine, self.fee_rate, initial_capital
        )
        dca_metrics = self.runner.run(
            candles, start, end, dca_engine, self.fee_rate, initial_capital
        )

        logger.info(
            "strategies_compared",
            symbol=symbol,
            market_condition=market_condition.value,
            grid_return_pct=round(grid_metrics.total_return_pct, 4),
            dca_return_pct=round(dca_metrics.total_return_pct, 4),
        )

        return StrategyComparison(
            symbol=symbol,
            grid_metrics=grid_metrics,
            dca_metrics=dca_metrics,
            period=end - start,
            market_condition=market_condition,
        )

    @staticmethod
    def format_report(comparison: StrategyComparison) -> str:
        """Format comparison result as a human-readable report."""
        lines = []
        lines.append("=" * 70)
        lines.append("STRATEGY COMPARISON REPORT")
        lines.append("=" * 70)
        lines.append(f"\nSymbol:           {comparison.symbol}")
        lines.append(f"Period:           {comparison.period}")
        lines.append(f"Market Condition: {comparison.market_condition.value}")

        lines.append("\nPerformance Summary:")
        lines.append("-" * 70)
        header = (
            f"{'Strategy':<10} {'Return%':>10} {'Annual%':>10} {'DD%':>8} "
            f"{'Sharpe':>8} {'Trades':>7} {'Win%':>7} {'Fees':>10}"
        )
        lines.append(header)
        lines.append("-" * 70)

        for name, m in (("grid", comparison.grid_metrics), ("dca", comparison.dca_metrics)):
            lines.append(
                f"{name:<10} "
                f"{m.total_return_pct:>9.2f}% "
                f"{m.annualized_return_pct:>9.2f}% "
                f"{m.max_drawdown_pct:>7.2f}% "
                f"{m.sharpe_ratio:>8.4f} "
                f"{m.trade_count:>7d} "
                f"{m.win_rate:>6.1f}% "
                f"{m.total_fees:>10.2f}"
            )

        winner = comparison.get_winner("total_return_pct")
        if winner:
            lines.append(f"\nBest overall return: {winner}")

        lines.append("=" * 70)
        return "\n".join(lines)
