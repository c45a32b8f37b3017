"""
Backtest runner - drives any StrategyEngine candle by candle.

Grid, DCA and combo engines are evaluated through the same loop: reset the
engine with the starting cash, feed every candle inside [start, end] to it,
sample equity at the candle close, then compute the metrics.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from dcagrid.backtesting.performance import PerformanceMetrics, compute_performance
from dcagrid.core.base import StrategyEngine
from dcagrid.core.models import ZERO, Candle, SimulatedOrder, to_decimal
from dcagrid.core.time_provider import as_utc
from dcagrid.utils.logger import get_logger, log_context

logger = get_logger(__name__)


@dataclass
class BacktestResult:
    """Outcome of one backtest run."""

    strategy_name: str
    symbol: str
    start: datetime
    end: datetime
    initial_capital: float
    final_equity: float
    metrics: PerformanceMetrics
    equity_curve: list[float] = field(default_factory=list)
    orders: list[SimulatedOrder] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy_name": self.strategy_name,
            "symbol": self.symbol,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "initial_capital": self.initial_capital,
            "final_equity": self.final_equity,
            "samples": len(self.equity_curve),
            "orders": len(self.orders),
            "metrics": self.metrics.to_dict(),
        }


class BacktestRunner:
    """Shared evaluation loop for every strategy engine."""

    def simulate(
        self,
        candles: Iterable[Candle],
        start: datetime,
        end: datetime,
        engine: StrategyEngine,
        fee_rate: Decimal = ZERO,
        initial_capital: Decimal = Decimal("10000"),
    ) -> BacktestResult:
        """
        Run ``engine`` over the candles inside [start, end].
        Naive bounds and candle timestamps are taken as UTC.

        The engine is reset first, so a runner can evaluate the same engine
        instance repeatedly with identical results.
        """
        fee_rate = to_decimal(fee_rate)
        initial_capital = to_decimal(initial_capital)
        start, end = as_utc(start), as_utc(end)

        with log_context(strategy=engine.strategy_name, symbol=engine.symbol):
            engine.reset(initial_capital)
            logger.info(
                "backtest_started",
                start=start.isoformat(),
                end=end.isoformat(),
                initial_capital=float(initial_capital),
            )

            equity_curve: list[float] = []
            orders: list[SimulatedOrder] = []
            last_close: Decimal | None = None

            for candle in candles:
                if not start <= as_utc(candle.timestamp) <= end:
                    continue
                orders.extend(engine.evaluate(candle, fee_rate))
                equity_curve.append(float(engine.equity(candle.close)))
                last_close = candle.close

            if last_close is None:
                metrics = PerformanceMetrics.zero()
                final_equity = float(initial_capital)
            else:
                metrics = compute_performance(
                    equity_curve,
                    end - start,
                    trade_count=engine.trade_count,
                    win_count=engine.winning_trades(last_close),
                    total_fees=float(engine.total_fees),
                )
                final_equity = equity_curve[-1]

            logger.info(
                "backtest_completed",
                samples=len(equity_curve),
                orders=len(orders),
                total_return_pct=round(metrics.total_return_pct, 4),
                max_drawdown_pct=round(metrics.max_drawdown_pct, 4),
            )

        return BacktestResult(
            strategy_name=engine.strategy_name,
            symbol=engine.symbol,
            start=start,
            end=end,
            initial_capital=float(initial_capital),
            final_equity=final_equity,
            metrics=metrics,
            equity_curve=equity_curve,
            orders=orders,
        )

    def run(
        self,
        candles: Iterable[Candle],
        start: datetime,
        end: datetime,
        engine: StrategyEngine,
        fee_rate: Decimal = ZERO,
        initial_capital: Decimal = Decimal("10000"),
    ) -> PerformanceMetrics:
        """Run a backtest and return only its metrics."""
        return self.simulate(candles, start, end, engine, fee_rate, initial_capital).metrics
