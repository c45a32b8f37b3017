"""Backtesting: candle loading, evaluation loop, metrics and comparison"""

from dcagrid.backtesting.comparison import (
    MarketCondition,
    StrategyComparator,
    StrategyComparison,
    classify_market,
)
from dcagrid.backtesting.data_loader import load_candles
from dcagrid.backtesting.fee_analysis import FeeImpactAnalysis, calculate_fee_impact
from dcagrid.backtesting.performance import PerformanceMetrics, compute_performance
from dcagrid.backtesting.runner import BacktestResult, BacktestRunner

__all__ = [
    "BacktestResult",
    "BacktestRunner",
    "FeeImpactAnalysis",
    "MarketCondition",
    "PerformanceMetrics",
    "StrategyComparator",
    "StrategyComparison",
    "calculate_fee_impact",
    "classify_market",
    "compute_performance",
    "load_candles",
]
