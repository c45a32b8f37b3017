"""
dcagrid - Grid trading and dollar-cost averaging execution and backtest engine.

Provides:
- Grid engine with arithmetic, geometric and ATR-adaptive level spacing
- Interval-paced DCA engine
- Combo strategy composing grid and DCA components
- Candle-by-candle backtest runner and equity-curve performance metrics
- Market condition classification and side-by-side strategy comparison
- Periodic live runner for streamed prices
"""

__version__ = "1.0.0"
