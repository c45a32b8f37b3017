"""Fee impact estimate for a strategy's monthly trading activity."""

from dataclasses import asdict, dataclass
from typing import Any

# Minimum per-trade profit covering the fee plus a risk buffer
MIN_PROFIT_FEE_MULTIPLE = 2.5


@dataclass(frozen=True)
class FeeImpactAnalysis:
    strategy: str
    trade_frequency: int  # trades per month
    avg_fee_rate: float  # %
    monthly_fee_cost: float
    fee_to_return_ratio: float  # %
    optimal_min_profit: float  # % per trade

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def calculate_fee_impact(
    strategy: str,
    monthly_trades: int,
    avg_fee: float,
    monthly_return: float,
) -> FeeImpactAnalysis:
    """
    Estimate how much of a monthly return is consumed by fees.

    Args:
        strategy: Strategy name
        monthly_trades: Trades executed per month
        avg_fee: Average fee per trade
        monthly_return: Expected monthly return, same unit as ``avg_fee``

    Returns:
        FeeImpactAnalysis; the fee/return ratio is 0 when the return is 0
    """
    if monthly_trades < 0:
        raise ValueError("monthly_trades must be non-negative")
    if avg_fee < 0:
        raise ValueError("avg_fee must be non-negative")

    monthly_fee_cost = monthly_trades * avg_fee
    fee_to_return_ratio = 0.0
    if monthly_return != 0:
        fee_to_return_ratio = monthly_fee_cost / monthly_return * 100

    return FeeImpactAnalysis(
        strategy=strategy,
        trade_frequency=monthly_trades,
        avg_fee_rate=avg_fee,
        monthly_fee_cost=monthly_fee_cost,
        fee_to_return_ratio=fee_to_return_ratio,
        optimal_min_profit=avg_fee * MIN_PROFIT_FEE_MULTIPLE,
    )
