"""
Replay price feed for dry runs.

Serves the closes of a candle archive one per fetch, so a bot can be
exercised end to end without exchange connectivity.
"""

from collections.abc import Iterable
from decimal import Decimal
from pathlib import Path

from dcagrid.backtesting.data_loader import load_candles
from dcagrid.core.models import to_decimal
from dcagrid.utils.logger import get_logger

logger = get_logger(__name__)


class PriceFeedExhausted(LookupError):
    """Every recorded price has been served."""


class ReplayPriceFeed:
    """Price feed that replays a fixed sequence of prices."""

    def __init__(self, prices: Iterable[Decimal], symbol: str | None = None) -> None:
        """
        Args:
            prices: Prices to serve, in order
            symbol: If set, fetches for any other symbol are refused
        """
        self.prices = [to_decimal(p) for p in prices]
        self.symbol = symbol
        self.position = 0

    @classmethod
    def from_csv(cls, filepath: Path | str, symbol: str | None = None) -> "ReplayPriceFeed":
        """Replay the closes of a candle CSV (see data_loader.load_candles)."""
        candles = load_candles(filepath)
        logger.info("replay_feed_loaded", path=str(filepath), prices=len(candles))
        return cls((c.close for c in candles), symbol=symbol)

    @property
    def exhausted(self) -> bool:
        return self.position >= len(self.prices)

    @property
    def remaining(self) -> int:
        return max(0, len(self.prices) - self.position)

    async def fetch_price(self, symbol: str) -> Decimal:
        if self.symbol is not None and symbol != self.symbol:
            raise ValueError(f"feed replays {self.symbol}, not {symbol}")
        if self.exhausted:
            raise PriceFeedExhausted(f"no prices left for {symbol}")
        price = self.prices[self.position]
        self.position += 1
        return price
