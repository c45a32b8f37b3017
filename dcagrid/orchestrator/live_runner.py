"""
LiveStrategyRunner - drives one strategy engine from a streamed price feed.

Every ``tick_interval`` seconds the runner fetches the latest price and
steps the engine once. A fetch that fails or exceeds ``step_timeout`` skips
that tick; the next tick tries again. stop() lets an in-flight step finish
before the loop exits.
"""

import asyncio
from datetime import date, timezone
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from dcagrid.core.base import StrategyEngine
from dcagrid.core.models import ZERO, SimulatedOrder, to_decimal
from dcagrid.core.risk_manager import RiskManager
from dcagrid.orchestrator.price_feed import PriceFeedExhausted
from dcagrid.utils.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class PriceFeed(Protocol):
    """Source of the latest traded price for a symbol."""

    async def fetch_price(self, symbol: str) -> Decimal:
        ...


class LiveStrategyRunner:
    """Periodic execution loop for a single engine."""

    def __init__(
        self,
        engine: StrategyEngine,
        price_feed: PriceFeed,
        tick_interval: float = 30.0,
        step_timeout: float = 10.0,
        fee_rate: Decimal = ZERO,
    ):
        """
        Args:
            engine: Engine to step
            price_feed: Async price source
            tick_interval: Seconds between ticks
            step_timeout: Maximum seconds to wait for a price
            fee_rate: Fee rate passed to every step
        """
        if tick_interval <= 0:
            raise ValueError("tick_interval must be positive")
        if step_timeout <= 0:
            raise ValueError("step_timeout must be positive")

        self.engine = engine
        self.price_feed = price_feed
        self.tick_interval = tick_interval
        self.step_timeout = step_timeout
        self.fee_rate = to_decimal(fee_rate)

        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

        self.tick_count = 0
        self.skipped_ticks = 0
        self.last_price: Decimal | None = None
        self._last_daily_reset: date | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the periodic loop in a background task."""
        if self.is_running:
            logger.warning("live_runner_already_running", symbol=self.engine.symbol)
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run())
        logger.info(
            "live_runner_started",
            symbol=self.engine.symbol,
            strategy=self.engine.strategy_name,
            tick_interval=self.tick_interval,
        )

    async def stop(self) -> None:
        """Signal the loop to stop and wait for the current tick to finish."""
        self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        logger.info(
            "live_runner_stopped",
            symbol=self.engine.symbol,
            ticks=self.tick_count,
            skipped=self.skipped_ticks,
        )

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.tick_interval)
            except asyncio.TimeoutError:
                continue

    async def run_once(self) -> list[SimulatedOrder]:
        """Fetch one price and step the engine. Returns the emitted orders."""
        symbol = self.engine.symbol
        try:
            price = await asyncio.wait_for(
                self.price_feed.fetch_price(symbol), timeout=self.step_timeout
            )
        except asyncio.TimeoutError:
            self.skipped_ticks += 1
            logger.debug("tick_skipped", symbol=symbol, reason="timeout")
            return []
        except PriceFeedExhausted:
            self.skipped_ticks += 1
            logger.debug("tick_skipped", symbol=symbol, reason="feed_exhausted")
            return []
        except Exception as e:
            self.skipped_ticks += 1
            logger.warning("price_fetch_failed", symbol=symbol, error=str(e))
            return []

        risk_gate = self.engine.risk_gate
        if isinstance(risk_gate, RiskManager):
            self._reset_daily_loss_on_new_day(risk_gate)

        price = to_decimal(price)
        with self.engine.lock:
            realized_before = self.engine.realized_pnl
            orders = self.engine.tick(price, fee_rate=self.fee_rate)
            realized = self.engine.realized_pnl - realized_before
            equity = self.engine.equity(price)

        if isinstance(risk_gate, RiskManager):
            for order in orders:
                risk_gate.record_fill(order)
            if realized:
                risk_gate.record_pnl(realized)
            risk_gate.update_equity(equity)

        self.tick_count += 1
        self.last_price = price
        return orders

    def _reset_daily_loss_on_new_day(self, risk_manager: RiskManager) -> None:
        # Daily loss counter follows the UTC date of the engine clock
        today = self.engine.time_provider.now().astimezone(timezone.utc).date()
        if self._last_daily_reset != today:
            risk_manager.reset_daily_loss()
            self._last_daily_reset = today
            logger.debug("utc_day_changed", symbol=self.engine.symbol, date=str(today))

    def status(self) -> dict[str, Any]:
        """Runner counters plus the engine's status snapshot."""
        return {
            "running": self.is_running,
            "tick_count": self.tick_count,
            "skipped_ticks": self.skipped_ticks,
            "last_price": float(self.last_price) if self.last_price is not None else None,
            "engine": self.engine.get_status(),
        }
