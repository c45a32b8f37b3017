"""Tests for the periodic live runner"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from dcagrid.core.dca_engine import DCAEngine
from dcagrid.core.grid_engine import GridEngine
from dcagrid.core.risk_manager import RiskManager
from dcagrid.core.time_provider import BacktestTimeProvider
from dcagrid.orchestrator import LiveStrategyRunner, PriceFeed


class ScriptedFeed:
    """Returns queued prices, repeating the last one when the queue runs dry."""

    def __init__(self, prices):
        self.prices = [Decimal(str(p)) for p in prices]
        self.calls = 0

    async def fetch_price(self, symbol: str) -> Decimal:
        self.calls += 1
        if len(self.prices) > 1:
            return self.prices.pop(0)
        return self.prices[0]


class FailingFeed:
    async def fetch_price(self, symbol: str) -> Decimal:
        raise ConnectionError("exchange unreachable")


class SlowFeed:
    async def fetch_price(self, symbol: str) -> Decimal:
        await asyncio.sleep(10)
        return Decimal("1")


@pytest.fixture
def clock() -> BacktestTimeProvider:
    return BacktestTimeProvider(start=datetime(2024, 1, 1, tzinfo=timezone.utc))


def test_feed_protocol():
    assert isinstance(ScriptedFeed([1]), PriceFeed)


@pytest.mark.parametrize("kwargs", [{"tick_interval": 0}, {"step_timeout": -1}])
def test_invalid_intervals(dca_config, kwargs):
    with pytest.raises(ValueError, match="must be positive"):
        LiveStrategyRunner(DCAEngine(dca_config), ScriptedFeed([1]), **kwargs)


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_steps_engine_with_fetched_price(self, dca_config, clock):
        engine = DCAEngine(dca_config, time_provider=clock)
        runner = LiveStrategyRunner(engine, ScriptedFeed([100]))

        orders = await runner.run_once()

        assert len(orders) == 1
        assert orders[0].price == Decimal("100")
        assert runner.tick_count == 1
        assert runner.last_price == Decimal("100")

        # Same clock instant: the interval has not elapsed
        assert await runner.run_once() == []
        assert runner.tick_count == 2

    @pytest.mark.asyncio
    async def test_fetch_error_skips_tick(self, dca_config):
        runner = LiveStrategyRunner(DCAEngine(dca_config), FailingFeed())

        assert await runner.run_once() == []
        assert runner.skipped_ticks == 1
        assert runner.tick_count == 0

    @pytest.mark.asyncio
    async def test_timeout_skips_tick(self, dca_config):
        runner = LiveStrategyRunner(DCAEngine(dca_config), SlowFeed(), step_timeout=0.01)

        assert await runner.run_once() == []
        assert runner.skipped_ticks == 1
        assert runner.last_price is None

    @pytest.mark.asyncio
    async def test_fee_rate_is_applied(self, dca_config, clock):
        engine = DCAEngine(dca_config, time_provider=clock)
        runner = LiveStrategyRunner(engine, ScriptedFeed([100]), fee_rate=Decimal("0.01"))

        orders = await runner.run_once()

        assert orders[0].fee == Decimal("1.00")


class TestRiskBookkeeping:
    @pytest.mark.asyncio
    async def test_fills_and_equity_reach_risk_manager(self, dca_config, clock):
        risk = RiskManager(max_position_size=Decimal("1000"))
        engine = DCAEngine(
            dca_config, risk_gate=risk, time_provider=clock, initial_capital=Decimal("1000")
        )
        runner = LiveStrategyRunner(engine, ScriptedFeed([100]))

        await runner.run_once()

        assert risk.position_sizes["BTCUSDT"] == Decimal("100")
        assert risk.current_equity == Decimal("1000")

    @pytest.mark.asyncio
    async def test_realized_pnl_reaches_risk_manager(self, grid_config, clock):
        risk = RiskManager(max_position_size=Decimal("100000"))
        engine = GridEngine(grid_config, risk_gate=risk, time_provider=clock)
        runner = LiveStrategyRunner(engine, ScriptedFeed([42500, 45000]))

        await runner.run_once()
        assert risk.daily_pnl == 0

        orders = await runner.run_once()

        assert any(o.side.value == "sell" for o in orders)
        assert engine.realized_pnl > 0
        assert risk.daily_pnl == engine.realized_pnl


    @pytest.mark.asyncio
    async def test_exposure_matches_cost_of_open_levels(self, grid_config, clock):
        risk = RiskManager(max_position_size=Decimal("250"))
        engine = GridEngine(grid_config, risk_gate=risk, time_provider=clock)
        runner = LiveStrategyRunner(engine, ScriptedFeed([42500, 47500]))

        await runner.run_once()
        orders = await runner.run_once()

        assert [o.side.value for o in orders] == ["sell", "sell"]
        open_cost = sum(
            lvl.position.quantity * lvl.position.average_entry_price
            for lvl in engine.get_levels()
        )
        assert float(risk.position_sizes["BTCUSDT"]) == pytest.approx(float(open_cost))
        assert float(open_cost) == pytest.approx(200.0)

    @pytest.mark.asyncio
    async def test_daily_loss_resets_on_utc_date_change(self, dca_config):
        clock = BacktestTimeProvider(start=datetime(2024, 1, 1, 23, tzinfo=timezone.utc))
        risk = RiskManager(max_position_size=Decimal("1000"), max_daily_loss=Decimal("50"))
        engine = DCAEngine(dca_config, risk_gate=risk, time_provider=clock)
        runner = LiveStrategyRunner(engine, ScriptedFeed([100]))

        assert len(await runner.run_once()) == 1
        risk.record_pnl(Decimal("-60"))

        # Same day: the loss still counts
        clock.advance(timedelta(minutes=30))
        await runner.run_once()
        assert risk.daily_pnl == Decimal("-60")
        assert not risk.can_trade(Decimal("100"), "BTCUSDT")

        # Past midnight UTC the counter starts over and buying resumes
        clock.advance(timedelta(hours=24))
        orders = await runner.run_once()

        assert risk.daily_pnl == 0
        assert len(orders) == 1

class TestLoop:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, dca_config, clock):
        feed = ScriptedFeed([100])
        runner = LiveStrategyRunner(
            DCAEngine(dca_config, time_provider=clock), feed, tick_interval=0.01
        )

        await runner.start()
        assert runner.is_running
        await asyncio.sleep(0.05)
        await runner.stop()

        assert not runner.is_running
        assert runner.tick_count >= 1
        assert feed.calls == runner.tick_count

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_loop(self, dca_config, clock):
        runner = LiveStrategyRunner(
            DCAEngine(dca_config, time_provider=clock), ScriptedFeed([100]), tick_interval=0.01
        )

        await runner.start()
        task = runner._task
        await runner.start()

        assert runner._task is task
        await runner.stop()

    @pytest.mark.asyncio
    async def test_status(self, dca_config, clock):
        runner = LiveStrategyRunner(DCAEngine(dca_config, time_provider=clock), ScriptedFeed([100]))
        await runner.run_once()

        status = runner.status()

        assert status["running"] is False
        assert status["tick_count"] == 1
        assert status["last_price"] == 100.0
        assert status["engine"]["buy_count"] == 1
