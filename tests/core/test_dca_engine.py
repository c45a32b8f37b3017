"""Tests for DCAEngine"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import numpy as np
import pytest

from dcagrid.core.dca_engine import DCAEngine
from dcagrid.core.models import ConfigError, DCAConfig, OrderSide
from dcagrid.core.time_provider import BacktestTimeProvider

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
DAY = timedelta(hours=24)


def make_config(**overrides) -> DCAConfig:
    values = dict(
        symbol="BTCUSDT",
        investment_amount=Decimal("100"),
        interval=DAY,
        max_investments=2,
    )
    values.update(overrides)
    return DCAConfig(**values)


class TestDCAConfigValidation:
    def test_empty_symbol(self):
        with pytest.raises(ConfigError, match="symbol is required"):
            DCAEngine(make_config(symbol=""))

    def test_invalid_amount(self):
        with pytest.raises(ConfigError, match="investment_amount must be positive"):
            DCAEngine(make_config(investment_amount=Decimal("-1")))

    def test_invalid_interval(self):
        with pytest.raises(ConfigError, match="interval must be positive"):
            DCAEngine(make_config(interval=timedelta(0)))

    def test_invalid_max_investments(self):
        with pytest.raises(ConfigError, match="max_investments must be positive"):
            DCAEngine(make_config(max_investments=0))


class TestDCAStep:
    """Pacing and averaging rules"""

    def test_two_buys_a_day_apart(self, dca_config):
        engine = DCAEngine(dca_config)

        first = engine.step(Decimal("45000"), now=T0)
        second = engine.step(Decimal("44000"), now=T0 + DAY)

        assert first is not None and second is not None
        assert first.side == OrderSide.BUY
        assert engine.state.buy_count == 2
        expected = Decimal("200") / (
            Decimal("100") / Decimal("45000") + Decimal("100") / Decimal("44000")
        )
        assert engine.state.average_price == expected
        assert engine.state.last_buy_timestamp == T0 + DAY

    def test_first_buy_is_immediate(self, dca_config):
        engine = DCAEngine(dca_config)

        assert engine.state.is_active is False
        assert engine.step(Decimal("45000"), now=T0) is not None
        assert engine.state.is_active is True

    def test_holds_until_interval_elapsed(self, dca_config):
        engine = DCAEngine(dca_config)
        engine.step(Decimal("45000"), now=T0)

        assert engine.step(Decimal("45000"), now=T0 + DAY - timedelta(seconds=1)) is None
        assert engine.step(Decimal("45000"), now=T0 + DAY) is not None

    def test_terminal_after_max_investments(self, dca_config):
        engine = DCAEngine(dca_config)
        engine.step(Decimal("45000"), now=T0)
        engine.step(Decimal("44000"), now=T0 + DAY)

        for day in range(2, 6):
            assert engine.step(Decimal("30000"), now=T0 + DAY * day) is None
        assert engine.state.buy_count == 2

    def test_price_threshold_holds_above_ceiling(self):
        engine = DCAEngine(make_config(price_threshold=Decimal("40000")))

        assert engine.step(Decimal("45000"), now=T0) is None
        assert engine.step(Decimal("40000"), now=T0) is not None

    def test_disabled_holds(self):
        engine = DCAEngine(make_config(enabled=False))

        assert engine.step(Decimal("45000"), now=T0) is None
        assert engine.trade_count == 0

    def test_insufficient_capital_holds(self, dca_config):
        engine = DCAEngine(dca_config, initial_capital=Decimal("150"))

        assert engine.step(Decimal("45000"), now=T0) is not None
        assert engine.step(Decimal("45000"), now=T0 + DAY) is None
        assert engine.capital == Decimal("50")

    def test_risk_gate_denial_holds(self, dca_config, deny_all_gate):
        engine = DCAEngine(dca_config, risk_gate=deny_all_gate)

        assert engine.step(Decimal("45000"), now=T0) is None
        assert deny_all_gate.calls == 1
        assert engine.state.buy_count == 0

    def test_fee_reduces_quantity(self, dca_config):
        engine = DCAEngine(dca_config)

        order = engine.step(Decimal("45000"), now=T0, fee_rate=Decimal("0.001"))

        assert order.fee == Decimal("0.1")
        assert order.quantity == Decimal("99.9") / Decimal("45000")
        assert engine.state.total_invested == Decimal("100")
        assert engine.total_fees == Decimal("0.1")

    def test_uses_clock_when_no_timestamp(self, dca_config):
        clock = BacktestTimeProvider(T0)
        engine = DCAEngine(dca_config, time_provider=clock)

        assert engine.step(Decimal("45000")) is not None
        assert engine.step(Decimal("45000")) is None

        clock.advance(DAY)
        order = engine.step(Decimal("45000"))
        assert order is not None
        assert order.timestamp == T0 + DAY

    def test_tick_wraps_step(self, dca_config):
        engine = DCAEngine(dca_config)

        assert len(engine.tick(Decimal("45000"), now=T0)) == 1
        assert engine.tick(Decimal("45000"), now=T0) == []

    def test_invariants_on_random_prices(self):
        engine = DCAEngine(make_config(max_investments=10, interval=timedelta(hours=6)))
        rng = np.random.RandomState(3)
        prices = rng.uniform(20000, 60000, size=200)

        previous = 0
        for i, price in enumerate(prices):
            engine.step(Decimal(str(round(float(price), 2))), now=T0 + timedelta(hours=i))
            state = engine.state
            assert previous <= state.buy_count <= 10
            previous = state.buy_count
            if state.buy_count:
                assert float(state.average_price) == pytest.approx(
                    float(state.total_invested / state.total_quantity)
                )

        assert engine.state.buy_count == 10


class TestDCAValuation:
    def test_winning_trades_follow_mark(self, dca_config):
        engine = DCAEngine(dca_config)
        engine.step(Decimal("45000"), now=T0)
        engine.step(Decimal("44000"), now=T0 + DAY)

        assert engine.winning_trades(Decimal("50000")) == 2
        assert engine.winning_trades(Decimal("40000")) == 0

    def test_no_wins_before_first_buy(self, dca_config):
        engine = DCAEngine(dca_config)

        assert engine.winning_trades(Decimal("50000")) == 0

    def test_pnl_and_equity(self, dca_config):
        engine = DCAEngine(dca_config, initial_capital=Decimal("1000"))
        engine.step(Decimal("50000"), now=T0)

        assert engine.get_pnl(Decimal("55000")) == Decimal("10")
        assert engine.equity(Decimal("55000")) == Decimal("1010")

    def test_reset(self, dca_config):
        engine = DCAEngine(dca_config, initial_capital=Decimal("1000"))
        engine.step(Decimal("50000"), now=T0)

        engine.reset(Decimal("500"))

        assert engine.state.buy_count == 0
        assert engine.position_quantity == 0
        assert engine.capital == Decimal("500")

    def test_status(self, dca_config):
        engine = DCAEngine(dca_config)
        engine.step(Decimal("50000"), now=T0)

        status = engine.get_status()

        assert status["strategy"] == "dca"
        assert status["buy_count"] == 1
        assert status["max_investments"] == 2
        assert status["average_price"] == pytest.approx(50000.0)
        assert status["last_buy_timestamp"] == T0.isoformat()
