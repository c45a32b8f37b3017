"""Tests for the replay price feed"""

from decimal import Decimal

import pytest

from dcagrid.orchestrator import PriceFeed, PriceFeedExhausted, ReplayPriceFeed


@pytest.mark.asyncio
async def test_serves_prices_in_order():
    feed = ReplayPriceFeed([100, "100.5"])

    assert isinstance(feed, PriceFeed)
    assert await feed.fetch_price("BTCUSDT") == Decimal("100")
    assert feed.remaining == 1
    assert await feed.fetch_price("BTCUSDT") == Decimal("100.5")
    assert feed.exhausted

    with pytest.raises(PriceFeedExhausted):
        await feed.fetch_price("BTCUSDT")


@pytest.mark.asyncio
async def test_rejects_other_symbols():
    feed = ReplayPriceFeed([100], symbol="BTCUSDT")

    with pytest.raises(ValueError, match="not ETHUSDT"):
        await feed.fetch_price("ETHUSDT")
    assert feed.remaining == 1


def test_from_csv(tmp_path, closes_factory):
    candles = closes_factory([100, 101, 99])
    lines = ["timestamp,open,high,low,close,volume"]
    lines += [f"{c.timestamp.isoformat()},{c.open},{c.high},{c.low},{c.close},0" for c in candles]
    path = tmp_path / "prices.csv"
    path.write_text("\n".join(lines) + "\n")

    feed = ReplayPriceFeed.from_csv(path, symbol="BTCUSDT")

    assert feed.prices == [Decimal("100"), Decimal("101"), Decimal("99")]


def test_from_missing_csv(tmp_path):
    with pytest.raises(FileNotFoundError):
        ReplayPriceFeed.from_csv(tmp_path / "none.csv")
