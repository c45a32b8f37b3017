"""Fixtures for configuration tests"""

from pathlib import Path

import pytest

EXAMPLE_YAML = """
log_level: INFO
log_to_file: false
backtest:
  symbol: BTCUSDT
  initial_capital: "5000"
  dca:
    investment_amount: "50"
    interval: 12h
    max_investments: 10
bots:
  - name: test_bot
    symbol: BTCUSDT
    initial_capital: "2000"
    strategy:
      type: grid
      lower_price: "40000"
      upper_price: "50000"
      grid_levels: 5
      investment_per_level: "100"
    risk_management:
      max_position_size: "1000"
      max_daily_loss: "100"
"""


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def example_config_yaml(test_config_dir: Path) -> Path:
    path = test_config_dir / "config.yaml"
    path.write_text(EXAMPLE_YAML)
    return path
