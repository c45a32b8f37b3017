"""Tests for ConfigManager"""

from decimal import Decimal
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from dcagrid.config import ConfigManager
from dcagrid.config.manager import substitute_env_vars
from dcagrid.config.schemas import AppConfig
from dcagrid.core.models import ComboConfig, GridConfig


class TestConfigManager:
    """Test ConfigManager functionality"""

    def test_load_valid_config(self, example_config_yaml: Path):
        manager = ConfigManager(example_config_yaml)
        config = manager.load()

        assert isinstance(config, AppConfig)
        assert config.log_level == "INFO"
        assert config.log_to_file is False
        assert len(config.bots) == 1
        assert config.bots[0].name == "test_bot"
        assert config.backtest.initial_capital == Decimal("5000")

    def test_load_nonexistent_file(self, test_config_dir: Path):
        manager = ConfigManager(test_config_dir / "nonexistent.yaml")

        with pytest.raises(FileNotFoundError):
            manager.load()

    def test_load_invalid_yaml(self, test_config_dir: Path):
        invalid_file = test_config_dir / "invalid.yaml"
        invalid_file.write_text("{ invalid yaml content")

        with pytest.raises(yaml.YAMLError):
            ConfigManager(invalid_file).load()

    def test_load_invalid_schema(self, test_config_dir: Path):
        invalid_file = test_config_dir / "invalid_schema.yaml"
        invalid_file.write_text("log_level: INVALID_LEVEL\nbots: []\n")

        with pytest.raises(ValidationError):
            ConfigManager(invalid_file).load()

    def test_empty_file_gives_defaults(self, test_config_dir: Path):
        empty = test_config_dir / "empty.yaml"
        empty.write_text("")

        config = ConfigManager(empty).load()

        assert config.bots == []
        assert config.backtest.symbol == "BTCUSDT"

    def test_get_config_before_load(self, example_config_yaml: Path):
        with pytest.raises(RuntimeError):
            ConfigManager(example_config_yaml).get_config()

    def test_get_bot_config(self, example_config_yaml: Path):
        manager = ConfigManager(example_config_yaml)
        manager.load()

        bot_config = manager.get_bot_config("test_bot")

        assert bot_config is not None
        assert bot_config.symbol == "BTCUSDT"
        assert manager.get_bot_config("nonexistent_bot") is None

    def test_bot_builds_engine_config_and_risk_manager(self, example_config_yaml: Path):
        manager = ConfigManager(example_config_yaml)
        bot = manager.load().bots[0]

        engine_config = bot.to_engine_config()
        risk = bot.risk_management.to_risk_manager()

        assert isinstance(engine_config, GridConfig)
        assert engine_config.symbol == "BTCUSDT"
        assert engine_config.grid_levels == 5
        assert risk.max_position_size == Decimal("1000")
        assert risk.max_daily_loss == Decimal("100")

    def test_config_versioning(self, example_config_yaml: Path):
        manager = ConfigManager(example_config_yaml)
        manager.load()

        version1 = manager.get_config_version()
        assert isinstance(version1, str)
        assert len(version1) == 16

        manager.reload()
        assert manager.get_config_version() == version1

    def test_version_before_load(self, example_config_yaml: Path):
        with pytest.raises(RuntimeError):
            ConfigManager(example_config_yaml).get_config_version()

    def test_reload_callback(self, example_config_yaml: Path):
        manager = ConfigManager(example_config_yaml)
        manager.load()
        received = []
        manager.register_reload_callback(received.append)

        manager.reload()
        assert received == []

        content = example_config_yaml.read_text()
        example_config_yaml.write_text(content.replace("log_level: INFO", "log_level: DEBUG"))
        manager.reload()

        assert len(received) == 1
        assert received[0].log_level == "DEBUG"

    def test_failing_callback_does_not_break_reload(self, example_config_yaml: Path):
        manager = ConfigManager(example_config_yaml)
        manager.load()
        received = []

        def broken(config: AppConfig):
            raise RuntimeError("boom")

        manager.register_reload_callback(broken)
        manager.register_reload_callback(received.append)
        example_config_yaml.write_text(
            example_config_yaml.read_text().replace("grid_levels: 5", "grid_levels: 6")
        )

        config = manager.reload()

        assert config.bots[0].strategy.grid_levels == 6
        assert len(received) == 1

    def test_save_and_reload(self, example_config_yaml: Path, test_config_dir: Path):
        manager = ConfigManager(example_config_yaml)
        config = manager.load()
        saved = test_config_dir / "saved.yaml"

        manager.save_config(config, saved)
        reloaded = ConfigManager(saved).load()

        assert reloaded == config

    def test_create_example_config(self, test_config_dir: Path):
        path = test_config_dir / "example.yaml"
        ConfigManager.create_example_config(path)

        config = ConfigManager(path).load()

        assert [bot.name for bot in config.bots] == ["example_grid_bot", "example_combo_bot"]
        combo = config.bots[1].to_engine_config()
        assert isinstance(combo, ComboConfig)
        assert [c.allocation for c in combo.components] == [Decimal("0.7"), Decimal("0.3")]
        combo.validate()

    def test_watch_can_be_toggled(self, example_config_yaml: Path):
        manager = ConfigManager(example_config_yaml)
        manager.load()

        manager.enable_watch()
        manager.enable_watch()
        manager.disable_watch()
        manager.disable_watch()

        assert manager._observer is None


class TestEnvironmentSubstitution:
    def test_substitutes_nested_values(self, monkeypatch):
        monkeypatch.setenv("DCAGRID_SYMBOL", "ETHUSDT")

        result = substitute_env_vars(
            {"bots": [{"symbol": "${DCAGRID_SYMBOL}", "levels": 5}], "name": "x-${DCAGRID_SYMBOL}"}
        )

        assert result == {"bots": [{"symbol": "ETHUSDT", "levels": 5}], "name": "x-ETHUSDT"}

    def test_missing_variable(self, monkeypatch):
        monkeypatch.delenv("DCAGRID_MISSING", raising=False)

        with pytest.raises(KeyError, match="DCAGRID_MISSING"):
            substitute_env_vars("${DCAGRID_MISSING}")

    def test_load_with_env(self, test_config_dir: Path, monkeypatch):
        monkeypatch.setenv("DCAGRID_LOG_LEVEL", "WARNING")
        path = test_config_dir / "env.yaml"
        path.write_text("log_level: ${DCAGRID_LOG_LEVEL}\n")

        manager = ConfigManager(path)
        assert manager.load().log_level == "WARNING"
        version = manager.get_config_version()

        monkeypatch.setenv("DCAGRID_LOG_LEVEL", "ERROR")
        manager.reload()

        assert manager.get_config().log_level == "ERROR"
        assert manager.get_config_version() != version

    def test_load_with_missing_env_raises(self, test_config_dir: Path, monkeypatch):
        monkeypatch.delenv("DCAGRID_UNSET", raising=False)
        path = test_config_dir / "env.yaml"
        path.write_text("log_level: ${DCAGRID_UNSET}\n")

        with pytest.raises(KeyError):
            ConfigManager(path).load()
