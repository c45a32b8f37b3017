"""
Configuration Manager with YAML support, Pydantic validation, and hot reload.
"""

import hashlib
import json
import os
import re
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from dcagrid.config.schemas import AppConfig, BotConfig
from dcagrid.utils.logger import LoggerMixin

_ENV_VAR = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def substitute_env_vars(value: Any) -> Any:
    """
    Replace ``${VAR}`` in every string of a loaded YAML document.

    Raises:
        KeyError: If a referenced variable is not set
    """
    if isinstance(value, str):

        def replace(match: re.Match) -> str:
            name = match.group(1)
            if name not in os.environ:
                raise KeyError(f"environment variable not set: {name}")
            return os.environ[name]

        return _ENV_VAR.sub(replace, value)
    if isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [substitute_env_vars(v) for v in value]
    return value


class ConfigManager(LoggerMixin):
    """
    Configuration manager with YAML loading, validation, and hot reload.

    Features:
    - Load and validate YAML configurations with Pydantic
    - Environment variable substitution
    - Configuration versioning with hash tracking
    - Hot reload on configuration file changes
    - Multiple bot configuration management
    """

    def __init__(self, config_path: Path) -> None:
        """
        Initialize ConfigManager.

        Args:
            config_path: Path to main configuration file
        """
        self.config_path = Path(config_path)
        self._config: AppConfig | None = None
        self._config_hash: str | None = None
        self._reload_callbacks: list[Callable[[AppConfig], None]] = []
        self._observer: Observer | None = None  # type: ignore[valid-type]
        self._watch_enabled = False

    def load(self) -> AppConfig:
        """
        Load and validate configuration from file.

        Returns:
            Validated AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If the file is not valid YAML
            KeyError: If a referenced environment variable is missing
            ValidationError: If config validation fails
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        try:
            with open(self.config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f) or {}

            raw_config = substitute_env_vars(raw_config)

            # Hash the substituted document so env changes bump the version
            config_str = json.dumps(raw_config, sort_keys=True, default=str)
            new_hash = hashlib.sha256(config_str.encode()).hexdigest()[:16]

            config = AppConfig(**raw_config)

            self._config = config
            self._config_hash = new_hash

            self.logger.info(
                "config_loaded",
                path=str(self.config_path),
                version_hash=new_hash,
                bots_count=len(config.bots),
            )

            return config

        except yaml.YAMLError as e:
            self.logger.error("config_yaml_invalid", error=str(e))
            raise
        except KeyError as e:
            self.logger.error("config_env_missing", error=str(e))
            raise
        except ValidationError as e:
            self.logger.error("config_validation_failed", error=str(e))
            raise

    def reload(self) -> AppConfig:
        """
        Reload configuration from file and notify callbacks if it changed.

        Returns:
            Updated AppConfig instance
        """
        old_hash = self._config_hash
        config = self.load()

        if old_hash != self._config_hash:
            self.logger.info("config_changed", old_hash=old_hash, new_hash=self._config_hash)
            for callback in self._reload_callbacks:
                try:
                    callback(config)
                except Exception as e:
                    self.logger.error(
                        "config_reload_callback_failed",
                        callback=getattr(callback, "__name__", repr(callback)),
                        error=str(e),
                    )
        else:
            self.logger.debug("config_unchanged")

        return config

    def get_config(self) -> AppConfig:
        """
        Get current configuration.

        Raises:
            RuntimeError: If config not loaded
        """
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call load() first.")
        return self._config

    def get_bot_config(self, bot_name: str) -> BotConfig | None:
        """Configuration of the bot named ``bot_name``, or None."""
        for bot_config in self.get_config().bots:
            if bot_config.name == bot_name:
                return bot_config
        return None

    def get_config_version(self) -> str:
        if self._config_hash is None:
            raise RuntimeError("Configuration not loaded")
        return self._config_hash

    def register_reload_callback(self, callback: Callable[[AppConfig], None]) -> None:
        """Call ``callback`` with the new config whenever a reload changes it."""
        self._reload_callbacks.append(callback)

    def enable_watch(self) -> None:
        """Enable file watching for hot reload"""
        if self._watch_enabled:
            self.logger.warning("config_watch_already_enabled")
            return

        manager = self

        class ConfigFileHandler(FileSystemEventHandler):
            def on_modified(self, event: FileSystemEvent) -> None:
                if Path(str(event.src_path)) != manager.config_path:
                    return
                try:
                    manager.reload()
                except Exception as e:
                    manager.logger.error("config_reload_failed", error=str(e))

        self._observer = Observer()
        self._observer.schedule(
            ConfigFileHandler(),
            str(self.config_path.parent),
            recursive=False,
        )
        self._observer.start()
        self._watch_enabled = True

        self.logger.info("config_watch_enabled", path=str(self.config_path))

    def disable_watch(self) -> None:
        """Disable file watching"""
        if not self._watch_enabled:
            return

        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None

        self._watch_enabled = False
        self.logger.info("config_watch_disabled")

    def save_config(self, config: AppConfig, path: Path | None = None) -> None:
        """
        Save configuration to file.

        Args:
            config: Configuration to save
            path: Optional path to save to (defaults to current config_path)
        """
        save_path = path or self.config_path
        config_dict = config.model_dump(mode="json")

        with open(save_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                config_dict,
                f,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            )

        self.logger.info("config_saved", path=str(save_path))

    @staticmethod
    def create_example_config(path: Path) -> None:
        """
        Create an example configuration file.

        Args:
            path: Path where to create the example config
        """
        example_config = {
            "log_level": "INFO",
            "log_dir": "logs",
            "log_to_file": True,
            "log_to_console": True,
            "json_logs": False,
            "backtest": {
                "symbol": "BTCUSDT",
                "data_file": "data/BTCUSDT_1h.csv",
                "initial_capital": "10000",
                "fee_rate": "0.001",
                "dca": {
                    "investment_amount": "100",
                    "interval": "24h",
                    "max_investments": 100,
                },
                "grid": {
                    "lower_price": "30000",
                    "upper_price": "60000",
                    "grid_levels": 20,
                    "investment_per_level": "100",
                },
            },
            "bots": [
                {
                    "name": "example_grid_bot",
                    "symbol": "BTCUSDT",
                    "strategy": {
                        "type": "grid",
                        "lower_price": "40000",
                        "upper_price": "50000",
                        "grid_levels": 10,
                        "investment_per_level": "100",
                        "spacing": "arithmetic",
                        "reinvest_rate": "0.5",
                        "reinvest_threshold": "1",
                    },
                    "risk_management": {
                        "max_position_size": "10000",
                        "min_order_size": "10",
                        "max_drawdown_pct": "0.2",
                    },
                    "dry_run": True,
                    "tick_interval_seconds": 30,
                },
                {
                    "name": "example_combo_bot",
                    "symbol": "ETHUSDT",
                    "strategy": {
                        "type": "combo",
                        "components": [
                            {
                                "allocation": "0.7",
                                "strategy": {
                                    "type": "grid",
                                    "lower_price": "2000",
                                    "upper_price": "3000",
                                    "grid_levels": 15,
                                    "investment_per_level": "50",
                                },
                            },
                            {
                                "allocation": "0.3",
                                "strategy": {
                                    "type": "dca",
                                    "investment_amount": "50",
                                    "interval": "12h",
                                    "max_investments": 30,
                                },
                            },
                        ],
                    },
                    "initial_capital": "5000",
                    "dry_run": True,
                },
            ],
        }

        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                example_config,
                f,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            )

    def __del__(self) -> None:
        """Cleanup on deletion"""
        self.disable_watch()
