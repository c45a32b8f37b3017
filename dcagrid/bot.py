"""
Bot runner - runs every configured bot against a live or replayed price feed.

Usage:
    dcagrid-bot --config configs/bots.yaml --prices data/btc_1h.csv

Each entry under ``bots`` gets its engine (via the strategy factory), its
optional risk manager and a LiveStrategyRunner. Orders go to an in-memory
ledger: only dry-run bots are started, since order placement on an exchange
is outside this package.

Exit codes:
    0  all prices replayed, or stopped by a signal
    1  configuration error, unreadable price file or no runnable bot
    2  invalid command line
"""

import argparse
import asyncio
import json
import signal
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from dcagrid.config.manager import ConfigManager
from dcagrid.config.schemas import AppConfig, BotConfig
from dcagrid.core.models import ConfigError
from dcagrid.core.order_sink import OrderLedger
from dcagrid.orchestrator.live_runner import LiveStrategyRunner, PriceFeed
from dcagrid.orchestrator.price_feed import ReplayPriceFeed
from dcagrid.strategies.factory import create_engine
from dcagrid.utils.logger import get_logger, log_context, setup_logging

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2


class BotApplication:
    """Owns one runner per configured bot and their shared lifecycle."""

    poll_interval = 0.05

    def __init__(self, config: AppConfig, feed_factory: Callable[[BotConfig], PriceFeed]):
        """
        Args:
            config: Application config holding the bot list
            feed_factory: Builds the price feed for one bot
        """
        self.config = config
        self.feed_factory = feed_factory
        self.runners: dict[str, LiveStrategyRunner] = {}
        self.ledgers: dict[str, OrderLedger] = {}
        self._shutdown_event = asyncio.Event()
        self.running = False

    def initialize(self) -> None:
        """
        Build an engine and a runner for every dry-run bot.

        Raises:
            ConfigError: If a bot's strategy configuration is invalid
        """
        logger.info("initializing_bots", bot_count=len(self.config.bots))
        for bot_config in self.config.bots:
            if not bot_config.dry_run:
                logger.error("live_trading_unavailable", bot_name=bot_config.name)
                continue

            ledger = OrderLedger()
            risk_manager = (
                bot_config.risk_management.to_risk_manager()
                if bot_config.risk_management is not None
                else None
            )
            engine = create_engine(
                bot_config.to_engine_config(),
                order_sink=ledger,
                risk_gate=risk_manager,
                initial_capital=bot_config.initial_capital,
            )
            runner = LiveStrategyRunner(
                engine,
                self.feed_factory(bot_config),
                tick_interval=bot_config.tick_interval_seconds,
                step_timeout=bot_config.step_timeout_seconds,
                fee_rate=bot_config.fee_rate,
            )
            self.runners[bot_config.name] = runner
            self.ledgers[bot_config.name] = ledger
            logger.info(
                "bot_initialized",
                bot_name=bot_config.name,
                strategy=engine.strategy_name,
                symbol=engine.symbol,
            )

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    def _feeds_exhausted(self) -> bool:
        return all(
            isinstance(runner.price_feed, ReplayPriceFeed) and runner.price_feed.exhausted
            for runner in self.runners.values()
        )

    async def start(self) -> None:
        self.running = True
        self._shutdown_event.clear()
        for name, runner in self.runners.items():
            with log_context(bot_name=name):
                await runner.start()

    async def stop(self) -> None:
        """Stop every runner, letting in-flight ticks finish."""
        for runner in self.runners.values():
            await runner.stop()
        self.running = False
        logger.info("bots_stopped", bot_count=len(self.runners))

    async def run(self) -> None:
        """Run until shutdown is requested or every replay feed is used up."""
        await self.start()
        try:
            while not self._shutdown_event.is_set():
                if self._feeds_exhausted():
                    logger.info("price_feeds_exhausted")
                    break
                try:
                    await asyncio.wait_for(
                        self._shutdown_event.wait(), timeout=self.poll_interval
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            await self.stop()

    def status(self) -> dict[str, Any]:
        return {
            name: {**runner.status(), "orders": len(self.ledgers[name])}
            for name, runner in self.runners.items()
        }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dcagrid-bot", description="Run the configured grid/DCA bots in dry-run mode"
    )
    parser.add_argument("--config", type=Path, required=True, help="YAML config with bots")
    parser.add_argument(
        "--prices", type=Path, required=True, help="Candle CSV whose closes are replayed"
    )
    parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], default=None
    )
    return parser


async def run_bots(app: BotApplication) -> None:
    """Run ``app`` with SIGINT/SIGTERM wired to a graceful shutdown."""

    def signal_handler(sig, frame):
        logger.info("signal_received", signal=sig)
        app.request_shutdown()

    previous = {
        sig: signal.signal(sig, signal_handler) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        await app.run()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return EXIT_OK if e.code == 0 else EXIT_USAGE

    try:
        app_config = ConfigManager(args.config).load()
    except (FileNotFoundError, yaml.YAMLError, KeyError, ValidationError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR

    setup_logging(
        log_level=args.log_level or app_config.log_level,
        log_dir=Path(app_config.log_dir),
        log_to_console=app_config.log_to_console,
        log_to_file=app_config.log_to_file,
        json_logs=app_config.json_logs,
    )

    try:
        prices = ReplayPriceFeed.from_csv(args.prices).prices
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR

    app = BotApplication(
        app_config, lambda bot: ReplayPriceFeed(prices, symbol=bot.symbol)
    )
    try:
        app.initialize()
    except ConfigError as e:
        logger.error("invalid_bot_config", error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR

    if not app.runners:
        print("error: no dry-run bots configured", file=sys.stderr)
        return EXIT_ERROR

    asyncio.run(run_bots(app))
    print(json.dumps(app.status(), indent=2))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
