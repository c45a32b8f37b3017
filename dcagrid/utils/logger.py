"""
structlog configuration shared by the CLI, the live runner and the library.

Events are snake_case names with keyword fields::

    logger = get_logger(__name__)
    logger.info("grid_buy", symbol="BTCUSDT", level_index=3, price=42500.0)

Output goes to stderr (stdout carries backtest reports) and, optionally, to
rotating files under ``log_dir``.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any

import structlog
from structlog.types import Processor

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def _rotating_handler(path: Path, level: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def _build_handlers(
    level: int, log_dir: Path | None, log_to_console: bool, log_to_file: bool
) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []

    if log_to_console:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(level)
        handlers.append(console)

    if log_to_file:
        directory = log_dir if log_dir is not None else Path("logs")
        directory.mkdir(parents=True, exist_ok=True)
        handlers.append(_rotating_handler(directory / "dcagrid.log", level))
        handlers.append(_rotating_handler(directory / "error.log", logging.ERROR))

    return handlers


def _build_processors(json_logs: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_logs:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=False,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )
    return processors


def setup_logging(
    log_level: str = "INFO",
    log_dir: Path | None = None,
    log_to_console: bool = True,
    log_to_file: bool = True,
    json_logs: bool = False,
) -> None:
    """
    Configure structlog and the stdlib handlers it writes through.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_dir: Directory for log files (default: ./logs)
        log_to_console: Write to stderr
        log_to_file: Write dcagrid.log and error.log with rotation
        json_logs: Render JSON lines instead of console text
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=_build_processors(json_logs),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=_build_handlers(level, log_dir, log_to_console, log_to_file),
        force=True,
    )
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("watchdog").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.BoundLogger:
    """Logger for a module (pass ``__name__``)."""
    return structlog.get_logger(name)


class LoggerMixin:
    """Adds a ``logger`` property named after the class."""

    @property
    def logger(self) -> structlog.BoundLogger:
        return get_logger(self.__class__.__name__)


class log_context:
    """
    Bind fields to every event logged inside the block.

    Usage:
        with log_context(symbol="BTCUSDT", strategy="grid"):
            logger.info("backtest_started")
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs

    def __enter__(self) -> None:
        structlog.contextvars.bind_contextvars(**self.context)

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())
