"""Utility modules"""

from dcagrid.utils.logger import LoggerMixin, get_logger, log_context, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
    "log_context",
    "LoggerMixin",
]
