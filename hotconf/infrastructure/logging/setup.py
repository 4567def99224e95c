"""
Logging setup and configuration utilities.

Library modules log through the standard ``logging`` module. This module
configures loguru sinks (console and rotating file) and routes the
``hotconf`` logger hierarchy into them.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger as loguru_logger

from ..config.models import LoggingConfig

ROOT_LOGGER_NAME = "hotconf"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """Forwards standard library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller outside the logging module so loguru reports the right origin.
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        loguru_logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """
    Setup logging with the given configuration.

    Replaces all loguru sinks and attaches an ``InterceptHandler`` to the
    ``hotconf`` logger. Calling it again reconfigures both.

    Args:
        config: Logging configuration
    """
    config = config or LoggingConfig()
    level = config.level.upper()

    # Remove default handler
    loguru_logger.remove()

    if config.console_enabled:
        loguru_logger.add(
            sys.stderr,
            format=CONSOLE_FORMAT,
            level=level,
            colorize=True,
            backtrace=True,
            diagnose=True
        )

    if config.file_enabled:
        log_dir = Path(config.log_directory)
        log_dir.mkdir(parents=True, exist_ok=True)
        loguru_logger.add(
            log_dir / "hotconf.log",
            format=config.format,
            level=level,
            rotation=config.max_file_size,
            retention=config.backup_count,
            compression="zip",
            backtrace=True,
            diagnose=True
        )

    library_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(library_logger.handlers):
        if isinstance(handler, InterceptHandler):
            library_logger.removeHandler(handler)
    library_logger.addHandler(InterceptHandler())
    library_logger.setLevel(getattr(logging, level, logging.INFO))
    library_logger.propagate = False
