"""
Logging setup and configuration utilities.

This module provides centralized logging configuration using loguru
with support for console output and rotating log files.
"""

import logging
import sys
from pathlib import Path

from loguru import logger

from ..config.models import LoggingConfig

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{name}:{function}:{line} - {message}"
)


def setup_logging(config: LoggingConfig) -> None:
    """
    Setup application logging with the given configuration.

    Args:
        config: Logging configuration
    """
    level = config.level.upper()

    # Remove default handler
    logger.remove()

    if config.console_enabled:
        logger.add(
            sys.stderr,
            format=CONSOLE_FORMAT,
            level=level,
            colorize=True,
            backtrace=True,
            diagnose=False
        )

    if config.file_enabled:
        log_dir = Path(config.log_directory)
        log_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_dir / "tunnel.log",
            format=FILE_FORMAT,
            level=level,
            rotation=config.max_file_size,
            retention=config.backup_count,
            compression="zip",
            backtrace=True,
            diagnose=False
        )

    # asyncssh logs through the standard library and is chatty below WARNING
    logging.getLogger("asyncssh").setLevel(
        logging.DEBUG if level in ("TRACE", "DEBUG") else logging.WARNING
    )
