"""Centralized logging configuration for chatlayer."""

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from loguru import logger

if TYPE_CHECKING:
    from chatlayer.config.schema import LoggingConfig


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    verbose: bool = False,
) -> None:
    """
    Configure global logging sinks.

    The library itself never calls this; applications embedding chatlayer
    decide where lifecycle logs go.

    Args:
        level: Minimum level for console output (default: INFO)
        log_file: Optional path for a rotating log file
        verbose: If True, set console level to TRACE so every lifecycle
            operation entry is shown
    """
    logger.remove()

    console_level = "TRACE" if verbose else level

    logger.add(
        sys.stderr,
        level=console_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        backtrace=True,
        diagnose=True,
    )

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        # File sink keeps the full DEBUG history
        logger.add(
            str(log_file),
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
            rotation="10 MB",
            retention="1 week",
            compression="zip",
            enqueue=True,
        )

    logger.debug(f"Logging initialized. Console level: {console_level}, File: {log_file}")


def configure_logging_from(config: "LoggingConfig") -> None:
    """Configure sinks from a ``LoggingConfig`` section."""
    log_file = Path(config.log_file).expanduser() if config.log_file else None
    configure_logging(level=config.level, log_file=log_file, verbose=config.verbose)
