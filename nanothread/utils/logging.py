"""Centralized logging configuration for nanothread."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    verbose: bool = False
) -> None:
    """
    Configure global logging sinks.

    Args:
        level: Minimum level for console output (default: INFO)
        log_file: Optional path for the persistent log file
        verbose: If True, set console level to DEBUG
    """
    # Remove default loguru sink
    logger.remove()

    if log_file is None:
        log_file = Path("logs") / "nanothread.log"

    log_file.parent.mkdir(parents=True, exist_ok=True)

    console_level = "DEBUG" if verbose else level

    logger.add(
        sys.stderr,
        level=console_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        backtrace=True,
        diagnose=False,
    )

    # Combined history, everything from DEBUG up
    logger.add(
        str(log_file),
        level="DEBUG",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        rotation="10 MB",
        retention="1 week",
        compression="zip",
        enqueue=True,
    )

    # Errors get their own file so they survive the combined log's rotation
    logger.add(
        str(log_file.parent / "error" / "error-{time:YYYY-MM-DD}.log"),
        level="ERROR",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        rotation="00:00",
        retention="2 weeks",
        enqueue=True,
    )

    logger.debug(f"Logging initialized. Console level: {console_level}, File: {log_file}")
