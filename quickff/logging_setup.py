"""Logging setup for quickff."""

import logging
import sys
from pathlib import Path
from typing import Optional


def setup_logging(log_level: str, log_file: Optional[Path] = None) -> logging.Logger:
    """Setup the package logger: console at log_level, optional file at DEBUG.

    The console handler writes to stderr, stdout may be carrying media data.

    Args:
        log_level: Level name for console output.
        log_file: Optional path of a log file.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("quickff")
    logger.setLevel(logging.DEBUG)

    # Remove any existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)

    return logger


def ensure_console_logging() -> logging.Logger:
    """Make INFO output of the package visible when nobody configured logging.

    Used by verbose invocations. Does nothing if the package logger or any
    ancestor already has a handler, so application setup always wins.

    Returns:
        The package logger
    """
    logger = logging.getLogger("quickff")
    if logger.hasHandlers():
        return logger

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)
    if logger.getEffectiveLevel() > logging.INFO:
        logger.setLevel(logging.INFO)
    return logger
