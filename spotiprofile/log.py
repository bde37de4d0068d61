"""
Logging setup for spotiprofile.

A single package logger ("spotiprofile") with console and optional file
output, plus a ``timed_step`` context manager used to mark pipeline stages.
"""

from __future__ import annotations

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

LOGGER_NAME = "spotiprofile"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_logger: Optional[logging.Logger] = None


def setup_logging(log_dir: Optional[Path] = None, log_level: str = "INFO") -> logging.Logger:
    """
    Set up logging for the package.

    Args:
        log_dir: Directory for a dated log file (console only when None)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured package logger
    """
    global _logger

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Avoid duplicate handlers
    if logger.handlers:
        _logger = logger
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"spotiprofile_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """Get the package logger, configured or not."""
    global _logger
    if _logger is None:
        _logger = logging.getLogger(LOGGER_NAME)
    return _logger


@contextmanager
def timed_step(step_name: str, logger: Optional[logging.Logger] = None) -> Iterator[None]:
    """Context manager to time and log execution of a pipeline step."""
    logger = logger or get_logger()
    start_time = time.perf_counter()
    logger.info("[START] %s", step_name)
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start_time
        logger.info("[END] %s (took %.2fs)", step_name, elapsed)
