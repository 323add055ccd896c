#!/usr/bin/env python3
"""
Centralized logging configuration for the zonal shift reconciler

Correlation fields (event id, node pool name) live in context variables so
that every task on the worker pool logs with its own values. The
CorrelationFilter copies them onto each record for the formatters.
"""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Optional, Iterator
from pathlib import Path

event_id_var: ContextVar[str] = ContextVar('event_id', default='-')
pool_var: ContextVar[str] = ContextVar('pool', default='-')

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [event=%(event_id)s pool=%(pool)s] - %(message)s"


class ColoredFormatter(logging.Formatter):
    """Custom formatter to add colors to different log levels"""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'        # Reset
    }

    def format(self, record):
        # Color a copy of the level name; the record is shared with other handlers
        original = record.levelname
        levelcolor = self.COLORS.get(original, self.COLORS['RESET'])
        record.levelname = f"{levelcolor}{original}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class CorrelationFilter(logging.Filter):
    """Attach event_id and pool correlation fields to every record"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "event_id"):
            record.event_id = event_id_var.get()
        if not hasattr(record, "pool"):
            record.pool = pool_var.get()
        return True


@contextmanager
def log_context(event_id: Optional[str] = None, pool: Optional[str] = None) -> Iterator[None]:
    """
    Set correlation fields for the duration of a block

    Args:
        event_id: Notification id to tag records with
        pool: Node pool name to tag records with
    """
    tokens = []
    if event_id is not None:
        tokens.append((event_id_var, event_id_var.set(event_id)))
    if pool is not None:
        tokens.append((pool_var, pool_var.set(pool)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    enable_colors: bool = True,
    log_format: str = DEFAULT_FORMAT
) -> None:
    """
    Setup centralized logging configuration

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        enable_colors: Whether to enable colored output in console
        log_format: Format string for console records
    """

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear any existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    file_format = log_format.replace("%(message)s", "%(module)s:%(funcName)s:%(lineno)d - %(message)s")

    console_formatter = ColoredFormatter(log_format) if enable_colors else logging.Formatter(log_format)
    file_formatter = logging.Formatter(file_format)
    correlation = CorrelationFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(console_formatter)
    console_handler.addFilter(correlation)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(file_formatter)
        file_handler.addFilter(correlation)
        root_logger.addHandler(file_handler)

    # Set specific logger levels
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at {level} level")
    if log_file:
        logger.info(f"Log file: {log_file}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
