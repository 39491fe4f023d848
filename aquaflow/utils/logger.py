"""
Centralized logging utility.

Provides a consistent logging setup for billing, alerts, storage and the
insight provider.

Usage:
    from aquaflow.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("Reading recorded")
"""

import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_LEVEL_ENV = "AQUAFLOW_LOG_LEVEL"


def _resolve_level() -> int:
    """Read the log level from the environment, defaulting to WARNING."""
    level_name = os.getenv(LOG_LEVEL_ENV, "WARNING").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        return logging.WARNING
    return level


def get_logger(name: str = "aquaflow") -> logging.Logger:
    """Return a configured logger that writes to the console.

    Args:
        name: Logger name (typically the module name)

    Returns:
        Configured logger object
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level())

    # Avoid duplicate handlers
    if not logger.handlers:
        formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)
        logger.propagate = False

    return logger
