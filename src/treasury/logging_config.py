"""Logging setup for treasury.

All modules log through ``get_logger`` so that records live under the
``treasury`` namespace and can be configured in one place.
"""

import logging
import os
import sys
from typing import Optional

_LOGGER_PREFIX = "treasury"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the treasury namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach a single stderr handler to the treasury root logger.

    Args:
        level: Level name (e.g. "INFO"). If None, checks TREASURY_LOG_LEVEL
            environment variable, then defaults to WARNING

    Returns:
        The configured treasury root logger
    """
    if level is None:
        level = os.environ.get("TREASURY_LOG_LEVEL", "WARNING")

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level.upper())

    # Replace handlers so repeated calls do not duplicate output
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)
    root_logger.propagate = False
    return root_logger
