"""Logging configuration helpers for the LivePoll server."""

from __future__ import annotations

import logging
from logging import Logger

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str | int = logging.INFO) -> Logger:
    """Configure basic logging for the server and return the package logger."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger = logging.getLogger("livepoll")
    logger.setLevel(level)
    return logger
