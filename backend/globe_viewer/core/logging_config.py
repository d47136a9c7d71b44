"""Logging configuration for the ``globe_viewer`` namespace."""

from __future__ import annotations

import logging
import sys

LOGGER_NAME = "globe_viewer"


def setup_logging(level: str | int = logging.INFO) -> logging.Logger:
    """Configure the package logger with a stdout handler.

    Existing handlers are dropped first so that creating the app more than
    once (tests, reloads) does not duplicate log lines.

    Args:
        level: Level name such as "DEBUG" or a logging level number.

    Returns:
        The configured package logger.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    if logger.hasHandlers():
        logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    logger.addHandler(handler)
    return logger
