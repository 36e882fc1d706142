# -*- coding: utf-8 -*-
"""
Logger utility.

Provides a unified way to obtain named loggers so every module writes
the same console format.
"""

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVEL_ENV = "ORDERFLOW_LOG_LEVEL"


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.getenv(LOG_LEVEL_ENV) or "INFO").upper()
    resolved = logging.getLevelName(name)
    # getLevelName returns "Level X" for unknown names
    return resolved if isinstance(resolved, int) else logging.INFO


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Return a named logger with a console handler attached once.

    Args:
        name: Logger name used to identify the log source.
        level: Optional level name ("DEBUG", "INFO", ...). Falls back to the
            ORDERFLOW_LOG_LEVEL environment variable, then INFO.

    Returns:
        Configured ``logging.Logger``.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(_resolve_level(level))
    elif level is not None:
        logger.setLevel(_resolve_level(level))
    return logger


def set_level(level: str) -> None:
    """Apply a level to every logger already created under the orderflow namespace."""
    resolved = _resolve_level(level)
    for name, existing in logging.Logger.manager.loggerDict.items():
        if name.startswith("orderflow") and isinstance(existing, logging.Logger):
            existing.setLevel(resolved)
