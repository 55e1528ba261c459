from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

__all__ = ["configure_logging", "get_logger"]

PACKAGE_LOGGER = "sheet_chat"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> logging.Logger:
    """Configure the package logger. Safe to call multiple times (won't duplicate handlers).

    Configurable via environment variables:
    - SHEET_CHAT_LOG_LEVEL: default WARNING
    - SHEET_CHAT_LOG_FILE: optional path to enable rotating file logging
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    name = (level or os.getenv("SHEET_CHAT_LOG_LEVEL") or "WARNING").upper()
    logger.setLevel(getattr(logging, name, logging.WARNING))

    if logger.handlers:
        return logger

    fmt = logging.Formatter(LOG_FORMAT)

    sh = logging.StreamHandler()
    sh.setFormatter(fmt)
    logger.addHandler(sh)

    log_file = os.getenv("SHEET_CHAT_LOG_FILE")
    if log_file:
        try:
            fh = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
            fh.setFormatter(fmt)
            logger.addHandler(fh)
        except OSError:
            # Keep console logging.
            logger.exception("Failed to create file log handler for %s", log_file)

    return logger


def get_logger(name: str = PACKAGE_LOGGER) -> logging.Logger:
    """Return a logger under the package logger, configuring it on first use.

    Use get_logger(__name__) in modules that want module-specific loggers.
    """
    if not logging.getLogger(PACKAGE_LOGGER).handlers:
        configure_logging()
    return logging.getLogger(name)
