"""Service loggers for the invoice workflow API.

Engine modules log through `logging.getLogger(__name__)` and leave handler
setup to the host. The API and the export notifier get named loggers with
their own console output and, unless LOG_TO_FILE is off, a file under
LOG_DIR.
"""
from __future__ import annotations

import logging
from typing import Optional

from .config import LOG_DIR, LOG_LEVEL, LOG_TO_FILE

FILE_FORMAT = "%(asctime)s [%(name)s] [%(levelname)s] %(message)s"
CONSOLE_FORMAT = "%(asctime)s [%(name)s] %(message)s"

_configured_loggers: set[str] = set()


def _handler(handler: logging.Handler, fmt: str) -> logging.Handler:
    handler.setLevel(LOG_LEVEL)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def setup_logger(name: str, filename: Optional[str] = None) -> logging.Logger:
    """Configure a named logger once; later calls return it unchanged.

    Args:
        name: Logger name (e.g., 'api', 'notify')
        filename: Log file under LOG_DIR; console only when None

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    if name in _configured_loggers:
        return logger

    logger.setLevel(LOG_LEVEL)
    logger.propagate = False
    logger.addHandler(_handler(logging.StreamHandler(), CONSOLE_FORMAT))

    if filename and LOG_TO_FILE:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        logger.addHandler(
            _handler(logging.FileHandler(LOG_DIR / filename, encoding="utf-8"), FILE_FORMAT)
        )

    _configured_loggers.add(name)
    return logger


def get_api_logger() -> logging.Logger:
    """Logger for API requests."""
    return setup_logger("api", "api.log")


def get_notify_logger() -> logging.Logger:
    """Logger for outbound export notifications."""
    return setup_logger("notify", "notify.log")
