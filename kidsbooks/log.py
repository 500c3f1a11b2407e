"""Logging setup for the ``kidsbooks`` package.

Modules use ``logging.getLogger(__name__)``; this helper attaches one
stream handler to the package logger so every child logger shares it.
"""

from __future__ import annotations

import logging
import threading

from . import config

_LOCK = threading.Lock()
_FORMAT = "[kidsbooks] %(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level_name: str = "") -> logging.Logger:
    with _LOCK:
        logger = logging.getLogger(config.APP_NAME)
        level = getattr(logging, (level_name or config.log_level_name()).upper(), logging.INFO)
        logger.setLevel(level)
        if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(_FORMAT))
            logger.addHandler(handler)
        logger.propagate = False
        return logger


__all__ = ["configure_logging"]
