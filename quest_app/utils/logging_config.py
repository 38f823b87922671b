"""Logging setup shared by the CLI entry point and the API server."""

from __future__ import annotations

import logging
from logging import Logger

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: int | str = logging.INFO, *, access_log: bool = True) -> Logger:
    """Configure root logging and return the ``quest_app`` package logger.

    ``level`` accepts a numeric level or a name such as ``"debug"``. With
    ``access_log`` off, uvicorn's per-request lines are limited to warnings.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level!r}")
    logging.basicConfig(level=level, format=LOG_FORMAT)
    if not access_log:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    return logging.getLogger("quest_app")
