"""Process-wide logging setup."""

from __future__ import annotations

import logging

from escrow.core.config import LoggingSettings

_NOISY_LOGGERS = ("stripe", "sqlalchemy.engine", "aiosqlite")


def configure_logging(settings: LoggingSettings, *, debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=settings.format)
    logging.getLogger("escrow").setLevel(level)
    if not debug:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
