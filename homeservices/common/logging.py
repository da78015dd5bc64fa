"""
Logging setup for the API process and the seeding script.
"""

from __future__ import annotations

import logging

from homeservices.common.settings import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# SQL statement echo is only useful while debugging queries.
_NOISY_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")

_configured_level: int | None = None


def configure_logging(level: str | None = None) -> int:
    """Install the root handler once and return the effective level.

    `level` overrides `LOG_LEVEL` from settings; later calls are no-ops.
    """

    global _configured_level
    if _configured_level is not None:
        return _configured_level

    level_name = (level or get_settings().LOG_LEVEL).strip().upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    quiet_level = numeric_level if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    _configured_level = numeric_level
    return numeric_level
