"""
Logging configuration helpers.
It centralizes cross-cutting concerns like settings, logging, and database access used by the forecasting jobs.
Domain modules only call `logging.getLogger(<subsystem>)`; handlers are installed once here.
"""

from __future__ import annotations

import logging

from forecast_engine.common.settings import get_settings

_LOGGING_CONFIGURED = False
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level_name: str | None = None) -> None:
    """Configure process-wide logging from environment settings."""

    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    if level_name is None:
        level_name = get_settings().LOG_LEVEL
    level = getattr(logging, level_name.upper(), logging.INFO)

    logging.basicConfig(level=level, format=LOG_FORMAT)
    _LOGGING_CONFIGURED = True
