"""Logging configuration."""

import logging
import sys
from typing import Optional

import structlog


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """
    Configure structlog on top of the standard library logging module.

    Args:
        level: Log level name, defaults to settings.log_level
        fmt: "json" for machine readable output, anything else for console output
    """
    from ..config import settings

    level = (level or settings.log_level).upper()
    fmt = (fmt or settings.log_format).lower()

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)

    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
