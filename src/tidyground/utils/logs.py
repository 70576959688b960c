"""Logging setup.

Modules emit structured events through ``structlog.get_logger(__name__)``
and never configure logging themselves. Applications, like the
shell commands, call :func:`configure_logging` once at startup.
"""

import logging
import sys

import structlog

from ..config import get_settings


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog rendering and the minimum level of emitted events.

    :param level: One of ``DEBUG``, ``INFO``, ``WARNING``, ``ERROR``,
                  defaults to the ``log_level`` setting.
    :param fmt: ``json`` or ``console``, defaults to the ``log_format`` setting.
    """
    settings = get_settings()
    level = (level or settings.log_level).upper()
    fmt = fmt or settings.log_format

    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
