"""Structured logging configuration using structlog.

Logs always go to stderr; stdout is reserved for fetched data.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from xfetch.core.config import get_settings


# Event keys whose values are session secrets
SECRET_KEYS = frozenset({"auth_token", "ct0", "cookie", "authorization", "password"})

# user:pass@ inside proxy URLs
_URL_CREDENTIALS = re.compile(r"(?P<scheme>[a-z0-9]+://)[^/@\s]+:[^/@\s]+@", re.IGNORECASE)

# Libraries that log every request or frame through the stdlib
NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "h2")


def redact_secrets(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Mask cookie values and proxy credentials before rendering."""
    for key, value in event_dict.items():
        if key in SECRET_KEYS and value:
            event_dict[key] = "****"
        elif isinstance(value, str) and "@" in value:
            event_dict[key] = _URL_CREDENTIALS.sub(r"\g<scheme>****:****@", value)
    return event_dict


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level name; defaults to ``Settings.log_level``.
        log_format: ``"json"`` or ``"console"``; defaults to ``Settings.log_format``.
    """
    settings = get_settings()
    level_name = (level or settings.log_level).upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if (log_format or settings.log_format) == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
        processors = [*shared_processors, structlog.processors.format_exc_info, renderer]
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        processors = [*shared_processors, renderer]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.stdlib.BoundLogger:
    """Get a logger instance with optional initial context."""
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


class LogContext:
    """Bind context (command, query, checkpoint) to every log line in a block.

    Usage:
        with LogContext(command="search", query="python"):
            ...
    """

    def __init__(self, **context: Any) -> None:
        self.context = context

    def __enter__(self) -> "LogContext":
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())
