"""Logging configuration for inbox-placement.

Every module logs through structlog with snake_case event names and
keyword context. Values that come from mail servers or message headers
pass through ``sanitize_for_log`` first.
"""

import logging
import re
import sys
from typing import Any

import structlog

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_ANSI_CODES = re.compile(r"\x1b\[[0-9;]*m")


def sanitize_for_log(text: object, max_length: int = 100) -> str:
    """Strip ANSI codes and control characters, then truncate.

    Args:
        text: Value to render; ``None`` becomes an empty string.
        max_length: Maximum length of the returned string.

    Returns:
        A single-line string safe to put in a log record.
    """
    if text is None:
        return ""
    value = str(text)
    value = _ANSI_CODES.sub("", value)
    value = _CONTROL_CHARS.sub("", value)
    return value[:max_length]


def configure_logging(json_format: bool = False, debug: bool = False) -> None:
    """Configure structlog for the application.

    Args:
        json_format: Emit one JSON object per line (for production).
        debug: Lower the threshold to DEBUG.
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_format:
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if debug else logging.INFO
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
