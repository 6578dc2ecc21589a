"""structlog configuration with the destructuring processor in the chain."""

import logging
import sys
from typing import Optional, TextIO, Union

import structlog

from semlog.destructuring import LoggingLimits, PropertyValueFactory
from semlog.log import DestructuringProcessor


def configure_logging(
    level: Union[int, str] = 'INFO',
    json_logs: bool = False,
    limits: Optional[LoggingLimits] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure structlog for applications logging through semlog.

    Args:
        level: Minimum level, as a number or a name such as ``'DEBUG'``
        json_logs: Render JSON lines instead of the console format
        limits: Destructuring limits; process-wide defaults when None
        stream: Output stream, stderr by default
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt='iso'),
        DestructuringProcessor(PropertyValueFactory(limits=limits)),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_logs:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: Optional[str] = None):
    """Return a structlog logger namespaced under ``semlog``."""
    if not name or name == 'semlog':
        return structlog.get_logger('semlog')
    if name.startswith('semlog'):
        return structlog.get_logger(name)
    return structlog.get_logger(f"semlog.{name}")
