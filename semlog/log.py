"""Logging entry points and sink adapters.

:class:`SemanticLogger` is the single variadic entry point: it parses (once)
and binds the skeleton, then hands the raw skeleton text and the values to a
:class:`Sink`. Two sinks are provided, one for structlog and one for the
standard library ``logging`` module.

Examples:
    >>> import logging
    >>> log = SemanticLogger(StdlibSink(logging.getLogger('doctest')), capture_provenance=False)
    >>> str(log.information('{user} signed in from {host}', 'ann', 'web-1'))
    'ann signed in from web-1'
"""

import enum
import logging
import sys
from typing import Any, Dict, Mapping, Optional, Sequence

import structlog

from semlog.base import BoundMessage, TemplateCache, default_cache
from semlog.binding import bind
from semlog.builder import Destructure, from_interpolation
from semlog.destructuring import PropertyValueFactory, is_scalar

TRACE = 5
logging.addLevelName(TRACE, 'TRACE')

RESERVED_KEYS = frozenset({'event', 'template', 'exc_info', 'level', 'logger', 'timestamp'})


class LogLevel(enum.IntEnum):
    """Severity levels, numerically aligned with the ``logging`` module."""

    TRACE = TRACE
    DEBUG = logging.DEBUG
    INFORMATION = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


class Sink:
    """Receives a log statement: level, raw skeleton, values and error.

    The sink does its own placeholder substitution; it is given the skeleton
    text untouched and the values in call order.
    """

    def log(
        self,
        level: int,
        template_text: str,
        values: Sequence[Any],
        error: Optional[BaseException] = None,
    ) -> None:
        raise NotImplementedError


def _property_key(name: str) -> str:
    return name + '_' if name in RESERVED_KEYS else name


def _structlog_level(level: int) -> int:
    # structlog only names the standard levels; TRACE goes out as DEBUG.
    return min(max(int(level) // 10 * 10, logging.DEBUG), logging.CRITICAL)


class StructlogSink(Sink):
    """Emits log statements to a structlog logger.

    Placeholders become event keys. ``{@name}`` values are destructured
    through ``factory``; ``{$name}`` values and non-scalar values are
    stringified.

    Args:
        logger: structlog logger; ``structlog.get_logger('semlog')`` by default
        cache: TemplateCache used to look the skeleton up
        factory: Destructuring chain for ``@`` placeholders
    """

    def __init__(
        self,
        logger: Any = None,
        cache: Optional[TemplateCache] = None,
        factory: Optional[PropertyValueFactory] = None,
    ):
        self._logger = logger
        self.cache = cache
        self.factory = factory or PropertyValueFactory()

    @property
    def logger(self) -> Any:
        if self._logger is None:
            self._logger = structlog.get_logger('semlog')
        return self._logger

    def properties(self, template, values: Sequence[Any]) -> Dict[str, Any]:
        """Build the event keys of a bound template."""
        properties = {}
        for placeholder, value in bind(template, values):
            if placeholder.destructure:
                value = self.factory.create_property_value(value).to_plain()
            elif placeholder.stringify or not (isinstance(value, str) or is_scalar(value)):
                value = str(value)
            properties[_property_key(placeholder.name)] = value
        return properties

    def log(self, level, template_text, values, error=None):
        cache = default_cache() if self.cache is None else self.cache
        template = cache.get_or_parse(template_text)
        message = BoundMessage(template, values)
        kwargs = self.properties(template, values)
        kwargs['template'] = template_text
        if error is not None:
            kwargs['exc_info'] = error
        self.logger.log(_structlog_level(level), message.to_string(), **kwargs)


class StdlibSink(Sink):
    """Emits log statements to a ``logging.Logger``.

    The rendered message is produced lazily by the record; the skeleton and
    the property mapping travel in ``extra`` as ``template`` and
    ``properties``.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, cache: Optional[TemplateCache] = None):
        self.logger = logger or logging.getLogger('semlog')
        self.cache = cache

    def log(self, level, template_text, values, error=None):
        if not self.logger.isEnabledFor(int(level)):
            return
        cache = default_cache() if self.cache is None else self.cache
        message = BoundMessage(cache.get_or_parse(template_text), values)
        extra = {'template': template_text, 'properties': message.to_dictionary()}
        self.logger.log(int(level), '%s', message, exc_info=error, extra=extra)


class DestructuringProcessor:
    """structlog processor that destructures marked event values.

    Keys starting with ``@`` are destructured and renamed without the marker;
    values wrapped in :class:`~semlog.builder.Destructure` are destructured
    in place. Everything else passes through.

    Examples:
        >>> proc = DestructuringProcessor()
        >>> proc(None, 'info', {'event': 'e', '@user': {'name': 'ann', 'password': 'x'}})
        {'event': 'e', 'user': {'name': 'ann'}}
    """

    def __init__(self, factory: Optional[PropertyValueFactory] = None):
        self.factory = factory or PropertyValueFactory()

    def __call__(self, logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        for key in list(event_dict):
            value = event_dict[key]
            if key.startswith('@') and len(key) > 1:
                del event_dict[key]
                event_dict[key[1:]] = self.factory.create_property_value(value).to_plain()
            elif isinstance(value, Destructure):
                event_dict[key] = self.factory.create_property_value(value.value).to_plain()
        return event_dict


class SemanticLogger:
    """Parses, binds and forwards log statements to a sink.

    Every method returns the :class:`~semlog.base.BoundMessage`, so the
    same message can be reused, for example in an exception.

    When ``capture_provenance`` is on and no file path is given, the file and
    line of the caller are taken from the call stack; the cache uses them
    once per skeleton to name positional placeholders.

    Args:
        sink: Where statements go; a :class:`StructlogSink` by default
        cache: TemplateCache; :func:`~semlog.base.default_cache` by default
        capture_provenance: Look up the caller's file and line
    """

    def __init__(
        self,
        sink: Optional[Sink] = None,
        cache: Optional[TemplateCache] = None,
        capture_provenance: bool = True,
    ):
        self.cache = default_cache() if cache is None else cache
        self.sink = sink or StructlogSink(cache=self.cache)
        # The sink must see the templates this logger enriched.
        if getattr(self.sink, 'cache', False) is None:
            self.sink.cache = self.cache
        self.capture_provenance = capture_provenance

    def _provenance(self, stacklevel: int):
        if not self.capture_provenance:
            return '', -1
        try:
            frame = sys._getframe(stacklevel + 1)
        except ValueError:
            return '', -1
        return frame.f_code.co_filename, frame.f_lineno

    def log(
        self,
        level: int,
        skeleton: str,
        *values: Any,
        error: Optional[BaseException] = None,
        file_path: Optional[str] = None,
        line_no: int = -1,
        stacklevel: int = 1,
    ) -> BoundMessage:
        """Log ``skeleton`` bound to ``values`` at ``level``.

        Raises:
            TemplateParseError: If the skeleton is malformed
            TemplateBindingError: If too few values are given
        """
        if file_path is None:
            file_path, line_no = self._provenance(stacklevel)
        template = self.cache.get_or_parse(skeleton, file_path, line_no)
        message = BoundMessage(template, values, file_path, line_no)
        self.sink.log(level, skeleton, values, error)
        return message

    def log_message(
        self, level: int, message: BoundMessage, error: Optional[BaseException] = None
    ) -> BoundMessage:
        """Log an already bound message."""
        self.sink.log(level, message.template_text, message.values, error)
        return message

    def trace(self, skeleton: str, *values: Any, **kwargs) -> BoundMessage:
        return self.log(LogLevel.TRACE, skeleton, *values, stacklevel=2, **kwargs)

    def debug(self, skeleton: str, *values: Any, **kwargs) -> BoundMessage:
        return self.log(LogLevel.DEBUG, skeleton, *values, stacklevel=2, **kwargs)

    def information(self, skeleton: str, *values: Any, **kwargs) -> BoundMessage:
        return self.log(LogLevel.INFORMATION, skeleton, *values, stacklevel=2, **kwargs)

    info = information

    def warning(self, skeleton: str, *values: Any, **kwargs) -> BoundMessage:
        return self.log(LogLevel.WARNING, skeleton, *values, stacklevel=2, **kwargs)

    def error(self, skeleton: str, *values: Any, **kwargs) -> BoundMessage:
        return self.log(LogLevel.ERROR, skeleton, *values, stacklevel=2, **kwargs)

    def critical(self, skeleton: str, *values: Any, **kwargs) -> BoundMessage:
        return self.log(LogLevel.CRITICAL, skeleton, *values, stacklevel=2, **kwargs)

    def event(
        self,
        message: Any,
        level: int = LogLevel.INFORMATION,
        context: Optional[Mapping[str, Any]] = None,
        error: Optional[BaseException] = None,
        prefix: str = '',
    ) -> BoundMessage:
        """Log a captured message.

        ``message`` is either a ``(skeleton, values)`` pair, as returned by
        :func:`~semlog.builder.from_pairs`, or a template-string-like object
        (see :func:`~semlog.builder.from_interpolation`). ``context`` is bound
        to structlog's context variables for the duration of the call.
        """
        if isinstance(message, tuple):
            skeleton, values = message
        else:
            skeleton, values = from_interpolation(message, prefix)
        if not context:
            return self.log(level, skeleton, *values, error=error, file_path='')
        with structlog.contextvars.bound_contextvars(**context):
            return self.log(level, skeleton, *values, error=error, file_path='')
