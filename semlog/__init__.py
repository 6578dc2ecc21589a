"""Structured-logging templates with cached parsing and bounded destructuring.

This package turns message skeletons into cached templates and renders them
with argument values, supporting:
- Positional ({0}) and named ({name}) placeholders, with format specs
- Destructure (@) and stringify ($) markers, {{ }} escapes
- One parse per distinct skeleton, shared by every call site
- Best-effort recovery of expression names from the calling source line
- Size- and sensitivity-bounded destructuring of logged values
- Sinks for structlog and the standard logging module

Basic usage:
    >>> from semlog import parse
    >>> message = parse('{user} bought {count} items', 'ann', 3)
    >>> str(message)
    'ann bought 3 items'
    >>> message.to_dictionary()
    {'user': 'ann', 'count': '3'}

Destructuring:
    >>> from semlog import destructure
    >>> destructure({'user': 'ann', 'password': 'hunter2'}).to_plain()
    {'user': 'ann'}
"""

from semlog.tokens import TextToken, PlaceholderToken

from semlog.parsing import (
    parse_template,
    reconstruct,
    escape_literal,
    extract_placeholder_names,
    TemplateParseError,
)

from semlog.binding import (
    bind,
    format_template,
    to_dictionary,
    add_properties,
    format_with_properties,
    to_display_string,
    TemplateBindingError,
)

from semlog.recovery import ExpressionNameRecovery, BRACED_EXPRESSION

from semlog.base import (
    Template,
    TemplateCache,
    BoundMessage,
    default_cache,
    parse,
)

from semlog.destructuring import (
    LogEventPropertyValue,
    ScalarValue,
    SequenceValue,
    StructureValue,
    DictionaryValue,
    LogEventProperty,
    LoggingLimits,
    LoggingLimitPolicy,
    PropertyValueFactory,
    DestructuringPolicy,
    LoggableFields,
    FieldInfo,
    CaseInsensitiveSet,
    default_limits,
    destructure,
    exclude_from_logging,
    excluded_field,
    iter_fields,
)

from semlog.builder import (
    MessageBuilder,
    Destructure,
    from_interpolation,
    from_pairs,
)

from semlog.log import (
    LogLevel,
    Sink,
    StructlogSink,
    StdlibSink,
    SemanticLogger,
    DestructuringProcessor,
)

from semlog.logconfig import configure_logging, get_logger

__version__ = "0.1.0"  # Keep in sync with package version

__all__ = [
    # Core functions
    "parse",
    "Template",
    "TemplateCache",
    "BoundMessage",
    "default_cache",
    # Tokens and parsing
    "TextToken",
    "PlaceholderToken",
    "parse_template",
    "reconstruct",
    "escape_literal",
    "extract_placeholder_names",
    # Binding
    "bind",
    "format_template",
    "to_dictionary",
    "add_properties",
    "format_with_properties",
    "to_display_string",
    # Recovery
    "ExpressionNameRecovery",
    "BRACED_EXPRESSION",
    # Destructuring
    "LogEventPropertyValue",
    "ScalarValue",
    "SequenceValue",
    "StructureValue",
    "DictionaryValue",
    "LogEventProperty",
    "LoggingLimits",
    "LoggingLimitPolicy",
    "PropertyValueFactory",
    "DestructuringPolicy",
    "LoggableFields",
    "FieldInfo",
    "CaseInsensitiveSet",
    "default_limits",
    "destructure",
    "exclude_from_logging",
    "excluded_field",
    "iter_fields",
    # Capturing
    "MessageBuilder",
    "Destructure",
    "from_interpolation",
    "from_pairs",
    # Logging
    "LogLevel",
    "Sink",
    "StructlogSink",
    "StdlibSink",
    "SemanticLogger",
    "DestructuringProcessor",
    "configure_logging",
    "get_logger",
    # Exceptions
    "TemplateParseError",
    "TemplateBindingError",
]
