"""Size- and sensitivity-bounded destructuring of log values.

Destructuring turns an arbitrary value into a structured log value instead of
a flat ``str()``. To keep log volume bounded and secrets out of logs:

- strings longer than ``max_length_of_string`` are cut and end in ``...``;
- sequences keep at most ``max_length_of_array`` elements, silently;
- objects are expanded field by field, skipping fields whose name is in
  ``ignored_properties`` (case-insensitive), fields marked with
  :func:`exclude_from_logging` / :func:`excluded_field`, and fields whose
  type derives from one of ``ignored_types``.

Policies form a chain of responsibility: a policy that does not handle a
value returns ``(False, None)`` and the :class:`PropertyValueFactory` asks the
next one.

Examples:
    >>> from dataclasses import dataclass
    >>> @dataclass
    ... class Login:
    ...     user: str
    ...     password: str
    >>> destructure(Login('ann', 's3cret')).to_plain()
    {'user': 'ann'}
    >>> destructure(list(range(20)), LoggingLimits(max_length_of_array=3)).to_plain()
    [0, 1, 2]
"""

import dataclasses
import datetime
import decimal
import enum
import inspect
import logging
import os
import pathlib
import threading
import types
import typing
import uuid
from collections.abc import Mapping, MutableSet, Sequence, Set as AbstractSet
from itertools import islice
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

EXCLUDE_FROM_LOGGING = '__exclude_from_logging__'
ELLIPSIS = '...'
CYCLE_MARKER = '<cycle>'
_UNION_TYPE = getattr(types, 'UnionType', typing.Union)

SCALAR_TYPES = (
    bool, int, float, complex, bytes, bytearray, decimal.Decimal,
    datetime.date, datetime.time, datetime.timedelta, uuid.UUID,
    enum.Enum, pathlib.PurePath, type,
)


def is_scalar(value: Any) -> bool:
    """Return True for values that are always logged as-is (strings excluded)."""
    return value is None or isinstance(value, SCALAR_TYPES)


# ---------------------------------------------------------------------------
# Structured values


class LogEventPropertyValue:
    """Base class of structured log values."""

    def to_plain(self) -> Any:
        """Convert to plain Python data (dicts, lists and scalars)."""
        raise NotImplementedError

    def _key(self) -> tuple:
        raise NotImplementedError

    def __eq__(self, other):
        return type(other) is type(self) and other._key() == self._key()

    def __hash__(self):
        return hash((type(self).__name__, repr(self._key())))


class ScalarValue(LogEventPropertyValue):
    """A value logged as-is."""

    def __init__(self, value: Any):
        self.value = value

    def to_plain(self) -> Any:
        return self.value

    def _key(self) -> tuple:
        return (self.value,)

    def __repr__(self) -> str:
        return f"ScalarValue({self.value!r})"


class SequenceValue(LogEventPropertyValue):
    """An ordered sequence of structured values."""

    def __init__(self, elements: Iterable[LogEventPropertyValue]):
        self.elements = list(elements)

    def to_plain(self) -> List[Any]:
        return [e.to_plain() for e in self.elements]

    def _key(self) -> tuple:
        return tuple(self.elements)

    def __repr__(self) -> str:
        return f"SequenceValue({self.elements!r})"


class LogEventProperty:
    """A named structured value."""

    def __init__(self, name: str, value: LogEventPropertyValue):
        self.name = name
        self.value = value

    def __eq__(self, other):
        return (
            isinstance(other, LogEventProperty)
            and other.name == self.name and other.value == self.value
        )

    def __hash__(self):
        return hash((self.name, self.value))

    def __repr__(self) -> str:
        return f"LogEventProperty({self.name!r}, {self.value!r})"


class StructureValue(LogEventPropertyValue):
    """A record of named structured values, tagged with its type name."""

    def __init__(self, properties: Iterable[LogEventProperty], type_tag: Optional[str] = None):
        self.properties = list(properties)
        self.type_tag = type_tag

    def to_plain(self) -> Dict[str, Any]:
        return {p.name: p.value.to_plain() for p in self.properties}

    def names(self) -> List[str]:
        return [p.name for p in self.properties]

    def __getitem__(self, name: str) -> LogEventPropertyValue:
        for p in self.properties:
            if p.name == name:
                return p.value
        raise KeyError(name)

    def __contains__(self, name: str) -> bool:
        return name in self.names()

    def _key(self) -> tuple:
        return (self.type_tag, tuple(self.properties))

    def __repr__(self) -> str:
        return f"StructureValue({self.properties!r}, type_tag={self.type_tag!r})"


class DictionaryValue(LogEventPropertyValue):
    """A mapping of keys to structured values."""

    def __init__(self, elements: Dict[Any, LogEventPropertyValue]):
        self.elements = dict(elements)

    def to_plain(self) -> Dict[Any, Any]:
        return {k: v.to_plain() for k, v in self.elements.items()}

    def _key(self) -> tuple:
        return tuple(self.elements.items())

    def __repr__(self) -> str:
        return f"DictionaryValue({self.elements!r})"


# ---------------------------------------------------------------------------
# Configuration


class CaseInsensitiveSet(MutableSet):
    """A set of names compared without regard to case.

    Examples:
        >>> names = CaseInsensitiveSet(['PassWord'])
        >>> 'password' in names, 'PASSWORD' in names, 'user' in names
        (True, True, False)
        >>> names.add('Token')
        >>> sorted(names)
        ['PassWord', 'Token']
    """

    def __init__(self, names: Iterable[str] = ()):
        self._names: Dict[str, str] = {}
        for name in names:
            self.add(name)

    def __contains__(self, name) -> bool:
        return isinstance(name, str) and name.casefold() in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._names.values()))

    def __len__(self) -> int:
        return len(self._names)

    def add(self, name: str) -> None:
        self._names.setdefault(name.casefold(), name)

    def discard(self, name: str) -> None:
        self._names.pop(name.casefold(), None)

    def __repr__(self) -> str:
        return f"CaseInsensitiveSet({list(self)!r})"


def _non_negative(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
    return value


class LoggingLimits:
    """Mutable limits read by every destructuring call.

    Changes take effect on the next call; there is no atomicity across
    several settings.

    Examples:
        >>> limits = LoggingLimits()
        >>> limits.max_length_of_string, limits.max_length_of_array
        (100, 10)
        >>> 'password' in limits.ignored_properties
        True
        >>> limits.max_length_of_array = -1
        Traceback (most recent call last):
        ...
        ValueError: max_length_of_array must be a non-negative integer, got -1
    """

    def __init__(
        self,
        max_length_of_string: int = 100,
        max_length_of_array: int = 10,
        ignored_properties: Iterable[str] = ('PassWord',),
        ignored_types: Iterable[type] = (),
    ):
        self.max_length_of_string = max_length_of_string
        self.max_length_of_array = max_length_of_array
        self.ignored_properties = CaseInsensitiveSet(ignored_properties)
        self.ignored_types = set(ignored_types)

    @property
    def max_length_of_string(self) -> int:
        return self._max_length_of_string

    @max_length_of_string.setter
    def max_length_of_string(self, value: int) -> None:
        self._max_length_of_string = _non_negative('max_length_of_string', value)

    @property
    def max_length_of_array(self) -> int:
        return self._max_length_of_array

    @max_length_of_array.setter
    def max_length_of_array(self, value: int) -> None:
        self._max_length_of_array = _non_negative('max_length_of_array', value)

    @classmethod
    def from_env(cls, prefix: str = 'SEMLOG_', environ: Optional[Mapping] = None) -> 'LoggingLimits':
        """Build limits from environment variables.

        Reads ``<prefix>MAX_LENGTH_OF_STRING``, ``<prefix>MAX_LENGTH_OF_ARRAY``
        and ``<prefix>IGNORED_PROPERTIES`` (comma separated, added to the
        default names); unset variables keep their defaults.

        Examples:
            >>> env = {'SEMLOG_MAX_LENGTH_OF_STRING': '20', 'SEMLOG_IGNORED_PROPERTIES': 'token, secret'}
            >>> limits = LoggingLimits.from_env(environ=env)
            >>> limits.max_length_of_string, sorted(limits.ignored_properties)
            (20, ['PassWord', 'secret', 'token'])
        """
        environ = os.environ if environ is None else environ
        kwargs: Dict[str, Any] = {}
        for name in ('max_length_of_string', 'max_length_of_array'):
            raw = environ.get(prefix + name.upper())
            if raw is not None:
                try:
                    kwargs[name] = int(raw)
                except ValueError:
                    raise ValueError(f"{prefix + name.upper()} must be an integer, got {raw!r}")
        limits = cls(**kwargs)
        raw = environ.get(prefix + 'IGNORED_PROPERTIES')
        if raw is not None:
            for name in raw.split(','):
                if name.strip():
                    limits.ignored_properties.add(name.strip())
        return limits

    def __repr__(self) -> str:
        return (
            f"LoggingLimits(max_length_of_string={self.max_length_of_string}, "
            f"max_length_of_array={self.max_length_of_array}, "
            f"ignored_properties={list(self.ignored_properties)!r}, "
            f"ignored_types={sorted(t.__name__ for t in self.ignored_types)!r})"
        )


_default_limits = LoggingLimits()


def default_limits() -> LoggingLimits:
    """Return the process-wide limits used by policies created without any."""
    return _default_limits


# ---------------------------------------------------------------------------
# Field enumeration and exclusion


def exclude_from_logging(obj):
    """Mark a class, a property or a getter as excluded from destructuring.

    Fields holding an excluded property, or declared with an excluded class
    (or a subclass of one), are skipped.

    Examples:
        >>> class Account:
        ...     def __init__(self, owner):
        ...         self.owner = owner
        ...     @exclude_from_logging
        ...     @property
        ...     def api_key(self):
        ...         return 'k-123'
        >>> destructure(Account('ann')).to_plain()
        {'owner': 'ann'}
    """
    target = obj.fget if isinstance(obj, property) else obj
    setattr(target, EXCLUDE_FROM_LOGGING, True)
    return obj


def is_excluded(obj: Any) -> bool:
    """Return True if ``obj`` (or its getter) carries the exclusion mark."""
    if isinstance(obj, property):
        obj = obj.fget
    return getattr(obj, EXCLUDE_FROM_LOGGING, False) is True


def excluded_field(**kwargs) -> Any:
    """A ``dataclasses.field`` that is never destructured.

    Examples:
        >>> @dataclasses.dataclass
        ... class Token:
        ...     owner: str
        ...     value: str = excluded_field(default='')
        >>> destructure(Token('ann', 'abc')).to_plain()
        {'owner': 'ann'}
    """
    metadata = dict(kwargs.pop('metadata', None) or {})
    metadata[EXCLUDE_FROM_LOGGING] = True
    return dataclasses.field(metadata=metadata, **kwargs)


class FieldInfo:
    """One loggable field of a value."""

    def __init__(self, name: str, value: Any, declared_type: Any = None, excluded: bool = False):
        self.name = name
        self.value = value
        self.declared_type = type(value) if declared_type is None else declared_type
        self.excluded = excluded

    def __repr__(self) -> str:
        return f"FieldInfo({self.name!r}, {self.value!r}, excluded={self.excluded})"


@typing.runtime_checkable
class LoggableFields(typing.Protocol):
    """Capability of types that enumerate their own loggable fields."""

    def loggable_fields(self) -> Iterable[FieldInfo]:
        ...


def _type_hints(obj: Any) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(obj)
    except (NameError, TypeError, AttributeError):
        return {}


def _read_property(value: Any, name: str) -> Any:
    try:
        return getattr(value, name)
    except Exception as e:  # noqa: BLE001
        logger.debug("Property %s.%s raised %r", type(value).__name__, name, e)
        return f"The property accessor threw an exception: {type(e).__name__}"


def _properties(value: Any, seen: set) -> Iterator[FieldInfo]:
    for name, attr in inspect.getmembers(type(value), lambda a: isinstance(a, property)):
        if name.startswith('_') or name in seen:
            continue
        yield FieldInfo(
            name,
            None if is_excluded(attr) else _read_property(value, name),
            _type_hints(attr.fget).get('return'),
            excluded=is_excluded(attr),
        )


def iter_fields(value: Any) -> List[FieldInfo]:
    """Enumerate the public fields of ``value``.

    Sources, in order: the :class:`LoggableFields` capability; dataclass
    fields; public instance attributes (``__dict__`` or ``__slots__``). Public
    properties of the class are appended in the last two cases.
    """
    if isinstance(value, LoggableFields):
        return list(value.loggable_fields())

    cls = type(value)
    hints = _type_hints(cls)
    fields = []
    if dataclasses.is_dataclass(value):
        for f in dataclasses.fields(value):
            fields.append(FieldInfo(
                f.name,
                getattr(value, f.name),
                hints.get(f.name),
                excluded=f.metadata.get(EXCLUDE_FROM_LOGGING) is True,
            ))
    elif hasattr(value, '__dict__'):
        for name, attr in vars(value).items():
            if not name.startswith('_'):
                fields.append(FieldInfo(name, attr, hints.get(name)))
    else:
        for klass in cls.__mro__:
            for name in getattr(klass, '__slots__', ()):
                if not name.startswith('_') and hasattr(value, name):
                    fields.append(FieldInfo(name, getattr(value, name), hints.get(name)))

    seen = {f.name for f in fields}
    fields.extend(_properties(value, seen))
    return fields


def _is_ignored_type(declared_type: Any, ignored_types: Iterable[type]) -> bool:
    origin = typing.get_origin(declared_type)
    if origin is typing.Union or origin is _UNION_TYPE:
        return any(_is_ignored_type(arg, ignored_types) for arg in typing.get_args(declared_type))
    cls = origin or declared_type
    if not isinstance(cls, type):
        return False
    if is_excluded(cls):
        return True
    return any(issubclass(cls, ignored) for ignored in ignored_types)


# ---------------------------------------------------------------------------
# Policies


class DestructuringPolicy(typing.Protocol):
    """One link of the destructuring chain."""

    def try_destructure(
        self, value: Any, factory: 'PropertyValueFactory'
    ) -> Tuple[bool, Optional[LogEventPropertyValue]]:
        ...


class LoggingLimitPolicy:
    """Destructuring policy that truncates, caps and redacts.

    Decision order, first match wins:

    1. ``None`` and plain scalars are not handled (next policy decides);
    2. strings are truncated to ``max_length_of_string`` plus ``...``;
    3. sequences and sets keep their first ``max_length_of_array`` elements,
       each expanded through ``factory``, with no truncation marker;
    4. mappings keep their first ``max_length_of_array`` entries, skipping
       ignored names and values of ignored or excluded types;
    5. anything else is expanded field by field, skipping excluded fields.

    A value met again while it is being expanded (a reference cycle) is
    rendered as ``ScalarValue('<cycle>')``.

    Args:
        limits: Limits to apply; the process-wide :func:`default_limits`
            (read at call time) when None

    Examples:
        >>> policy = LoggingLimitPolicy(LoggingLimits(max_length_of_string=5))
        >>> policy.try_destructure('abcdefgh', PropertyValueFactory([policy]))
        (True, ScalarValue('abcde...'))
        >>> policy.try_destructure(None, PropertyValueFactory([policy]))
        (False, None)
    """

    def __init__(self, limits: Optional[LoggingLimits] = None):
        self._limits = limits
        self._local = threading.local()

    @property
    def limits(self) -> LoggingLimits:
        return default_limits() if self._limits is None else self._limits

    def _active(self) -> set:
        active = getattr(self._local, 'active', None)
        if active is None:
            active = self._local.active = set()
        return active

    def try_destructure(
        self, value: Any, factory: 'PropertyValueFactory'
    ) -> Tuple[bool, Optional[LogEventPropertyValue]]:
        if is_scalar(value):
            return False, None

        limits = self.limits

        if isinstance(value, str):
            if len(value) <= limits.max_length_of_string:
                return True, ScalarValue(value)
            return True, ScalarValue(value[:limits.max_length_of_string] + ELLIPSIS)

        active = self._active()
        obj_id = id(value)
        if obj_id in active:
            return True, ScalarValue(CYCLE_MARKER)
        active.add(obj_id)
        try:
            if isinstance(value, (Sequence, AbstractSet)) and not isinstance(value, memoryview):
                elements = islice(value, limits.max_length_of_array)
                return True, SequenceValue(factory.create_property_value(e) for e in elements)
            if isinstance(value, Mapping):
                return True, self._destructure_mapping(value, factory, limits)
            return True, self._destructure_object(value, factory, limits)
        finally:
            active.discard(obj_id)

    def _destructure_mapping(self, value: Mapping, factory, limits: LoggingLimits) -> DictionaryValue:
        items = (
            (key, item) for key, item in value.items()
            if key not in limits.ignored_properties
            and not _is_ignored_type(type(item), limits.ignored_types)
        )
        return DictionaryValue({
            key: factory.create_property_value(item)
            for key, item in islice(items, limits.max_length_of_array)
        })

    def _destructure_object(self, value: Any, factory, limits: LoggingLimits) -> StructureValue:
        properties = []
        for field in iter_fields(value):
            if (
                field.excluded
                or field.name in limits.ignored_properties
                or _is_ignored_type(field.declared_type, limits.ignored_types)
            ):
                continue
            properties.append(LogEventProperty(field.name, factory.create_property_value(field.value)))
        return StructureValue(properties, type_tag=type(value).__name__)


class PropertyValueFactory:
    """Converts values to structured log values through a chain of policies.

    Scalars are converted directly; other values are offered to each policy
    in order, and fall back to ``ScalarValue(value)`` when none handles them.

    Args:
        policies: Ordered policies; a single :class:`LoggingLimitPolicy` by
            default
        limits: Limits for the default policy

    Examples:
        >>> factory = PropertyValueFactory()
        >>> factory.create_property_value(42)
        ScalarValue(42)
        >>> factory.create_property_value(['a', 'b']).to_plain()
        ['a', 'b']
    """

    def __init__(
        self,
        policies: Optional[Iterable[DestructuringPolicy]] = None,
        limits: Optional[LoggingLimits] = None,
    ):
        if policies is None:
            policies = [LoggingLimitPolicy(limits)]
        self.policies = list(policies)

    def create_property_value(self, value: Any) -> LogEventPropertyValue:
        if is_scalar(value):
            return ScalarValue(value)
        for policy in self.policies:
            handled, result = policy.try_destructure(value, self)
            if handled:
                return result
        return ScalarValue(value)

    __call__ = create_property_value


def destructure(value: Any, limits: Optional[LoggingLimits] = None) -> LogEventPropertyValue:
    """Destructure ``value`` with a :class:`LoggingLimitPolicy`.

    Examples:
        >>> destructure('x' * 120).to_plain().endswith('x...')
        True
        >>> destructure({'user': 'ann', 'Password': 'p'}).to_plain()
        {'user': 'ann'}
    """
    return PropertyValueFactory(limits=limits).create_property_value(value)
