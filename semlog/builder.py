"""Building named-placeholder skeletons from captured expressions.

Python evaluates f-strings eagerly and forgets the expression text, so the
expression names have to be handed over explicitly: as ``(name, value)``
pairs, or as an object shaped like a PEP 750 template string (``strings``
plus ``interpolations`` carrying ``value``, ``expression`` and
``format_spec``). Either way the result is a skeleton with named
placeholders and the matching value tuple.

Examples:
    >>> b = MessageBuilder()
    >>> b.append_literal('price {net} is ')
    >>> b.append_formatted(9.5, 'order.price', '.2f')
    >>> b.result()
    ('price {{net}} is {order.price:.2f}', (9.5,))
"""

import re
from collections import deque
from collections.abc import Mapping, Set as AbstractSet
from typing import Any, List, Optional, Tuple

from semlog.parsing import escape_literal

_NAME = re.compile(r'[A-Za-z_][A-Za-z0-9_.]*')
_INVALID_NAME_CHARS = re.compile(r'[^A-Za-z0-9_.]+')
_DESTRUCTURE_CALL = re.compile(r'^(?:[\w.]+\.)?(?:Destructure|destructure)\((?P<inner>.*)\)$')


class Destructure:
    """Wraps a value so the builder emits a ``{@name}`` placeholder.

    Examples:
        >>> b = MessageBuilder()
        >>> b.append(Destructure({'id': 7}), 'Destructure(order)')
        >>> b.result()
        ('{@order}', ({'id': 7},))
    """

    __slots__ = ('value',)

    def __init__(self, value: Any):
        self.value = value

    def __eq__(self, other):
        return isinstance(other, Destructure) and other.value == self.value

    def __repr__(self) -> str:
        return f"Destructure({self.value!r})"


def clean_expression(expression: str) -> str:
    """Strip a ``Destructure(...)`` call from captured expression text.

    Examples:
        >>> clean_expression('Destructure(order)')
        'order'
        >>> clean_expression('semlog.Destructure(user.profile)')
        'user.profile'
        >>> clean_expression('order.total')
        'order.total'
    """
    match = _DESTRUCTURE_CALL.match(expression.strip())
    if match:
        return match.group('inner').strip()
    return expression.strip()


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, (list, deque, AbstractSet)):
        return tuple(value)
    return value


class MessageBuilder:
    """Accumulates literals and named values into a skeleton.

    Literal text has its braces doubled. Expression text is turned into a
    valid placeholder name; anything that cannot be one is replaced by
    ``argN``. Lists and sets are copied into tuples so that later changes
    to them do not reach the log.

    Args:
        prefix: Prepended to every placeholder name, joined with ``_``
    """

    def __init__(self, prefix: str = ''):
        self._prefix = prefix.strip() + '_' if prefix and prefix.strip() else ''
        self._parts: List[str] = []
        self._values: List[Any] = []

    def _name(self, expression: str) -> str:
        name = _INVALID_NAME_CHARS.sub('_', expression.strip()).strip('_')
        name = self._prefix + name
        if not _NAME.fullmatch(name):
            name = f"{self._prefix}arg{len(self._values)}"
        return name

    def append_literal(self, text: str) -> None:
        self._parts.append(escape_literal(text))

    def append_formatted(self, value: Any, name: str, format: Optional[str] = None) -> None:
        suffix = f":{format}" if format else ''
        self._parts.append('{' + self._name(name) + suffix + '}')
        self._values.append(_freeze(value))

    def append_destructured(self, value: Any, name: str) -> None:
        self._parts.append('{@' + self._name(clean_expression(name)) + '}')
        self._values.append(value)

    def append(self, value: Any, name: str, format: Optional[str] = None) -> None:
        """Append a value, picking the ``@`` form for :class:`Destructure`."""
        if isinstance(value, Destructure):
            self.append_destructured(value.value, name)
        else:
            self.append_formatted(value, name, format)

    def result(self) -> Tuple[str, Tuple[Any, ...]]:
        """Return ``(skeleton, values)``."""
        return ''.join(self._parts), tuple(self._values)


def from_interpolation(interpolation: Any, prefix: str = '') -> Tuple[str, Tuple[Any, ...]]:
    """Build a skeleton from a template-string-like object.

    ``interpolation`` needs ``strings`` (one more than interpolations) and
    ``interpolations`` whose items carry ``value``, ``expression`` and
    ``format_spec``; Python 3.14 ``t"..."`` literals have this shape.

    Examples:
        >>> from types import SimpleNamespace as NS
        >>> t = NS(strings=('value=', ' of {total}'),
        ...        interpolations=(NS(value=3, expression='x.Y', format_spec=''),))
        >>> from_interpolation(t)
        ('value={x.Y} of {{total}}', (3,))
    """
    builder = MessageBuilder(prefix)
    strings = list(interpolation.strings)
    for i, item in enumerate(interpolation.interpolations):
        builder.append_literal(strings[i])
        builder.append(item.value, item.expression, getattr(item, 'format_spec', None) or None)
    builder.append_literal(strings[-1] if strings else '')
    return builder.result()


def from_pairs(*parts: Any, prefix: str = '') -> Tuple[str, Tuple[Any, ...]]:
    """Build a skeleton from literal strings and ``(name, value)`` pairs.

    A pair may carry a third item, the format spec.

    Examples:
        >>> from_pairs('user ', ('user.name', 'ann'), ' paid ', ('amount', 3.5, '.2f'))
        ('user {user.name} paid {amount:.2f}', ('ann', 3.5))
    """
    builder = MessageBuilder(prefix)
    for part in parts:
        if isinstance(part, str):
            builder.append_literal(part)
        else:
            name, value, *format = part
            builder.append(value, name, *format)
    return builder.result()
