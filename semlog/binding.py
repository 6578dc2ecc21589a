"""Binding of argument values to template placeholders, and rendering.

Each placeholder is bound in template order:

- a positional placeholder ``{i}`` takes ``values[i]``, wherever it appears;
- a named placeholder takes ``values[cursor]``, where ``cursor`` starts at 0
  and advances once per *named* placeholder only.

The two addressing modes are not reconciled with each other: an index used
explicitly by ``{0}`` may be consumed again by the first named placeholder.
"""

from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence, Tuple

from semlog.tokens import PlaceholderToken, TextToken, Token


class TemplateBindingError(IndexError):
    """Raised when fewer values are supplied than the placeholders require."""
    pass


def _tokens(template: Any) -> Iterable[Token]:
    return getattr(template, 'tokens', template)


def _placeholders(template: Any) -> List[PlaceholderToken]:
    return [t for t in _tokens(template) if isinstance(t, PlaceholderToken)]


def to_display_string(value: Any, format_spec: Optional[str] = None) -> str:
    """Return the best textual representation of ``value``.

    ``None`` renders as an empty string. A format spec is applied when the
    value understands it, otherwise the plain ``str`` form is used.

    Examples:
        >>> to_display_string(3.14159, '.2f')
        '3.14'
        >>> to_display_string('x', 'D3')
        'x'
        >>> to_display_string(None)
        ''
    """
    if value is None:
        return ''
    if format_spec:
        try:
            return format(value, format_spec)
        except (ValueError, TypeError):
            pass
    return str(value)


def _align(text: str, alignment: Optional[str]) -> str:
    if not alignment:
        return text
    width = int(alignment)
    if width < 0:
        return text.ljust(-width)
    return text.rjust(width)


def bind(template: Any, values: Sequence[Any]) -> List[Tuple[PlaceholderToken, Any]]:
    """Pair every placeholder of ``template`` with its argument value.

    Args:
        template: A Template, or a sequence of tokens
        values: Evaluated argument values in call order

    Returns:
        List of ``(placeholder, value)`` pairs in template order

    Raises:
        TemplateBindingError: If a placeholder addresses a missing value

    Examples:
        >>> from semlog.parsing import parse_template
        >>> [(p.name, v) for p, v in bind(parse_template('{1} and {0}'), ['a', 'b'])]
        [('1', 'b'), ('0', 'a')]
        >>> [(p.name, v) for p, v in bind(parse_template('{x}{y}{z}'), [1, 2, 3])]
        [('x', 1), ('y', 2), ('z', 3)]
    """
    bound = []
    cursor = 0
    for placeholder in _placeholders(template):
        if placeholder.index is not None:
            position = placeholder.index
        else:
            position = cursor
            cursor += 1
        if position >= len(values):
            raise TemplateBindingError(
                f"Placeholder {placeholder.raw_text} needs argument {position}, "
                f"but only {len(values)} were supplied"
            )
        bound.append((placeholder, values[position]))
    return bound


def render_placeholder(placeholder: PlaceholderToken, value: Any) -> str:
    """Render one bound placeholder with its format and alignment."""
    return _align(to_display_string(value, placeholder.format), placeholder.alignment)


def format_template(template: Any, values: Sequence[Any]) -> str:
    """Render the template with its placeholders replaced by ``values``.

    Examples:
        >>> from semlog.parsing import parse_template
        >>> format_template(parse_template('{1} and {0}'), ['a', 'b'])
        'b and a'
        >>> format_template(parse_template('{{{user}}} has {n,3} items'), ['Leo', 7])
        '{Leo} has   7 items'
    """
    rendered = (render_placeholder(p, v) for p, v in bind(template, values))
    parts = []
    for token in _tokens(template):
        if isinstance(token, TextToken):
            parts.append(token.value)
        else:
            parts.append(next(rendered))
    return ''.join(parts)


def add_properties(
    dictionary: Optional[MutableMapping[str, Optional[str]]],
    template: Any,
    *values: Any,
) -> MutableMapping[str, Optional[str]]:
    """Add ``placeholder name -> display string`` entries to ``dictionary``.

    A new dict is created when ``dictionary`` is None. ``None`` values are
    kept as ``None``.

    Examples:
        >>> from semlog.parsing import parse_template
        >>> add_properties({'a': '1'}, parse_template('{b} {c}'), 2, None)
        {'a': '1', 'b': '2', 'c': None}
    """
    if dictionary is None:
        dictionary = {}
    for placeholder, value in bind(template, values):
        dictionary[placeholder.name] = None if value is None else str(value)
    return dictionary


def to_dictionary(template: Any, values: Sequence[Any]) -> Dict[str, Optional[str]]:
    """Map each placeholder name to the display string of its bound value."""
    return add_properties({}, template, *values)


def format_with_properties(template: Any, properties: Mapping[str, Any]) -> str:
    """Render the template from a name-keyed mapping instead of a value list.

    Examples:
        >>> from semlog.parsing import parse_template
        >>> format_with_properties(parse_template('{user} logged in'), {'user': 'ann'})
        'ann logged in'
    """
    parts = []
    for token in _tokens(template):
        if isinstance(token, TextToken):
            parts.append(token.value)
        else:
            parts.append(render_placeholder(token, properties[token.name]))
    return ''.join(parts)
