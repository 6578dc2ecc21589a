"""Token types produced by the template parser.

A parsed template is an ordered sequence of tokens covering the whole
skeleton: literal text spans and brace-delimited placeholders.
"""

from typing import Optional, Union


def _as_index(name: str) -> Optional[int]:
    """Return the non-negative integer encoded by ``name``, else None.

    Examples:
        >>> _as_index('0'), _as_index('12'), _as_index('x'), _as_index('-1')
        (0, 12, None, None)
    """
    if name.isdigit() and name.isascii():
        return int(name)
    return None


class TextToken:
    """A literal span of the skeleton.

    ``text`` is kept exactly as written, escapes included, so that joining the
    tokens reproduces the skeleton. ``value`` is the unescaped literal.

    Examples:
        >>> t = TextToken('a {{b}}')
        >>> t.raw_text
        'a {{b}}'
        >>> t.value
        'a {b}'
    """

    __slots__ = ('text',)

    def __init__(self, text: str):
        self.text = text

    @property
    def raw_text(self) -> str:
        return self.text

    @property
    def value(self) -> str:
        return self.text.replace('{{', '{').replace('}}', '}')

    def __eq__(self, other):
        return isinstance(other, TextToken) and other.text == self.text

    def __hash__(self):
        return hash(('text', self.text))

    def __repr__(self) -> str:
        return f"TextToken({self.text!r})"


class PlaceholderToken:
    """A brace-delimited hole in the skeleton, addressed by index or by name.

    The positional nature of a placeholder is decided once, from the name it
    was created with. Replacing the display name later (expression-name
    recovery) keeps the original key, so indexed lookups still work.

    Args:
        name: Property name as written, or a recovered display name
        raw_text: The exact ``{...}`` text in the skeleton
        format: Optional format spec (the part after ``:``)
        destructure: True when authored with the ``@`` marker
        alignment: Optional alignment (the part after ``,``)
        stringify: True when authored with the ``$`` marker
        key: Original name; defaults to ``name``

    Examples:
        >>> p = PlaceholderToken('0', '{0}')
        >>> p.is_positional, p.index
        (True, 0)
        >>> q = p.with_name('user.Name')
        >>> q.name, q.key, q.index, q.raw_text
        ('user.Name', '0', 0, '{0}')
        >>> PlaceholderToken('user', '{@user}', destructure=True).is_positional
        False
    """

    __slots__ = (
        'name', 'raw_text', 'format', 'destructure', 'alignment',
        'stringify', 'key', 'index',
    )

    def __init__(
        self,
        name: str,
        raw_text: Optional[str] = None,
        format: Optional[str] = None,
        destructure: bool = False,
        alignment: Optional[str] = None,
        stringify: bool = False,
        key: Optional[str] = None,
    ):
        self.name = name
        self.key = name if key is None else key
        self.index = _as_index(self.key)
        self.raw_text = raw_text if raw_text is not None else '{' + name + '}'
        self.format = format
        self.destructure = destructure
        self.alignment = alignment
        self.stringify = stringify

    @property
    def is_positional(self) -> bool:
        return self.index is not None

    def with_name(self, name: str) -> 'PlaceholderToken':
        """Return a copy showing ``name`` but keeping every other attribute."""
        return PlaceholderToken(
            name,
            raw_text=self.raw_text,
            format=self.format,
            destructure=self.destructure,
            alignment=self.alignment,
            stringify=self.stringify,
            key=self.key,
        )

    def _fields(self) -> tuple:
        return (
            self.name, self.key, self.raw_text, self.format,
            self.destructure, self.alignment, self.stringify,
        )

    def __eq__(self, other):
        return isinstance(other, PlaceholderToken) and other._fields() == self._fields()

    def __hash__(self):
        return hash(self._fields())

    def __repr__(self) -> str:
        extra = ''
        if self.name != self.key:
            extra += f", key={self.key!r}"
        if self.format is not None:
            extra += f", format={self.format!r}"
        if self.destructure:
            extra += ", destructure=True"
        return f"PlaceholderToken({self.name!r}, {self.raw_text!r}{extra})"


Token = Union[TextToken, PlaceholderToken]
