"""Parsing of message skeletons into token sequences.

A skeleton interleaves literal text with brace-delimited placeholders:

- ``{name}`` / ``{0}``: named / positional placeholder
- ``{name:format}``: placeholder with a format spec
- ``{name,alignment}``: placeholder with an alignment
- ``{@name}``: capture the value as a structure (destructure)
- ``{$name}``: capture the value as its string form (stringify)
- ``{{`` / ``}}``: a literal brace

Parsing is strict: an unbalanced brace is a :class:`TemplateParseError`, since
a template that parses wrongly would misrender on every later use.
"""

import re
from typing import List

from semlog.tokens import PlaceholderToken, TextToken, Token


class TemplateParseError(ValueError):
    """Raised when a skeleton has unbalanced braces or an invalid placeholder."""

    def __init__(self, message: str, skeleton: str, position: int):
        super().__init__(f"{message} at position {position} in {skeleton!r}")
        self.skeleton = skeleton
        self.position = position


PLACEHOLDER = re.compile(
    r'(?P<marker>[@$]?)'
    r'(?P<name>[0-9]+|[A-Za-z_][A-Za-z0-9_.]*)'
    r'(?:,(?P<alignment>-?[0-9]+))?'
    r'(?::(?P<format>[^{}]*))?'
)


def _find_closing_brace(skeleton: str, start: int) -> int:
    """Return the index of the ``}`` closing the placeholder opened at ``start``."""
    for j in range(start + 1, len(skeleton)):
        ch = skeleton[j]
        if ch == '}':
            return j
        if ch == '{':
            raise TemplateParseError("nested '{' inside placeholder", skeleton, j)
    raise TemplateParseError("unclosed '{'", skeleton, start)


def _parse_placeholder(skeleton: str, start: int, end: int) -> PlaceholderToken:
    raw = skeleton[start:end + 1]
    match = PLACEHOLDER.fullmatch(raw[1:-1])
    if match is None:
        raise TemplateParseError(f"invalid placeholder {raw!r}", skeleton, start)
    marker = match.group('marker')
    return PlaceholderToken(
        match.group('name'),
        raw_text=raw,
        format=match.group('format'),
        destructure=marker == '@',
        alignment=match.group('alignment'),
        stringify=marker == '$',
    )


def parse_template(skeleton: str) -> List[Token]:
    """Split a skeleton into text and placeholder tokens.

    The tokens cover the input with no gaps, so joining their ``raw_text``
    gives back the skeleton.

    Args:
        skeleton: Message text containing placeholders

    Returns:
        Ordered list of tokens

    Raises:
        TemplateParseError: On an unbalanced brace or an invalid placeholder

    Examples:
        >>> parse_template('Hello {name}, you are {0:D3}')
        [TextToken('Hello '), PlaceholderToken('name', '{name}'), TextToken(', you are '), PlaceholderToken('0', '{0:D3}', format='D3')]
        >>> parse_template('{{literal}} {@user}')
        [TextToken('{{literal}} '), PlaceholderToken('user', '{@user}', destructure=True)]
        >>> parse_template('oops }')
        Traceback (most recent call last):
        ...
        semlog.parsing.TemplateParseError: unmatched '}' at position 5 in 'oops }'
    """
    tokens: List[Token] = []
    text_start = 0
    i = 0
    n = len(skeleton)

    while i < n:
        ch = skeleton[i]
        if ch == '{':
            if skeleton.startswith('{{', i):
                i += 2
                continue
            end = _find_closing_brace(skeleton, i)
            if i > text_start:
                tokens.append(TextToken(skeleton[text_start:i]))
            tokens.append(_parse_placeholder(skeleton, i, end))
            i = text_start = end + 1
        elif ch == '}':
            if skeleton.startswith('}}', i):
                i += 2
                continue
            raise TemplateParseError("unmatched '}'", skeleton, i)
        else:
            i += 1

    if text_start < n:
        tokens.append(TextToken(skeleton[text_start:]))
    return tokens


def reconstruct(tokens: List[Token]) -> str:
    """Join tokens back into the skeleton they were parsed from.

    Examples:
        >>> reconstruct(parse_template('{1} and {{0}} and {0}'))
        '{1} and {{0}} and {0}'
    """
    return ''.join(token.raw_text for token in tokens)


def escape_literal(text: str) -> str:
    """Double every brace so ``text`` parses as a literal.

    Examples:
        >>> escape_literal('a {b} c')
        'a {{b}} c'
    """
    return text.replace('{', '{{').replace('}', '}}')


def extract_placeholder_names(skeleton: str) -> List[str]:
    """List the placeholder names of a skeleton in order of appearance.

    Examples:
        >>> extract_placeholder_names('{x}{y}{0}{@z}')
        ['x', 'y', '0', 'z']
    """
    return [
        token.name for token in parse_template(skeleton)
        if isinstance(token, PlaceholderToken)
    ]
