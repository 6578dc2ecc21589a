"""Core classes for semlog: Template, TemplateCache and BoundMessage.

This module implements the pattern ``message = parse(skeleton, *values)``:
the skeleton is parsed once into a cached :class:`Template`, and every call
pairs that shared template with its own argument values.
"""

import threading
from collections.abc import Mapping
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from semlog.binding import format_template, to_dictionary
from semlog.parsing import parse_template
from semlog.recovery import ExpressionNameRecovery
from semlog.tokens import PlaceholderToken, Token


class Template:
    """Parsed, immutable representation of a skeleton.

    The only change a Template accepts after creation is the one-time
    enrichment that gives positional placeholders a recovered display name.

    Examples:
        >>> t = Template('{0} bought {1}')
        >>> [p.name for p in t.placeholders]
        ['0', '1']
        >>> t.render(['ann', 'tea'])
        'ann bought tea'
        >>> t.enrich(['user', 'item'])
        >>> t.to_dictionary(['ann', 'tea'])
        {'user': 'ann', 'item': 'tea'}
        >>> t.render(['ann', 'tea'])
        'ann bought tea'
    """

    def __init__(self, text: str, tokens: Optional[Sequence[Token]] = None):
        """Initialize a Template.

        Args:
            text: The skeleton
            tokens: Pre-parsed tokens; the skeleton is parsed when omitted

        Raises:
            TemplateParseError: If the skeleton is malformed
        """
        self.text = text
        self._tokens: Tuple[Token, ...] = tuple(
            parse_template(text) if tokens is None else tokens
        )
        self._enriched = False

    @property
    def tokens(self) -> Tuple[Token, ...]:
        return self._tokens

    @property
    def placeholders(self) -> List[PlaceholderToken]:
        return [t for t in self._tokens if isinstance(t, PlaceholderToken)]

    @property
    def has_positional(self) -> bool:
        return any(p.is_positional for p in self.placeholders)

    @property
    def is_enriched(self) -> bool:
        return self._enriched

    def enrich(self, names: Sequence[str]) -> None:
        """Give the first ``len(names)`` positional placeholders a display name.

        Only the first call has an effect. Format specs, markers and the
        positional keys are kept.
        """
        if self._enriched:
            return
        self._enriched = True
        names = iter(names)
        tokens = []
        for token in self._tokens:
            if isinstance(token, PlaceholderToken) and token.is_positional:
                name = next(names, None)
                if name is not None:
                    token = token.with_name(name)
            tokens.append(token)
        self._tokens = tuple(tokens)

    def render(self, values: Sequence[Any]) -> str:
        return format_template(self, values)

    def to_dictionary(self, values: Sequence[Any]) -> Dict[str, Optional[str]]:
        return to_dictionary(self, values)

    def __repr__(self) -> str:
        return f"Template({self.text!r})"


class TemplateCache(Mapping):
    """Mapping from skeleton text to its parsed Template.

    Each distinct skeleton is parsed once; later lookups return the very same
    Template object. Keys are compared exactly, without normalisation. There
    is no eviction: keys come from the program's log statements, not from
    runtime data.

    On first use, positional placeholders are renamed from the source line of
    the call when a file path and line number are given.

    Examples:
        >>> cache = TemplateCache(recover_names=False)
        >>> t = cache.get_or_parse('Hello {name}')
        >>> cache.get_or_parse('Hello {name}') is t
        True
        >>> 'Hello {name}' in cache, 'Hello  {name}' in cache
        (True, False)
    """

    def __init__(
        self,
        recovery: Optional[ExpressionNameRecovery] = None,
        recover_names: bool = True,
    ):
        """Initialize a TemplateCache.

        Args:
            recovery: Expression-name recovery to use on first parse
            recover_names: If False, never read source lines
        """
        self._templates: Dict[str, Template] = {}
        self._lock = threading.Lock()
        self.recovery = recovery or ExpressionNameRecovery()
        self.recover_names = recover_names

    def get_or_parse(self, skeleton: str, file_path: str = '', line_no: int = -1) -> Template:
        """Return the cached Template for ``skeleton``, parsing it on first use.

        Args:
            skeleton: The message skeleton
            file_path: Source file of the logging call, if known
            line_no: 1-based line of the logging call, if known

        Returns:
            The shared Template

        Raises:
            TemplateParseError: If the skeleton is malformed (nothing is cached)
        """
        template = self._templates.get(skeleton)
        if template is not None:
            return template
        with self._lock:
            template = self._templates.get(skeleton)
            if template is None:
                template = Template(skeleton)
                if self.recover_names and file_path and line_no > 0 and template.has_positional:
                    self.recovery.recover(template, file_path, line_no)
                self._templates[skeleton] = template
        return template

    def __getitem__(self, skeleton: str) -> Template:
        return self._templates[skeleton]

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._templates))

    def __len__(self) -> int:
        return len(self._templates)

    def clear(self) -> None:
        """Forget every cached template."""
        with self._lock:
            self._templates.clear()


class BoundMessage:
    """A Template paired with the argument values of one logging call.

    The values are kept as a tuple of the argument references. The string
    and dictionary forms are computed on first request and then kept, so
    later changes inside the values do not show up. A binding failure
    (too few values) surfaces from that first request.

    The file path of the call doubles as a logging category.

    Examples:
        >>> msg = BoundMessage(Template('{x} + {y}'), [1, 2])
        >>> str(msg)
        '1 + 2'
        >>> msg.to_dictionary()
        {'x': '1', 'y': '2'}
    """

    def __init__(
        self,
        template: Template,
        values: Sequence[Any] = (),
        file_path: str = '',
        line_no: int = -1,
    ):
        self.template = template
        self.values = tuple(values)
        self.file_path = file_path
        self.line_no = line_no
        self._lock = threading.Lock()
        self._string: Optional[str] = None
        self._dictionary: Optional[Dict[str, Optional[str]]] = None

    @property
    def category(self) -> str:
        return self.file_path

    @property
    def template_text(self) -> str:
        return self.template.text

    def to_string(self) -> str:
        """Render the message, once."""
        if self._string is None:
            with self._lock:
                if self._string is None:
                    self._string = self.template.render(self.values)
        return self._string

    def to_dictionary(self) -> Dict[str, Optional[str]]:
        """Map placeholder names to display strings, once."""
        if self._dictionary is None:
            with self._lock:
                if self._dictionary is None:
                    self._dictionary = self.template.to_dictionary(self.values)
        return self._dictionary

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"BoundMessage({self.template.text!r}, {self.values!r})"


_default_cache = TemplateCache()


def default_cache() -> TemplateCache:
    """Return the process-wide TemplateCache used when none is passed."""
    return _default_cache


def parse(
    skeleton: str,
    *values: Any,
    file_path: str = '',
    line_no: int = -1,
    cache: Optional[TemplateCache] = None,
) -> BoundMessage:
    """Parse (or fetch from cache) ``skeleton`` and bind ``values`` to it.

    Args:
        skeleton: The message skeleton
        *values: Evaluated argument values, in call order
        file_path: Source file of the call, for expression-name recovery
        line_no: 1-based line of the call
        cache: TemplateCache to use; defaults to :func:`default_cache`

    Returns:
        A BoundMessage, rendered lazily

    Examples:
        >>> str(parse('{1} and {0}', 'a', 'b'))
        'b and a'
        >>> parse('{a}', 1).template is parse('{a}', 2).template
        True
    """
    if cache is None:
        cache = default_cache()
    template = cache.get_or_parse(skeleton, file_path, line_no)
    return BoundMessage(template, values, file_path, line_no)
