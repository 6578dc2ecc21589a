"""Best-effort recovery of expression names for positional placeholders.

A positional placeholder such as ``{0}`` says nothing about what was logged.
When the file and line of the logging call are known, the braced expressions
written on that line are read back and used as display names, so that
``log.info("value={0}", x.y)`` written as ``"value={x.y}"`` on the source line
reports the property ``x.y`` instead of ``0``.

This is cosmetic: any failure leaves the numeric names in place.
"""

import logging
import re
import time
from itertools import islice
from typing import List, Optional

from semlog.tokens import PlaceholderToken

logger = logging.getLogger(__name__)

# ``{`` + one or more non-quote characters + ``}``; expressions holding string
# literals are not matched.
BRACED_EXPRESSION = re.compile(r'\{[^"]+?\}')


class ExpressionNameRecovery:
    """Reads a source line and maps its braced expressions onto placeholders.

    Args:
        timeout: Seconds allowed for scanning one line
        max_line_length: Longer lines are cut before scanning
        encoding: Encoding used to read source files

    Examples:
        >>> recovery = ExpressionNameRecovery()
        >>> recovery.find_expressions('log.info($"value={x.Y} and {items[0]}")')
        ['x.Y', 'items[0]']
        >>> recovery.find_expressions('nothing here')
        []
    """

    def __init__(
        self,
        timeout: float = 0.099,
        max_line_length: int = 4096,
        encoding: str = 'utf-8',
    ):
        self.timeout = timeout
        self.max_line_length = max_line_length
        self.encoding = encoding

    def read_line(self, file_path: str, line_no: int) -> Optional[str]:
        """Return line ``line_no`` (1-based) of ``file_path``, or None."""
        if not file_path or line_no < 1:
            return None
        try:
            with open(file_path, encoding=self.encoding, errors='replace') as f:
                line = next(islice(f, line_no - 1, line_no), None)
        except OSError as e:
            logger.debug("Cannot read %s: %s", file_path, e)
            return None
        if line is None:
            logger.debug("Line %d is out of range in %s", line_no, file_path)
        return line

    def find_expressions(self, line: str) -> List[str]:
        """Return the inner text of every braced expression on ``line``.

        Scanning stops once ``timeout`` has elapsed; the expressions found so
        far are returned.
        """
        deadline = time.monotonic() + self.timeout
        expressions = []
        for match in BRACED_EXPRESSION.finditer(line[:self.max_line_length]):
            expressions.append(match.group()[1:-1])
            if time.monotonic() > deadline:
                logger.debug("Expression scan timed out after %d matches", len(expressions))
                break
        return expressions

    def recover_names(self, template, file_path: str, line_no: int) -> List[str]:
        """Return the recovered names for the positional placeholders of ``template``.

        The list may be shorter than the number of positional placeholders.
        """
        line = self.read_line(file_path, line_no)
        if line is None:
            return []
        positional = [
            t for t in template.tokens
            if isinstance(t, PlaceholderToken) and t.is_positional
        ]
        names = self.find_expressions(line)[:len(positional)]
        if len(names) < len(positional):
            logger.debug(
                "Found %d expressions for %d positional placeholders at %s:%d",
                len(names), len(positional), file_path, line_no,
            )
        return names

    def recover(self, template, file_path: str, line_no: int) -> bool:
        """Rename the positional placeholders of ``template`` from its source line.

        Never raises. Returns True if at least one placeholder was renamed.
        """
        try:
            names = self.recover_names(template, file_path, line_no)
        except (ValueError, UnicodeError, re.error) as e:
            logger.debug("Expression-name recovery failed for %s:%d: %s", file_path, line_no, e)
            names = []
        template.enrich(names)
        return bool(names)
