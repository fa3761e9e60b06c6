import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .. import constants
from ..exceptions import InvalidQueryError

logger = logging.getLogger(__name__)

# Context window around the query, B lines before and A lines after.
# Anchoring at a line start does not change which window is found first,
# it only stops the engine from retrying at every byte of a line.
QUERY_PATTERN = r"(?m)^(?:.*\n){{0,{before}}}.*(?P<{group}>{query}).*(?:\n|\Z)(?:.*\n){{0,{after}}}"

Content = Union[bytes, bytearray, memoryview]


@dataclass(frozen=True)
class Match:
    """
    One search hit.

    text is the whole context window, [start, end) its position in the
    searched content, submatch the query hit as offsets into text.
    """

    text: bytes
    start: int = 0
    end: int = 0
    submatch: Optional[Tuple[int, int]] = None

    @property
    def hit(self) -> bytes:
        if self.submatch is None:
            return self.text
        return self.text[self.submatch[0]:self.submatch[1]]


class Matcher:
    """A query compiled into a context window pattern"""

    def __init__(self, query: str, before: int = 0, after: int = 0, regex: bool = True):
        if before < 0 or after < 0:
            raise InvalidQueryError(f"negative context: before={before}, after={after}")
        self.query = query
        self.before = before
        self.after = after
        self.regex = regex

        q = query if regex else re.escape(query)
        pattern = QUERY_PATTERN.format(
            before=before, after=after, group=constants.QUERY_GROUP, query=q
        )
        try:
            self.rx = re.compile(pattern.encode("utf-8"))
        except (re.error, UnicodeEncodeError) as e:
            raise InvalidQueryError(f"invalid query {query!r}: {e}") from e

        # the group name can only go missing if the query itself redefines it
        self.group = self.rx.groupindex.get(constants.QUERY_GROUP, -1)
        if self.group < 0:
            raise InvalidQueryError(f"invalid subexpressions: {self.rx.pattern!r}")
        logger.debug(f"Compiled query {query!r} as {self.rx.pattern!r}")

    def match(self, content: Content) -> Optional[Match]:
        """First context window matching the query, None if there is none"""
        m = self.rx.search(content)
        if m is None:
            return None
        start, end = m.span()
        sub = m.span(self.group)
        return Match(
            text=bytes(content[start:end]),
            start=start,
            end=end,
            submatch=(sub[0] - start, sub[1] - start) if sub[0] >= 0 else None,
        )

    def __repr__(self) -> str:
        return f"Matcher({self.query!r}, before={self.before}, after={self.after}, regex={self.regex})"
