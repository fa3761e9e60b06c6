import logging
from threading import Lock
from typing import Dict, IO, List, Optional, Tuple

import click

from . import constants
from .cache.base import Entry
from .grep.matcher import Match

logger = logging.getLogger(__name__)

SEPARATOR = b"--------\n"

# Palette slots
QUERY, MATCH, PATH, SEPARATOR_COLOR = range(4)


def _style_codes(letter: str) -> Tuple[bytes, bytes]:
    """ANSI start and reset sequences for one palette letter"""
    name = constants.COLOR_LETTERS[letter.lower()]
    if letter.isupper():
        name = f"bright_{name}"
    start, reset = click.style("\0", fg=name).split("\0")
    return start.encode(), reset.encode()


def parse_palette(colors: str) -> Dict[int, Tuple[bytes, bytes]]:
    """
    Map palette slots to escape sequences. Unknown letters leave their slot
    at its default, extra letters are ignored.
    """
    palette = {i: _style_codes(c) for i, c in enumerate(constants.DEFAULT_COLORS)}
    for i, c in enumerate(colors[: len(palette)]):
        if c.lower() in constants.COLOR_LETTERS:
            palette[i] = _style_codes(c)
    return palette


class TextFormatter:
    """
    Writes grep results as text: the entry path, then every match separated
    by a dashed line. Safe to call from concurrent result callbacks.
    """

    def __init__(
        self,
        file: Optional[IO] = None,
        color: bool = False,
        filenames_only: bool = False,
        colors: str = constants.DEFAULT_COLORS,
    ):
        self.file = file
        self.color = color
        self.filenames_only = filenames_only
        self.palette = parse_palette(colors)
        self._mu = Lock()

    def _paint(self, slot: int, text: bytes) -> bytes:
        if not self.color:
            return text
        start, reset = self.palette[slot]
        return start + text + reset

    def render(self, entry: Entry, matches: Optional[List[Match]]) -> bytes:
        if self.filenames_only:
            return entry.path.encode() + b"\n"
        if matches is None:
            return b""

        parts = [self._paint(PATH, entry.path.encode()), b":\n"]
        for i, m in enumerate(matches):
            if i > 0:
                parts.append(self._paint(SEPARATOR_COLOR, SEPARATOR))
            if self.color and m.submatch is not None:
                s, e = m.submatch
                parts += [m.text[:s], self._paint(MATCH, m.text[s:e]), m.text[e:]]
            else:
                parts.append(m.text)
            if m.text and not m.text.endswith(b"\n"):
                parts.append(b"\n")
        return b"".join(parts)

    def format(self, entry: Entry, matches: Optional[List[Match]]) -> None:
        out = self.render(entry, matches)
        if not out:
            return
        with self._mu:
            click.echo(out, file=self.file, nl=False)
