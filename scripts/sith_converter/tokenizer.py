"""
tokenizer.py
============

Lexer shared by the two text formats of the Sith engine (``.jkl`` levels and
``.3do`` models).

Both formats are whitespace separated, use ``#`` line comments, write record
indices as ``12:`` and polygon corners as ``vertex,uv``. The tokenizer owns
the full text of one file plus a cursor; one instance per file.
"""

from __future__ import annotations

from typing import Optional, Tuple

from .errors import SithParseError

PUNCTUATION = (":", ",")
COMMENT_CHAR = "#"
QUOTE_CHAR = '"'
LINE_TERMINATORS = ("\n", "\r")


def parse_int(text: Optional[str]) -> int:
    """Parse a decimal (or ``0x`` hex) integer, 0 when the text is garbled."""
    if text is None:
        return 0
    stripped = text.strip()
    try:
        if stripped[:2].lower() == "0x":
            return int(stripped[2:], 16)
        return int(stripped, 10)
    except ValueError:
        return 0


def parse_float(text: Optional[str]) -> float:
    """Parse a float written with ``.`` as the decimal separator, 0.0 when garbled."""
    if text is None:
        return 0.0
    try:
        return float(text.strip())
    except ValueError:
        return 0.0


class Tokenizer:
    def __init__(self, content: str) -> None:
        self._content = content
        self._length = len(content)
        self._cursor = 0

    @property
    def position(self) -> int:
        return self._cursor

    @property
    def at_end(self) -> bool:
        self._skip_whitespace()
        return self._cursor >= self._length

    @property
    def line_number(self) -> int:
        """1-based line of the cursor."""
        return self._content.count("\n", 0, self._cursor) + 1

    def _skip_whitespace(self) -> None:
        content = self._content
        while self._cursor < self._length:
            while self._cursor < self._length and content[self._cursor].isspace():
                self._cursor += 1

            if self._cursor < self._length and content[self._cursor] == COMMENT_CHAR:
                while (
                    self._cursor < self._length
                    and content[self._cursor] not in LINE_TERMINATORS
                ):
                    self._cursor += 1
            else:
                break

    def next_token(self) -> Optional[str]:
        """Return the next token, or ``None`` once the input is exhausted."""
        self._skip_whitespace()
        if self._cursor >= self._length:
            return None

        content = self._content
        first = content[self._cursor]

        if first == QUOTE_CHAR:
            self._cursor += 1
            start = self._cursor
            while self._cursor < self._length and content[self._cursor] != QUOTE_CHAR:
                self._cursor += 1
            token = content[start:self._cursor]
            self._cursor += 1  # closing quote
            return token

        if first in PUNCTUATION:
            self._cursor += 1
            return first

        start = self._cursor
        while self._cursor < self._length:
            char = content[self._cursor]
            if char.isspace() or char in PUNCTUATION:
                break
            self._cursor += 1
        return content[start:self._cursor]

    def peek_token(self) -> Optional[str]:
        saved = self._cursor
        token = self.next_token()
        self._cursor = saved
        return token

    def _next_value_token(self, what: str) -> str:
        token = self.next_token()
        if token == ":":
            token = self.next_token()
        if token is None:
            raise SithParseError(
                f"unexpected end of input while reading {what}",
                line=self.line_number,
            )
        return token

    def next_int(self) -> int:
        return parse_int(self._next_value_token("an integer"))

    def next_float(self) -> float:
        return parse_float(self._next_value_token("a number"))

    def next_vector3(self) -> Tuple[float, float, float]:
        return (self.next_float(), self.next_float(), self.next_float())

    def next_vector2(self) -> Tuple[float, float]:
        return (self.next_float(), self.next_float())

    def skip_if(self, expected: str) -> bool:
        """Consume the next token when it equals *expected*."""
        if self.peek_token() == expected:
            self.next_token()
            return True
        return False

    def rest_of_line(self) -> str:
        """Return the raw text up to the line terminator, trimmed, and consume it."""
        content = self._content
        start = self._cursor
        while self._cursor < self._length and content[self._cursor] not in LINE_TERMINATORS:
            self._cursor += 1
        line = content[start:self._cursor].strip()

        if self._cursor < self._length and content[self._cursor] == "\r":
            self._cursor += 1
        if self._cursor < self._length and content[self._cursor] == "\n":
            self._cursor += 1
        return line
