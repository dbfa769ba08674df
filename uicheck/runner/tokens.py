"""
Token types produced by the scanner and replayed by token sources.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Union


class TokenKind(str, enum.Enum):
    NUMBER = "number"
    WORD = "word"
    SYMBOL = "symbol"
    END = "end"


Value = Union[str, int, float]


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    # parsed number for NUMBER tokens, literal text otherwise
    value: Value
    line: int
    # quote character that opened the string, "" for bare tokens
    quote: str = ""
    # whitespace consumed immediately before the token
    lws: str = ""
    # source text of the token as written (quotes and escapes included)
    raw: str = ""

    @property
    def text(self) -> str:
        if self.kind is TokenKind.NUMBER:
            return self.raw or format_number(self.value)
        return str(self.value)

    @property
    def is_end(self) -> bool:
        return self.kind is TokenKind.END

    def is_symbol(self, ch: str) -> bool:
        return self.kind is TokenKind.SYMBOL and self.value == ch

    def is_word(self, *words: str) -> bool:
        return self.kind is TokenKind.WORD and not self.quote and self.value in words

    def with_line(self, line: int) -> "Token":
        return replace(self, line=line)

    def describe(self) -> str:
        if self.is_end:
            return "end of input"
        if self.quote:
            return f"{self.quote}{self.value}{self.quote}"
        return f"'{self.text}'"


def format_number(value: Value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def parse_number(text: str) -> Value | None:
    """Return ``text`` as an int or float, or ``None`` if it is not numeric."""
    if not text or text in ("-", ".", "-."):
        return None
    try:
        if "." in text:
            return float(text)
        return int(text)
    except ValueError:
        return None
