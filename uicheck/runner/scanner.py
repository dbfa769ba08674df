"""
Lexical scanner for check scripts.

The scanner turns script text into a stream of ``Token`` objects:
numbers, words (bare or quoted strings), single-character symbols and a
final ``END`` token. Word characters, whitespace and quote characters
are configurable through ``ScannerOptions`` so the identifier set
(which includes ``$``, ``#`` and ``-`` by default) is not hard coded.

Comments (``// ...`` and ``/* ... */``) dissolve: the whitespace around
them is folded into the leading whitespace of the next real token, so
joining ``lws + raw`` over the stream reproduces the source minus its
comments.
"""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from typing import FrozenSet, Iterator, List, Optional

from uicheck.core.errors import ScriptSyntaxError
from uicheck.runner.tokens import Token, TokenKind, parse_number

DEFAULT_WORD_CHARS = frozenset(string.ascii_letters + string.digits + "$#_-")


@dataclass
class ScannerOptions:
    quote_chars: str = "\"'"
    word_chars: FrozenSet[str] = field(default_factory=lambda: DEFAULT_WORD_CHARS)
    whitespace: str = " \t\r\n"
    slash_slash_comments: bool = True
    slash_star_comments: bool = True
    escape_char: str = "\\"


class Scanner:
    """
    Streaming scanner with one token of lookahead.

    :param text: Script source
    :param options: Character classes and comment switches
    :param name: Source name used in error messages
    """

    def __init__(self, text: str, options: Optional[ScannerOptions] = None, name: str = "<string>") -> None:
        self.options = options or ScannerOptions()
        self.name = name
        self._text = text
        self._pos = 0
        self._line = 1
        self._peeked: Optional[Token] = None

    @property
    def line(self) -> int:
        return self._line

    def next(self) -> Token:
        if self._peeked is not None:
            token, self._peeked = self._peeked, None
            return token
        return self._scan()

    def peek(self) -> Token:
        if self._peeked is None:
            self._peeked = self._scan()
        return self._peeked

    def tokens(self) -> Iterator[Token]:
        """Yield every remaining token, ending with exactly one ``END``."""
        while True:
            token = self.next()
            yield token
            if token.is_end:
                return

    # character classes

    def _at(self, pos: int) -> str:
        return self._text[pos] if pos < len(self._text) else ""

    def _starts_number(self, pos: int) -> bool:
        ch, nxt = self._at(pos), self._at(pos + 1)
        if ch.isdigit():
            return True
        if ch == "." and nxt.isdigit():
            return True
        if ch == "-":
            return nxt.isdigit() or (nxt == "." and self._at(pos + 2).isdigit())
        return False

    def _is_word(self, ch: str) -> bool:
        return ch != "" and ch in self.options.word_chars

    # scanning

    def _skip_space_and_comments(self) -> str:
        opts = self.options
        text = self._text
        lws: List[str] = []
        while True:
            start = self._pos
            while self._pos < len(text) and text[self._pos] in opts.whitespace:
                if text[self._pos] == "\n":
                    self._line += 1
                self._pos += 1
            lws.append(text[start:self._pos])
            if self._at(self._pos) != "/":
                return "".join(lws)
            nxt = self._at(self._pos + 1)
            if nxt == "/" and opts.slash_slash_comments:
                end = text.find("\n", self._pos)
                self._pos = len(text) if end < 0 else end
            elif nxt == "*" and opts.slash_star_comments:
                end = text.find("*/", self._pos + 2)
                if end < 0:
                    raise ScriptSyntaxError(
                        f"{self.name}: unterminated comment starting at line {self._line}",
                        Token(TokenKind.END, "", self._line),
                    )
                self._line += text.count("\n", self._pos, end)
                self._pos = end + 2
            else:
                return "".join(lws)

    def _read_quoted(self, quote: str) -> str:
        text = self._text
        escape = self.options.escape_char
        start_line = self._line
        out: List[str] = []
        self._pos += 1
        while True:
            if self._pos >= len(text):
                raise ScriptSyntaxError(
                    f"{self.name}: unterminated string starting at line {start_line}",
                    Token(TokenKind.WORD, "".join(out), start_line, quote=quote),
                )
            ch = text[self._pos]
            if escape and ch == escape and self._at(self._pos + 1) in (quote, escape):
                out.append(text[self._pos + 1])
                self._pos += 2
                continue
            self._pos += 1
            if ch == quote:
                return "".join(out)
            if ch == "\n":
                self._line += 1
            out.append(ch)

    def _scan(self) -> Token:
        lws = self._skip_space_and_comments()
        line = self._line
        start = self._pos
        ch = self._at(start)
        if ch == "":
            return Token(TokenKind.END, "", line, lws=lws)

        quotes = self.options.quote_chars
        numeric = self._starts_number(start)
        if not numeric and ch not in quotes and not self._is_word(ch):
            self._pos += 1
            return Token(TokenKind.SYMBOL, ch, line, lws=lws, raw=ch)

        kind = TokenKind.NUMBER if numeric else TokenKind.WORD
        parts: List[str] = []
        quote = ""
        joinable = True
        if numeric:
            parts.append(ch)
            self._pos += 1
        while self._pos < len(self._text):
            ch = self._text[self._pos]
            if ch in quotes and joinable:
                parts.append(self._read_quoted(ch))
                kind = TokenKind.WORD
                quote = quote or ch
                joinable = False
                continue
            if kind is TokenKind.NUMBER and (ch.isdigit() or ch == "."):
                parts.append(ch)
                self._pos += 1
                continue
            if self._is_word(ch):
                kind = TokenKind.WORD
                parts.append(ch)
                joinable = True
                self._pos += 1
                continue
            break

        value = "".join(parts)
        raw = self._text[start:self._pos]
        if kind is TokenKind.NUMBER:
            number = parse_number(value)
            if number is not None:
                return Token(TokenKind.NUMBER, number, line, lws=lws, raw=raw)
        return Token(TokenKind.WORD, value, line, quote=quote, lws=lws, raw=raw)


def tokenize(text: str, options: Optional[ScannerOptions] = None, name: str = "<string>") -> List[Token]:
    return list(Scanner(text, options, name).tokens())
