"""
Token sources consumed by the interpreter.

Two producers share one interface (``next`` / ``peek``):

- ``ScannerSource`` reads a file or string through the scanner.
- ``BufferSource`` replays a span of the interpreter's ``TokenArena``
  (alias bodies, ``while`` blocks, synthetic token lists) with an integer
  cursor, substituting alias arguments token by token as it goes.

Replaying a span never copies it, so nested alias calls and loop
iterations are only cursor bookkeeping.
"""

from __future__ import annotations

import re
from dataclasses import replace
from functools import lru_cache
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from uicheck.core.errors import ScriptSyntaxError
from uicheck.runner.scanner import Scanner, ScannerOptions
from uicheck.runner.tokens import Token, TokenKind, parse_number

Bindings = Mapping[str, Token]


@lru_cache(maxsize=256)
def _reference_pattern(names: Tuple[str, ...]) -> "re.Pattern[str]":
    """
    ``$name``, ``$(name)`` and ``$I(name)`` for the given parameter names.

    Names are tried longest first so ``$user-name`` wins over ``$user``. A
    bare name must not run on into letters, digits or ``_``.
    """
    alternatives = "|".join(re.escape(n) for n in sorted(names, key=len, reverse=True))
    return re.compile(rf"\$(?:(I)?\(({alternatives})\)|({alternatives})(?![A-Za-z0-9_]))")


class TokenSource:
    name = "<tokens>"

    def next(self) -> Token:
        raise NotImplementedError

    def peek(self) -> Token:
        raise NotImplementedError


class ScannerSource(TokenSource):
    def __init__(self, text: str, name: str = "<string>", options: Optional[ScannerOptions] = None) -> None:
        self.name = name
        self._scanner = Scanner(text, options, name)

    @classmethod
    def from_file(cls, path: str, options: Optional[ScannerOptions] = None) -> "ScannerSource":
        with open(path, "r", encoding="utf-8") as f:
            return cls(f.read(), path, options)

    def next(self) -> Token:
        return self._scanner.next()

    def peek(self) -> Token:
        return self._scanner.peek()


class TokenArena:
    """Append-only token storage addressed by ``(start, end)`` spans."""

    def __init__(self) -> None:
        self._tokens: List[Token] = []

    def __len__(self) -> int:
        return len(self._tokens)

    def __getitem__(self, index: int) -> Token:
        return self._tokens[index]

    def add(self, tokens: Iterable[Token]) -> Tuple[int, int]:
        start = len(self._tokens)
        self._tokens.extend(t for t in tokens if not t.is_end)
        return start, len(self._tokens)

    def span(self, start: int, end: int) -> List[Token]:
        return self._tokens[start:end]

    def truncate(self, mark: int) -> None:
        """Drop every token added after ``len(arena)`` was ``mark``."""
        del self._tokens[mark:]


class BufferSource(TokenSource):
    def __init__(
        self,
        arena: TokenArena,
        span: Tuple[int, int],
        bindings: Optional[Bindings] = None,
        name: str = "<tokens>",
    ) -> None:
        self.name = name
        self._arena = arena
        self._cursor, self._end = span
        self._start = self._cursor
        self._bindings: Dict[str, Token] = dict(bindings or {})

    @property
    def position(self) -> int:
        return self._cursor

    def rewind(self) -> None:
        self._cursor = self._start

    def sub(self, start: int, end: int, name: Optional[str] = None) -> "BufferSource":
        """A source over part of this span with the same bindings."""
        return BufferSource(self._arena, (start, end), self._bindings, name or self.name)

    def peek(self) -> Token:
        if self._cursor >= self._end:
            line = self._arena[self._end - 1].line if self._end > self._start else 0
            return Token(TokenKind.END, "", line)
        return substitute_token(self._arena[self._cursor], self._bindings)

    def next(self) -> Token:
        token = self.peek()
        if not token.is_end:
            self._cursor += 1
        return token


def _whole_reference(text: str) -> Tuple[str, bool] | None:
    """Split ``$name``, ``$(name)`` or ``$I(name)`` into (name, as_int)."""
    if not text.startswith("$") or len(text) < 2:
        return None
    body = text[1:]
    if body.startswith("I(") and body.endswith(")"):
        return body[2:-1], True
    if body.startswith("(") and body.endswith(")"):
        return body[1:-1], False
    if "(" in body or ")" in body:
        return None
    return body, False


def _as_int(bound: Token, at: Token) -> int:
    number = bound.value if bound.kind is TokenKind.NUMBER else parse_number(str(bound.value).strip())
    if number is None:
        raise ScriptSyntaxError(f"cannot use {bound.describe()} as an integer at line {at.line}", at)
    return int(number)


def substitute_token(token: Token, bindings: Bindings) -> Token:
    """
    Replace alias parameter references in ``token``.

    A bare token that is exactly a reference becomes a copy of the bound
    argument, kind included, so a numeric argument stays numeric.
    ``$I(name)`` always yields a NUMBER. References embedded in a longer
    word (or in any quoted string) are interpolated as text. Unbound
    references are left untouched.
    """
    if not bindings or token.kind is not TokenKind.WORD or "$" not in str(token.value):
        return token
    text = str(token.value)

    whole = _whole_reference(text)
    if whole is not None and whole[0] in bindings:
        name, as_int = whole
        bound = bindings[name]
        if as_int:
            number = _as_int(bound, token)
            return replace(token, kind=TokenKind.NUMBER, value=number, quote="", raw=str(number))
        if not token.quote:
            return replace(token, kind=bound.kind, value=bound.value, quote=bound.quote, raw=bound.raw)
        return replace(token, value=bound.text)

    def _interpolate(match: "re.Match[str]") -> str:
        as_int, wrapped, bare = match.group(1), match.group(2), match.group(3)
        bound = bindings[wrapped or bare]
        if as_int:
            return str(_as_int(bound, token))
        return bound.text

    names = tuple(n for n in bindings if n)
    if not names:
        return token
    substituted = _reference_pattern(names).sub(_interpolate, text)
    if substituted == text:
        return token
    return replace(token, value=substituted)


def capture_block(source: TokenSource, opener: Token, relative: bool = False) -> List[Token]:
    """
    Read tokens up to the ``}`` matching an already consumed ``{``.

    Nested braces are kept in the captured list. With ``relative`` the
    line numbers are renumbered from 1 at the opening brace's line.
    """
    depth = 1
    captured: List[Token] = []
    while True:
        token = source.next()
        if token.is_end:
            raise ScriptSyntaxError(f"unexpected end of input, missing '}}' for block opened at line {opener.line}", opener)
        if token.is_symbol("{"):
            depth += 1
        elif token.is_symbol("}"):
            depth -= 1
            if depth == 0:
                break
        captured.append(token)
    if relative:
        offset = opener.line - 1
        captured = [t.with_line(t.line - offset) for t in captured]
    return captured
