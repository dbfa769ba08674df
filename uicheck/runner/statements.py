"""
The closed set of statement kinds and small operand types.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from uicheck.runner.tokens import Token, TokenKind


class Statement(str, enum.Enum):
    VERSION = "version"
    DEFAULT = "default"
    BROWSER = "browser"
    INCLUDE = "include"
    CALL = "call"
    ALIAS = "alias"
    FUNCTION = "function"
    TEST_ID = "test-id"
    FIELD = "field"
    SELECT = "select"
    XPATH = "xpath"
    LOG = "log"
    DUMP = "dump"
    INFO = "info"
    CLICK = "click"
    CLICK_NOW = "click-now"
    SCREENSHOT = "screenshot"
    SLEEP = "sleep"
    TAG = "tag"
    NOT = "not"
    DISPLAYED = "displayed"
    ENABLED = "enabled"
    SELECTED = "selected"
    AT = "at"
    SIZE = "size"
    CHECK = "check"
    CHECKSUM = "checksum"
    WAIT = "wait"
    ECHO = "echo"
    SET = "set"
    SEND = "send"
    CLEAR = "clear"
    PRESS = "press"
    SENDKEY = "sendkey"
    PUSH = "push"
    POP = "pop"
    EXEC = "exec"
    EXEC_INCLUDE = "exec-include"
    IF = "if"
    THEN = "then"
    ENDIF = "endif"
    FAIL = "fail"
    MOUSE = "mouse"
    WHILE = "while"
    SCROLL_INTO_VIEW = "scroll-into-view"
    WAIT_FOR = "wait-for"

    @classmethod
    def lookup(cls, token: Token) -> Optional["Statement"]:
        """Map a bare word token to its statement kind."""
        if token.kind is not TokenKind.WORD or token.quote:
            return None
        try:
            return cls(token.value)
        except ValueError:
            return None


TRUE_WORDS = ("on", "yes", "true")
FALSE_WORDS = ("off", "no", "false")


def truthy(word: str) -> Optional[bool]:
    """``True``/``False`` for on/yes/true and off/no/false, ``None`` otherwise."""
    lowered = word.lower()
    if lowered in TRUE_WORDS:
        return True
    if lowered in FALSE_WORDS:
        return False
    return None


@dataclass(frozen=True)
class Axis:
    """
    One coordinate of an ``at``/``size`` check.

    ``Axis()`` is the ``*`` wildcard, ``Axis(n, n)`` an exact value and
    ``Axis(lo, hi)`` an inclusive range.
    """

    low: Optional[float] = None
    high: Optional[float] = None

    @property
    def wildcard(self) -> bool:
        return self.low is None

    def matches(self, value: float) -> bool:
        if self.wildcard:
            return True
        return self.low <= value <= self.high

    def __str__(self) -> str:
        if self.wildcard:
            return "*"
        if self.low == self.high:
            return f"{self.low:g}"
        return f"{self.low:g}:{self.high:g}"


# key codes accepted by ``sendkey N``
KEY_CODES = {
    8: "Backspace",
    9: "Tab",
    13: "Enter",
    27: "Escape",
    32: "Space",
    33: "PageUp",
    34: "PageDown",
    35: "End",
    36: "Home",
    37: "ArrowLeft",
    38: "ArrowUp",
    39: "ArrowRight",
    40: "ArrowDown",
    46: "Delete",
}
