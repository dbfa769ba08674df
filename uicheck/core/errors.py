"""
Exceptions raised while scanning and executing check scripts.

Every failure carries the token that caused it (when one is known) and,
once it crosses the innermost frame boundary, a snapshot of the frame
stack so the top-level runner can print a file/alias annotated trace.
"""

from __future__ import annotations

from typing import Any, List, Optional, Tuple


class ScriptError(Exception):
    """Base exception for all script failures."""

    def __init__(self, message: str, token: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.token = token
        # (frame name, line) pairs, innermost first
        self.trace: Optional[List[Tuple[str, int]]] = None

    @property
    def line(self) -> Optional[int]:
        return getattr(self.token, "line", None)

    def format(self) -> str:
        if not self.trace:
            if self.line is not None:
                return f"line {self.line}: {self.message}"
            return self.message
        name, line = self.trace[0]
        lines = [f"{name}:{line}: {self.message}"]
        for outer_name, outer_line in self.trace[1:]:
            lines.append(f"  at {outer_name} line {outer_line}")
        return "\n".join(lines)


class ScriptSyntaxError(ScriptError):
    """Unexpected token, wrong token kind or unexpected end of input."""


class ScriptAssertionError(ScriptError):
    """A driver predicate did not hold within the wait budget."""


class ScriptTimeoutError(ScriptAssertionError):
    """The wait budget ran out before any attempt could complete."""

    def __init__(self, message: str, token: Any = None, timeout_seconds: float = 0.0) -> None:
        super().__init__(message, token)
        self.timeout_seconds = timeout_seconds


class SubprocessError(ScriptAssertionError):
    """An ``exec`` command exited with a non-zero status."""

    def __init__(self, message: str, token: Any = None, returncode: int = 1) -> None:
        super().__init__(message, token)
        self.returncode = returncode


class ExplicitFailure(ScriptError):
    """Raised by the ``fail`` statement."""


class ElementNotFound(AssertionError):
    """Raised by drivers when a locator matched nothing in time."""
