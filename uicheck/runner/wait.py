"""
Shared wait budget and the assertion retry loop.

A ``wait N`` statement sets one deadline. Every fallible statement that
follows races against whatever is left of that same deadline: it is
attempted, and on failure retried after a short pause until it passes or
the deadline is reached. Nothing resets the budget per statement, so a
failing script fails as soon as the declared time is spent.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, List, Optional, Tuple

from uicheck.core.errors import ScriptAssertionError, ScriptTimeoutError

logger = logging.getLogger(__name__)


class WaitBudget:
    """
    A wall-clock deadline plus an explicit save/restore stack.

    :param seconds: Initial budget
    :param scale: Multiplier applied to every budget that is set
    :param offset: Seconds added to every budget that is set
    :param clock: Monotonic time source, injectable for tests
    """

    def __init__(
        self,
        seconds: float,
        scale: float = 1.0,
        offset: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.scale = scale
        self.offset = offset
        self._clock = clock
        self._saved: List[Tuple[float, float]] = []
        self.seconds = 0.0
        self.deadline = 0.0
        self.reset(seconds)

    def reset(self, seconds: float) -> None:
        self.seconds = seconds
        self.deadline = self._clock() + seconds * self.scale + self.offset

    def remaining(self) -> float:
        return self.deadline - self._clock()

    def push(self) -> None:
        self._saved.append((self.seconds, self.deadline))

    def pop(self) -> None:
        """Restore the last pushed budget; ``IndexError`` if none was pushed."""
        self.seconds, self.deadline = self._saved.pop()

    @property
    def depth(self) -> int:
        return len(self._saved)


def retry_until_budget(
    attempt: Callable[[], None],
    budget: WaitBudget,
    interval: float,
    token: Any = None,
    recover: Optional[Callable[[], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Run ``attempt`` until it succeeds or the wait budget is spent.

    ``attempt`` signals failure by raising ``AssertionError`` (a recorded
    failure) or ``TimeoutError`` (the driver gave up before it could
    decide). Between attempts the loop sleeps ``interval`` seconds (never
    past the deadline) and calls ``recover``, which the interpreter uses
    to re-resolve the current element.

    :return: Number of attempts made
    :raises ScriptAssertionError: With the last recorded failure
    :raises ScriptTimeoutError: If no attempt recorded an assertion failure
    """
    last_failure: Optional[AssertionError] = None
    attempts = 0
    while True:
        attempts += 1
        try:
            attempt()
            return attempts
        except AssertionError as e:
            last_failure = e
        except TimeoutError:
            pass

        remaining = budget.remaining()
        if remaining <= 0:
            if last_failure is not None:
                raise ScriptAssertionError(str(last_failure) or "assertion failed", token) from last_failure
            raise ScriptTimeoutError(
                f"timed out after {budget.seconds:g}s", token, timeout_seconds=budget.seconds
            )
        logger.debug("attempt %d failed, %.2fs left: %s", attempts, remaining, last_failure)
        sleep(max(0.0, min(interval, remaining)))
        if recover is not None:
            recover()
