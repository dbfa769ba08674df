"""
Mutable execution state owned by one interpreter run.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from uicheck.runner.tokens import Token


@dataclass
class Frame:
    """One include/alias/string level of the call stack."""

    working_dir: str
    name: str
    caller_line: int = 0
    # line of the statement currently executing in this frame
    line: int = 0


@dataclass
class Alias:
    name: str
    params: List[str]
    # span of the body in the interpreter's token arena
    span: Tuple[int, int]
    line: int = 0


class ConditionPhase(str, enum.Enum):
    CONDITION = "condition"  # after ``if``, before ``then``
    BRANCH = "branch"  # after ``then``, before ``endif``


@dataclass
class ConditionFrame:
    token: Token
    # skip flag in force when the ``if`` was reached
    outer_skip: bool
    phase: ConditionPhase = ConditionPhase.CONDITION
    result: bool = True


@dataclass
class Selection:
    kind: str
    locator: str


@dataclass
class ExecutionState:
    default_wait: float
    browser_wait: float
    screenshot_root: str
    skip: bool = False
    negate_next: bool = False
    auto_log_console: bool = False
    selection: Optional[Selection] = None
    conditions: List[ConditionFrame] = field(default_factory=list)

    @property
    def in_condition(self) -> bool:
        return bool(self.conditions) and self.conditions[-1].phase is ConditionPhase.CONDITION

    def take_negate(self) -> bool:
        negate, self.negate_next = self.negate_next, False
        return negate

    def record_condition(self, outcome: bool) -> None:
        top = self.conditions[-1]
        top.result = top.result and outcome

    def snapshot(self) -> Tuple[bool, int]:
        return self.skip, len(self.conditions)

    def restore(self, snapshot: Tuple[bool, int]) -> None:
        self.skip, depth = snapshot
        del self.conditions[depth:]
        self.negate_next = False
