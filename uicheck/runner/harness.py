"""
Minimal test harness: each script run is one named test case.
"""

from __future__ import annotations

import logging
import os
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from uicheck.core.errors import ScriptError

logger = logging.getLogger(__name__)


class TestCaseResult(BaseModel):
    name: str
    status: str  # PASSED | FAILED | ERROR
    duration_ms: int
    error: Optional[str] = None
    started_at: str


class SuiteReport(BaseModel):
    passed: int = 0
    failed: int = 0
    cases: List[TestCaseResult] = Field(default_factory=list)


class Harness:
    """
    Runs test bodies and records their outcome.

    A ``ScriptError`` (or ``AssertionError``) marks the case FAILED; any
    other exception marks it ERROR. Neither is re-raised so the remaining
    cases still run.
    """

    def __init__(self) -> None:
        self.results: List[TestCaseResult] = []

    def register_test(self, name: str, body: Callable[[], None]) -> TestCaseResult:
        started_at = datetime.now(timezone.utc).isoformat()
        started = time.monotonic()
        status, error = "PASSED", None
        try:
            body()
        except ScriptError as e:
            status, error = "FAILED", e.format()
        except AssertionError as e:
            status, error = "FAILED", str(e)
        except Exception as e:
            logger.exception("test %s crashed", name)
            status, error = "ERROR", f"{type(e).__name__}: {e}"
        result = TestCaseResult(
            name=name,
            status=status,
            duration_ms=int((time.monotonic() - started) * 1000),
            error=error,
            started_at=started_at,
        )
        logger.info("%s %s (%d ms)", status, name, result.duration_ms)
        self.results.append(result)
        return result

    @property
    def failed(self) -> bool:
        return any(r.status != "PASSED" for r in self.results)

    def report(self) -> SuiteReport:
        passed = sum(1 for r in self.results if r.status == "PASSED")
        return SuiteReport(passed=passed, failed=len(self.results) - passed, cases=list(self.results))

    def write_report(self, path: str) -> str:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.report().model_dump_json(indent=2))
        return path
