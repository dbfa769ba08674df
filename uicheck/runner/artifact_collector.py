"""
Run artifacts: per-statement step log and failure evidence.

Every executed statement can be appended to ``step_log.jsonl`` in the
run directory. When a run fails, the last screen and a
``failure_context.json`` describing the error and its frame trace are
written next to it so the failure can be inspected after the fact.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

from uicheck.core.errors import ScriptError
from uicheck.runner.driver import Driver

logger = logging.getLogger(__name__)


class StepLog:
    """Append-only JSONL log of executed statements."""

    def __init__(self, run_dir: str, filename: str = "step_log.jsonl") -> None:
        self.run_dir = run_dir
        self.path = os.path.join(run_dir, filename)
        self.count = 0

    def record(
        self,
        frame: str,
        line: int,
        statement: str,
        status: str,
        duration_ms: int,
        error: Optional[str] = None,
    ) -> None:
        self.count += 1
        entry: Dict[str, Any] = {
            "i": self.count,
            "frame": frame,
            "line": line,
            "statement": statement,
            "status": status,
            "duration_ms": duration_ms,
        }
        if error:
            entry["error"] = error
        try:
            os.makedirs(self.run_dir, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.warning("cannot write step log %s: %s", self.path, e)


def collect_failure_artifacts(driver: Driver, run_dir: str, error: ScriptError) -> Dict[str, Any]:
    """
    Save the failure screenshot and context for a failed run.

    Collection is best effort: a browser that already went away only
    leaves its error message in the returned mapping.

    :return: What was collected, also written to ``failure_context.json``
    """
    artifacts: Dict[str, Any] = {
        "error": error.message,
        "kind": type(error).__name__,
        "diagnostic": error.format(),
        "trace": [{"frame": name, "line": line} for name, line in (error.trace or [])],
    }
    os.makedirs(run_dir, exist_ok=True)

    if driver.launched:
        screenshot_path = os.path.join(run_dir, "FAIL.png")
        try:
            driver.screenshot(screenshot_path)
            artifacts["screenshot_path"] = screenshot_path
        except Exception as e:
            artifacts["screenshot_error"] = str(e)

    context_path = os.path.join(run_dir, "failure_context.json")
    try:
        with open(context_path, "w", encoding="utf-8") as f:
            json.dump(artifacts, f, ensure_ascii=False, indent=2)
        artifacts["metadata_path"] = context_path
    except OSError as e:
        logger.warning("cannot write %s: %s", context_path, e)
    return artifacts
