"""
Command line entry point.

Usage:
  uicheck login.check
  uicheck suite/*.check --headless --artifacts ./out
  uicheck smoke.check --config ci.yaml --default-wait 60

Each script runs as one test case against a fresh Playwright browser.
A JSON report of all cases is written to ``<artifacts>/report.json``;
the exit status is 0 when every case passed and 1 otherwise.
"""

from __future__ import annotations

import argparse
import logging
import os
import re
from typing import Callable, List, Optional

from uicheck.core.config import Settings, load_settings
from uicheck.core.log_setup import configure_logging
from uicheck.runner.artifact_collector import StepLog
from uicheck.runner.driver import Driver
from uicheck.runner.harness import Harness
from uicheck.runner.interpreter import Interpreter

logger = logging.getLogger(__name__)


def run_dir_for(script: str, settings: Settings) -> str:
    stem = os.path.splitext(os.path.basename(script))[0]
    return os.path.join(settings.ARTIFACT_ROOT, re.sub(r"[^A-Za-z0-9_.-]+", "_", stem) or "script")


def run_script(
    script: str,
    settings: Settings,
    driver: Optional[Driver] = None,
    output: Optional[Callable[[str], None]] = None,
) -> None:
    """Run one script with a step log and failure artifacts under ``ARTIFACT_ROOT``."""
    if driver is None:
        from uicheck.runner.playwright_driver import PlaywrightDriver

        driver = PlaywrightDriver()
    run_dir = run_dir_for(script, settings)
    interpreter = Interpreter(
        driver,
        settings=settings,
        output=output,
        step_log=StepLog(run_dir),
        run_dir=run_dir,
    )
    interpreter.run_main(script)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="uicheck", description="Run UI check scripts.")
    ap.add_argument("scripts", nargs="+", metavar="SCRIPT", help="Script files to run")
    ap.add_argument("--config", help="YAML or JSON settings file")
    ap.add_argument("--headless", action="store_true", default=None, help="Run the browser headless")
    ap.add_argument("--default-wait", type=float, help="Initial wait budget in seconds")
    ap.add_argument("--retry-interval", type=float, help="Pause between failed attempts in seconds")
    ap.add_argument("--artifacts", help="Directory for step logs, failure artifacts and the report")
    ap.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(
        args.config,
        PLAYWRIGHT_HEADLESS=args.headless,
        DEFAULT_WAIT=args.default_wait,
        RETRY_INTERVAL=args.retry_interval,
        ARTIFACT_ROOT=args.artifacts,
        LOG_LEVEL=args.log_level,
    )
    configure_logging(settings.LOG_LEVEL)

    harness = Harness()
    for script in args.scripts:
        harness.register_test(script, lambda script=script: run_script(script, settings))

    report_path = harness.write_report(os.path.join(settings.ARTIFACT_ROOT, "report.json"))
    logger.info("report written to %s", report_path)
    return 1 if harness.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
