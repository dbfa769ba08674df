"""
Run a check script through pytest programmatically.

The CLI drives scripts with its own harness. This entry point instead
hands a script to ``tests/e2e/test_script.py`` via ``pytest.main`` so a
run shows up in pytest's reporting (junit XML, plugins, ``-k``).
"""

from pathlib import Path
from typing import List, Optional

import pytest


def run_script_pytest(script_path: Path, junit_xml: Optional[Path] = None) -> int:
    """
    Execute the end-to-end test module for ``script_path``.

    :param script_path: Path to the check script
    :param junit_xml: Optional path for a JUnit XML report
    :return: Exit code returned by pytest
    """
    args: List[str] = [
        "tests/e2e/test_script.py",
        f"--script={script_path}",
        "-q",
    ]
    if junit_xml is not None:
        args.append(f"--junitxml={junit_xml}")
    return int(pytest.main(args))
