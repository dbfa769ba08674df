"""
Shared pytest configuration.

This configuration introduces a ``--script`` command-line option used
by the end-to-end test, and provides an in-memory ``FakeDriver`` plus a
fake clock so interpreter tests run instantly and deterministically.
"""

from collections import Counter
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest

from uicheck.core.config import Settings
from uicheck.core.errors import ElementNotFound
from uicheck.runner.driver import BrowserConfig, Box, Driver
from uicheck.runner.interpreter import Interpreter


def pytest_addoption(parser):
    """Hook to add custom command-line options to pytest."""
    parser.addoption("--script", action="store", default=None)


@pytest.fixture(scope="session")
def script_path(pytestconfig):
    """
    Fixture providing the path to the check script.

    The script is supplied via the ``--script`` option when invoking
    pytest. Tests depending on it are skipped when the option is missing.
    """
    path = pytestconfig.getoption("--script")
    if not path:
        pytest.skip("no --script given")
    return path


class FakeClock:
    def __init__(self) -> None:
        self.t = 0.0
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.t

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += seconds


class FakeDriver(Driver):
    """
    Driver double that records every call.

    ``fail(name, times, after)`` makes the named predicate or action raise
    ``AssertionError``: calls ``after+1`` up to ``after+times`` fail
    (forever when ``times`` is ``None``). Locators in ``missing`` are
    never found.
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[Any, ...]] = []
        self.counts: Counter = Counter()
        self.failures: Dict[str, Tuple[int, Optional[int]]] = {}
        self.missing: Set[str] = set()
        self.text = ""
        self.tag_name = "DIV"
        self.box = Box(0, 0, 100, 20)
        self.console: List[str] = []
        self.config: Optional[BrowserConfig] = None
        self.current: Optional[str] = None
        self._launched = False

    def fail(self, name: str, times: Optional[int] = None, after: int = 0) -> None:
        first = after + 1
        self.failures[name] = (first, None if times is None else first + times)

    def called(self, name: str) -> List[Tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == name]

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name,) + args)
        self.counts[name] += 1
        rule = self.failures.get(name)
        if rule is None:
            return
        first, last = rule
        n = self.counts[name]
        if n >= first and (last is None or n < last):
            raise AssertionError(f"{name} failed")

    # lifecycle

    @property
    def launched(self) -> bool:
        return self._launched

    def start(self, config: BrowserConfig) -> None:
        self.config = config
        self._launched = True
        self._record("start", config)

    def connect(self, endpoint: str) -> None:
        self._launched = True
        self._record("connect", endpoint)

    def close(self) -> None:
        self._launched = False
        self._record("close")

    def get(self, url: str) -> None:
        self._record("get", url)

    def viewport(self, width: int, height: int) -> None:
        self._record("viewport", width, height)

    def back(self) -> None:
        self._record("back")

    def forward(self) -> None:
        self._record("forward")

    def refresh(self) -> None:
        self._record("refresh")

    def set_navigation_timeout(self, seconds: float) -> None:
        self._record("set_navigation_timeout", seconds)

    def wait_for(self, event: str, timeout: float) -> None:
        self._record("wait_for", event, timeout)

    # selection

    def _locate(self, kind: str, locator: str, timeout: float) -> None:
        self._record(kind, locator, timeout)
        if locator in self.missing:
            raise ElementNotFound(f"{kind} {locator!r} not found")
        self.current = locator

    def select(self, selector: str, timeout: float) -> None:
        self._locate("select", selector, timeout)

    def xpath(self, xpath: str, timeout: float) -> None:
        self._locate("xpath", xpath, timeout)

    def testid(self, testid: str, timeout: float) -> None:
        self._locate("testid", testid, timeout)

    # information

    def info(self) -> str:
        self._record("info")
        return f"info {self.current}"

    def dump(self) -> str:
        self._record("dump")
        return "<div></div>"

    def console_messages(self) -> List[str]:
        messages, self.console = self.console, []
        return messages

    # predicates

    def check(self, text: str) -> None:
        self._record("check", text)
        if self.text != text:
            raise AssertionError(f"expected {text!r} but found {self.text!r}")

    def checksum(self, checksum: str) -> None:
        self._record("checksum", checksum)

    def tag(self, name: str) -> None:
        self._record("tag", name)
        if name.upper() != self.tag_name:
            raise AssertionError(f"expected tag {name} but found {self.tag_name}")

    def displayed(self) -> None:
        self._record("displayed")

    def enabled(self) -> None:
        self._record("enabled")

    def selected(self) -> None:
        self._record("selected")

    def bounding_box(self) -> Box:
        self._record("bounding_box")
        return self.box

    # actions

    def click(self, now: bool = False) -> None:
        self._record("click", now)

    def send(self, text: str) -> None:
        self._record("send", text)

    def set_value(self, text: str) -> None:
        self._record("set_value", text)

    def clear(self) -> None:
        self._record("clear")

    def press(self, key: str) -> None:
        self._record("press", key)

    def send_page(self, text: str) -> None:
        self._record("send_page", text)

    def screenshot(self, path: str) -> None:
        self._record("screenshot", path)
        with open(path, "wb") as f:
            f.write(b"\x89PNG")

    def scroll_into_view(self) -> None:
        self._record("scroll_into_view")

    def mouse_move(self, x: float, y: float) -> None:
        self._record("mouse_move", x, y)

    def mouse_down(self) -> None:
        self._record("mouse_down")

    def mouse_up(self) -> None:
        self._record("mouse_up")

    def mouse_click(self) -> None:
        self._record("mouse_click")

    def call(self, name: str, args: List[Any]) -> Any:
        self._record("call", name, args)
        return None


@pytest.fixture
def driver():
    return FakeDriver()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DEFAULT_WAIT=2,
        RETRY_INTERVAL=0.1,
        SCREENSHOT_ROOT=str(tmp_path / "screenshots"),
        ARTIFACT_ROOT=str(tmp_path / "artifacts"),
    )


@pytest.fixture
def echoed():
    return []


@pytest.fixture
def make_interpreter(driver, settings, clock, echoed):
    def make(**kwargs):
        return Interpreter(
            driver,
            settings=settings,
            output=echoed.append,
            clock=clock.now,
            sleep=clock.sleep,
            **kwargs,
        )

    return make


@pytest.fixture
def interpreter(make_interpreter):
    return make_interpreter()
