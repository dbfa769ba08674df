"""
The browser driver interface the interpreter talks to.

A driver performs UI actions against one page and one *current element*
(set by ``select``/``xpath``/``testid``). Predicates (``check``, ``tag``,
``displayed``...) return normally when they hold and raise
``AssertionError`` when they do not; locating an element that is not
there raises ``ElementNotFound``. The interpreter owns retries, negation
and timing, so drivers only ever make a single attempt.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class BrowserConfig:
    width: Optional[int] = None
    height: Optional[int] = None
    # window decoration added to the viewport size for --window-size
    chrome_x: int = 0
    chrome_y: int = 0
    headless: bool = False
    slow_mo: float = 0.0
    browser: str = "chromium"
    navigation_timeout: float = 30.0
    args: List[str] = field(default_factory=list)
    prefs: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Box:
    x: int
    y: int
    width: int
    height: int

    @property
    def center(self) -> tuple[int, int]:
        return self.x + self.width // 2, self.y + self.height // 2


class Driver(abc.ABC):
    # lifecycle

    @property
    @abc.abstractmethod
    def launched(self) -> bool: ...

    @abc.abstractmethod
    def start(self, config: BrowserConfig) -> None: ...

    @abc.abstractmethod
    def connect(self, endpoint: str) -> None: ...

    @abc.abstractmethod
    def close(self) -> None: ...

    @abc.abstractmethod
    def get(self, url: str) -> None: ...

    @abc.abstractmethod
    def viewport(self, width: int, height: int) -> None: ...

    @abc.abstractmethod
    def back(self) -> None: ...

    @abc.abstractmethod
    def forward(self) -> None: ...

    @abc.abstractmethod
    def refresh(self) -> None: ...

    @abc.abstractmethod
    def set_navigation_timeout(self, seconds: float) -> None: ...

    # wait for the next ``event`` after the last one waited for; a
    # ``timeout`` of 0 checks once without blocking
    @abc.abstractmethod
    def wait_for(self, event: str, timeout: float) -> None: ...

    # element selection, ``timeout`` in seconds (0 = look once)

    @abc.abstractmethod
    def select(self, selector: str, timeout: float) -> None: ...

    @abc.abstractmethod
    def xpath(self, xpath: str, timeout: float) -> None: ...

    @abc.abstractmethod
    def testid(self, testid: str, timeout: float) -> None: ...

    # information

    @abc.abstractmethod
    def info(self) -> str: ...

    @abc.abstractmethod
    def dump(self) -> str: ...

    @abc.abstractmethod
    def console_messages(self) -> List[str]:
        """Return and forget console output captured since the last call."""

    # predicates

    @abc.abstractmethod
    def check(self, text: str) -> None: ...

    @abc.abstractmethod
    def checksum(self, checksum: str) -> None: ...

    @abc.abstractmethod
    def tag(self, name: str) -> None: ...

    @abc.abstractmethod
    def displayed(self) -> None: ...

    @abc.abstractmethod
    def enabled(self) -> None: ...

    @abc.abstractmethod
    def selected(self) -> None: ...

    @abc.abstractmethod
    def bounding_box(self) -> Box: ...

    # actions

    @abc.abstractmethod
    def click(self, now: bool = False) -> None: ...

    @abc.abstractmethod
    def send(self, text: str) -> None:
        """Type ``text`` into the current element."""

    @abc.abstractmethod
    def set_value(self, text: str) -> None:
        """Replace the current element's value with ``text``."""

    @abc.abstractmethod
    def clear(self) -> None: ...

    @abc.abstractmethod
    def press(self, key: str) -> None: ...

    @abc.abstractmethod
    def send_page(self, text: str) -> None:
        """Type ``text`` at page level, whatever has focus."""

    @abc.abstractmethod
    def screenshot(self, path: str) -> None: ...

    @abc.abstractmethod
    def scroll_into_view(self) -> None: ...

    @abc.abstractmethod
    def mouse_move(self, x: float, y: float) -> None: ...

    @abc.abstractmethod
    def mouse_down(self) -> None: ...

    @abc.abstractmethod
    def mouse_up(self) -> None: ...

    @abc.abstractmethod
    def mouse_click(self) -> None: ...

    @abc.abstractmethod
    def call(self, name: str, args: List[Any]) -> Any:
        """Invoke an in-page test hook ``window[name](...args)``."""
