"""
Reference driver built on Playwright's synchronous API.

One browser, one context and one page per driver. The browser is not
launched until the first ``browser get`` (or ``browser connect``), so a
script can adjust size, chrome offsets and headless mode beforehand.

Element selection resolves to the first match and keeps it as the
*current element*. Every predicate makes exactly one attempt and raises
``AssertionError`` when it does not hold; retrying is the interpreter's
job.
"""

from __future__ import annotations

import logging
import zlib
from typing import Any, Dict, List, Optional

from playwright.sync_api import Browser, BrowserContext, Frame, Locator, Page, Playwright, sync_playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from uicheck.core.errors import ElementNotFound
from uicheck.runner.driver import BrowserConfig, Box, Driver

logger = logging.getLogger(__name__)

# extra chromium switches used for every launch
CHROMIUM_ARGS = [
    "--disable-extensions",
    "--disable-infobars",
    "--test-type=ui",
    "--enable-automation",
    "--unlimited-storage",
]

# upper bound for a single click attempt, in ms
CLICK_TIMEOUT_MS = 1000

_NODE_TEXT = """el => {
  const tag = el.nodeName;
  if (tag === 'INPUT' || tag === 'TEXTAREA' || tag === 'SELECT') return el.value;
  return el.textContent;
}"""


def _ms(seconds: float) -> float:
    return max(0.0, seconds) * 1000


def _is_main_frame(frame: Frame) -> bool:
    return frame.parent_frame is None


class PlaywrightDriver(Driver):
    def __init__(self) -> None:
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._element: Optional[Locator] = None
        self._selection = ("", "")
        self._console: List[str] = []
        self._navigation_timeout = 30.0
        # main-frame navigations seen by the page, and consumed by wait_for
        self._navigations = 0
        self._navigations_seen = 0

    # lifecycle

    @property
    def launched(self) -> bool:
        return self._page is not None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("browser is not started, use 'browser get' first")
        return self._page

    @property
    def element(self) -> Locator:
        if self._element is None:
            raise AssertionError("no element selected")
        return self._element

    def start(self, config: BrowserConfig) -> None:
        self._playwright = sync_playwright().start()
        launcher = getattr(self._playwright, config.browser)
        args = list(config.args)
        if config.browser == "chromium":
            if config.width and config.height:
                args.append(f"--window-size={config.width + config.chrome_x},{config.height + config.chrome_y}")
            args.extend(CHROMIUM_ARGS)
        logger.info(
            "launch %s width=%s height=%s headless=%s slow_mo=%s",
            config.browser, config.width, config.height, config.headless, config.slow_mo,
        )
        options: Dict[str, Any] = {}
        if config.prefs:
            if config.browser == "firefox":
                options["firefox_user_prefs"] = dict(config.prefs)
            else:
                logger.warning("browser prefs are only applied to firefox, ignoring %s", sorted(config.prefs))
        self._browser = launcher.launch(headless=config.headless, slow_mo=config.slow_mo, args=args, **options)
        viewport = None
        if config.width and config.height:
            viewport = {"width": config.width, "height": config.height}
        self._context = self._browser.new_context(viewport=viewport)
        self._attach(self._context.new_page())
        self.set_navigation_timeout(config.navigation_timeout)

    def connect(self, endpoint: str) -> None:
        self._playwright = sync_playwright().start()
        logger.info("connect %s", endpoint)
        self._browser = self._playwright.chromium.connect_over_cdp(endpoint)
        contexts = self._browser.contexts
        self._context = contexts[0] if contexts else self._browser.new_context()
        pages = self._context.pages
        self._attach(pages[0] if pages else self._context.new_page())

    def _attach(self, page: Page) -> None:
        self._page = page
        self._navigations = self._navigations_seen = 0
        page.on("console", lambda msg: self._console.append(f"{msg.type}: {msg.text}"))
        page.on("framenavigated", self._on_navigated)

    def _on_navigated(self, frame: Frame) -> None:
        if _is_main_frame(frame):
            self._navigations += 1

    def _settle(self) -> None:
        """Navigations the driver caused itself are not waited for."""
        self._navigations_seen = self._navigations

    def close(self) -> None:
        try:
            if self._context is not None:
                self._context.close()
            if self._browser is not None:
                self._browser.close()
        finally:
            if self._playwright is not None:
                self._playwright.stop()
            self._playwright = self._browser = self._context = self._page = None
            self._element = None

    def get(self, url: str) -> None:
        self.page.goto(url)
        self._settle()

    def viewport(self, width: int, height: int) -> None:
        self.page.set_viewport_size({"width": width, "height": height})

    def back(self) -> None:
        self.page.go_back()
        self._settle()

    def forward(self) -> None:
        self.page.go_forward()
        self._settle()

    def refresh(self) -> None:
        self.page.reload()
        self._settle()

    def set_navigation_timeout(self, seconds: float) -> None:
        self._navigation_timeout = seconds
        if self._page is not None:
            self._page.set_default_navigation_timeout(_ms(seconds))

    def wait_for(self, event: str, timeout: float) -> None:
        if event != "navigation":
            raise ValueError(f"unknown event {event!r}")
        page = self.page
        if self._navigations == self._navigations_seen:
            if timeout <= 0:
                raise AssertionError("no navigation")
            try:
                page.wait_for_event("framenavigated", predicate=_is_main_frame, timeout=_ms(timeout))
            except PlaywrightTimeoutError as e:
                raise AssertionError(f"no navigation within {timeout:.1f}s") from e
        self._navigations_seen = max(self._navigations, self._navigations_seen + 1)
        if timeout > 0:
            try:
                page.wait_for_load_state("load", timeout=_ms(timeout))
            except PlaywrightTimeoutError as e:
                raise AssertionError(f"navigation did not finish loading within {timeout:.1f}s") from e

    # selection

    def _locate(self, kind: str, description: str, locator: Locator, timeout: float) -> None:
        if timeout <= 0:
            if locator.count() == 0:
                raise ElementNotFound(f"{kind} {description!r} not found")
        else:
            try:
                locator.wait_for(state="attached", timeout=_ms(timeout))
            except PlaywrightTimeoutError as e:
                raise ElementNotFound(f"{kind} {description!r} not found within {timeout:.1f}s") from e
        self._element = locator
        self._selection = (kind, description)

    def select(self, selector: str, timeout: float) -> None:
        self._locate("select", selector, self.page.locator(selector).first, timeout)

    def xpath(self, xpath: str, timeout: float) -> None:
        self._locate("xpath", xpath, self.page.locator(f"xpath={xpath}").first, timeout)

    def testid(self, testid: str, timeout: float) -> None:
        self._locate("test-id", testid, self.page.locator(f"*[test-id='{testid}']").first, timeout)

    # information

    def _node_name(self) -> str:
        return self.element.evaluate("el => el.nodeName")

    def info(self) -> str:
        kind, description = self._selection
        box = self.bounding_box()
        return (
            f'{kind} "{description}" info tag {self._node_name()} '
            f"at {box.x},{box.y} size {box.width},{box.height}"
        )

    def dump(self) -> str:
        return self.element.evaluate("el => el.outerHTML")

    def console_messages(self) -> List[str]:
        messages, self._console = self._console, []
        return messages

    # predicates

    def check(self, text: str) -> None:
        actual = self.element.evaluate(_NODE_TEXT)
        if actual != text:
            raise AssertionError(f"expected {text!r} but found {actual!r}")

    def checksum(self, checksum: str) -> None:
        actual = f"crc32:{zlib.crc32(self.element.screenshot())}"
        if actual != checksum:
            raise AssertionError(f"expected checksum {checksum} but found {actual}")

    def tag(self, name: str) -> None:
        actual = self._node_name()
        if actual.upper() != name.upper():
            raise AssertionError(f"expected tag {name} but found {actual}")

    def displayed(self) -> None:
        if not self.element.is_visible():
            raise AssertionError("element is not displayed")

    def enabled(self) -> None:
        if not self.element.is_enabled():
            raise AssertionError("element is not enabled")

    def selected(self) -> None:
        if not self.element.evaluate("el => !!(el.checked || el.selected)"):
            raise AssertionError("element is not selected")

    def bounding_box(self) -> Box:
        box = self.element.bounding_box()
        if box is None:
            raise AssertionError("element has no bounding box")
        return Box(round(box["x"]), round(box["y"]), round(box["width"]), round(box["height"]))

    # actions

    def click(self, now: bool = False) -> None:
        try:
            self.element.click(force=now, timeout=CLICK_TIMEOUT_MS)
        except PlaywrightTimeoutError as e:
            raise AssertionError(f"element not clickable: {e.message}") from e

    def send(self, text: str) -> None:
        self.element.press_sequentially(text)

    def set_value(self, text: str) -> None:
        self.element.fill(text)

    def clear(self) -> None:
        self.element.clear()

    def press(self, key: str) -> None:
        self.page.keyboard.press(key)

    def send_page(self, text: str) -> None:
        self.page.keyboard.type(text)

    def screenshot(self, path: str) -> None:
        self.page.screenshot(path=path)

    def scroll_into_view(self) -> None:
        self.element.scroll_into_view_if_needed()

    def mouse_move(self, x: float, y: float) -> None:
        self.page.mouse.move(x, y)

    def mouse_down(self) -> None:
        self.page.mouse.down()

    def mouse_up(self) -> None:
        self.page.mouse.up()

    def mouse_click(self) -> None:
        self.page.mouse.down()
        self.page.mouse.up()

    def call(self, name: str, args: List[Any]) -> Any:
        return self.page.evaluate(
            "([name, args]) => window[name](...args)",
            [name, args],
        )
