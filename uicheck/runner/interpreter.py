"""
Statement interpreter for check scripts.

The interpreter pulls tokens from a ``TokenSource`` and executes one
statement per leading keyword. Keywords map to a closed ``Statement``
enum and each kind has exactly one handler in the dispatch table; a word
that is not a keyword is looked up in the alias table, anything else is
a syntax error.

Handlers always consume their operands, even while a false ``if`` branch
is being skipped, so the token cursor stays correct. Only the side
effects (driver calls, sleeps, state changes) are suppressed.

Fallible statements (element selection, checks, clicks, ``exec``) run
through ``_assert`` which applies a pending ``not``, captures the outcome
when evaluated as an ``if`` predicate, and otherwise retries against the
shared wait budget.
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from dataclasses import replace
from importlib import metadata
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from uicheck.core.config import Settings
from uicheck.core.errors import (
    ExplicitFailure,
    ScriptAssertionError,
    ScriptError,
    ScriptSyntaxError,
)
from uicheck.runner.artifact_collector import StepLog, collect_failure_artifacts
from uicheck.runner.driver import BrowserConfig, Driver
from uicheck.runner.scanner import ScannerOptions
from uicheck.runner.source import (
    BufferSource,
    ScannerSource,
    TokenArena,
    TokenSource,
    capture_block,
)
from uicheck.runner.state import (
    Alias,
    ConditionFrame,
    ConditionPhase,
    ExecutionState,
    Frame,
    Selection,
)
from uicheck.runner.statements import KEY_CODES, Axis, Statement, truthy
from uicheck.runner.subprocess_exec import CommandResult, run_command
from uicheck.runner.tokens import Token, TokenKind, parse_number
from uicheck.runner.wait import WaitBudget, retry_until_budget

logger = logging.getLogger(__name__)

ON_FAIL = "--onfail"
ON_SUCCESS = "--onsuccess"

BROWSER_COMMANDS = (
    "start", "connect", "chrome", "size", "headless", "get", "close",
    "wait", "back", "forward", "refresh", "send", "option", "prefs",
)
MOUSE_WORDS = ("body", "origin", "center", "click", "down", "up")
SELECTION_KINDS = {
    Statement.SELECT: "select",
    Statement.XPATH: "xpath",
    Statement.TEST_ID: "test-id",
    Statement.FIELD: "test-id",
}

Handler = Callable[["Interpreter", Token, TokenSource], None]
_HANDLERS: Dict[Statement, Handler] = {}


def handles(*statements: Statement) -> Callable[[Handler], Handler]:
    def register(fn: Handler) -> Handler:
        for statement in statements:
            _HANDLERS[statement] = fn
        return fn

    return register


def package_version() -> str:
    try:
        return metadata.version("uicheck")
    except metadata.PackageNotFoundError:
        return "0+unknown"


class Interpreter:
    """
    Execute check scripts against a ``Driver``.

    :param driver: Browser driver receiving actions and predicates
    :param settings: Runner settings, ``Settings()`` when omitted
    :param output: Callable receiving ``echo`` text (``print`` by default)
    :param step_log: Optional JSONL step log
    :param run_dir: Directory for failure artifacts, none collected if unset
    :param scanner_options: Character classes used for every source
    :param clock: Monotonic time source shared with the wait budget
    :param sleep: Sleep function for ``sleep`` and retry pauses
    """

    def __init__(
        self,
        driver: Driver,
        settings: Optional[Settings] = None,
        output: Optional[Callable[[str], None]] = None,
        step_log: Optional[StepLog] = None,
        run_dir: Optional[str] = None,
        scanner_options: Optional[ScannerOptions] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.driver = driver
        self.settings = settings or Settings()
        self.output = output or print
        self.step_log = step_log
        self.run_dir = run_dir
        self.scanner_options = scanner_options
        self._clock = clock
        self._sleep = sleep

        self.arena = TokenArena()
        self.aliases: Dict[str, Alias] = {}
        self.frames: List[Frame] = []
        self.state = ExecutionState(
            default_wait=self.settings.DEFAULT_WAIT,
            browser_wait=self.settings.BROWSER_WAIT,
            screenshot_root=self.settings.SCREENSHOT_ROOT,
        )
        self.budget = WaitBudget(
            self.settings.DEFAULT_WAIT,
            scale=self.settings.WAIT_SCALE,
            offset=self.settings.WAIT_OFFSET,
            clock=clock,
        )
        self.browser = BrowserConfig(
            headless=self.settings.PLAYWRIGHT_HEADLESS,
            slow_mo=self.settings.SLOW_MO,
            browser=self.settings.PLAYWRIGHT_BROWSER,
            navigation_timeout=self.settings.BROWSER_WAIT,
        )
        self._main_dir = os.getcwd()

    # ------------------------------------------------------------------
    # entry points
    # ------------------------------------------------------------------

    def run_main(self, path: str, cwd: Optional[str] = None) -> None:
        """
        Run a top-level script the way a test case runs.

        On failure the diagnostic is logged, failure artifacts are
        collected, the ``--onfail`` alias runs (if defined) and the
        original error is re-raised. On success ``--onsuccess`` runs. The
        driver is torn down either way.
        """
        base = cwd or os.getcwd()
        self._main_dir = os.path.dirname(os.path.abspath(os.path.join(base, path)))
        try:
            self.run_file(path, cwd=base)
            self._require_closed_conditions()
        except ScriptError as e:
            logger.error("%s", e.format())
            if self.run_dir:
                collect_failure_artifacts(self.driver, self.run_dir, e)
            self._run_hook(ON_FAIL, after_failure=True)
            raise
        else:
            self._run_hook(ON_SUCCESS)
        finally:
            self._teardown()

    def run_file(self, path: str, cwd: Optional[str] = None, token: Optional[Token] = None) -> None:
        base = cwd or self._current_dir()
        full = path if os.path.isabs(path) else os.path.join(base, path)
        try:
            source = ScannerSource.from_file(full, self.scanner_options)
        except OSError as e:
            raise ScriptError(f"cannot read script {path}: {e.strerror or e}", token) from e
        frame = Frame(
            working_dir=os.path.dirname(os.path.abspath(full)),
            name=path,
            caller_line=self._caller_line(),
        )
        self._execute_frame(source, frame)

    def run_string(self, text: str, name: str = "<string>", cwd: Optional[str] = None) -> None:
        source = ScannerSource(text, name, self.scanner_options)
        frame = Frame(cwd or self._current_dir(), name, self._caller_line())
        self._execute_frame(source, frame)

    def run_tokens(
        self,
        tokens: Sequence[Token],
        bindings: Optional[Mapping[str, Token]] = None,
        name: str = "<tokens>",
        cwd: Optional[str] = None,
    ) -> None:
        span = self.arena.add(tokens)
        source = BufferSource(self.arena, span, bindings, name)
        frame = Frame(cwd or self._current_dir(), name, self._caller_line())
        self._execute_frame(source, frame)

    # ------------------------------------------------------------------
    # frames and the statement loop
    # ------------------------------------------------------------------

    def _current_dir(self) -> str:
        return self.frames[-1].working_dir if self.frames else self._main_dir

    def _caller_line(self) -> int:
        return self.frames[-1].line if self.frames else 0

    @contextmanager
    def _frame(self, frame: Frame) -> Iterator[Frame]:
        self.frames.append(frame)
        try:
            yield frame
        except ScriptError as e:
            if e.trace is None:
                e.trace = [(f.name, f.line) for f in reversed(self.frames)]
                if e.line:
                    e.trace[0] = (frame.name, e.line)
            raise
        finally:
            self.frames.pop()

    def _execute_frame(self, source: TokenSource, frame: Frame) -> None:
        logger.debug("enter %s (from line %d)", frame.name, frame.caller_line)
        with self._frame(frame):
            self._run_source(source)

    def _run_source(self, source: TokenSource) -> None:
        while True:
            token = source.next()
            if token.is_end:
                return
            self._statement(token, source)

    def _statement(self, token: Token, source: TokenSource) -> None:
        frame = self.frames[-1]
        frame.line = token.line
        started = self._clock()
        status = "SKIPPED" if self.state.skip else "PASSED"
        try:
            self._dispatch(token, source)
        except ScriptError as e:
            self._record_step(frame, token, "FAILED", started, e.message)
            raise
        self._record_step(frame, token, status, started)
        if self.state.auto_log_console and not self.state.skip:
            self._flush_console()

    def _dispatch(self, token: Token, source: TokenSource) -> None:
        statement = Statement.lookup(token)
        try:
            if statement is not None:
                _HANDLERS[statement](self, token, source)
            elif token.kind is TokenKind.WORD and not token.quote and token.value in self.aliases:
                self._invoke_alias(token, source)
            else:
                raise ScriptSyntaxError(f"unexpected {token.describe()} at line {token.line}", token)
        except ScriptError:
            raise
        except AssertionError as e:
            raise ScriptAssertionError(str(e) or f"{token.text} failed", token) from e
        except Exception as e:
            raise ScriptError(f"{token.text}: {e}", token) from e

    def _record_step(
        self, frame: Frame, token: Token, status: str, started: float, error: Optional[str] = None
    ) -> None:
        if self.step_log is None:
            return
        duration_ms = int((self._clock() - started) * 1000)
        self.step_log.record(frame.name, token.line, token.text, status, duration_ms, error)

    def _require_closed_conditions(self) -> None:
        if self.state.conditions:
            opened = self.state.conditions[-1].token
            raise ScriptSyntaxError(f"'if' at line {opened.line} has no matching 'endif'", opened)

    def _run_hook(self, name: str, after_failure: bool = False) -> None:
        alias = self.aliases.get(name)
        if alias is None:
            return
        self.state.restore((False, 0))
        logger.info("running %s", name)
        frame = Frame(working_dir=self._main_dir, name=name)
        try:
            self._execute_frame(BufferSource(self.arena, alias.span, name=name), frame)
        except ScriptError as e:
            if not after_failure:
                raise
            logger.error("%s failed:\n%s", name, e.format())

    def _teardown(self) -> None:
        if not self.driver.launched:
            return
        try:
            self.driver.close()
        except Exception as e:
            logger.warning("driver teardown failed: %s", e)

    def _flush_console(self) -> None:
        if not self.driver.launched:
            return
        for message in self.driver.console_messages():
            logger.info("console: %s", message)

    # ------------------------------------------------------------------
    # operand readers
    # ------------------------------------------------------------------

    def _next(self, source: TokenSource, what: str) -> Token:
        token = source.next()
        if token.is_end:
            raise ScriptSyntaxError(f"unexpected end of input, expected {what}", token)
        return token

    def _expect(self, source: TokenSource, kind: TokenKind, what: str) -> Token:
        token = self._next(source, what)
        if token.kind is not kind:
            raise ScriptSyntaxError(
                f"expected {what} but got {token.describe()} at line {token.line}", token
            )
        return token

    def _string(self, source: TokenSource, what: str = "string") -> str:
        return str(self._expect(source, TokenKind.WORD, what).value)

    def _text(self, source: TokenSource, what: str = "text") -> str:
        """A string or number operand, as text."""
        token = self._next(source, what)
        if token.kind is TokenKind.SYMBOL:
            raise ScriptSyntaxError(f"expected {what} but got {token.describe()} at line {token.line}", token)
        return token.text

    def _number(self, source: TokenSource, what: str = "number") -> Any:
        return self._expect(source, TokenKind.NUMBER, what).value

    def _symbol(self, source: TokenSource, ch: str) -> Token:
        token = self._next(source, f"'{ch}'")
        if not token.is_symbol(ch):
            raise ScriptSyntaxError(f"expected '{ch}' but got {token.describe()} at line {token.line}", token)
        return token

    def _word(self, source: TokenSource, *choices: str) -> str:
        what = " or ".join(choices)
        token = self._expect(source, TokenKind.WORD, what)
        if token.value not in choices:
            raise ScriptSyntaxError(
                f"unexpected {token.describe()} at line {token.line}, expected {what}", token
            )
        return str(token.value)

    def _bool(self, source: TokenSource) -> bool:
        token = self._expect(source, TokenKind.WORD, "on or off")
        value = truthy(str(token.value))
        if value is None:
            raise ScriptSyntaxError(f"expected on or off but got {token.describe()} at line {token.line}", token)
        return value

    def _values(self, source: TokenSource, closer: str) -> List[Token]:
        """Tokens up to the ``closer`` symbol, commas dropped."""
        values: List[Token] = []
        while True:
            token = self._next(source, f"'{closer}'")
            if token.is_symbol(closer):
                return values
            if token.is_symbol(","):
                continue
            values.append(token)

    def _axis(self, source: TokenSource) -> Axis:
        token = self._next(source, "number, '*' or range")
        if token.is_symbol("*"):
            return Axis()
        if token.kind is not TokenKind.NUMBER:
            raise ScriptSyntaxError(
                f"expected number, '*' or range but got {token.describe()} at line {token.line}", token
            )
        if source.peek().is_symbol(":"):
            source.next()
            return Axis(token.value, self._number(source, "range end"))
        return Axis(token.value, token.value)

    # ------------------------------------------------------------------
    # fallible statements
    # ------------------------------------------------------------------

    def _assert(
        self,
        token: Token,
        check: Callable[[], None],
        negate: bool = False,
        retry: bool = True,
    ) -> bool:
        """
        Run ``check`` as a fallible statement.

        Inside ``if ... then`` the outcome is recorded as the condition
        result and never raised. Elsewhere a failure is retried until the
        wait budget is spent (``retry=False`` makes a single attempt).

        :return: Whether the check passed; ``False`` when skipped
        """
        if self.state.skip:
            return False

        def attempt() -> None:
            if not negate:
                check()
                return
            try:
                check()
            except (AssertionError, TimeoutError, ScriptAssertionError):
                return
            raise AssertionError(f"not {token.text}: expected failure but it passed")

        if self.state.in_condition:
            try:
                attempt()
            except (AssertionError, TimeoutError, ScriptAssertionError) as e:
                logger.debug("condition at line %d is false: %s", token.line, e)
                self.state.record_condition(False)
                return False
            self.state.record_condition(True)
            return True

        if not retry:
            attempt()
            return True
        retry_until_budget(
            attempt,
            self.budget,
            self.settings.RETRY_INTERVAL,
            token=token,
            recover=self._reselect,
            sleep=self._sleep,
        )
        return True

    def _locate(self, selection: Selection, timeout: float) -> None:
        if selection.kind == "xpath":
            self.driver.xpath(selection.locator, timeout)
        elif selection.kind == "test-id":
            self.driver.testid(selection.locator, timeout)
        else:
            self.driver.select(selection.locator, timeout)

    def _reselect(self) -> None:
        """Locate the current element again; the page may have replaced it."""
        selection = self.state.selection
        if selection is None:
            return
        try:
            self._locate(selection, 0)
        except (AssertionError, TimeoutError) as e:
            logger.debug("re-select %s %r failed: %s", selection.kind, selection.locator, e)

    def _selection_timeout(self, negate: bool) -> float:
        if negate or self.state.in_condition:
            return 0
        return max(self.budget.remaining(), 0)

    # ------------------------------------------------------------------
    # statement handlers
    # ------------------------------------------------------------------

    @handles(Statement.VERSION)
    def _version(self, token: Token, source: TokenSource) -> None:
        if not self.state.skip:
            logger.info("uicheck version %s", package_version())

    @handles(Statement.DEFAULT)
    def _default(self, token: Token, source: TokenSource) -> None:
        what = self._word(source, "wait", "screenshot")
        if what == "wait":
            seconds = self._number(source, "seconds")
            if not self.state.skip:
                self.state.default_wait = seconds
                self.budget.reset(seconds)
            return
        root = self._string(source, "directory")
        if not self.state.skip:
            self.state.screenshot_root = os.path.join(self._current_dir(), root)

    @handles(Statement.BROWSER)
    def _browser(self, token: Token, source: TokenSource) -> None:
        what = self._word(source, *BROWSER_COMMANDS)
        skip = self.state.skip
        driver = self.driver
        if what == "start":
            if not skip:
                logger.info("browser start %s", self.browser)
        elif what == "connect":
            endpoint = self._string(source, "endpoint")
            if not skip:
                driver.connect(endpoint)
        elif what in ("chrome", "size"):
            width = self._number(source, "width")
            self._symbol(source, ",")
            height = self._number(source, "height")
            if skip:
                return
            if what == "chrome":
                self.browser.chrome_x, self.browser.chrome_y = int(width), int(height)
            else:
                self.browser.width, self.browser.height = int(width), int(height)
                if driver.launched:
                    driver.viewport(int(width), int(height))
        elif what == "headless":
            headless = self._bool(source)
            if not skip:
                self.browser.headless = headless
        elif what == "option":
            switch = self._string(source, "switch")
            if not skip:
                self.browser.args.append(switch)
        elif what == "prefs":
            pref = self._string(source, "preference name")
            value = self._text(source, "preference value")
            if not skip:
                self.browser.prefs[pref] = value
        elif what == "get":
            url = self._string(source, "url")
            if not skip:
                if not driver.launched:
                    driver.start(replace(self.browser, args=list(self.browser.args), prefs=dict(self.browser.prefs)))
                driver.get(url)
        elif what == "close":
            if not skip and driver.launched:
                driver.close()
        elif what == "wait":
            seconds = self._number(source, "seconds")
            if not skip:
                self.state.browser_wait = seconds
                self.browser.navigation_timeout = seconds
                driver.set_navigation_timeout(seconds)
        elif what == "send":
            text = self._text(source)
            if not skip:
                driver.send_page(text)
        elif not skip:
            getattr(driver, what)()

    @handles(Statement.INCLUDE)
    def _include(self, token: Token, source: TokenSource) -> None:
        path = self._string(source, "file name")
        if not self.state.skip:
            self.run_file(path, token=token)

    @handles(Statement.CALL)
    def _call(self, token: Token, source: TokenSource) -> None:
        name = self._string(source, "hook name")
        opener = self._symbol(source, "{")
        args = [t.value for t in capture_block(source, opener) if not t.is_symbol(",")]
        if not self.state.skip:
            result = self.driver.call(name, args)
            logger.info("call %s%r -> %r", name, tuple(args), result)

    @handles(Statement.ALIAS, Statement.FUNCTION)
    def _alias(self, token: Token, source: TokenSource) -> None:
        name = self._string(source, "alias name")
        params: List[str] = []
        opener = self._next(source, "'(' or '{'")
        if opener.is_symbol("("):
            for param in self._values(source, ")"):
                if param.kind is not TokenKind.WORD:
                    raise ScriptSyntaxError(
                        f"bad parameter {param.describe()} for {name} at line {param.line}", param
                    )
                params.append(str(param.value).lstrip("$"))
            opener = self._next(source, "'{'")
        if not opener.is_symbol("{"):
            raise ScriptSyntaxError(f"expected '{{' but got {opener.describe()} at line {opener.line}", opener)
        body = capture_block(source, opener, relative=True)
        if self.state.skip:
            return
        existing = self.aliases.get(name)
        if existing is not None and self.arena.span(*existing.span) == body:
            span = existing.span
        else:
            if existing is not None:
                logger.debug("alias %s redefined at line %d", name, token.line)
            span = self.arena.add(body)
        self.aliases[name] = Alias(name, params, span, token.line)

    def _alias_args(self, source: TokenSource, alias: Alias, token: Token) -> List[Token]:
        if source.peek().is_symbol("("):
            source.next()
            args = self._values(source, ")")
            if len(args) != len(alias.params):
                raise ScriptSyntaxError(
                    f"{alias.name} takes {len(alias.params)} argument(s) but {len(args)} given at line {token.line}",
                    token,
                )
            return args
        args: List[Token] = []
        while len(args) < len(alias.params):
            arg = self._next(source, f"argument '{alias.params[len(args)]}' of {alias.name}")
            if arg.is_symbol(",") and args:
                continue
            args.append(arg)
        return args

    def _invoke_alias(self, token: Token, source: TokenSource) -> None:
        alias = self.aliases[str(token.value)]
        args = self._alias_args(source, alias, token)
        if self.state.skip:
            return
        bindings = dict(zip(alias.params, args))
        frame = Frame(self._current_dir(), alias.name, token.line)
        self._execute_frame(BufferSource(self.arena, alias.span, bindings, alias.name), frame)

    @handles(Statement.SELECT, Statement.XPATH, Statement.TEST_ID, Statement.FIELD)
    def _select(self, token: Token, source: TokenSource) -> None:
        selection = Selection(SELECTION_KINDS[Statement(token.value)], self._string(source, "locator"))
        negate = self.state.take_negate()

        def check() -> None:
            self._locate(selection, self._selection_timeout(negate))
            if not negate:
                self.state.selection = selection

        self._assert(token, check, negate)

    @handles(Statement.LOG)
    def _log(self, token: Token, source: TokenSource) -> None:
        if self._word(source, "auto", "dump") == "auto":
            enabled = self._bool(source)
            if not self.state.skip:
                self.state.auto_log_console = enabled
        elif not self.state.skip:
            self._flush_console()

    @handles(Statement.DUMP)
    def _dump(self, token: Token, source: TokenSource) -> None:
        if not self.state.skip:
            logger.info("dump:\n%s", self.driver.dump())

    @handles(Statement.INFO)
    def _info(self, token: Token, source: TokenSource) -> None:
        if not self.state.skip:
            logger.info("%s", self.driver.info())

    @handles(Statement.CLICK)
    def _click(self, token: Token, source: TokenSource) -> None:
        self._assert(token, self.driver.click, self.state.take_negate())

    @handles(Statement.CLICK_NOW)
    def _click_now(self, token: Token, source: TokenSource) -> None:
        if not self.state.skip:
            self.driver.click(now=True)

    @handles(Statement.SCREENSHOT)
    def _screenshot(self, token: Token, source: TokenSource) -> None:
        path = self._string(source, "file name")
        if self.state.skip:
            return
        if not os.path.isabs(path):
            path = os.path.join(self.state.screenshot_root, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self.driver.screenshot(path)

    @handles(Statement.SLEEP)
    def _sleep_statement(self, token: Token, source: TokenSource) -> None:
        seconds = self._number(source, "seconds")
        if not self.state.skip:
            self._sleep(seconds)

    @handles(Statement.TAG)
    def _tag(self, token: Token, source: TokenSource) -> None:
        name = self._string(source, "tag name")
        self._assert(token, lambda: self.driver.tag(name), self.state.take_negate())

    @handles(Statement.NOT)
    def _not(self, token: Token, source: TokenSource) -> None:
        if not self.state.skip:
            self.state.negate_next = True

    @handles(Statement.DISPLAYED, Statement.ENABLED, Statement.SELECTED)
    def _element_state(self, token: Token, source: TokenSource) -> None:
        expected = True
        ahead = source.peek()
        if ahead.kind is TokenKind.WORD and not ahead.quote and truthy(str(ahead.value)) is not None:
            source.next()
            expected = bool(truthy(str(ahead.value)))
        negate = self.state.take_negate()
        if not expected:
            negate = not negate
        self._assert(token, getattr(self.driver, str(token.value)), negate)

    @handles(Statement.AT, Statement.SIZE)
    def _geometry(self, token: Token, source: TokenSource) -> None:
        x = self._axis(source)
        self._symbol(source, ",")
        y = self._axis(source)
        at = token.value == "at"

        def check() -> None:
            box = self.driver.bounding_box()
            actual = (box.x, box.y) if at else (box.width, box.height)
            if not (x.matches(actual[0]) and y.matches(actual[1])):
                raise AssertionError(
                    f"expected {token.text} {x},{y} but element {'is at' if at else 'has size'} "
                    f"{actual[0]},{actual[1]}"
                )

        self._assert(token, check, self.state.take_negate())

    @handles(Statement.CHECK)
    def _check(self, token: Token, source: TokenSource) -> None:
        text = self._text(source)
        self._assert(token, lambda: self.driver.check(text), self.state.take_negate())

    @handles(Statement.CHECKSUM)
    def _checksum(self, token: Token, source: TokenSource) -> None:
        checksum = self._string(source, "checksum")
        self._assert(token, lambda: self.driver.checksum(checksum), self.state.take_negate())

    @handles(Statement.WAIT)
    def _wait(self, token: Token, source: TokenSource) -> None:
        seconds = self._number(source, "seconds")
        if not self.state.skip:
            self.budget.reset(seconds if seconds > 0 else self.state.default_wait)

    @handles(Statement.ECHO)
    def _echo(self, token: Token, source: TokenSource) -> None:
        text = self._text(source)
        if not self.state.skip:
            logger.debug("echo %s", text)
            self.output(text)

    @handles(Statement.SET, Statement.SEND, Statement.PRESS)
    def _input(self, token: Token, source: TokenSource) -> None:
        text = self._text(source)
        if self.state.skip:
            return
        if token.value == "set":
            self.driver.set_value(text)
        elif token.value == "send":
            self.driver.send(text)
        else:
            self.driver.press(text)

    @handles(Statement.CLEAR)
    def _clear(self, token: Token, source: TokenSource) -> None:
        if not self.state.skip:
            self.driver.clear()

    @handles(Statement.SENDKEY)
    def _sendkey(self, token: Token, source: TokenSource) -> None:
        key_token = self._next(source, "key")
        if key_token.kind is TokenKind.NUMBER:
            code = int(key_token.value)
            key = KEY_CODES.get(code, chr(code))
        elif key_token.kind is TokenKind.WORD:
            key = str(key_token.value)
        else:
            raise ScriptSyntaxError(f"expected key but got {key_token.describe()} at line {key_token.line}", key_token)
        if not self.state.skip:
            self.driver.press(key)

    @handles(Statement.PUSH, Statement.POP)
    def _push_pop(self, token: Token, source: TokenSource) -> None:
        self._word(source, "wait")
        if self.state.skip:
            return
        if token.value == "push":
            self.budget.push()
            return
        try:
            self.budget.pop()
        except IndexError:
            raise ScriptSyntaxError(f"'pop wait' without 'push wait' at line {token.line}", token) from None

    @handles(Statement.EXEC, Statement.EXEC_INCLUDE)
    def _exec(self, token: Token, source: TokenSource) -> None:
        command = self._string(source, "command")
        args: List[str] = []
        if source.peek().is_symbol("("):
            source.next()
            args = [t.text for t in self._values(source, ")")]
        cwd = self._current_dir()
        completed: List[CommandResult] = []

        def check() -> None:
            completed.append(run_command(command, args, cwd, token))

        passed = self._assert(token, check, self.state.take_negate(), retry=False)
        if token.value == "exec-include" and passed and completed:
            self.run_string(completed[0].stdout, name=f"exec-include {command}", cwd=cwd)

    @handles(Statement.IF)
    def _if(self, token: Token, source: TokenSource) -> None:
        self.state.conditions.append(ConditionFrame(token, outer_skip=self.state.skip))

    @handles(Statement.THEN)
    def _then(self, token: Token, source: TokenSource) -> None:
        conditions = self.state.conditions
        if not conditions or conditions[-1].phase is not ConditionPhase.CONDITION:
            raise ScriptSyntaxError(f"'then' without 'if' at line {token.line}", token)
        top = conditions[-1]
        top.phase = ConditionPhase.BRANCH
        self.state.negate_next = False
        self.state.skip = top.outer_skip or not top.result
        logger.debug("if at line %d is %s", top.token.line, top.result)

    @handles(Statement.ENDIF)
    def _endif(self, token: Token, source: TokenSource) -> None:
        conditions = self.state.conditions
        if not conditions or conditions[-1].phase is not ConditionPhase.BRANCH:
            raise ScriptSyntaxError(f"'endif' without 'if ... then' at line {token.line}", token)
        self.state.skip = conditions.pop().outer_skip

    @handles(Statement.FAIL)
    def _fail(self, token: Token, source: TokenSource) -> None:
        message = self._text(source, "message")
        if not self.state.skip:
            raise ExplicitFailure(message, token)

    @handles(Statement.MOUSE)
    def _mouse(self, token: Token, source: TokenSource) -> None:
        self._symbol(source, "{")
        gesture: List[Tuple[str, Any]] = []
        while True:
            step = self._next(source, "'}'")
            if step.is_symbol("}"):
                break
            if step.is_word(*MOUSE_WORDS):
                gesture.append((str(step.value), None))
            elif step.is_word("sleep"):
                gesture.append(("sleep", self._number(source, "seconds")))
            elif step.kind is TokenKind.WORD and step.quote:
                gesture.append(("move", self._offset(step)))
            elif step.kind is TokenKind.NUMBER:
                self._symbol(source, ",")
                gesture.append(("move", (step.value, self._number(source, "dy"))))
            else:
                raise ScriptSyntaxError(f"unexpected {step.describe()} in mouse at line {step.line}", step)
        if not self.state.skip:
            self._perform_gesture(gesture)

    def _offset(self, token: Token) -> Tuple[Any, Any]:
        parts = [parse_number(p.strip()) for p in str(token.value).split(",")]
        if len(parts) != 2 or None in parts:
            raise ScriptSyntaxError(f"expected \"dx,dy\" but got {token.describe()} at line {token.line}", token)
        return parts[0], parts[1]

    def _perform_gesture(self, gesture: List[Tuple[str, Any]]) -> None:
        driver = self.driver
        position: Optional[Tuple[float, float]] = None
        for op, arg in gesture:
            if op == "body":
                position = (0, 0)
            elif op == "origin":
                box = driver.bounding_box()
                position = (box.x, box.y)
            elif op == "center":
                position = driver.bounding_box().center
            elif op == "move":
                if position is None:
                    box = driver.bounding_box()
                    position = (box.x, box.y)
                position = (position[0] + arg[0], position[1] + arg[1])
            elif op == "sleep":
                self._sleep(arg)
                continue
            else:
                getattr(driver, f"mouse_{op}")()
                continue
            driver.mouse_move(*position)

    @handles(Statement.WHILE)
    def _while(self, token: Token, source: TokenSource) -> None:
        opener = self._symbol(source, "{")
        outer = source if isinstance(source, BufferSource) else None
        start = outer.position if outer is not None else 0
        body = capture_block(source, opener)
        if not body:
            raise ScriptSyntaxError(f"'while' at line {token.line} has an empty body", token)
        if self.state.skip:
            return
        name = self.frames[-1].name
        mark = len(self.arena)
        if outer is not None:
            # replay the body in place, without the closing brace
            loop = outer.sub(start, outer.position - 1, name)
        else:
            loop = BufferSource(self.arena, self.arena.add(body), name=name)
        try:
            self._repeat(token, loop)
        finally:
            # aliases defined by the body keep their spans
            self.arena.truncate(max([mark] + [a.span[1] for a in self.aliases.values()]))

    def _repeat(self, token: Token, loop: BufferSource) -> None:
        saved = self.state.snapshot()
        iterations = 0
        while True:
            iterations += 1
            loop.rewind()
            try:
                self._run_source(loop)
            except ScriptSyntaxError:
                raise
            except ScriptError as e:
                self.state.restore(saved)
                logger.info(
                    "while at line %d ended on iteration %d: %s", token.line, iterations, e.message
                )
                return

    @handles(Statement.SCROLL_INTO_VIEW)
    def _scroll_into_view(self, token: Token, source: TokenSource) -> None:
        if not self.state.skip:
            self.driver.scroll_into_view()

    @handles(Statement.WAIT_FOR)
    def _wait_for(self, token: Token, source: TokenSource) -> None:
        event = self._string(source, "event")
        negate = self.state.take_negate()
        self._assert(
            token,
            lambda: self.driver.wait_for(event, self._selection_timeout(negate)),
            negate,
            retry=False,
        )
