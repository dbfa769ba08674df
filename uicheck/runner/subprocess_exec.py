"""
External command execution for ``exec`` and ``exec-include``.

Output is relayed to the log line by line while the command runs.
Pipes deliver arbitrary chunks, so each stream keeps the trailing
partial line until the rest of it arrives.
"""

from __future__ import annotations

import codecs
import logging
import os
import subprocess
import threading
from dataclasses import dataclass
from typing import IO, Any, Callable, List, Sequence

from uicheck.core.errors import SubprocessError

logger = logging.getLogger(__name__)

READ_CHUNK = 4096


class LineRelay:
    """Reassemble chunked text into lines and hand each one to ``emit``."""

    def __init__(self, emit: Callable[[str], None]) -> None:
        self._emit = emit
        self._partial = ""
        self._chunks: List[str] = []
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def text(self) -> str:
        return "".join(self._chunks)

    def feed_bytes(self, data: bytes) -> None:
        self.feed(self._decoder.decode(data))

    def feed(self, chunk: str) -> None:
        if not chunk:
            return
        self._chunks.append(chunk)
        *lines, self._partial = (self._partial + chunk).split("\n")
        for line in lines:
            self._emit(line.rstrip("\r"))

    def close(self) -> None:
        self.feed(self._decoder.decode(b"", final=True))
        if self._partial:
            self._emit(self._partial.rstrip("\r"))
            self._partial = ""


@dataclass
class CommandResult:
    command: List[str]
    returncode: int
    stdout: str
    stderr: str


def resolve_command(command: str, cwd: str) -> str:
    """
    Resolve ``command`` against ``cwd`` when it names a file there.

    Absolute paths are returned unchanged; anything not found relative to
    ``cwd`` is left for the ``PATH`` lookup.
    """
    if os.path.isabs(command):
        return command
    candidate = os.path.join(cwd, command)
    if os.path.exists(candidate):
        return os.path.abspath(candidate)
    return command


def _pump(stream: IO[bytes], relay: LineRelay) -> None:
    try:
        for data in iter(lambda: stream.read1(READ_CHUNK), b""):
            relay.feed_bytes(data)
    finally:
        relay.close()
        stream.close()


def run_command(command: str, args: Sequence[Any], cwd: str, token: Any = None) -> CommandResult:
    """
    Run ``command`` with ``args`` in ``cwd``, relaying its output to the log.

    :raises SubprocessError: If the command cannot be started or exits non-zero
    """
    argv = [resolve_command(command, cwd)] + [str(a) for a in args]
    name = os.path.basename(command)
    logger.info("exec %s", " ".join(argv))
    try:
        proc = subprocess.Popen(argv, cwd=cwd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except OSError as e:
        raise SubprocessError(f"exec {command}: {e.strerror or e}", token, returncode=127) from e

    out = LineRelay(lambda line: logger.info("[%s] %s", name, line))
    err = LineRelay(lambda line: logger.warning("[%s] %s", name, line))
    pumps = [
        threading.Thread(target=_pump, args=(proc.stdout, out), daemon=True),
        threading.Thread(target=_pump, args=(proc.stderr, err), daemon=True),
    ]
    for t in pumps:
        t.start()
    returncode = proc.wait()
    for t in pumps:
        t.join()

    result = CommandResult(argv, returncode, out.text, err.text)
    if returncode != 0:
        raise SubprocessError(f"exec {command} exited with status {returncode}", token, returncode=returncode)
    return result
