"""
Console output handling for antexec builds.

The :class:`Console` is the build log: status messages are written with a
level prefix while the output of ``ant`` passes through
:class:`AntConsoleAnnotator` and is written verbatim.
"""
from __future__ import annotations

import sys
import traceback
from enum import Enum
from typing import List, TextIO


class Note(str, Enum):
    TARGET = "target"
    OUTCOME = "outcome"


_HIGHLIGHT = {
    Note.TARGET: ("\033[1m", "\033[0m"),
    Note.OUTCOME: ("\033[1;36m", "\033[0m"),
}


class Console:
    """Simple console output handler with configurable log level.

    Levels: none < error < warning < info < debug
    Default: 'info'
    """

    LEVELS = {
        "none": 0,
        "error": 1,
        "warning": 2,
        "info": 3,
        "debug": 4,
    }

    def __init__(
        self,
        level: str = "info",
        dry_run: bool = False,
        *,
        stream: TextIO | None = None,
        err_stream: TextIO | None = None,
        highlight: bool = False,
    ):
        self.level_name = level
        self.level = self.LEVELS.get(level, self.LEVELS["info"])
        self.dry_run = dry_run
        self.highlight = highlight
        self._stream = stream
        self._err_stream = err_stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    @property
    def err_stream(self) -> TextIO:
        return self._err_stream if self._err_stream is not None else sys.stderr

    def println(self, message: str = "") -> None:
        """Write *message* to the build log regardless of the level."""
        print(message, file=self.stream)

    def annotated(self, line: str, note: Note | None = None) -> None:
        if note is not None and self.highlight:
            start, end = _HIGHLIGHT[note]
            line = f"{start}{line}{end}"
        print(line, file=self.stream)
        self.stream.flush()

    def info(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(f"[INFO] {message}", file=self.stream)

    def warning(self, message: str) -> None:
        if self.level >= self.LEVELS["warning"]:
            print(f"[WARN] {message}", file=self.stream)

    def error(self, message: str) -> None:
        if self.level >= self.LEVELS["error"]:
            print(f"[ERROR] {message}", file=self.err_stream)

    def fatal_error(self, message: str, exc: BaseException | None = None) -> None:
        """Report an error that fails the build, with the traceback of *exc* if given."""
        print(f"FATAL: {message}", file=self.err_stream)
        if exc is not None:
            traceback.print_exception(type(exc), exc, exc.__traceback__, file=self.err_stream)

    def dry(self, message: str) -> None:
        if self.dry_run:
            print(f"[DRY] {message}", file=self.stream)

    def debug(self, message: str) -> None:
        if self.level >= self.LEVELS["debug"]:
            print(f"[DEBUG] {message}", file=self.stream)


class AntConsoleAnnotator:
    """Line-buffering filter that marks ant target headers and the build outcome.

    Bytes written to the annotator are split into lines and forwarded to the
    console. A line is a target header when it follows an empty line, ends
    with ``:`` and contains no space. ``BUILD SUCCESSFUL``/``BUILD FAILED`` is
    the outcome line.
    """

    OUTCOMES = ("BUILD SUCCESSFUL", "BUILD FAILED")

    def __init__(self, console: Console, charset: str = "utf-8") -> None:
        self._console = console
        self._charset = charset
        self._buffer = bytearray()
        self._seen_empty_line = False
        self.targets: List[str] = []
        self.outcome: str | None = None

    def write(self, data: bytes) -> None:
        self._buffer.extend(data)
        while True:
            index = self._buffer.find(b"\n")
            if index < 0:
                break
            line = bytes(self._buffer[: index + 1])
            del self._buffer[: index + 1]
            self._eol(line)

    def force_eol(self) -> None:
        """Emit whatever partial line is still buffered."""
        if self._buffer:
            line = bytes(self._buffer)
            self._buffer.clear()
            self._eol(line)

    def _eol(self, raw: bytes) -> None:
        line = raw.decode(self._charset, errors="replace").rstrip("\r\n")
        note: Note | None = None
        if self._seen_empty_line and line.endswith(":") and " " not in line:
            note = Note.TARGET
            self.targets.append(line[:-1])
        if line in self.OUTCOMES:
            note = Note.OUTCOME
            self.outcome = line
        self._seen_empty_line = len(line) == 0
        self._console.annotated(line, note)


__all__ = ["AntConsoleAnnotator", "Console", "Note"]
