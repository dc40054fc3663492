"""Launching ant with its output pumped into a sink, plus a dry-run recorder."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Protocol, Sequence
import os
import shlex
import subprocess


class OutputSink(Protocol):
    """Receives the combined stdout/stderr of a running command."""

    def write(self, data: bytes) -> None:
        ...

    def force_eol(self) -> None:
        ...


@dataclass(slots=True)
class CommandResult:
    command: Sequence[str]
    returncode: int


class CommandRunner:
    """Abstract command runner interface.

    ``run`` blocks until the command exits and reports its exit code; a
    non-zero code is not an error at this level. Failing to start the
    command raises :class:`OSError`.
    """

    def run(
        self,
        command: Sequence[str],
        *,
        sink: OutputSink,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        note: str | None = None,
    ) -> CommandResult:
        raise NotImplementedError

    def format_command(self, command: Sequence[str]) -> str:
        return " ".join(shlex.quote(part) for part in command)


class SubprocessCommandRunner(CommandRunner):
    """Runs commands via :mod:`subprocess` with stderr merged into stdout.

    Output lines are handed to the sink as they arrive. The sink's partial
    line is flushed on every exit path, including a failed spawn. An
    exception while waiting (``KeyboardInterrupt`` included) kills the child
    before it propagates.
    """

    @staticmethod
    def _merge_environment(env: Mapping[str, str] | None) -> Dict[str, str] | None:
        if env is None:
            return None
        merged = os.environ.copy()
        merged.update(env)
        return merged

    def run(
        self,
        command: Sequence[str],
        *,
        sink: OutputSink,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        note: str | None = None,
    ) -> CommandResult:
        try:
            process = subprocess.Popen(
                list(command),
                cwd=str(cwd) if cwd else None,
                env=self._merge_environment(env),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
            assert process.stdout is not None
            try:
                for chunk in iter(process.stdout.readline, b""):
                    sink.write(chunk)
                returncode = process.wait()
            except BaseException:
                process.kill()
                process.wait()
                raise
            finally:
                process.stdout.close()
        finally:
            sink.force_eol()
        return CommandResult(command=command, returncode=returncode)


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    env: Dict[str, str]
    note: str | None


class RecordingCommandRunner(CommandRunner):
    """Command runner that records commands instead of executing them.

    ``returncode`` and ``output`` are what every recorded command "produces";
    the output is written to the sink.
    """

    def __init__(self, returncode: int = 0, output: bytes = b"") -> None:
        self.commands: List[RecordedCommand] = []
        self.returncode = returncode
        self.output = output

    def run(
        self,
        command: Sequence[str],
        *,
        sink: OutputSink,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        note: str | None = None,
    ) -> CommandResult:
        self.commands.append(
            RecordedCommand(
                command=list(command),
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env else {},
                note=note,
            )
        )
        try:
            sink.write(self.output)
        finally:
            sink.force_eol()
        return CommandResult(command=command, returncode=self.returncode)

    def iter_formatted(self, *, workspace: Path | None = None) -> Iterable[str]:
        default_cwd = str(workspace) if workspace else None
        for record in self.commands:
            cmd = self.format_command(record.command)
            cwd = record.cwd or default_cwd
            parts: List[str] = ["[dry-run]"]
            if record.note:
                parts.append(record.note)
            if cwd:
                parts.append(f"(cwd={cwd})")
            parts.append(cmd)
            yield " ".join(parts)


__all__ = [
    "CommandResult",
    "CommandRunner",
    "OutputSink",
    "RecordedCommand",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
]
