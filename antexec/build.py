"""Execution of a single Ant build step."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Mapping
import time

from .command import AntCommand, AntCommandBuilder
from .command_runner import CommandRunner
from .config_loader import JobConfiguration
from .console import AntConsoleAnnotator, Console
from .descriptor import write_build_file
from .environment import BuildContext
from .errors import AbortError
from .installations import InstallationLookup
from .properties import merge_properties, needs_property_file, write_property_file
from .template import TemplateError, expand_all, extract_placeholders

# spawn failures faster than this are most likely a missing ant launcher
_QUICK_FAILURE_SECONDS = 1.0


class BuildState(str, Enum):
    INIT = "init"
    RESOLVE_CONTEXT = "resolve-context"
    MATERIALIZE_PROPERTIES = "materialize-properties"
    GENERATE_DESCRIPTOR = "generate-descriptor"
    BUILD_COMMAND = "build-command"
    SPAWN = "spawn"
    STREAMING = "streaming"
    SUCCESS = "success"
    PROCESS_FAILURE = "process-failure"
    SPAWN_FAILURE = "spawn-failure"
    CLEANUP = "cleanup"
    DONE = "done"


@dataclass(slots=True)
class BuildResult:
    """Outcome of one build.

    ``states`` is the path taken through the build. ``STREAMING`` is appended
    once ant has exited and its output has been drained, so a launcher that
    never started goes from ``SPAWN`` straight to ``SPAWN_FAILURE``.
    """

    success: bool = False
    returncode: int | None = None
    command: List[str] = field(default_factory=list)
    build_file: Path | None = None
    property_file: Path | None = None
    error: str | None = None
    states: List[BuildState] = field(default_factory=lambda: [BuildState.INIT])

    def enter(self, state: BuildState) -> None:
        self.states.append(state)


@dataclass(slots=True)
class ResolvedScripts:
    script_source: str
    extended_script_source: str


class AntExecBuilder:
    """Runs the Ant script of a :class:`JobConfiguration` inside a workspace.

    A build writes ``<script_name>`` (and ``<script_name>.properties`` when
    there is anything to put in it) into the workspace, runs ``ant`` against
    it and removes both files afterwards unless ``keep_buildfile`` is set.
    With ``dry_run`` the ``antlib`` directory is left untouched.
    """

    def __init__(
        self,
        job: JobConfiguration,
        *,
        installations: InstallationLookup,
        command_runner: CommandRunner,
        console: Console,
        bundled_library: Path | None = None,
        dry_run: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._job = job
        self._installations = installations
        self._command_runner = command_runner
        self._console = console
        self._clock = clock
        self._command_builder = AntCommandBuilder(
            installations, console=console, bundled_library=bundled_library, dry_run=dry_run
        )

    def perform(self, context: BuildContext) -> BuildResult:
        job = self._job
        result = BuildResult()

        result.enter(BuildState.RESOLVE_CONTEXT)
        env = context.merged_environment()
        scripts = self.resolve_scripts(context.template_context(job.build_file_name))

        try:
            if needs_property_file(job.properties, context.build_variables):
                result.enter(BuildState.MATERIALIZE_PROPERTIES)
                merged = merge_properties(context.build_variables, job.properties)
                result.property_file = write_property_file(
                    context.workspace, job.build_file_name, merged
                )

            result.enter(BuildState.GENERATE_DESCRIPTOR)
            result.build_file = write_build_file(
                context.workspace,
                job.build_file_name,
                scripts.script_source,
                scripts.extended_script_source,
            )

            result.enter(BuildState.BUILD_COMMAND)
            command = self._command_builder.build(
                job,
                build_file=result.build_file,
                workspace=context.workspace,
                node=context.node,
                env=env,
            )
            result.command = list(command.args)

            if job.verbose:
                self._print_debug_fields(scripts.script_source)

            self._launch(command, result.build_file, result, context)
        except AbortError as exc:
            self._console.error(str(exc))
            result.error = str(exc)
        except OSError as exc:
            message = f"Unable to prepare the Ant build: {exc}"
            self._console.fatal_error(message, exc)
            result.error = message
        finally:
            result.enter(BuildState.CLEANUP)
            self._cleanup(result.build_file, result.property_file)
            result.enter(BuildState.DONE)
        return result

    def resolve_scripts(self, template_context: Mapping[str, Any]) -> ResolvedScripts:
        """Expand placeholders in both script fields; each falls back to its own raw text."""

        return ResolvedScripts(
            script_source=self._expand("script source", self._job.script_source, template_context),
            extended_script_source=self._expand(
                "extended script source", self._job.extended_script_source, template_context
            ),
        )

    def _expand(self, label: str, text: str, template_context: Mapping[str, Any]) -> str:
        placeholders = extract_placeholders(text)
        if not placeholders:
            return text
        self._console.debug(f"Expanding {', '.join(sorted(placeholders))} in the {label}")
        try:
            return expand_all(template_context, text)
        except TemplateError as exc:
            self._console.warning(f"Placeholders in the {label} were left unexpanded: {exc}")
            return text

    def _print_debug_fields(self, script_source: str) -> None:
        out = self._console
        out.println()
        out.println("######## Script source field - begin ########")
        out.println(script_source)
        out.println("######## Script source field -  end  ########")
        out.println()
        out.println("######## Properties field - begin ########")
        out.println(self._job.properties)
        out.println("######## Properties field -  end  ########")
        out.println()

    def _launch(
        self,
        command: AntCommand,
        build_file: Path,
        result: BuildResult,
        context: BuildContext,
    ) -> None:
        annotator = AntConsoleAnnotator(self._console, context.charset)
        start = self._clock()
        result.enter(BuildState.SPAWN)
        try:
            completed = self._command_runner.run(
                command.args,
                cwd=build_file.parent,
                env=command.env,
                sink=annotator,
            )
        except OSError as exc:
            message = "command execution failed."
            if command.installation is None and (self._clock() - start) < _QUICK_FAILURE_SECONDS:
                if not list(self._installations.names()):
                    message += " Maybe you need to configure where your Ant installations are?"
                else:
                    message += " Maybe you need to configure the job to choose one of your Ant installations?"
            self._console.fatal_error(message, exc)
            result.error = message
            result.enter(BuildState.SPAWN_FAILURE)
            return

        result.enter(BuildState.STREAMING)
        result.returncode = completed.returncode
        result.success = completed.returncode == 0
        result.enter(BuildState.SUCCESS if result.success else BuildState.PROCESS_FAILURE)

    def _cleanup(self, build_file: Path | None, property_file: Path | None) -> None:
        if self._job.keep_buildfile:
            return
        if property_file is not None and property_file.exists():
            try:
                property_file.unlink()
            except OSError as exc:
                self._console.warning(f"The temporary property file couldn't be deleted: {exc}")
        if build_file is not None:
            try:
                build_file.unlink()
            except OSError as exc:
                self._console.warning(f"The temporary Ant Build Script couldn't be deleted: {exc}")


__all__ = ["AntExecBuilder", "BuildResult", "BuildState", "ResolvedScripts"]
