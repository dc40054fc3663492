"""Assembly of the ``ant`` command line and its environment."""
from __future__ import annotations

from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Dict, List, Sequence
import os
import re
import shutil
import tempfile

from .config_loader import JobConfiguration
from .console import Console
from .environment import ExecutionNode
from .errors import AbortError
from .installations import AntInstallation, InstallationLookup
from .template import expand_environment

ANT_LIB_DIR = "antlib"
ANT_CONTRIB_JAR = "ant-contrib.jar"


def bundled_library_path() -> Path:
    """Location of the ant-contrib jar installed as ``antexec/lib`` package data."""
    return Path(str(resources.files("antexec").joinpath("lib", ANT_CONTRIB_JAR)))


DEFAULT_BUNDLED_LIBRARY = bundled_library_path()

_EMPTY_PROPERTY = re.compile(r'(?:(?<= )|^)(-D[^" ]+)= ')


def _start_quoting(buffer: List[str], arg: str, index: int) -> bool:
    buffer.append('"')
    buffer.append(arg[:index])
    return True


def to_windows_command(args: Sequence[str]) -> List[str]:
    """Wrap *args* into a ``cmd.exe /C`` invocation that preserves the exit code.

    Arguments containing spaces or shell metacharacters are double-quoted and
    ``%VAR`` references are broken up so cmd.exe leaves them alone.
    """

    quoted_args: List[str] = []
    for arg in args:
        quoted = percent = False
        for index, char in enumerate(arg):
            if not quoted and char in " *?,;":
                quoted = _start_quoting(quoted_args, arg, index)
            elif char in "^&<>|":
                if not quoted:
                    quoted = _start_quoting(quoted_args, arg, index)
            elif char == '"':
                if not quoted:
                    quoted = _start_quoting(quoted_args, arg, index)
                quoted_args.append('"')
            elif percent and char.isascii() and char.isalpha():
                if not quoted:
                    quoted = _start_quoting(quoted_args, arg, index)
                quoted_args.append('"')
                quoted_args.append(char)
                char = '"'
            percent = char == "%"
            if quoted:
                quoted_args.append(char)
        if quoted:
            quoted_args.append('"')
        else:
            quoted_args.append(arg)
        quoted_args.append(" ")
    # %% keeps ERRORLEVEL from being expanded before the batch file ran
    quoted_args.append("&& exit %%ERRORLEVEL%%")
    return ["cmd.exe", "/C", '"' + "".join(quoted_args) + '"']


def quote_empty_properties(args: Sequence[str]) -> List[str]:
    """Give ``-Dname=`` assignments in the last token an explicit ``""`` value.

    ant.bat rejects an empty property value unless it is quoted.
    """

    fixed = list(args)
    if fixed:
        fixed[-1] = _EMPTY_PROPERTY.sub(r'\1="" ', fixed[-1])
    return fixed


@dataclass(slots=True)
class AntCommand:
    args: List[str]
    env: Dict[str, str]
    installation: AntInstallation | None = None
    library_dir: Path | None = None


class AntCommandBuilder:
    """Builds the argument list and environment for one ``ant`` invocation.

    Without an explicit ``bundled_library`` the packaged jar is used; when it
    was not installed, builds fall back to Ant core tasks with a warning.
    With ``dry_run`` the ``antlib`` directory is never created or filled.
    """

    def __init__(
        self,
        installations: InstallationLookup,
        *,
        console: Console,
        bundled_library: Path | None = None,
        dry_run: bool = False,
    ) -> None:
        self._installations = installations
        self._console = console
        self._explicit_library = bundled_library is not None
        self._bundled_library = bundled_library if bundled_library is not None else DEFAULT_BUNDLED_LIBRARY
        self._dry_run = dry_run

    def find_installation(self, name: str | None) -> AntInstallation | None:
        if not name:
            return None
        return self._installations.get(name)

    def resolve_executable(
        self,
        installation: AntInstallation | None,
        node: ExecutionNode | None,
        env: Dict[str, str],
    ) -> tuple[str, AntInstallation | None]:
        """Return the launcher and the installation localized for *node* and *env*."""

        if installation is None:
            if node is None:
                raise AbortError("Cannot get installation for node, since it is not online")
            return ("ant" if node.is_unix else "ant.bat"), None
        if node is None:
            raise AbortError("Cannot get installation for node, since it is not online")
        installation = installation.for_node(node).for_environment(env)
        exe = installation.executable(node)
        if exe is None:
            raise AbortError("Cannot find executable from the chosen Ant installation.")
        return exe, installation

    def contrib_available(self, workspace: Path | None) -> bool:
        """Whether ``-lib antlib`` can point at an ant-contrib jar."""

        if self._explicit_library or workspace is None or self._bundled_library.is_file():
            return True
        return (workspace / ANT_LIB_DIR / ANT_CONTRIB_JAR).is_file()

    def ensure_library_dir(self, workspace: Path | None) -> Path:
        """Make sure ``<workspace>/antlib`` holds the ant-contrib jar.

        The jar is copied under a temporary name and renamed into place, so a
        failed copy never leaves a directory without the jar behind.
        """

        if workspace is None:
            raise AbortError("Cannot get Workspace for node, since it is not online")
        library_dir = workspace / ANT_LIB_DIR
        jar = library_dir / ANT_CONTRIB_JAR
        if jar.is_file():
            return library_dir
        if self._dry_run:
            self._console.dry(f"Would copy {self._bundled_library} to {jar}")
            return library_dir

        created = not library_dir.exists()
        library_dir.mkdir(parents=True, exist_ok=True)
        fd, partial = tempfile.mkstemp(prefix=".ant-contrib-", suffix=".part", dir=library_dir)
        os.close(fd)
        try:
            shutil.copyfile(self._bundled_library, partial)
            os.replace(partial, jar)
        except OSError:
            Path(partial).unlink(missing_ok=True)
            if created:
                library_dir.rmdir()
            raise
        return library_dir

    def build(
        self,
        job: JobConfiguration,
        *,
        build_file: Path,
        workspace: Path | None,
        node: ExecutionNode | None,
        env: Dict[str, str],
    ) -> AntCommand:
        env = dict(env)
        exe, installation = self.resolve_executable(
            self.find_installation(job.ant_name), node, env
        )
        args: List[str] = [exe, "-file", build_file.name]

        if installation is not None and node is not None:
            installation.build_env_vars(env, node)
        if job.ant_opts:
            env["ANT_OPTS"] = expand_environment(job.ant_opts, env)

        library_dir: Path | None = None
        if job.no_antcontrib:
            if job.verbose:
                self._console.println("Using Ant core tasks only (ant-contrib disabled)")
        elif self.contrib_available(workspace):
            if job.verbose:
                self._console.println("Using ant-contrib tasks from the antlib directory")
            library_dir = self.ensure_library_dir(workspace)
            args.extend(["-lib", library_dir.name])
        else:
            self._console.warning(
                f"No bundled {ANT_CONTRIB_JAR} at {self._bundled_library}; using Ant core tasks only"
            )

        if job.verbose:
            args.append("-verbose")
        if job.emacs:
            args.append("-emacs")

        if node is not None and not node.is_unix:
            args = quote_empty_properties(to_windows_command(args))

        return AntCommand(args=args, env=env, installation=installation, library_dir=library_dir)


__all__ = [
    "ANT_CONTRIB_JAR",
    "ANT_LIB_DIR",
    "AntCommand",
    "AntCommandBuilder",
    "DEFAULT_BUNDLED_LIBRARY",
    "bundled_library_path",
    "quote_empty_properties",
    "to_windows_command",
]
