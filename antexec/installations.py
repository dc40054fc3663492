"""Named Ant installation definitions and lookup."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import TYPE_CHECKING, Any, Dict, Iterable, Mapping, MutableMapping, Protocol

from .template import expand_environment

if TYPE_CHECKING:
    from .environment import ExecutionNode


def _to_str_dict(mapping: Mapping[str, Any]) -> Dict[str, str]:
    return {str(key): str(value) for key, value in mapping.items()}


@dataclass(frozen=True, slots=True)
class AntInstallation:
    """An Ant distribution registered under a logical name.

    ``home`` may reference environment variables (``$VAR``/``${VAR}``) and may
    be overridden per execution node through ``node_homes``.
    """

    name: str
    home: str
    environment: Dict[str, str] = field(default_factory=dict)
    node_homes: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> "AntInstallation":
        if not isinstance(data, Mapping):
            raise TypeError(f"Installation '{name}' definition must be a mapping")
        allowed_keys = {"home", "environment", "nodes"}
        unknown = {str(key) for key in data.keys() if str(key) not in allowed_keys}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ValueError(f"Installation '{name}' contains unknown keys: {joined}")

        home = data.get("home")
        if not isinstance(home, str) or not home.strip():
            raise ValueError(f"Installation '{name}' requires a non-empty 'home'")

        environment: Dict[str, str] = {}
        env_section = data.get("environment")
        if isinstance(env_section, Mapping):
            environment = _to_str_dict(env_section)

        node_homes: Dict[str, str] = {}
        nodes_section = data.get("nodes")
        if isinstance(nodes_section, Mapping):
            node_homes = _to_str_dict(nodes_section)

        return cls(name=name, home=home.strip(), environment=environment, node_homes=node_homes)

    def for_node(self, node: "ExecutionNode") -> "AntInstallation":
        home = self.node_homes.get(node.name)
        if home is None:
            return self
        return replace(self, home=home)

    def for_environment(self, env: Mapping[str, str]) -> "AntInstallation":
        return replace(self, home=expand_environment(self.home, env))

    def _bin_dir(self, node: "ExecutionNode") -> str:
        if node.is_unix:
            return str(PurePosixPath(self.home) / "bin")
        return str(PureWindowsPath(self.home) / "bin")

    def executable(self, node: "ExecutionNode") -> str | None:
        """Absolute path of the ``ant`` launcher on *node*, or ``None`` if it is missing."""

        launcher = "ant" if node.is_unix else "ant.bat"
        candidate = Path(self._bin_dir(node)) / launcher
        if candidate.is_file():
            return str(candidate)
        return None

    def build_env_vars(self, env: MutableMapping[str, str], node: "ExecutionNode") -> None:
        """Contribute ``ANT_HOME``, the ``bin`` directory on ``PATH`` and declared variables."""

        env["ANT_HOME"] = self.home
        separator = ":" if node.is_unix else ";"
        bin_dir = self._bin_dir(node)
        current_path = env.get("PATH")
        env["PATH"] = f"{bin_dir}{separator}{current_path}" if current_path else bin_dir
        for key, value in self.environment.items():
            env[key] = expand_environment(value, env)


class InstallationLookup(Protocol):
    """Resolves installation names; supplied by whoever hosts the build step."""

    def get(self, name: str) -> AntInstallation | None:
        ...

    def names(self) -> Iterable[str]:
        ...


@dataclass(slots=True)
class InstallationRegistry:
    installations: Dict[str, AntInstallation] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "InstallationRegistry":
        installations: Dict[str, AntInstallation] = {}
        for raw_name, raw_value in data.items():
            name = str(raw_name).strip()
            if not name:
                raise ValueError("Installation names cannot be empty")
            installations[name] = AntInstallation.from_mapping(name, raw_value)
        return cls(installations=installations)

    def get(self, name: str) -> AntInstallation | None:
        return self.installations.get(name)

    def names(self) -> Iterable[str]:
        return sorted(self.installations)

    def merge(self, other: "InstallationRegistry") -> "InstallationRegistry":
        installations = dict(self.installations)
        installations.update(other.installations)
        return InstallationRegistry(installations=installations)


__all__ = ["AntInstallation", "InstallationLookup", "InstallationRegistry"]
