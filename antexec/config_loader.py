"""Configuration loading and validation logic."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping
import json
import tomllib

import yaml

from .installations import InstallationRegistry


ConfigLoader = Callable[[Any], Mapping[str, Any]]

DEFAULT_BUILD_FILE_NAME = "antexec_build.xml"

FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": lambda stream: yaml.safe_load(stream),
    ".yml": lambda stream: yaml.safe_load(stream),
}
"""Mapping of file suffixes to loader callables."""


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Load and decode a configuration mapping from ``path``."""

    suffix = path.suffix.lower()
    loader = FILE_LOADERS.get(suffix)
    if loader is None:
        supported = ", ".join(sorted(FILE_LOADERS)) or "<none>"
        raise ValueError(
            f"Unsupported configuration file extension: {suffix}. Supported: {supported}"
        )

    mode = "rb" if suffix == ".toml" else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"

    with path.open(mode, **kwargs) as handle:
        data = loader(handle)

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise TypeError(f"Configuration file '{path}' must contain a mapping at the root")

    return data


def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"job.{key} must be a string")
    return value


def _flag(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise TypeError(f"job.{key} must be a boolean if specified")
    return value


def _string_dict(value: Any, *, field_name: str) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise TypeError(f"{field_name} must be a mapping")
    return {str(key): str(item) for key, item in value.items()}


@dataclass(slots=True)
class GlobalConfig:
    log_level: str = "info"
    highlight: bool = False
    bundled_library: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GlobalConfig":
        global_section = data.get("global", {}) if isinstance(data, Mapping) else {}
        if not isinstance(global_section, Mapping):
            raise TypeError("[global] must be a table")
        bundled = global_section.get("bundled_library")
        return cls(
            log_level=str(global_section.get("log_level", "info")),
            highlight=bool(global_section.get("highlight", False)),
            bundled_library=str(bundled) if bundled else None,
        )


@dataclass(frozen=True, slots=True)
class JobConfiguration:
    """Build step settings; fixed once loaded.

    Every flag defaults to ``False`` and a ``None`` value in the source
    mapping means ``False`` as well.
    """

    script_source: str = ""
    extended_script_source: str = ""
    script_name: str = ""
    properties: str = ""
    ant_opts: str = ""
    ant_name: str | None = None
    keep_buildfile: bool = False
    verbose: bool = False
    emacs: bool = False
    no_antcontrib: bool = False

    _KEYS = frozenset(
        {
            "script_source",
            "extended_script_source",
            "script_name",
            "properties",
            "ant_name",
            "ant_opts",
            "keep_buildfile",
            "verbose",
            "emacs",
            "no_antcontrib",
        }
    )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "JobConfiguration":
        unknown = {str(key) for key in data.keys() if str(key) not in cls._KEYS}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ValueError(f"Job configuration contains unknown keys: {joined}")
        ant_name = _text(data, "ant_name")
        return cls(
            script_source=_text(data, "script_source"),
            extended_script_source=_text(data, "extended_script_source"),
            script_name=_text(data, "script_name"),
            properties=_text(data, "properties"),
            ant_opts=_text(data, "ant_opts"),
            ant_name=ant_name or None,
            keep_buildfile=_flag(data, "keep_buildfile"),
            verbose=_flag(data, "verbose"),
            emacs=_flag(data, "emacs"),
            no_antcontrib=_flag(data, "no_antcontrib"),
        )

    @property
    def build_file_name(self) -> str:
        return self.script_name or DEFAULT_BUILD_FILE_NAME


@dataclass(slots=True)
class JobFile:
    """Everything a single configuration file describes."""

    path: Path
    global_config: GlobalConfig
    job: JobConfiguration
    installations: InstallationRegistry
    variables: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, path: Path, data: Mapping[str, Any]) -> "JobFile":
        job_section = data.get("job")
        if not isinstance(job_section, Mapping):
            raise ValueError("[job] section is required in job configuration")
        installations_section = data.get("installations", {})
        if not isinstance(installations_section, Mapping):
            raise TypeError("[installations] must be a table")
        return cls(
            path=path,
            global_config=GlobalConfig.from_mapping(data),
            job=JobConfiguration.from_mapping(job_section),
            installations=InstallationRegistry.from_mapping(installations_section),
            variables=_string_dict(data.get("variables"), field_name="[variables]"),
        )


def load_job_file(path: Path) -> JobFile:
    return JobFile.from_mapping(path, load_config_file(path))


def load_installations(path: Path) -> InstallationRegistry:
    """Load a standalone installations file (``[installations.<name>]`` tables)."""

    data = load_config_file(path)
    section = data.get("installations", data)
    if not isinstance(section, Mapping):
        raise TypeError(f"Installations in '{path}' must be a mapping")
    return InstallationRegistry.from_mapping(section)


__all__ = [
    "DEFAULT_BUILD_FILE_NAME",
    "FILE_LOADERS",
    "GlobalConfig",
    "JobConfiguration",
    "JobFile",
    "load_config_file",
    "load_installations",
    "load_job_file",
]
