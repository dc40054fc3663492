"""Execution node and per-build context passed explicitly through a build."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping
import os


@dataclass(frozen=True, slots=True)
class ExecutionNode:
    """The machine the build runs on."""

    name: str = "built-in"
    is_unix: bool = True

    @classmethod
    def local(cls, name: str = "built-in") -> "ExecutionNode":
        return cls(name=name, is_unix=os.name != "nt")


@dataclass(slots=True)
class BuildContext:
    """Inputs a single build receives from its surroundings.

    ``node`` is ``None`` and ``workspace`` is ``None`` when the node running
    the build went offline.
    """

    workspace: Path | None
    node: ExecutionNode | None
    environment: Mapping[str, str] = field(default_factory=dict)
    build_variables: Mapping[str, str] = field(default_factory=dict)
    charset: str = "utf-8"

    @classmethod
    def local(
        cls,
        workspace: Path,
        *,
        build_variables: Mapping[str, str] | None = None,
        node_name: str = "built-in",
    ) -> "BuildContext":
        return cls(
            workspace=workspace,
            node=ExecutionNode.local(node_name),
            environment=dict(os.environ),
            build_variables=dict(build_variables or {}),
        )

    def merged_environment(self) -> Dict[str, str]:
        """Ambient environment overridden by the build variables."""

        env = {str(key): str(value) for key, value in self.environment.items()}
        env.update({str(key): str(value) for key, value in self.build_variables.items()})
        return env

    def template_context(self, script_name: str) -> Dict[str, Any]:
        return {
            "env": self.merged_environment(),
            "vars": dict(self.build_variables),
            "build": {
                "workspace": str(self.workspace) if self.workspace else "",
                "node": self.node.name if self.node else "",
                "script_name": script_name,
            },
        }


__all__ = ["BuildContext", "ExecutionNode"]
