"""Run Apache Ant script fragments as a build step."""
from __future__ import annotations

from .build import AntExecBuilder, BuildResult, BuildState
from .cli import main
from .config_loader import JobConfiguration
from .environment import BuildContext, ExecutionNode

__all__ = [
    "AntExecBuilder",
    "BuildContext",
    "BuildResult",
    "BuildState",
    "ExecutionNode",
    "JobConfiguration",
    "main",
]
