"""Exceptions shared across the antexec modules."""
from __future__ import annotations


class AbortError(RuntimeError):
    """Raised when a build step cannot continue and no process should be spawned."""
