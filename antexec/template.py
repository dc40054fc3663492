"""Placeholder expansion for script sources and option strings."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping
import re


_PLACEHOLDER_PATTERN = re.compile(r"\{\{([^{}]+)\}\}")
_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_.]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


class TemplateError(ValueError):
    """Raised when template resolution fails."""


@dataclass(slots=True)
class TemplateResolver:
    """Resolves ``{{path}}`` placeholders using a nested mapping context.

    Values looked up from the context may contain placeholders themselves;
    they are resolved recursively and cycles raise :class:`TemplateError`.
    """

    context: Mapping[str, Any]
    _cache: dict[str, str] = field(default_factory=dict, init=False, repr=False)

    def resolve(self, value: str) -> str:
        return self._substitute(value, stack=[])

    def _substitute(self, text: str, *, stack: list[str]) -> str:
        def replacement(match: re.Match[str]) -> str:
            return self._resolve_path(match.group(1).strip(), stack=stack)

        if not _PLACEHOLDER_PATTERN.search(text):
            return text
        return _PLACEHOLDER_PATTERN.sub(replacement, text)

    def _resolve_path(self, path: str, *, stack: list[str]) -> str:
        if path in self._cache:
            return self._cache[path]
        if path in stack:
            cycle = " -> ".join(stack + [path])
            raise TemplateError(f"Circular dependency detected: {cycle}")

        raw_value = self._lookup_raw(path)
        if isinstance(raw_value, Mapping) or isinstance(raw_value, (list, tuple)):
            raise TemplateError(f"Placeholder '{path}' does not refer to a scalar value")
        stack.append(path)
        resolved = self._substitute(str(raw_value), stack=stack)
        stack.pop()
        self._cache[path] = resolved
        return resolved

    def _lookup_raw(self, path: str) -> Any:
        current: Any = self.context
        for part in path.split("."):
            if isinstance(current, Mapping) and part in current:
                current = current[part]
                continue
            raise TemplateError(f"Cannot resolve path '{path}' in template context")
        return current


def extract_placeholders(text: str) -> set[str]:
    """Collect all placeholder paths referenced within *text*."""

    placeholders: set[str] = set()
    for match in _PLACEHOLDER_PATTERN.finditer(text):
        path = match.group(1).strip()
        if path:
            placeholders.add(path)
    return placeholders


def expand_all(context: Mapping[str, Any], text: str) -> str:
    """Expand every placeholder in *text*; raises :class:`TemplateError` on failure."""

    if not text:
        return text
    return TemplateResolver(context).resolve(text)


def expand_environment(text: str, env: Mapping[str, str]) -> str:
    """Expand ``$NAME`` and ``${NAME}`` references against *env*.

    Unknown variables are left untouched.
    """

    def replacement(match: re.Match[str]) -> str:
        name = match.group(1) or match.group(2)
        if name in env:
            return env[name]
        return match.group(0)

    return _ENV_PATTERN.sub(replacement, text)


__all__ = [
    "TemplateError",
    "TemplateResolver",
    "expand_all",
    "expand_environment",
    "extract_placeholders",
]
