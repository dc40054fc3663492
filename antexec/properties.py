"""Reading and writing Java-style ``.properties`` files.

The grammar follows ``java.util.Properties``: ``#``/``!`` comments, backslash
line continuations, ``=``/``:``/whitespace key terminators and the
``\\t \\n \\r \\f \\uXXXX`` escapes. Files written here are read back by Ant
through the ``<property file="..."/>`` declaration of the generated build
file.
"""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, Mapping
import re

from .errors import AbortError

PROPERTY_FILE_SUFFIX = ".properties"
PROPERTY_FILE_COMMENT = "Stored by AntExec"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_WHITESPACE = " \t\f"
_SEPARATORS = "=:"
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_STORE_ESCAPES = {"\\": "\\\\", "\t": "\\t", "\n": "\\n", "\r": "\\r", "\f": "\\f"}


def _logical_lines(text: str) -> Iterator[str]:
    pending: str | None = None
    for physical in _LINE_BREAK.split(text):
        line = physical.lstrip(_WHITESPACE)
        if pending is None:
            if not line or line[0] in "#!":
                continue
            pending = ""
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            pending += line[:-1]
            continue
        yield pending + line
        pending = None
    if pending:
        yield pending


def _split_entry(line: str) -> tuple[str, str]:
    escaped = False
    has_separator = False
    key_end = len(line)
    value_start = len(line)
    for index, char in enumerate(line):
        if not escaped and char in _SEPARATORS:
            key_end, value_start, has_separator = index, index + 1, True
            break
        if not escaped and char in _WHITESPACE:
            key_end, value_start = index, index + 1
            break
        escaped = char == "\\" and not escaped

    index = value_start
    while index < len(line):
        char = line[index]
        if char not in _WHITESPACE:
            if has_separator or char not in _SEPARATORS:
                break
            has_separator = True
        index += 1
    return _unescape(line[:key_end]), _unescape(line[index:])


def _unescape(text: str) -> str:
    if "\\" not in text:
        return text
    out: list[str] = []
    index = 0
    while index < len(text):
        char = text[index]
        index += 1
        if char != "\\":
            out.append(char)
            continue
        if index >= len(text):
            break
        char = text[index]
        index += 1
        if char == "u":
            digits = text[index : index + 4]
            if len(digits) != 4 or not all(d in "0123456789abcdefABCDEF" for d in digits):
                raise ValueError("Malformed \\uxxxx encoding.")
            out.append(chr(int(digits, 16)))
            index += 4
        else:
            out.append(_ESCAPES.get(char, char))
    # \uXXXX pairs may describe a surrogate pair
    return "".join(out).encode("utf-16", "surrogatepass").decode("utf-16", "surrogatepass")


def _escape(text: str, *, is_key: bool) -> str:
    out: list[str] = []
    for index, char in enumerate(text):
        if char in _STORE_ESCAPES:
            out.append(_STORE_ESCAPES[char])
        elif char == " ":
            out.append("\\ " if index == 0 or is_key else " ")
        elif char in "=:#!":
            out.append("\\" + char)
        elif ord(char) < 0x20 or ord(char) > 0x7E:
            encoded = char.encode("utf-16-be")
            for offset in range(0, len(encoded), 2):
                out.append("\\u%04X" % int.from_bytes(encoded[offset : offset + 2], "big"))
        else:
            out.append(char)
    return "".join(out)


def load_properties(text: str) -> Dict[str, str]:
    """Parse ``key=value`` lines from *text*; later keys win."""

    properties: Dict[str, str] = {}
    for line in _logical_lines(text):
        key, value = _split_entry(line)
        properties[key] = value
    return properties


def store_properties(
    properties: Mapping[str, str],
    comment: str | None = None,
    *,
    timestamp: datetime | None = None,
) -> str:
    """Serialize *properties* in ``.properties`` format with header comments."""

    lines: list[str] = []
    if comment:
        for comment_line in _LINE_BREAK.split(comment):
            lines.append(f"#{comment_line}")
    stamp = (timestamp or datetime.now().astimezone()).strftime("%a %b %d %H:%M:%S %Z %Y")
    lines.append(f"#{stamp.strip()}")
    for key, value in properties.items():
        lines.append(f"{_escape(str(key), is_key=True)}={_escape(str(value), is_key=False)}")
    return "\n".join(lines) + "\n"


def merge_properties(ambient: Mapping[str, str], user_text: str | None) -> Dict[str, str]:
    """Seed with *ambient* variables and overlay the entries parsed from *user_text*."""

    merged: Dict[str, str] = {str(key): str(value) for key, value in ambient.items()}
    if user_text:
        merged.update(load_properties(user_text))
    return merged


def needs_property_file(user_text: str | None, build_variables: Mapping[str, str]) -> bool:
    return bool(user_text) or bool(build_variables)


def property_file_path(workspace: Path, build_file_name: str) -> Path:
    return workspace / f"{build_file_name}{PROPERTY_FILE_SUFFIX}"


def write_property_file(
    workspace: Path | None,
    build_file_name: str,
    properties: Mapping[str, str],
) -> Path:
    """Write ``<build_file_name>.properties`` into *workspace* and return its path."""

    if workspace is None:
        raise AbortError("Cannot get Workspace for node, since it is not online")
    path = property_file_path(workspace, build_file_name)
    path.write_text(store_properties(properties, PROPERTY_FILE_COMMENT), encoding="utf-8")
    return path


__all__ = [
    "PROPERTY_FILE_COMMENT",
    "PROPERTY_FILE_SUFFIX",
    "load_properties",
    "merge_properties",
    "needs_property_file",
    "property_file_path",
    "store_properties",
    "write_property_file",
]
