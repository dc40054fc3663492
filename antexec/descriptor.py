"""Generation and validation of the transient Ant build file."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from xml.sax import SAXParseException
from xml.sax.handler import ContentHandler
import xml.sax

from .errors import AbortError
from .properties import PROPERTY_FILE_SUFFIX

VALIDATION_SCRIPT_NAME = "test_script"


def make_build_file_xml(script_source: str, extended_script_source: str, script_name: str) -> str:
    """Embed the two script fragments in the fixed build file template.

    The fragments are inserted verbatim; they are expected to be valid markup
    already. ``extended_script_source`` is placed after the named target as
    top-level content and is omitted entirely when empty.
    """

    parts = [
        '<?xml version="1.0" encoding="utf-8"?>\n',
        f'<project default="{script_name}" xmlns:antcontrib="antlib:net.sf.antcontrib" basedir=".">\n\n',
        "<!-- Read additional properties -->\n",
        f'<property file="{script_name}{PROPERTY_FILE_SUFFIX}"/>\n\n',
        "<!-- Make environment variables accesible via ${env.VARIABLE} by default -->\n",
        '<property environment="env"/>\n\n',
        f'<target name="{script_name}">\n',
        "<!-- Default target entered in the first textarea - begin -->\n",
        script_source or "",
        "\n<!-- Default target entered in the first textarea -  end  -->\n",
        "</target>\n",
    ]
    if extended_script_source:
        parts.append("<!-- Extended script source entered in the second textarea - begin -->\n")
        parts.append(extended_script_source)
        parts.append("\n<!-- Extended script source entered in the second textarea -  end  -->\n")
    parts.append("</project>\n")
    return "".join(parts)


def write_build_file(
    workspace: Path | None,
    script_name: str,
    script_source: str,
    extended_script_source: str,
) -> Path:
    """Write the generated build file to ``workspace / script_name``."""

    if workspace is None:
        raise AbortError("Cannot get Workspace for node, since it is not online")
    build_file = workspace / script_name
    build_file.write_text(
        make_build_file_xml(script_source, extended_script_source, script_name),
        encoding="utf-8",
    )
    return build_file


@dataclass(frozen=True, slots=True)
class FormValidation:
    """Outcome of a well-formedness check."""

    kind: str
    message: str = ""

    @classmethod
    def ok(cls) -> "FormValidation":
        return cls("ok")

    @classmethod
    def error(cls, message: str) -> "FormValidation":
        return cls("error", message)

    @property
    def is_ok(self) -> bool:
        return self.kind == "ok"


def _check_well_formed(xml_content: str) -> FormValidation:
    try:
        xml.sax.parseString(xml_content.encode("utf-8"), ContentHandler())
    except SAXParseException as exc:
        return FormValidation.error(
            f"ERROR: line {exc.getLineNumber()}, column {exc.getColumnNumber()}: {exc.getMessage()}"
        )
    return FormValidation.ok()


def check_script_source(value: str) -> FormValidation:
    """Check that *value* forms a well-formed build file as the default target body."""
    return _check_well_formed(make_build_file_xml(value, "", VALIDATION_SCRIPT_NAME))


def check_extended_script_source(value: str) -> FormValidation:
    """Check extended script source; it is wrapped in the same position as the primary source."""
    return _check_well_formed(make_build_file_xml(value, "", VALIDATION_SCRIPT_NAME))


__all__ = [
    "FormValidation",
    "VALIDATION_SCRIPT_NAME",
    "check_extended_script_source",
    "check_script_source",
    "make_build_file_xml",
    "write_build_file",
]
