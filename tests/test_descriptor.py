from __future__ import annotations

from pathlib import Path
import tempfile
import unittest
import xml.sax
from xml.sax.handler import ContentHandler

from antexec.descriptor import (
    check_extended_script_source,
    check_script_source,
    make_build_file_xml,
    write_build_file,
)
from antexec.errors import AbortError

_EXTENDED_BEGIN = "<!-- Extended script source entered in the second textarea - begin -->"
_EXTENDED_END = "<!-- Extended script source entered in the second textarea -  end  -->"


class _TargetCollector(ContentHandler):
    def __init__(self) -> None:
        super().__init__()
        self.depth = 0
        self.targets: list[tuple[str, int]] = []
        self.root_attrs: dict[str, str] = {}
        self.echo_parents: list[str] = []
        self._current_target: str | None = None

    def startElement(self, name, attrs):  # noqa: N802 - SAX API
        self.depth += 1
        if self.depth == 1:
            self.root_attrs = dict(attrs)
        if name == "target":
            self.targets.append((attrs.get("name"), self.depth))
            self._current_target = attrs.get("name")
        if name == "echo":
            self.echo_parents.append(self._current_target or "")

    def endElement(self, name):  # noqa: N802 - SAX API
        if name == "target":
            self._current_target = None
        self.depth -= 1


def _parse(content: str) -> _TargetCollector:
    handler = _TargetCollector()
    xml.sax.parseString(content.encode("utf-8"), handler)
    return handler


class MakeBuildFileXmlTests(unittest.TestCase):
    def test_single_target_contains_primary_script(self) -> None:
        content = make_build_file_xml('<echo message="hi"/>', "", "x")
        handler = _parse(content)
        self.assertEqual(handler.targets, [("x", 2)])
        self.assertEqual(handler.echo_parents, ["x"])
        self.assertEqual(handler.root_attrs["default"], "x")
        self.assertIn('<echo message="hi"/>', content)

    def test_header_and_fixed_declarations(self) -> None:
        content = make_build_file_xml("", "", "build.xml")
        self.assertTrue(content.startswith('<?xml version="1.0" encoding="utf-8"?>\n'))
        self.assertIn('<property file="build.xml.properties"/>', content)
        self.assertIn('<property environment="env"/>', content)
        self.assertIn('xmlns:antcontrib="antlib:net.sf.antcontrib"', content)
        self.assertTrue(content.endswith("</project>\n"))

    def test_extended_script_is_top_level_and_marked_once(self) -> None:
        extended = '<target name="other"><echo message="other"/></target>'
        content = make_build_file_xml('<echo message="main"/>', extended, "main")
        self.assertEqual(content.count(extended), 1)
        self.assertEqual(content.count(_EXTENDED_BEGIN), 1)
        self.assertEqual(content.count(_EXTENDED_END), 1)
        self.assertGreater(content.index(extended), content.index("</target>"))
        handler = _parse(content)
        self.assertEqual(handler.targets, [("main", 2), ("other", 2)])

    def test_empty_extended_script_has_no_markers(self) -> None:
        content = make_build_file_xml('<echo message="main"/>', "", "main")
        self.assertNotIn(_EXTENDED_BEGIN, content)
        self.assertNotIn(_EXTENDED_END, content)

    def test_output_is_deterministic(self) -> None:
        first = make_build_file_xml("<echo/>", "<target name='b'/>", "a")
        second = make_build_file_xml("<echo/>", "<target name='b'/>", "a")
        self.assertEqual(first, second)

    def test_fragments_are_not_escaped(self) -> None:
        content = make_build_file_xml("<echo>a &amp; b</echo>", "", "x")
        self.assertIn("<echo>a &amp; b</echo>", content)
        broken = make_build_file_xml("<echo>", "", "x")
        self.assertIn("<echo>\n", broken)


class WriteBuildFileTests(unittest.TestCase):
    def test_writes_utf8_file_in_workspace(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            workspace = Path(temp_dir)
            path = write_build_file(workspace, "antexec_build.xml", '<echo message="ü"/>', "")
            self.assertEqual(path, workspace / "antexec_build.xml")
            self.assertIn('<echo message="ü"/>', path.read_text(encoding="utf-8"))

    def test_offline_workspace_aborts(self) -> None:
        with self.assertRaises(AbortError):
            write_build_file(None, "antexec_build.xml", "", "")


class ValidationTests(unittest.TestCase):
    def test_well_formed_script_passes(self) -> None:
        self.assertTrue(check_script_source('<echo message="ok"/>').is_ok)
        self.assertTrue(check_extended_script_source("<echo>${env.HOME}</echo>").is_ok)

    def test_malformed_script_reports_parser_message(self) -> None:
        validation = check_script_source("<echo>")
        self.assertFalse(validation.is_ok)
        self.assertTrue(validation.message.startswith("ERROR: line "))
        self.assertIn("mismatched tag", validation.message)

    def test_undeclared_prefix_is_accepted(self) -> None:
        validation = check_script_source("<ac:if><equals arg1='a' arg2='a'/></ac:if>")
        self.assertTrue(validation.is_ok)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
