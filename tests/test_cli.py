from __future__ import annotations

from io import StringIO
from pathlib import Path
import tempfile
import textwrap
import unittest
from unittest.mock import patch

from antexec.cli import main


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.workspace = self.root / "workspace"
        self.config = self.root / "job.toml"
        self.config.write_text(
            textwrap.dedent(
                """
                [job]
                script_source = '<echo message="{{vars.VERSION}} on {{build.node}}"/>'
                extended_script_source = '<target name="extra"/>'
                properties = "FOO=2"
                no_antcontrib = true

                [variables]
                VERSION = "1.2.3"
                """
            ).strip()
        )

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _main(self, *argv: str) -> tuple[int, str, str]:
        with patch("sys.stdout", new=StringIO()) as out, patch("sys.stderr", new=StringIO()) as err:
            exit_code = main(list(argv))
        return exit_code, out.getvalue(), err.getvalue()

    def test_run_dry_run_prints_command(self) -> None:
        exit_code, output, _ = self._main(
            "run", str(self.config), "--workspace", str(self.workspace), "--node", "agent-1", "--dry-run"
        )

        self.assertEqual(exit_code, 0)
        self.assertIn("[dry-run] (cwd=", output)
        self.assertRegex(output, r"ant(\.bat)? -file antexec_build\.xml")
        self.assertFalse((self.workspace / "antexec_build.xml").exists())
        self.assertFalse((self.workspace / "antexec_build.xml.properties").exists())

    def test_run_dry_run_leaves_library_directory_alone(self) -> None:
        config = self.root / "contrib.json"
        config.write_text('{"job": {"script_source": "<echo/>"}}')
        jar = self.root / "ant-contrib.jar"
        jar.write_bytes(b"PK\x03\x04")
        exit_code, output, _ = self._main(
            "run", str(config), "--workspace", str(self.workspace), "--bundled-library", str(jar), "--dry-run"
        )

        self.assertEqual(exit_code, 0)
        self.assertIn("-lib antlib", output)
        self.assertIn("[DRY] Would copy", output)
        self.assertEqual(list(self.workspace.iterdir()), [])

    def test_run_without_installed_library_uses_core_tasks(self) -> None:
        config = self.root / "contrib.json"
        config.write_text('{"job": {"script_source": "<echo/>"}}')
        missing = self.root / "not-installed" / "ant-contrib.jar"
        with patch("antexec.command.DEFAULT_BUNDLED_LIBRARY", missing):
            exit_code, output, errors = self._main(
                "run", str(config), "--workspace", str(self.workspace), "--dry-run"
            )

        self.assertEqual(exit_code, 0, errors)
        self.assertIn("[WARN] No bundled ant-contrib.jar", output)
        self.assertNotIn("-lib", output)
        self.assertFalse((self.workspace / "antlib").exists())

    def test_run_help_describes_placeholders(self) -> None:
        with patch("sys.stdout", new=StringIO()) as out:
            with self.assertRaises(SystemExit) as ctx:
                main(["run", "--help"])
        self.assertEqual(ctx.exception.code, 0)
        self.assertIn("{{vars.NAME}}", out.getvalue())

    def test_run_rejects_malformed_definition(self) -> None:
        exit_code, _, errors = self._main("run", str(self.config), "-D", "NOVALUE", "--dry-run")
        self.assertEqual(exit_code, 2)
        self.assertIn("KEY=VALUE", errors)

    def test_run_missing_config(self) -> None:
        exit_code, _, errors = self._main("run", str(self.root / "missing.toml"))
        self.assertEqual(exit_code, 2)
        self.assertIn("[ERROR]", errors)

    def test_render_expands_placeholders(self) -> None:
        exit_code, output, _ = self._main("render", str(self.config), "--workspace", str(self.workspace))

        self.assertEqual(exit_code, 0)
        self.assertTrue(output.startswith('<?xml version="1.0" encoding="utf-8"?>'))
        self.assertIn('<echo message="1.2.3 on built-in"/>', output)
        self.assertIn('<target name="extra"/>', output)

    def test_render_to_file(self) -> None:
        target = self.root / "rendered.xml"
        exit_code, output, _ = self._main("render", str(self.config), "--output", str(target))

        self.assertEqual(exit_code, 0)
        self.assertEqual(output, "")
        self.assertIn('<property file="antexec_build.xml.properties"/>', target.read_text(encoding="utf-8"))

    def test_validate_well_formed_fragment(self) -> None:
        fragment = self.root / "script.xml"
        fragment.write_text('<echo message="ok"/>', encoding="utf-8")
        exit_code, output, _ = self._main("validate", str(fragment))
        self.assertEqual(exit_code, 0)
        self.assertEqual(output.strip(), "Validation successful")

    def test_validate_malformed_fragment(self) -> None:
        fragment = self.root / "script.xml"
        fragment.write_text("<echo>", encoding="utf-8")
        exit_code, _, errors = self._main("validate", str(fragment), "--extended")
        self.assertEqual(exit_code, 1)
        self.assertTrue(errors.startswith("ERROR: line "))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
