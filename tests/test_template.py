from __future__ import annotations

import unittest

from antexec.template import (
    TemplateError,
    TemplateResolver,
    expand_all,
    expand_environment,
    extract_placeholders,
)


class TemplateResolverTests(unittest.TestCase):
    def setUp(self) -> None:
        self.context = {
            "env": {"HOME": "/home/ci", "JAVA_HOME": "/opt/jdk"},
            "vars": {"VERSION": "1.2.3"},
            "build": {"workspace": "/ws", "node": "built-in", "script_name": "antexec_build.xml"},
        }
        self.resolver = TemplateResolver(self.context)

    def test_resolve_placeholder(self) -> None:
        result = self.resolver.resolve('<echo message="{{vars.VERSION}} in {{build.workspace}}"/>')
        self.assertEqual(result, '<echo message="1.2.3 in /ws"/>')

    def test_ant_property_references_untouched(self) -> None:
        text = '<echo message="${env.HOME} ${basedir}"/>'
        self.assertEqual(self.resolver.resolve(text), text)

    def test_nested_variable_resolution(self) -> None:
        context = {
            "vars": {
                "dist": "{{vars.base}}/dist",
                "base": "{{env.HOME}}/out",
            },
            "env": {"HOME": "/home/ci"},
        }
        resolver = TemplateResolver(context)
        self.assertEqual(resolver.resolve("{{vars.dist}}"), "/home/ci/out/dist")

    def test_missing_path_raises(self) -> None:
        with self.assertRaises(TemplateError):
            self.resolver.resolve("{{vars.MISSING}}")

    def test_non_scalar_raises(self) -> None:
        with self.assertRaises(TemplateError):
            self.resolver.resolve("{{env}}")

    def test_cycle_detection(self) -> None:
        context = {
            "vars": {
                "alpha": "{{vars.beta}}",
                "beta": "{{vars.alpha}}",
            }
        }
        resolver = TemplateResolver(context)
        with self.assertRaises(TemplateError):
            resolver.resolve("{{vars.alpha}}")

    def test_extract_placeholders(self) -> None:
        self.assertEqual(
            extract_placeholders("{{ vars.A }} and {{env.B}} and {{vars.A}}"),
            {"vars.A", "env.B"},
        )

    def test_expand_all_empty_text(self) -> None:
        self.assertEqual(expand_all({}, ""), "")


class ExpandEnvironmentTests(unittest.TestCase):
    def test_expands_both_forms(self) -> None:
        env = {"HEAP": "512m", "JAVA_HOME": "/opt/jdk"}
        self.assertEqual(
            expand_environment("-Xmx$HEAP -Djava.home=${JAVA_HOME}", env),
            "-Xmx512m -Djava.home=/opt/jdk",
        )

    def test_unknown_variables_left_alone(self) -> None:
        self.assertEqual(expand_environment("$NOPE ${ALSO_NOPE}", {}), "$NOPE ${ALSO_NOPE}")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
