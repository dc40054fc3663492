"""Command line interface for antexec."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Dict, Iterable
import sys

from .build import AntExecBuilder
from .command_runner import RecordingCommandRunner, SubprocessCommandRunner
from .config_loader import JobFile, load_installations, load_job_file
from .console import Console
from .descriptor import check_extended_script_source, check_script_source, make_build_file_xml
from .environment import BuildContext
from .installations import InstallationRegistry


def _parse_definitions(values: Iterable[str]) -> Dict[str, str]:
    definitions: Dict[str, str] = {}
    for raw in values:
        key, separator, value = raw.partition("=")
        key = key.strip()
        if not separator or not key:
            raise ValueError(f"Build variable '{raw}' must be given as KEY=VALUE")
        definitions[key] = value
    return definitions


_PLACEHOLDER_HELP = (
    "Script sources are expanded before ant runs: {{vars.NAME}} is a build variable, "
    "{{env.NAME}} an environment variable and {{build.workspace}}, {{build.node}}, "
    "{{build.script_name}} describe the build. ${NAME} and $NAME are not expanded "
    "here; ant resolves ${NAME} from the generated property file, which holds every "
    "build variable, and ${env.NAME} from the environment."
)


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="antexec", description="Run Apache Ant script fragments as a build step")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run", help="Generate the build file and run ant", epilog=_PLACEHOLDER_HELP
    )
    run_parser.add_argument("config", type=Path, help="Job configuration file (.toml, .json, .yaml)")
    run_parser.add_argument("--workspace", type=Path, help="Workspace directory (defaults to the current directory)")
    run_parser.add_argument("--installations", type=Path, help="Additional file with [installations.<name>] tables")
    run_parser.add_argument("--node", default="built-in", help="Name of the node the build runs on")
    run_parser.add_argument(
        "-D",
        dest="definitions",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Build variable passed to the environment and the property file",
    )
    run_parser.add_argument("--bundled-library", type=Path, help="ant-contrib jar copied into the antlib directory")
    run_parser.add_argument("--log-level", choices=sorted(Console.LEVELS), help="Override the configured log level")
    run_parser.add_argument("--dry-run", action="store_true", help="Print the ant command without executing it")

    render_parser = subparsers.add_parser(
        "render", help="Print the generated build file", epilog=_PLACEHOLDER_HELP
    )
    render_parser.add_argument("config", type=Path, help="Job configuration file")
    render_parser.add_argument("--workspace", type=Path, help="Workspace used for placeholder expansion")
    render_parser.add_argument("--output", type=Path, help="Write the build file here instead of stdout")

    validate_parser = subparsers.add_parser("validate", help="Check that a script fragment is well-formed")
    validate_parser.add_argument("file", type=Path, help="File containing the script fragment")
    validate_parser.add_argument("--extended", action="store_true", help="Check as extended script source")

    return parser.parse_args(list(argv))


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)

    try:
        if args.command == "run":
            return _handle_run(args)
        if args.command == "render":
            return _handle_render(args)
        if args.command == "validate":
            return _handle_validate(args)
    except (FileNotFoundError, ValueError, TypeError) as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 2
    raise ValueError(f"Unknown command: {args.command}")


def _bundled_library(args: Namespace, job_file: JobFile) -> Path | None:
    if args.bundled_library is not None:
        return args.bundled_library
    configured = job_file.global_config.bundled_library
    if configured:
        path = Path(configured).expanduser()
        return path if path.is_absolute() else (job_file.path.parent / path).resolve()
    return None


def _handle_run(args: Namespace) -> int:
    job_file = load_job_file(args.config)
    registry: InstallationRegistry = job_file.installations
    if args.installations is not None:
        registry = registry.merge(load_installations(args.installations))

    console = Console(
        args.log_level or job_file.global_config.log_level,
        dry_run=args.dry_run,
        highlight=job_file.global_config.highlight and sys.stdout.isatty(),
    )
    runner: SubprocessCommandRunner | RecordingCommandRunner
    if args.dry_run:
        runner = RecordingCommandRunner()
    else:
        runner = SubprocessCommandRunner()

    variables = dict(job_file.variables)
    variables.update(_parse_definitions(args.definitions))
    workspace = (args.workspace or Path.cwd()).resolve()
    workspace.mkdir(parents=True, exist_ok=True)
    context = BuildContext.local(workspace, build_variables=variables, node_name=args.node)

    builder = AntExecBuilder(
        job_file.job,
        installations=registry,
        command_runner=runner,
        console=console,
        bundled_library=_bundled_library(args, job_file),
        dry_run=args.dry_run,
    )
    result = builder.perform(context)

    if args.dry_run and isinstance(runner, RecordingCommandRunner):
        for line in runner.iter_formatted(workspace=workspace):
            print(line)
        return 0 if result.error is None else 1
    if result.success:
        console.info("Ant build finished successfully")
    else:
        console.error(result.error or f"Ant build failed with exit code {result.returncode}")
    return 0 if result.success else 1


def _handle_render(args: Namespace) -> int:
    job_file = load_job_file(args.config)
    job = job_file.job
    workspace = (args.workspace or Path.cwd()).resolve()
    context = BuildContext.local(workspace, build_variables=job_file.variables)
    builder = AntExecBuilder(
        job,
        installations=job_file.installations,
        command_runner=RecordingCommandRunner(),
        console=Console("error"),
    )
    scripts = builder.resolve_scripts(context.template_context(job.build_file_name))
    content = make_build_file_xml(
        scripts.script_source, scripts.extended_script_source, job.build_file_name
    )
    if args.output is not None:
        args.output.write_text(content, encoding="utf-8")
    else:
        sys.stdout.write(content)
    return 0


def _handle_validate(args: Namespace) -> int:
    text = args.file.read_text(encoding="utf-8")
    check = check_extended_script_source if args.extended else check_script_source
    validation = check(text)
    if validation.is_ok:
        print("Validation successful")
        return 0
    print(validation.message, file=sys.stderr)
    return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
