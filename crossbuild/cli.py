"""Command line interface for the crossbuild tool."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Iterable, List, TextIO
import logging
import os
import sys

from core.command_runner import RecordingCommandRunner, SubprocessCommandRunner

from .build import BuildEngine, BuildOptions, BuildPlan
from .config_loader import ConfigurationStore, GlobalConfig
from .errors import ConfigurationError, CrossbuildError
from .validation import validate_project, validate_store_structure
from .wiring import wire_merge_tasks

log = logging.getLogger(__name__)

CONFIG_DIR_ENVIRONMENT = "CROSSBUILD_CONFIG_DIR"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _make_runner(dry_run: bool) -> SubprocessCommandRunner | RecordingCommandRunner:
    return RecordingCommandRunner() if dry_run else SubprocessCommandRunner()


def _split_config_values(values: Iterable[str]) -> List[str]:
    parts: List[str] = []
    separator = os.pathsep
    for value in values:
        if not value:
            continue
        text = value.strip()
        if not text:
            continue
        segments = text.split(separator) if separator in text else [text]
        for segment in segments:
            trimmed = segment.strip()
            if trimmed:
                parts.append(trimmed)
    return parts


def _resolve_config_directories(workspace: Path, cli_values: Iterable[str]) -> List[Path]:
    config_dirs: List[Path] = [workspace / "config"]

    env_value = os.environ.get(CONFIG_DIR_ENVIRONMENT)
    if env_value:
        for entry in _split_config_values([env_value]):
            path = Path(entry)
            if not path.is_absolute():
                path = workspace / path
            config_dirs.append(path)

    for entry in _split_config_values(cli_values):
        path = Path(entry)
        if not path.is_absolute():
            path = workspace / path
        config_dirs.append(path)

    ordered: List[Path] = []
    for path in config_dirs:
        if path in ordered:
            ordered.remove(path)
        ordered.append(path)
    return ordered


def _load_configuration_store(args: Namespace, workspace: Path) -> ConfigurationStore:
    cli_dirs: Iterable[str] = getattr(args, "config_dirs", [])
    directories = _resolve_config_directories(workspace, cli_dirs)
    store = ConfigurationStore.from_directories(workspace, directories)
    configure_logging(store.global_config, verbose=getattr(args, "verbose", False), workspace=workspace)
    return store


def configure_logging(config: GlobalConfig, *, verbose: bool = False, workspace: Path | None = None) -> None:
    level = logging.DEBUG if verbose else logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        raise ConfigurationError(f"Unknown log level '{config.log_level}'")

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        log_path = Path(config.log_file).expanduser()
        if not log_path.is_absolute() and workspace is not None:
            log_path = workspace / log_path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    log.debug("Logging at %s", logging.getLevelName(level))


def _emit_dry_run_output(runner: RecordingCommandRunner, *, show_env: bool = False) -> None:
    for line in runner.iter_formatted(show_env=show_env):
        print(line)


def _collect_values(values: List[str]) -> List[str]:
    collected: List[str] = []
    for value in values:
        if not value:
            continue
        collected.extend(part.strip() for part in value.split(",") if part.strip())
    return collected


def _print_table(headers: List[str], rows: List[dict[str, str]]) -> None:
    widths = {header: len(header) for header in headers}
    for row in rows:
        for header in headers:
            widths[header] = max(widths[header], len(row.get(header, "")))

    def _format(row: dict[str, str]) -> str:
        return "  ".join(row.get(header, "").ljust(widths[header]) for header in headers).rstrip()

    print(_format({header: header for header in headers}))
    print("  ".join("-" * widths[header] for header in headers))
    for row in rows:
        print(_format(row))


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="crossbuild", description="Go cross-compilation matrix for Android ABIs")
    parser.add_argument(
        "-C",
        "--config-dir",
        dest="config_dirs",
        action="append",
        default=[],
        metavar="PATH",
        help="Additional configuration directory (repeat or separate with PATH separator)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_plan_arguments(sub: ArgumentParser) -> None:
        sub.add_argument("project", help="Project name")
        sub.add_argument(
            "--variant",
            dest="variants",
            action="append",
            default=[],
            help="Restrict to the given variant(s) (comma-separated)",
        )
        sub.add_argument("--ndk-dir", help="NDK toolchain root; overrides project.ndk_path")

    plan_parser = subparsers.add_parser("plan", help="Show the compile units of a project")
    add_plan_arguments(plan_parser)

    build_parser = subparsers.add_parser("build", help="Compile and merge every unit of a project")
    add_plan_arguments(build_parser)
    build_parser.add_argument("-j", "--jobs", type=int, help="Number of compiler processes to run at once")
    build_parser.add_argument("-n", "--dry-run", action="store_true", help="Print commands without executing them")
    build_parser.add_argument("--show-env", action="store_true", help="Include environment overrides in dry-run output")

    wire_parser = subparsers.add_parser("wire", help="Match host task names to compile units")
    add_plan_arguments(wire_parser)
    wire_parser.add_argument("--tasks-file", help="File with one task name per line (default: stdin)")

    validate_parser = subparsers.add_parser("validate", help="Validate configuration files")
    validate_parser.add_argument("project", nargs="?", help="Validate a single project by name")

    subparsers.add_parser("list", help="List configured projects")

    return parser.parse_args(list(argv))


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    workspace = Path.cwd()

    handlers = {
        "plan": _handle_plan,
        "build": _handle_build,
        "wire": _handle_wire,
        "validate": _handle_validate,
        "list": _handle_list,
    }
    handler = handlers.get(args.command)
    if handler is None:
        raise ValueError(f"Unknown command: {args.command}")
    try:
        return handler(args, workspace)
    except (CrossbuildError, OSError, TypeError, ValueError) as exc:
        print(f"Error: {exc}")
        return 2
    except KeyError as exc:
        print(f"Error: {exc.args[0] if exc.args else exc}")
        return 2


def _options_from_args(args: Namespace, *, dry_run: bool = False) -> BuildOptions:
    return BuildOptions(
        project_name=args.project,
        variants=_collect_values(args.variants),
        jobs=getattr(args, "jobs", None),
        dry_run=dry_run,
        ndk_dir=args.ndk_dir,
    )


def _planning_engine(store: ConfigurationStore, workspace: Path) -> BuildEngine:
    return BuildEngine(store=store, command_runner=RecordingCommandRunner(), workspace=workspace)


def _handle_plan(args: Namespace, workspace: Path) -> int:
    store = _load_configuration_store(args, workspace)
    plan = _planning_engine(store, workspace).plan(_options_from_args(args, dry_run=True))
    _print_plan(plan)
    return 0


def _print_plan(plan: BuildPlan) -> None:
    rows: List[dict[str, str]] = []
    for unit in plan.units:
        rows.append(
            {
                "Task": unit.task_identifier,
                "Variant": unit.variant.name,
                "ABI": unit.abi_tag,
                "Output": str(unit.output_file),
                "Compiler": str(unit.toolchain_executable or ""),
            }
        )
    if not rows:
        print(f"No compile units for project '{plan.project.name}'")
        return
    _print_table(["Task", "Variant", "ABI", "Output", "Compiler"], rows)


def _handle_build(args: Namespace, workspace: Path) -> int:
    store = _load_configuration_store(args, workspace)
    if args.jobs is not None and args.jobs < 1:
        raise ConfigurationError("--jobs must be a positive integer")

    runner = _make_runner(args.dry_run)
    engine = BuildEngine(store=store, command_runner=runner, workspace=workspace)
    plan = engine.plan(_options_from_args(args, dry_run=args.dry_run))
    report = engine.execute(plan, jobs=args.jobs)

    if args.dry_run and isinstance(runner, RecordingCommandRunner):
        _emit_dry_run_output(runner, show_env=args.show_env)
        for job in plan.merge_jobs:
            print(f"[dry-run] {job.task_identifier} -> {job.destination_root}")
        return 0

    for outcome in report.outcomes:
        status = "ok" if outcome.success else "FAILED"
        print(f"{outcome.variant.name}: {status}")
        for path in outcome.merged:
            print(f"  {path}")
    if not report.success:
        print("Build failed:")
        for failure in report.failures:
            print(f"  {failure}")
        return 1
    return 0


def _read_task_names(tasks_file: str | None, stdin: TextIO) -> List[str]:
    if tasks_file:
        text = Path(tasks_file).read_text(encoding="utf-8")
    else:
        text = stdin.read()
    return [line.strip() for line in text.splitlines() if line.strip()]


def _handle_wire(args: Namespace, workspace: Path) -> int:
    store = _load_configuration_store(args, workspace)
    engine = _planning_engine(store, workspace)
    plan = engine.plan(_options_from_args(args, dry_run=True))
    task_names = _read_task_names(args.tasks_file, sys.stdin)

    edges = engine.wirer(plan).wire(task_names)
    for edge in edges:
        print(f"{edge.task_name} -> {edge.unit_identifier}")
    for dependency in wire_merge_tasks(task_names, plan.merge_jobs):
        print(f"{dependency.task_name} -> {dependency.job.task_identifier}")
    return 0


def _handle_validate(args: Namespace, workspace: Path) -> int:
    store = _load_configuration_store(args, workspace)
    if args.project:
        project_names = [store.get_project(args.project).name]
    else:
        project_names = sorted(store.list_projects())

    errors: List[tuple[str, str]] = []
    for message in validate_store_structure(store):
        errors.append(("config", message))
    for project_name in project_names:
        try:
            validate_project(store, project_name)
        except ConfigurationError as exc:
            errors.append((project_name, str(exc)))

    if errors:
        print("Validation failed:")
        for project_name, message in errors:
            print(f"  [{project_name}] {message}")
        return 1

    print("Validation successful")
    return 0


def _handle_list(args: Namespace, workspace: Path) -> int:
    store = _load_configuration_store(args, workspace)
    names = sorted(store.list_projects())
    if not names:
        print("No projects found")
        return 0

    rows: List[dict[str, str]] = []
    for name in names:
        project = store.get_project(name)
        rows.append(
            {
                "Project": project.name,
                "Path": str(project.resolve_project_dir(workspace)),
                "Build Types": ", ".join(project.build_types),
                "Architectures": ", ".join(project.architectures or store.architectures.available()),
            }
        )
    _print_table(["Project", "Path", "Build Types", "Architectures"], rows)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
