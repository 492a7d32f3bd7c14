"""CLI entry point for flexbuild.

Subcommands:
    flexbuild classify [flexbuild.yaml]     # Compute compiler library inputs
    flexbuild test-run [flexbuild.yaml]     # Run compiled test binaries

Every command prints a single JSON document on stdout:
    {"success": bool, "command": str, "data": {...}, "message": str}
"""

import json
import sys
import time
from pathlib import Path
from typing import Optional

import click

from . import __version__
from .errors import FlexBuildError, TestRunFailure
from .logging_config import setup_logging
from .project import DEFAULT_DESCRIPTOR, BuildProject, parse_project, validate_project
from .project.schema import VALID_COVERAGE_FORMATS, VALID_COVERAGE_PROVIDERS, VALID_MODES

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


@click.group()
@click.version_option(__version__, prog_name="flexbuild")
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging on stderr")
@click.option("--log-format", type=click.Choice(["console", "json"]), default=None, help="Log renderer")
def main(verbose: bool, log_format: Optional[str]) -> None:
    """flexbuild: dependency classification and test runs for Flex projects."""
    setup_logging(level="DEBUG" if verbose else None, log_format=log_format)


@main.command("classify")
@click.argument("descriptor", default=DEFAULT_DESCRIPTOR, type=click.Path(dir_okay=False))
@click.option("--mode", type=click.Choice(sorted(VALID_MODES)), default=None, help="Override the build mode")
@click.option("--locale", default=None, help="Override the build locale")
@click.option("--pretty", is_flag=True, help="Pretty print output")
def classify_command(descriptor: str, mode: Optional[str], locale: Optional[str], pretty: bool) -> None:
    """Classify dependencies into external, merged and included libraries."""
    from .planner import plan_compilation

    project = _load_project(descriptor, "classify", pretty)
    if mode:
        project.project.mode = mode
    if locale:
        project.project.locale = locale

    try:
        plan = plan_compilation(project)
    except KeyboardInterrupt:
        _output_error("classify", "Interrupted by user", pretty)
        sys.exit(EXIT_INTERRUPTED)
    except FlexBuildError as e:
        _output_error("classify", str(e), pretty, error_type=type(e).__name__)
        sys.exit(EXIT_FAILURE)

    if plan is None:
        _output(
            {
                "success": True,
                "command": "classify",
                "data": None,
                "message": "Nothing to compile",
            },
            pretty,
        )
        return

    _output(
        {
            "success": True,
            "command": "classify",
            "data": {
                "mode": plan.mode.value,
                "global_artifact": str(plan.global_artifact.coordinates),
                "options": plan.to_compiler_options(),
                "dropped": [str(d.coordinates) for d in plan.libraries.dropped],
            },
            "message": (
                f"{len(plan.libraries.external_libraries)} external, "
                f"{len(plan.libraries.library_path)} merged, "
                f"{len(plan.libraries.include_libraries)} included"
            ),
        },
        pretty,
    )


@main.command("test-run")
@click.argument("descriptor", default=DEFAULT_DESCRIPTOR, type=click.Path(dir_okay=False))
@click.option("--directory", type=click.Path(file_okay=False), default=None, help="Directory of test binaries")
@click.option("--timeout", type=float, default=None, help="Seconds allowed between reports")
@click.option("--first-connection-timeout", type=float, default=None, help="Seconds allowed for the first connection")
@click.option("--port", type=int, default=None, help="Result port")
@click.option("--control-port", type=int, default=None, help="Control port")
@click.option("--player", default=None, help="Standalone player command")
@click.option("--adl", default=None, help="AIR debug launcher command")
@click.option("--ignore-failures/--no-ignore-failures", default=None, help="Don't fail the build on test failures")
@click.option("--skip", is_flag=True, help="Skip the test run")
@click.option("--coverage/--no-coverage", default=None, help="Collect coverage")
@click.option("--coverage-provider", type=click.Choice(sorted(VALID_COVERAGE_PROVIDERS)), default=None)
@click.option(
    "--coverage-format",
    "coverage_formats",
    type=click.Choice(sorted(VALID_COVERAGE_FORMATS)),
    multiple=True,
    help="Coverage report format (repeatable)",
)
@click.option("--save-report", is_flag=True, help="Save the run summary as JSON")
@click.option("--pretty", is_flag=True, help="Pretty print output")
def test_run_command(
    descriptor: str,
    directory: Optional[str],
    timeout: Optional[float],
    first_connection_timeout: Optional[float],
    port: Optional[int],
    control_port: Optional[int],
    player: Optional[str],
    adl: Optional[str],
    ignore_failures: Optional[bool],
    skip: bool,
    coverage: Optional[bool],
    coverage_provider: Optional[str],
    coverage_formats: tuple[str, ...],
    save_report: bool,
    pretty: bool,
) -> None:
    """Run every compiled test binary and collect the reports."""
    from .reporting.json_reporter import JsonReporter
    from .runner.coordinator import run_project_tests

    project = _load_project(descriptor, "test-run", pretty)

    test = project.test
    if directory:
        test.directory = Path(directory)
    if timeout is not None:
        test.timeout = timeout
    if first_connection_timeout is not None:
        test.first_connection_timeout = first_connection_timeout
    if port is not None:
        test.port = port
    if control_port is not None:
        test.control_port = control_port
    if player:
        test.player_command = player
    if adl:
        test.adl_command = adl
    if ignore_failures is not None:
        test.ignore_failures = ignore_failures
    if skip:
        test.skip = True
    if coverage is not None:
        project.coverage.enabled = coverage
    if coverage_provider:
        project.coverage.provider = coverage_provider
    if coverage_formats:
        project.coverage.formats = list(coverage_formats)

    reporter = JsonReporter()
    start_time = time.time()
    result = None
    error = None

    try:
        result = run_project_tests(project)
    except KeyboardInterrupt:
        duration_ms = int((time.time() - start_time) * 1000)
        _output_error("test-run", "Test run interrupted by user", pretty, duration_ms=duration_ms)
        sys.exit(EXIT_INTERRUPTED)
    except TestRunFailure as e:
        result = e.result
        error = str(e)
    except FlexBuildError as e:
        duration_ms = int((time.time() - start_time) * 1000)
        _output_error("test-run", str(e), pretty, error_type=type(e).__name__, duration_ms=duration_ms)
        sys.exit(EXIT_FAILURE)

    duration_ms = int((time.time() - start_time) * 1000)
    report = reporter.generate(_project_name(project), result, duration_ms=duration_ms, error=error)

    report_path = None
    if save_report:
        saved = reporter.save(report, project.report_dir / "flexbuild-summary.json")
        report_path = str(saved)

    flow_output = reporter.generate_flow_output(report, report_path)
    _output(flow_output, pretty)

    if not flow_output["success"]:
        sys.exit(EXIT_FAILURE)


def _load_project(descriptor: str, command: str, pretty: bool) -> BuildProject:
    """Parse and validate the descriptor; exits with a JSON error on failure."""
    descriptor_file = Path(descriptor)
    if not descriptor_file.exists():
        _output_error(command, f"Build descriptor not found: {descriptor}", pretty)
        sys.exit(EXIT_FAILURE)

    try:
        project = parse_project(descriptor_file)
    except (ValueError, OSError) as e:
        _output_error(command, f"Failed to parse build descriptor: {e}", pretty)
        sys.exit(EXIT_FAILURE)

    validation = validate_project(project)
    if not validation.valid:
        errors_str = "; ".join(f"{e.path}: {e.message}" for e in validation.errors)
        _output_error(command, f"Invalid build descriptor: {errors_str}", pretty)
        sys.exit(EXIT_FAILURE)

    return project


def _project_name(project: BuildProject) -> str:
    info = project.project
    return f"{info.group_id}:{info.artifact_id}:{info.version}"


def _output(output: dict, pretty: bool) -> None:
    click.echo(json.dumps(output, indent=2 if pretty else None, ensure_ascii=False))


def _output_error(command: str, message: str, pretty: bool = False, **extra) -> None:
    """Output an error in flow JSON format."""
    _output(
        {
            "success": False,
            "command": command,
            "data": extra or None,
            "message": message,
        },
        pretty,
    )


if __name__ == "__main__":
    main()
