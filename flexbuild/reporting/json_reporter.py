"""JSON summary of a test run.

Generates a structured summary from the coordinator's RunResult and the
flow-style ``{success, command, data, message}`` output used by the CLI.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


class JsonReporter:
    """Generates JSON summaries from test run results."""

    def generate(
        self,
        project_name: str,
        run_result,
        duration_ms: int = 0,
        error: Optional[str] = None,
    ) -> dict[str, Any]:
        """Generate a summary from a run result.

        Args:
            project_name: ``group:artifact:version`` of the project.
            run_result: RunResult from the coordinator (None = nothing ran).
            duration_ms: Wall-clock duration of the run in milliseconds.
            error: Overall error message if the run failed.

        Returns:
            Summary dictionary ready for JSON serialization.
        """
        if run_result is None:
            totals = None
            binaries = []
            passed = error is None
        else:
            totals = run_result.totals
            binaries = run_result.binaries
            passed = run_result.success and error is None

        report = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "project": project_name,
            "status": "passed" if passed else "failed",
            "summary": {
                "tests_run": totals.tests_run if totals else 0,
                "failures": totals.failures if totals else 0,
                "errors": totals.errors if totals else 0,
                "time_elapsed": round(totals.elapsed_seconds, 3) if totals else 0.0,
                "binaries": len(binaries),
                "execution_errors": len(run_result.execution_errors) if run_result else 0,
                "duration_ms": duration_ms,
            },
            "binaries": [b.to_dict() for b in binaries],
            "failed_suites": totals.failed_suites if totals else [],
            "reports": [str(p) for p in run_result.reports_written] if run_result else [],
            "coverage_report": (
                str(run_result.coverage_report) if run_result and run_result.coverage_report else None
            ),
            "error": error,
        }

        return report

    def save(self, report: dict[str, Any], path: Path) -> Path:
        """Save a summary to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(report, f, indent=2, ensure_ascii=False)

        return path

    def to_json_string(self, report: dict[str, Any], pretty: bool = True) -> str:
        if pretty:
            return json.dumps(report, indent=2, ensure_ascii=False)
        return json.dumps(report, ensure_ascii=False)

    def generate_flow_output(
        self,
        report: dict[str, Any],
        report_path: Optional[str] = None,
    ) -> dict[str, Any]:
        """Generate the CLI's JSON output.

        Follows the flow JSON output standard:
        {
            "success": bool,
            "command": "test-run",
            "data": { ... },
            "message": str
        }
        """
        summary = report["summary"]
        passed = report["status"] == "passed"
        # Problems without an error were ignored by policy
        success = report.get("error") is None

        data: dict[str, Any] = {
            "project": report["project"],
            "tests_run": summary["tests_run"],
            "failures": summary["failures"],
            "errors": summary["errors"],
            "binaries": report["binaries"],
            "duration_ms": summary["duration_ms"],
        }

        if report.get("coverage_report"):
            data["coverage_report"] = report["coverage_report"]
        if report_path:
            data["report_path"] = report_path

        if report.get("error"):
            message = f"Test run failed: {report['error']}"
        elif not passed:
            message = (
                f"{summary['failures']} failures, {summary['errors']} errors in "
                f"{summary['tests_run']} tests (ignored)"
            )
        elif summary["binaries"] == 0:
            message = "No tests to run"
        else:
            message = f"All {summary['tests_run']} tests passed"

        return {
            "success": success,
            "command": "test-run",
            "data": data,
            "message": message,
        }
