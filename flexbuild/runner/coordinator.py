"""Test run coordinator - drives every test binary through its lifecycle.

For each binary, in order:
1. Instrument it (when coverage is enabled)
2. Open the control/result channel
3. Dispatch it under its runtime
4. Wait for the first connection
5. Collect reports until the end-of-run handshake
6. Release the channel and the runtime

Per-binary problems (timeouts, crashes, launch failures) are recorded and
the scan moves on. Missing runtimes, malformed reports and coverage errors
stop the run.
"""

import time
from contextlib import closing
from pathlib import Path
from typing import Iterable, Optional

import structlog

from ..coverage import CommandInstrumenter, CoverageReporter, CoverageReporterManager, CoverageReportRequest
from ..discovery import TestScanner, TimeoutHandler
from ..errors import CoverageReportError, LaunchError, ReportParseError, TestRunFailure
from ..project.schema import BuildProject, TestRunConfig
from ..reporting.report import ReportWriter, parse_report
from .channel import (
    END_OF_TEST_RUN,
    END_OF_TEST_RUN_ACK,
    POLICY_DOCUMENT,
    POLICY_FILE_REQUEST,
    POLL_INTERVAL,
    ChannelEvent,
    EventKind,
    Source,
    TestChannel,
)
from .launcher import LaunchedProcess, RuntimeLauncher
from .request import RuntimeKind, TestRequest
from .result_collector import BinaryRun, BinaryState, RunResult, TestOutcome

log = structlog.get_logger("flexbuild.testrun")

# Reports still in flight when the control connection drops
DRAIN_QUIET_PERIOD = 1.0
DRAIN_LIMIT = 5.0


class TestRunCoordinator:
    """Runs test binaries sequentially and aggregates their reports."""

    __test__ = False

    def __init__(
        self,
        config: TestRunConfig,
        report_writer: ReportWriter,
        runtime_kind: RuntimeKind = RuntimeKind.PLAYER,
        launcher: Optional[RuntimeLauncher] = None,
        coverage: Optional[CoverageReporter] = None,
        coverage_request: Optional[CoverageReportRequest] = None,
    ):
        """Initialize the coordinator.

        Args:
            config: Ports, timeouts and runtime commands.
            report_writer: Destination of every received report.
            runtime_kind: Runtime the binaries are launched under.
            launcher: Runtime launcher (default: RuntimeLauncher()).
            coverage: Coverage reporter (None = coverage disabled).
            coverage_request: Where the coverage report is generated.
        """
        self.config = config
        self.report_writer = report_writer
        self.runtime_kind = RuntimeKind(runtime_kind)
        self.launcher = launcher or RuntimeLauncher()
        self.coverage = coverage
        self.coverage_request = coverage_request

    def run(self, binaries: Iterable[Path]) -> RunResult:
        """Run every binary and return what was observed.

        Raises:
            LaunchEnvironmentError: If the runtime executable is missing.
            ReportParseError: If a binary streams a malformed report.
            CoverageReportError: If instrumentation or the coverage report fails.
        """
        result = RunResult()
        unwinding = True
        try:
            for binary in binaries:
                run = BinaryRun(Path(binary))
                result.binaries.append(run)
                self._run_binary(run, result)
            unwinding = False
        finally:
            result.reports_written = list(self.report_writer.written)
            if self.coverage is not None and self.coverage_request is not None:
                try:
                    result.coverage_report = self.coverage.generate_report(self.coverage_request)
                except CoverageReportError as e:
                    # Never mask the error that aborted the run
                    if not unwinding:
                        raise
                    log.error("testrun.coverage_report_failed", error=str(e))
        return result

    def finish(self, result: RunResult, ignore_failures: Optional[bool] = None) -> RunResult:
        """Log the summary and apply the failure policy.

        Raises:
            TestRunFailure: On failures, errors or execution errors, unless ignored.
        """
        if ignore_failures is None:
            ignore_failures = self.config.ignore_failures

        summary = result.totals.summary_line()
        log.info("testrun.summary", summary=summary, binaries=len(result.binaries))

        if result.success:
            return result

        problems = []
        if result.totals.has_problems:
            problems.append(f"There are test failures. {summary}")
        for run in result.execution_errors:
            problems.append(f"{run.name} {run.state.value}: {run.error}")
        message = "; ".join(problems)

        if ignore_failures:
            log.warning("testrun.failures_ignored", message=message)
            return result
        raise TestRunFailure(message, result=result)

    def _run_binary(self, run: BinaryRun, result: RunResult) -> None:
        request = TestRequest.from_config(run.binary, self.config, self.runtime_kind)
        started = time.monotonic()
        log.info("testrun.binary_started", binary=run.name, runtime=self.runtime_kind.value)

        try:
            if self.coverage is not None:
                source_dir = self.coverage_request.source_directory if self.coverage_request else None
                self.coverage.instrument(run.binary, source_dir or run.binary.parent)

            channel = TestChannel(request.control_port, request.result_port)
            try:
                channel.open()
            except OSError as e:
                run.finish(BinaryState.FAILED, f"Unable to open test channel: {e}")
                log.warning("testrun.binary_failed", binary=run.name, error=run.error)
                return

            with closing(channel):
                run.transition(BinaryState.DISPATCHED)
                try:
                    process = self.launcher.launch(request, channel.control_port, channel.result_port)
                except LaunchError as e:
                    run.finish(BinaryState.FAILED, str(e))
                    log.warning("testrun.binary_failed", binary=run.name, error=run.error)
                    return

                with process:
                    self._drive(run, request, channel, process, result)
        finally:
            run.elapsed_seconds = time.monotonic() - started

        log.info(
            "testrun.binary_finished",
            binary=run.name,
            state=run.state.value,
            suites=len(run.outcomes),
            elapsed=round(run.elapsed_seconds, 3),
        )

    def _drive(
        self,
        run: BinaryRun,
        request: TestRequest,
        channel: TestChannel,
        process: LaunchedProcess,
        result: RunResult,
    ) -> None:
        """Consume channel events until the binary reaches a terminal state."""
        run.transition(BinaryState.AWAITING_FIRST_CONNECTION)
        timer = TimeoutHandler(request.first_connection_timeout).start()

        while not run.state.is_terminal:
            try:
                event = channel.receive(min(POLL_INTERVAL, timer.remaining))
            except TimeoutError:
                awaiting = run.state is BinaryState.AWAITING_FIRST_CONNECTION
                if timer.is_expired:
                    what = "No connection from test binary" if awaiting else "No activity from test binary"
                    run.finish(BinaryState.TIMED_OUT, str(timer.expired_error(what)))
                    log.warning("testrun.binary_timed_out", binary=run.name, error=run.error)
                elif awaiting and process.has_exited:
                    run.finish(
                        BinaryState.FAILED,
                        f"Runtime exited with code {process.returncode} before connecting",
                    )
                    log.warning("testrun.binary_failed", binary=run.name, error=run.error)
                continue

            if run.state is BinaryState.AWAITING_FIRST_CONNECTION:
                run.transition(BinaryState.RUNNING)
                timer = TimeoutHandler(request.test_timeout).start()
            else:
                timer.reset()

            self._handle(event, run, channel, result)

    def _drain(self, run: BinaryRun, channel: TestChannel, result: RunResult) -> None:
        """Handle result messages already sent before the runtime went away."""
        timer = TimeoutHandler(DRAIN_LIMIT).start()
        while not run.state.is_terminal and not timer.is_expired:
            try:
                event = channel.receive(min(DRAIN_QUIET_PERIOD, timer.remaining))
            except TimeoutError:
                return
            if event.source is Source.CONTROL:
                continue
            if event.kind is EventKind.DISCONNECTED:
                return
            self._handle(event, run, channel, result)

    def _handle(self, event: ChannelEvent, run: BinaryRun, channel: TestChannel, result: RunResult) -> None:
        if event.source is Source.CONTROL:
            # Anything else on the control connection is a heartbeat
            if event.kind is EventKind.DISCONNECTED:
                self._drain(run, channel, result)
                if not run.state.is_terminal:
                    run.finish(BinaryState.FAILED, "Runtime closed the control connection before the end of the run")
                    log.warning("testrun.binary_crashed", binary=run.name, suites=len(run.outcomes))
            return

        if event.kind is not EventKind.MESSAGE:
            return

        if event.payload == POLICY_FILE_REQUEST:
            channel.send(Source.RESULT, POLICY_DOCUMENT)
            return

        if event.payload == END_OF_TEST_RUN:
            channel.send(Source.RESULT, END_OF_TEST_RUN_ACK)
            run.finish(BinaryState.COMPLETED)
            return

        run.transition(BinaryState.COLLECTING)
        try:
            report = parse_report(event.payload)
        except ReportParseError as e:
            run.finish(BinaryState.FAILED, str(e))
            raise

        self.report_writer.write(report)
        outcome = TestOutcome.from_report(report)
        run.outcomes.append(outcome)
        result.totals.add(outcome)

        if self.coverage is not None:
            for coverage in report.coverage:
                self.coverage.add_result(coverage.classname, coverage.touches)

        log.info(
            "testrun.suite_reported",
            binary=run.name,
            suite=report.name,
            tests=report.tests,
            failures=report.failures,
            errors=report.errors,
        )
        run.transition(BinaryState.RUNNING)


def build_coordinator(
    project: BuildProject,
    launcher: Optional[RuntimeLauncher] = None,
) -> TestRunCoordinator:
    """Coordinator configured from a build descriptor.

    Raises:
        CoverageReportError: If the coverage provider is unknown.
    """
    coverage = None
    coverage_request = None
    if project.coverage.enabled:
        instrumenter = CommandInstrumenter(project.coverage.instrumenter) if project.coverage.instrumenter else None
        coverage = CoverageReporterManager().get_reporter(project.coverage.provider, instrumenter)
        source_dirs = [d for d in project.source_dirs if d.is_dir()]
        coverage_request = CoverageReportRequest(
            data_directory=project.coverage_data_dir,
            formats=list(project.coverage.formats),
            encoding=project.coverage.encoding,
            destination=project.coverage_report_dir,
            source_directory=source_dirs[0] if source_dirs else None,
        )

    return TestRunCoordinator(
        config=project.test,
        report_writer=ReportWriter(project.report_dir),
        runtime_kind=RuntimeKind(project.target_kind.value),
        launcher=launcher,
        coverage=coverage,
        coverage_request=coverage_request,
    )


def run_project_tests(
    project: BuildProject,
    launcher: Optional[RuntimeLauncher] = None,
    ignore_failures: Optional[bool] = None,
) -> Optional[RunResult]:
    """Scan the project's test directory and run every binary found.

    Returns:
        The run result, or None when tests are skipped or nothing was found.

    Raises:
        TestRunFailure: If tests failed and failures are not ignored.
    """
    if project.test.skip:
        log.info("testrun.skipped", reason="tests are skipped")
        return None

    binaries = list(TestScanner(project.test_directory))
    if not binaries:
        log.info("testrun.skipped", reason="no test binaries", directory=str(project.test_directory))
        return None

    coordinator = build_coordinator(project, launcher)
    result = coordinator.run(binaries)
    return coordinator.finish(result, ignore_failures)
