"""Tests for the test run coordinator.

Binaries are JSON scripts interpreted by ``fake_runtime.py``, launched
through the real RuntimeLauncher and talking over real sockets.
"""

import pytest
from structlog.testing import capture_logs

from flexbuild.coverage import CoberturaReporter, CoverageReportRequest
from flexbuild.errors import CoverageReportError, LaunchEnvironmentError, ReportParseError, TestRunFailure
from flexbuild.reporting.report import ReportWriter
from flexbuild.runner.channel import END_OF_TEST_RUN_ACK, POLICY_DOCUMENT
from flexbuild.runner.coordinator import TestRunCoordinator
from flexbuild.runner.launcher import RuntimeLauncher
from flexbuild.runner.result_collector import BinaryState


@pytest.fixture
def report_dir(tmp_path):
    return tmp_path / "surefire-reports"


@pytest.fixture
def make_coordinator(run_config, report_dir):
    def _make(coverage=None, coverage_request=None, **config) -> TestRunCoordinator:
        return TestRunCoordinator(
            config=run_config(**config),
            report_writer=ReportWriter(report_dir),
            coverage=coverage,
            coverage_request=coverage_request,
        )

    return _make


class TestThreeBinaryScenario:

    @pytest.fixture
    def binaries(self, make_binary, report_xml):
        return [
            make_binary("ATest.swf", reports=[report_xml("com.example::ATest", tests=2)]),
            make_binary("BTest.swf", hang=60),
            make_binary("CTest.swf", reports=[report_xml("com.example::CTest", tests=3, failures=1)]),
        ]

    def test_states_and_totals(self, make_coordinator, binaries):
        result = make_coordinator(first_connection_timeout=2.0).run(binaries)

        assert [b.state for b in result.binaries] == [
            BinaryState.COMPLETED,
            BinaryState.TIMED_OUT,
            BinaryState.COMPLETED,
        ]
        assert result.totals.tests_run == 5
        assert result.totals.failures == 1
        assert result.binaries[1].outcomes == []
        assert "No connection" in result.binaries[1].error

    def test_build_fails_without_ignore_failures(self, make_coordinator, binaries):
        coordinator = make_coordinator(first_connection_timeout=2.0)
        result = coordinator.run(binaries)

        with pytest.raises(TestRunFailure) as excinfo:
            coordinator.finish(result)

        assert "Tests run: 5, Failures: 1, Errors: 0" in str(excinfo.value)
        assert "BTest.swf timed_out" in str(excinfo.value)
        assert excinfo.value.result is result

    def test_ignore_failures(self, make_coordinator, binaries):
        coordinator = make_coordinator(first_connection_timeout=2.0, ignore_failures=True)

        result = coordinator.finish(coordinator.run(binaries))

        assert not result.success
        assert len(result.execution_errors) == 1


class TestCompletedBinary:

    def test_reports_written_on_arrival(self, make_coordinator, make_binary, report_xml, report_dir):
        binary = make_binary(
            "SuiteRunner.swf",
            reports=[report_xml("com.example::FirstTest"), report_xml("com.example.sub::SecondTest", errors=1)],
        )

        result = make_coordinator().run([binary])

        assert sorted(p.name for p in report_dir.iterdir()) == [
            "TEST-com.example.FirstTest.xml",
            "TEST-com.example.sub.SecondTest.xml",
        ]
        assert result.reports_written == [
            report_dir / "TEST-com.example.FirstTest.xml",
            report_dir / "TEST-com.example.sub.SecondTest.xml",
        ]
        assert result.totals.errors == 1
        assert [o.name for o in result.binaries[0].outcomes] == ["com.example::FirstTest", "com.example.sub::SecondTest"]

    def test_end_of_run_is_acknowledged(self, make_coordinator, make_binary):
        binary = make_binary("AckTest.swf")

        make_coordinator().run([binary])

        assert (binary.parent / "AckTest.swf.ack").read_text(encoding="utf-8") == END_OF_TEST_RUN_ACK

    def test_policy_request_is_answered(self, make_coordinator, make_binary):
        binary = make_binary("PolicyTest.swf", policy=True)

        result = make_coordinator().run([binary])

        assert result.binaries[0].state is BinaryState.COMPLETED
        assert (binary.parent / "PolicyTest.swf.policy").read_text(encoding="utf-8") == POLICY_DOCUMENT

    def test_heartbeats_keep_binary_running(self, make_coordinator, make_binary):
        binary = make_binary("HeartbeatTest.swf", heartbeats=3)

        result = make_coordinator().run([binary])

        assert result.binaries[0].state is BinaryState.COMPLETED

    def test_lifecycle_history(self, make_coordinator, make_binary, report_xml):
        binary = make_binary("HistoryTest.swf", reports=[report_xml("HistoryTest")])

        run = make_coordinator().run([binary]).binaries[0]

        assert run.history == [
            BinaryState.PENDING,
            BinaryState.DISPATCHED,
            BinaryState.AWAITING_FIRST_CONNECTION,
            BinaryState.RUNNING,
            BinaryState.COLLECTING,
            BinaryState.RUNNING,
            BinaryState.COMPLETED,
        ]

    def test_summary_passes(self, make_coordinator, make_binary, report_xml):
        coordinator = make_coordinator()
        binary = make_binary("PassTest.swf", reports=[report_xml("PassTest", tests=4)])

        result = coordinator.finish(coordinator.run([binary]))

        assert result.success
        assert result.totals.summary_line().startswith("Tests run: 4, Failures: 0, Errors: 0, Time Elapsed:")


class TestPerBinaryProblems:

    def test_crash_marks_failed_and_scan_continues(self, make_coordinator, make_binary):
        crashing = make_binary("CrashTest.swf", crash=True)
        healthy = make_binary("HealthyTest.swf")

        result = make_coordinator().run([crashing, healthy])

        assert result.state_of("CrashTest.swf") is BinaryState.FAILED
        assert "control connection" in result.binaries[0].error
        assert result.state_of("HealthyTest.swf") is BinaryState.COMPLETED

    def test_reports_sent_before_a_crash_are_kept(self, make_coordinator, make_binary, report_xml, report_dir):
        binary = make_binary("CrashTest.swf", crash=True, reports=[report_xml("com.example::CrashTest", tests=4, failures=1)])

        result = make_coordinator().run([binary])

        assert result.binaries[0].state is BinaryState.FAILED
        assert len(result.binaries[0].outcomes) == 1
        assert (result.totals.tests_run, result.totals.failures) == (4, 1)
        assert (report_dir / "TEST-com.example.CrashTest.xml").is_file()

    def test_runtime_exit_before_connecting(self, make_coordinator, make_binary):
        binary = make_binary("ExitTest.swf", exit_code=3)

        result = make_coordinator(first_connection_timeout=10.0).run([binary])

        assert result.binaries[0].state is BinaryState.FAILED
        assert "exited with code 3" in result.binaries[0].error

    def test_silence_after_reports_times_out(self, make_coordinator, make_binary, report_xml):
        binary = make_binary("StallTest.swf", reports=[report_xml("StallTest", tests=2)], stall=60)

        result = make_coordinator(timeout=1.0).run([binary])

        assert result.binaries[0].state is BinaryState.TIMED_OUT
        assert "No activity" in result.binaries[0].error
        assert result.totals.tests_run == 2


class TestFatalProblems:

    def test_missing_runtime(self, make_coordinator, make_binary):
        binary = make_binary("AnyTest.swf")

        with pytest.raises(LaunchEnvironmentError):
            make_coordinator(player_command="flexbuild-no-such-player-executable").run([binary])

    def test_malformed_report(self, make_coordinator, make_binary):
        binary = make_binary("BrokenTest.swf", reports=["<testsuite name='broken'"])
        coordinator = make_coordinator()

        with pytest.raises(ReportParseError):
            coordinator.run([binary])


class TestCoverage:

    def test_touches_merged_and_report_generated(self, make_coordinator, make_binary, report_xml, tmp_path):
        reporter = CoberturaReporter()
        request = CoverageReportRequest(
            data_directory=tmp_path / "coverage-data",
            formats=["xml", "summaryXml"],
            destination=tmp_path / "coverage",
        )
        binaries = [
            make_binary("ATest.swf", reports=[report_xml("ATest", coverage={"com.example::Calculator": "1,2"})]),
            make_binary("BTest.swf", reports=[report_xml("BTest", coverage={"com.example::Calculator": "2,3"})]),
        ]

        result = make_coordinator(coverage=reporter, coverage_request=request).run(binaries)

        assert reporter.accumulator.hits("com.example.Calculator") == {1: 1, 2: 2, 3: 1}
        assert result.coverage_report == tmp_path / "coverage"
        assert (tmp_path / "coverage" / "coverage.xml").is_file()
        assert (tmp_path / "coverage" / "coverage-summary.xml").is_file()

    def test_report_generated_even_when_run_aborts(self, make_coordinator, make_binary, tmp_path):
        reporter = CoberturaReporter()
        request = CoverageReportRequest(data_directory=tmp_path / "data", formats=["html"], destination=tmp_path / "cov")
        binary = make_binary("BrokenTest.swf", reports=["not xml"])

        with pytest.raises(ReportParseError):
            make_coordinator(coverage=reporter, coverage_request=request).run([binary])

        assert (tmp_path / "cov" / "index.html").is_file()

    def test_report_failure_does_not_mask_the_abort(self, make_coordinator, make_binary, tmp_path):
        request = CoverageReportRequest(data_directory=tmp_path / "data", formats=["pdf"], destination=tmp_path / "cov")
        binary = make_binary("BrokenTest.swf", reports=["not xml"])

        with capture_logs() as logs:
            with pytest.raises(ReportParseError):
                make_coordinator(coverage=CoberturaReporter(), coverage_request=request).run([binary])

        assert [e["event"] for e in logs if e["log_level"] == "error"] == ["testrun.coverage_report_failed"]

    def test_report_failure_after_clean_run_is_raised(self, make_coordinator, make_binary, tmp_path):
        request = CoverageReportRequest(data_directory=tmp_path / "data", formats=["pdf"], destination=tmp_path / "cov")

        with pytest.raises(CoverageReportError, match="pdf"):
            make_coordinator(coverage=CoberturaReporter(), coverage_request=request).run([make_binary("EmptyTest.swf")])


class InterruptingWriter(ReportWriter):
    """Report writer that is interrupted on its second report."""

    def write(self, report):
        if self.written:
            raise KeyboardInterrupt()
        return super().write(report)


class RecordingLauncher(RuntimeLauncher):

    def __init__(self):
        super().__init__()
        self.processes = []

    def launch(self, request, control_port, result_port):
        process = super().launch(request, control_port, result_port)
        self.processes.append(process)
        return process


class TestInterruptedRun:

    def test_interrupt_releases_runtime_and_keeps_partial_results(self, run_config, make_binary, report_xml, report_dir, tmp_path):
        launcher = RecordingLauncher()
        request = CoverageReportRequest(data_directory=tmp_path / "data", formats=["html"], destination=tmp_path / "cov")
        coordinator = TestRunCoordinator(
            config=run_config(),
            report_writer=InterruptingWriter(report_dir),
            launcher=launcher,
            coverage=CoberturaReporter(),
            coverage_request=request,
        )
        binary = make_binary("LongTest.swf", stall=60, reports=[report_xml("FirstTest"), report_xml("SecondTest")])

        with pytest.raises(KeyboardInterrupt):
            coordinator.run([binary])

        assert (report_dir / "TEST-FirstTest.xml").is_file()
        assert not (report_dir / "TEST-SecondTest.xml").exists()
        assert launcher.processes[0].has_exited
        assert launcher.processes[0].output.closed
        assert (tmp_path / "cov" / "index.html").is_file()
