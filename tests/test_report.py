"""Tests for streamed test-case reports."""

import pytest

from flexbuild.errors import ReportParseError
from flexbuild.reporting.report import ReportWriter, parse_report


class TestParseReport:

    def test_counts(self, report_xml):
        report = parse_report(report_xml("com.example::CalculatorTest", tests=3, failures=1, errors=1, time=0.25))

        assert report.name == "com.example::CalculatorTest"
        assert (report.tests, report.failures, report.errors) == (3, 1, 1)
        assert report.time == 0.25
        assert report.total_problems == 2

    def test_coverage_touches(self, report_xml):
        report = parse_report(report_xml("SuiteTest", coverage={"com.example::Calculator": "12,13,13,20"}))

        assert len(report.coverage) == 1
        assert report.coverage[0].classname == "com.example::Calculator"
        assert report.coverage[0].touches == (12, 13, 13, 20)

    def test_missing_counts_default_to_zero(self):
        report = parse_report('<testsuite name="EmptyTest"/>')

        assert (report.tests, report.failures, report.errors, report.time) == (0, 0, 0, 0.0)

    def test_raw_text_is_kept(self, report_xml):
        text = report_xml("RawTest")

        assert parse_report(text).raw == text

    def test_report_file_name(self, report_xml):
        report = parse_report(report_xml("com.example.math::CalculatorTest"))

        assert report.report_file_name == "TEST-com.example.math.CalculatorTest.xml"

    @pytest.mark.parametrize(
        "text, message",
        [
            ("<testsuite name='x'", "Malformed"),
            ("<testcase name='x'/>", "Expected <testsuite>"),
            ("<testsuite tests='1'/>", "no suite name"),
            ("<testsuite name='x' tests='many'/>", "'tests'"),
            ("<testsuite name='x' time='soon'/>", "'time'"),
            ("<testsuite name='x'><coverage classname='C' touchs='1,a'/></testsuite>", "touches"),
        ],
    )
    def test_malformed_reports(self, text, message):
        with pytest.raises(ReportParseError, match=message) as excinfo:
            parse_report(text)

        assert excinfo.value.report == text


class TestReportWriter:

    def test_writes_verbatim(self, tmp_path, report_xml):
        writer = ReportWriter(tmp_path / "reports")
        report = parse_report(report_xml("com.example::CalculatorTest"))

        path = writer.write(report)

        assert path == tmp_path / "reports" / "TEST-com.example.CalculatorTest.xml"
        assert path.read_text(encoding="utf-8") == report.raw
        assert writer.written == [path]

    def test_same_suite_overwrites(self, tmp_path, report_xml):
        writer = ReportWriter(tmp_path)

        writer.write(parse_report(report_xml("SameTest", tests=1)))
        path = writer.write(parse_report(report_xml("SameTest", tests=2)))

        assert 'tests="2"' in path.read_text(encoding="utf-8")
