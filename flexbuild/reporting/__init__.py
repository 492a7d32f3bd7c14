"""Reporting module - test-case reports and run summaries."""

from .json_reporter import JsonReporter
from .report import ReportWriter, TestCaseReport, TestCoverageReport, parse_report

__all__ = [
    "JsonReporter",
    "ReportWriter",
    "TestCaseReport",
    "TestCoverageReport",
    "parse_report",
]
