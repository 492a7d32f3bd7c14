"""Test-case reports streamed by test binaries.

Each report is a JUnit-style ``<testsuite>`` document. Coverage-enabled
binaries add one ``<coverage>`` element per touched class::

    <testsuite name="com.example::CalculatorTest" tests="2" failures="0"
               errors="0" time="0.031">
      <testcase classname="com.example::CalculatorTest" name="testAdd" time="0.01"/>
      <coverage classname="com.example::Calculator" touchs="12,13,13,20"/>
    </testsuite>
"""

import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

import structlog

from ..errors import ReportParseError

log = structlog.get_logger("flexbuild.reporting")


@dataclass(frozen=True)
class TestCoverageReport:
    """Lines of one class touched while a suite ran."""
    __test__ = False

    classname: str
    touches: tuple[int, ...] = ()


@dataclass(frozen=True)
class TestCaseReport:
    """A parsed test suite report."""
    __test__ = False

    name: str
    tests: int = 0
    failures: int = 0
    errors: int = 0
    time: float = 0.0
    coverage: tuple[TestCoverageReport, ...] = ()
    raw: str = field(default="", repr=False, compare=False)

    @property
    def total_problems(self) -> int:
        return self.failures + self.errors

    @property
    def report_file_name(self) -> str:
        """``TEST-<qualified-name>.xml`` with ``::`` replaced by ``.``."""
        return f"TEST-{self.name.replace('::', '.')}.xml"


def parse_report(text: str) -> TestCaseReport:
    """Parse a streamed report.

    Raises:
        ReportParseError: If the report is not well-formed or lacks a name.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise ReportParseError(f"Malformed test report: {e}", report=text) from e

    if root.tag != "testsuite":
        raise ReportParseError(f"Expected <testsuite> report, got <{root.tag}>", report=text)

    name = root.get("name")
    if not name:
        raise ReportParseError("Test report has no suite name", report=text)

    coverage = tuple(
        TestCoverageReport(
            classname=element.get("classname", ""),
            touches=_parse_touches(element.get("touchs") or element.get("touches") or "", text),
        )
        for element in root.iter("coverage")
        if element.get("classname")
    )

    return TestCaseReport(
        name=name,
        tests=_int_attribute(root, "tests", text),
        failures=_int_attribute(root, "failures", text),
        errors=_int_attribute(root, "errors", text),
        time=_float_attribute(root, "time", text),
        coverage=coverage,
        raw=text,
    )


def _int_attribute(element: ET.Element, name: str, text: str) -> int:
    value = element.get(name)
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except ValueError as e:
        raise ReportParseError(f"Invalid '{name}' attribute: {value!r}", report=text) from e


def _float_attribute(element: ET.Element, name: str, text: str) -> float:
    value = element.get(name)
    if not value:
        return 0.0
    try:
        return float(value)
    except ValueError as e:
        raise ReportParseError(f"Invalid '{name}' attribute: {value!r}", report=text) from e


def _parse_touches(value: str, text: str) -> tuple[int, ...]:
    try:
        return tuple(int(v) for v in value.replace(" ", "").split(",") if v)
    except ValueError as e:
        raise ReportParseError(f"Invalid coverage touches: {value!r}", report=text) from e


class ReportWriter:
    """Persists each report as soon as it arrives."""

    def __init__(self, report_dir: Union[str, Path]):
        self.report_dir = Path(report_dir)
        self.written: list[Path] = []

    def write(self, report: TestCaseReport) -> Path:
        """Write ``report`` verbatim to ``TEST-<name>.xml``.

        The file is flushed and synced before returning so an interrupted
        run keeps every report received so far.
        """
        self.report_dir.mkdir(parents=True, exist_ok=True)
        path = self.report_dir / report.report_file_name

        with open(path, "w", encoding="utf-8") as f:
            f.write(report.raw)
            f.flush()
            os.fsync(f.fileno())

        self.written.append(path)
        log.debug("reporting.report_written", suite=report.name, path=str(path))
        return path
