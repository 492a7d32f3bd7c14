"""Coverage reporters.

A reporter instruments binaries before they run, receives the touches of
every report, and writes the final report once per run. Two providers are
supported, differing in the layout of their XML report:

- ``cobertura``: ``coverage.xml`` following the Cobertura DTD
- ``emma``: ``coverage.xml`` following the EMMA report layout
"""

import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

import structlog

from ..errors import CoverageReportError
from .accumulator import ClassCoverage, CoverageAccumulator
from .html import HtmlCoverageReport
from .instrumenter import Instrumenter

log = structlog.get_logger("flexbuild.coverage")

FORMAT_HTML = "html"
FORMAT_XML = "xml"
FORMAT_SUMMARY_XML = "summaryXml"

DATA_FILE = "coverage-data.json"


@dataclass
class CoverageReportRequest:
    """Where and how to write the coverage report."""
    data_directory: Path
    formats: list[str] = field(default_factory=lambda: [FORMAT_HTML])
    encoding: Optional[str] = "utf-8"
    destination: Path = Path("coverage")
    source_directory: Optional[Path] = None


class CoverageReporter:
    """Base reporter; subclasses render the provider's XML layout."""

    provider = ""

    def __init__(self, instrumenter: Optional[Instrumenter] = None):
        self.instrumenter = instrumenter
        self.accumulator = CoverageAccumulator()
        self.instrumented: list[Path] = []

    def instrument(self, binary: Path, source_dir: Path) -> None:
        """Instrument ``binary`` before it is dispatched.

        Raises:
            CoverageReportError: If the instrumenter fails.
        """
        if self.instrumenter is None:
            log.warning("coverage.not_instrumented", binary=binary.name, reason="no instrumenter configured")
            return
        self.instrumenter.instrument(binary, source_dir)
        self.instrumented.append(binary)

    def add_result(self, classname: str, touches: Iterable[int]) -> None:
        self.accumulator.add(classname, touches)

    def generate_report(self, request: CoverageReportRequest) -> Path:
        """Write every requested format into ``request.destination``.

        Returns:
            The destination directory.

        Raises:
            CoverageReportError: On unknown formats or I/O errors.
        """
        unknown = [f for f in request.formats if f not in (FORMAT_HTML, FORMAT_XML, FORMAT_SUMMARY_XML)]
        if unknown:
            raise CoverageReportError(f"Unsupported coverage report format(s): {', '.join(unknown)}")

        encoding = request.encoding or "utf-8"
        destination = Path(request.destination)
        classes = self.accumulator.classes(request.source_directory)

        try:
            destination.mkdir(parents=True, exist_ok=True)
            self.accumulator.save(Path(request.data_directory) / DATA_FILE)

            for fmt in request.formats:
                if fmt == FORMAT_HTML:
                    HtmlCoverageReport(self.provider).write(classes, destination / "index.html", encoding)
                elif fmt == FORMAT_XML:
                    _write_xml(self.render_xml(classes, request), destination / "coverage.xml", encoding)
                else:
                    _write_xml(render_summary(classes), destination / "coverage-summary.xml", encoding)
        except OSError as e:
            raise CoverageReportError(f"Failed to write coverage report: {e}") from e

        log.info(
            "coverage.report_generated",
            provider=self.provider,
            classes=len(classes),
            formats=request.formats,
            destination=str(destination),
        )
        return destination

    def render_xml(self, classes: list[ClassCoverage], request: CoverageReportRequest) -> ET.Element:
        raise NotImplementedError


class CoberturaReporter(CoverageReporter):
    provider = "cobertura"

    def render_xml(self, classes: list[ClassCoverage], request: CoverageReportRequest) -> ET.Element:
        covered = sum(c.lines_covered for c in classes)
        valid = sum(c.lines_valid for c in classes)
        root = ET.Element("coverage", {
            "line-rate": _rate(covered, valid),
            "branch-rate": "0",
            "lines-covered": str(covered),
            "lines-valid": str(valid),
            "timestamp": str(int(time.time() * 1000)),
            "version": "flexbuild",
        })

        sources = ET.SubElement(root, "sources")
        if request.source_directory is not None:
            ET.SubElement(sources, "source").text = str(request.source_directory)

        packages = ET.SubElement(root, "packages")
        for package, members in _by_package(classes).items():
            package_element = ET.SubElement(packages, "package", {
                "name": package,
                "line-rate": _rate(
                    sum(c.lines_covered for c in members), sum(c.lines_valid for c in members)
                ),
                "branch-rate": "0",
            })
            class_elements = ET.SubElement(package_element, "classes")
            for coverage in members:
                class_element = ET.SubElement(class_elements, "class", {
                    "name": coverage.classname,
                    "filename": _filename(coverage, request.source_directory),
                    "line-rate": _rate(coverage.lines_covered, coverage.lines_valid),
                    "branch-rate": "0",
                })
                ET.SubElement(class_element, "methods")
                lines = ET.SubElement(class_element, "lines")
                for number in sorted(_all_lines(coverage)):
                    ET.SubElement(lines, "line", {
                        "number": str(number),
                        "hits": str(coverage.hits.get(number, 0)),
                        "branch": "false",
                    })
        return root


class EmmaReporter(CoverageReporter):
    provider = "emma"

    def render_xml(self, classes: list[ClassCoverage], request: CoverageReportRequest) -> ET.Element:
        packages = _by_package(classes)
        root = ET.Element("report")

        stats = ET.SubElement(root, "stats")
        ET.SubElement(stats, "packages", {"value": str(len(packages))})
        ET.SubElement(stats, "classes", {"value": str(len(classes))})
        ET.SubElement(stats, "srcfiles", {"value": str(sum(1 for c in classes if c.source_file))})
        ET.SubElement(stats, "srclines", {"value": str(sum(c.lines_valid for c in classes))})

        data = ET.SubElement(root, "data")
        everything = ET.SubElement(data, "all", {"name": "all classes"})
        _emma_coverage(everything, classes)
        for package, members in packages.items():
            package_element = ET.SubElement(everything, "package", {"name": package or "default package"})
            _emma_coverage(package_element, members)
            for coverage in members:
                class_element = ET.SubElement(package_element, "class", {"name": coverage.simple_name})
                _emma_coverage(class_element, [coverage])
        return root


class CoverageReporterManager:
    """Looks up reporters by provider name."""

    def __init__(self):
        self._providers: dict[str, type[CoverageReporter]] = {
            CoberturaReporter.provider: CoberturaReporter,
            EmmaReporter.provider: EmmaReporter,
        }

    @property
    def providers(self) -> list[str]:
        return sorted(self._providers)

    def register(self, reporter_class: type[CoverageReporter]) -> None:
        self._providers[reporter_class.provider] = reporter_class

    def get_reporter(self, provider: str, instrumenter: Optional[Instrumenter] = None) -> CoverageReporter:
        """Create a reporter for ``provider``.

        Raises:
            CoverageReportError: If the provider is unknown.
        """
        reporter_class = self._providers.get((provider or "").lower())
        if reporter_class is None:
            raise CoverageReportError(
                f"Unknown coverage provider '{provider}'. Must be one of: {', '.join(self.providers)}"
            )
        return reporter_class(instrumenter=instrumenter)


def render_summary(classes: list[ClassCoverage]) -> ET.Element:
    covered = sum(c.lines_covered for c in classes)
    valid = sum(c.lines_valid for c in classes)
    return ET.Element("coverage-summary", {
        "classes": str(len(classes)),
        "lines-covered": str(covered),
        "lines-valid": str(valid),
        "line-rate": _rate(covered, valid),
    })


def _write_xml(root: ET.Element, path: Path, encoding: str) -> None:
    ET.indent(root)
    ET.ElementTree(root).write(path, encoding=encoding, xml_declaration=True)


def _by_package(classes: list[ClassCoverage]) -> dict[str, list[ClassCoverage]]:
    packages: dict[str, list[ClassCoverage]] = {}
    for coverage in classes:
        packages.setdefault(coverage.package, []).append(coverage)
    return packages


def _all_lines(coverage: ClassCoverage) -> set[int]:
    lines = set(coverage.hits)
    if coverage.valid_lines is not None:
        lines |= coverage.valid_lines
    return lines


def _filename(coverage: ClassCoverage, source_dir: Optional[Path]) -> str:
    if coverage.source_file is None:
        return coverage.classname.replace(".", "/")
    if source_dir is not None:
        try:
            return coverage.source_file.relative_to(source_dir).as_posix()
        except ValueError:
            pass
    return coverage.source_file.as_posix()


def _rate(covered: int, valid: int) -> str:
    return f"{covered / valid:.4f}" if valid else "0"


def _emma_coverage(parent: ET.Element, classes: list[ClassCoverage]) -> None:
    covered = sum(c.lines_covered for c in classes)
    valid = sum(c.lines_valid for c in classes)
    percent = int(covered / valid * 100) if valid else 0
    ET.SubElement(parent, "coverage", {
        "type": "line, %",
        "value": f"{percent}%  ({covered}/{valid})",
    })
