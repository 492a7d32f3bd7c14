"""Coverage module - instrumentation, touch accumulation and reports."""

from .accumulator import ClassCoverage, CoverageAccumulator, find_source, normalize_classname
from .instrumenter import CommandInstrumenter, Instrumenter
from .reporters import (
    CoberturaReporter,
    CoverageReporter,
    CoverageReporterManager,
    CoverageReportRequest,
    EmmaReporter,
)

__all__ = [
    "ClassCoverage",
    "CoberturaReporter",
    "CommandInstrumenter",
    "CoverageAccumulator",
    "CoverageReportRequest",
    "CoverageReporter",
    "CoverageReporterManager",
    "EmmaReporter",
    "Instrumenter",
    "find_source",
    "normalize_classname",
]
