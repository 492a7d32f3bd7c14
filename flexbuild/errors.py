"""Exception taxonomy for flexbuild.

Fatal conditions stop the build as soon as they are raised. Per-binary test
problems are recorded by the coordinator instead and only surface through
``TestRunFailure`` once every binary has been observed.
"""

from typing import Optional


class FlexBuildError(Exception):
    """Base class for all flexbuild errors."""


class ArtifactResolutionError(FlexBuildError):
    """An artifact could not be located in any repository."""

    def __init__(self, coordinates, reason: str = "not found"):
        self.coordinates = coordinates
        self.reason = reason
        super().__init__(f"Unable to resolve {coordinates}: {reason}")


class UnresolvedGlobalArtifactError(FlexBuildError):
    """The runtime-global library for the target could not be resolved."""

    def __init__(self, target_kind: str, message: str):
        self.target_kind = target_kind
        super().__init__(message)


class AggregationError(FlexBuildError):
    """A module of an aggregate build could not be resolved transitively."""

    def __init__(self, module, cause: Exception):
        self.module = module
        self.cause = cause
        super().__init__(f"Failed to aggregate module {module}: {cause}")


class LaunchEnvironmentError(FlexBuildError):
    """The runtime executable itself is missing; no binary can run."""


class LaunchError(FlexBuildError):
    """A single binary could not be launched."""


class ReportParseError(FlexBuildError):
    """A streamed test report is not well-formed."""

    def __init__(self, message: str, report: Optional[str] = None):
        self.report = report
        super().__init__(message)


class CoverageReportError(FlexBuildError):
    """Coverage provider lookup, instrumentation or report generation failed."""


class TestRunFailure(FlexBuildError):
    """Raised at end of run when tests failed or a binary could not execute."""

    __test__ = False

    def __init__(self, message: str, cause: Optional[BaseException] = None, result=None):
        self.cause = cause
        self.result = result
        super().__init__(message)
