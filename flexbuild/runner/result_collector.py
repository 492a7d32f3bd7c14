"""Result collection for test runs.

Reports are folded into the run totals as they arrive, so a run that dies
half-way still accounts for every suite that completed.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from ..reporting.report import TestCaseReport


class BinaryState(str, Enum):
    """Lifecycle of one test binary."""
    PENDING = "pending"
    DISPATCHED = "dispatched"
    AWAITING_FIRST_CONNECTION = "awaiting_first_connection"
    RUNNING = "running"
    COLLECTING = "collecting"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = {BinaryState.COMPLETED, BinaryState.FAILED, BinaryState.TIMED_OUT}


@dataclass(frozen=True)
class TestOutcome:
    """Counts from one test suite report. Never mutated after aggregation."""
    __test__ = False

    name: str
    tests_run: int
    failures: int
    errors: int
    elapsed_seconds: float
    coverage_touches: dict[str, tuple[int, ...]] = field(default_factory=dict, compare=False)

    @classmethod
    def from_report(cls, report: TestCaseReport) -> "TestOutcome":
        return cls(
            name=report.name,
            tests_run=report.tests,
            failures=report.failures,
            errors=report.errors,
            elapsed_seconds=report.time,
            coverage_touches={c.classname: c.touches for c in report.coverage},
        )

    @property
    def passed(self) -> bool:
        return self.failures == 0 and self.errors == 0


@dataclass
class BinaryRun:
    """State and outcomes of one test binary."""
    binary: Path
    state: BinaryState = BinaryState.PENDING
    history: list[BinaryState] = field(default_factory=lambda: [BinaryState.PENDING])
    outcomes: list[TestOutcome] = field(default_factory=list)
    error: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def name(self) -> str:
        return self.binary.name

    def transition(self, state: BinaryState) -> None:
        if self.state.is_terminal:
            raise RuntimeError(f"{self.name} already finished as {self.state.value}")
        self.state = state
        self.history.append(state)

    def finish(self, state: BinaryState, error: Optional[str] = None) -> None:
        self.transition(state)
        self.error = error

    @property
    def succeeded(self) -> bool:
        return self.state is BinaryState.COMPLETED

    def to_dict(self) -> dict:
        return {
            "binary": str(self.binary),
            "state": self.state.value,
            "suites": [o.name for o in self.outcomes],
            "error": self.error,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


@dataclass
class RunTotals:
    """Run-level counters, updated by the coordinator thread only."""
    tests_run: int = 0
    failures: int = 0
    errors: int = 0
    elapsed_seconds: float = 0.0
    outcomes: list[TestOutcome] = field(default_factory=list)

    def add(self, outcome: TestOutcome) -> None:
        self.outcomes.append(outcome)
        self.tests_run += outcome.tests_run
        self.failures += outcome.failures
        self.errors += outcome.errors
        self.elapsed_seconds += outcome.elapsed_seconds

    @property
    def has_problems(self) -> bool:
        return self.failures > 0 or self.errors > 0

    @property
    def failed_suites(self) -> list[str]:
        return [o.name for o in self.outcomes if not o.passed]

    def summary_line(self) -> str:
        return (
            f"Tests run: {self.tests_run}, Failures: {self.failures}, "
            f"Errors: {self.errors}, Time Elapsed: {self.elapsed_seconds:.3f} sec"
        )


@dataclass
class RunResult:
    """Everything observed during one test run."""
    binaries: list[BinaryRun] = field(default_factory=list)
    totals: RunTotals = field(default_factory=RunTotals)
    reports_written: list[Path] = field(default_factory=list)
    coverage_report: Optional[Path] = None

    @property
    def execution_errors(self) -> list[BinaryRun]:
        """Binaries that crashed, timed out or failed to launch."""
        return [b for b in self.binaries if b.state in (BinaryState.FAILED, BinaryState.TIMED_OUT)]

    @property
    def success(self) -> bool:
        return not self.totals.has_problems and not self.execution_errors

    def state_of(self, binary_name: str) -> Optional[BinaryState]:
        for run in self.binaries:
            if run.name == binary_name:
                return run.state
        return None
