"""Runner module - Test orchestration."""

from .channel import ChannelEvent, EventKind, Source, TestChannel
from .coordinator import TestRunCoordinator, build_coordinator, run_project_tests
from .launcher import LaunchedProcess, RuntimeLauncher
from .request import RuntimeKind, TestRequest
from .result_collector import BinaryRun, BinaryState, RunResult, RunTotals, TestOutcome

__all__ = [
    "BinaryRun",
    "BinaryState",
    "ChannelEvent",
    "EventKind",
    "LaunchedProcess",
    "RunResult",
    "RunTotals",
    "RuntimeKind",
    "RuntimeLauncher",
    "Source",
    "TestChannel",
    "TestOutcome",
    "TestRequest",
    "TestRunCoordinator",
    "build_coordinator",
    "run_project_tests",
]
