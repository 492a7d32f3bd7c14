"""Discovery module - test binary scanning and timeouts."""

from .scanner import DEFAULT_EXCLUDES, DEFAULT_PATTERN, TestScanner, scan
from .timeout_handler import TimeoutHandler

__all__ = [
    "DEFAULT_EXCLUDES",
    "DEFAULT_PATTERN",
    "TestScanner",
    "TimeoutHandler",
    "scan",
]
