"""Bytecode instrumentation of test binaries.

Instrumentation itself is done by an external tool; flexbuild only runs it
with the binary and the source directory as trailing arguments.
"""

import subprocess
from pathlib import Path
from typing import Optional, Protocol

import structlog

from ..errors import CoverageReportError

log = structlog.get_logger("flexbuild.coverage")


class Instrumenter(Protocol):
    def instrument(self, binary: Path, source_dir: Path) -> None:
        ...


class CommandInstrumenter:
    """Runs ``<command...> <binary> <source_dir>`` and waits for it."""

    def __init__(self, command: list[str], timeout: Optional[float] = 300.0):
        self.command = list(command)
        self.timeout = timeout

    def instrument(self, binary: Path, source_dir: Path) -> None:
        """Instrument ``binary`` in place.

        Raises:
            CoverageReportError: If the instrumenter is missing or fails.
        """
        command = self.command + [str(binary), str(source_dir)]
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise CoverageReportError(f"Instrumenter not found: {self.command[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise CoverageReportError(f"Instrumenting {binary.name} timed out") from e

        if result.returncode != 0:
            raise CoverageReportError(
                f"Instrumenting {binary.name} failed ({result.returncode}): {result.stderr.strip()}"
            )
        log.debug("coverage.instrumented", binary=binary.name)
