"""Launching test binaries under their runtime.

The runtime (standalone player or AIR debug launcher) is an opaque
subprocess. The launcher only builds its command line, synthesizes the AIR
application descriptor when needed, and guarantees the process is gone
when the run for that binary ends.
"""

import os
import shlex
import string
import subprocess
import sys
from importlib import resources
from pathlib import Path
from typing import IO, Optional

import structlog

from ..errors import LaunchEnvironmentError, LaunchError
from .request import RuntimeKind, TestRequest

log = structlog.get_logger("flexbuild.launcher")

DESCRIPTOR_TEMPLATE = "air-descriptor-template.xml"

HEADLESS_WRAPPER = ["xvfb-run", "-a"]

# Seconds to wait for a terminated runtime before killing it
TERMINATE_GRACE = 5.0


class LaunchedProcess:
    """A running runtime; terminated on context exit."""

    def __init__(self, process: subprocess.Popen, command: list[str], output: Optional[IO] = None):
        self.process = process
        self.command = command
        self.output = output

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self.process.poll()

    @property
    def has_exited(self) -> bool:
        return self.process.poll() is not None

    def stop(self) -> None:
        """Terminate the runtime if it is still running."""
        if self.process.poll() is not None:
            return
        self.process.terminate()
        try:
            self.process.wait(timeout=TERMINATE_GRACE)
        except subprocess.TimeoutExpired:
            log.warning("launcher.kill", pid=self.process.pid)
            self.process.kill()
            self.process.wait()

    def __enter__(self):
        return self

    def close(self) -> None:
        """Stop the runtime and close its output log."""
        try:
            self.stop()
        finally:
            if self.output is not None:
                self.output.close()

    def __exit__(self, *args):
        self.close()


class RuntimeLauncher:
    """Starts the runtime for a TestRequest."""

    def __init__(
        self,
        template: Optional[str] = None,
        env: Optional[dict[str, str]] = None,
        log_dir: Optional[Path] = None,
    ):
        """Initialize the launcher.

        Args:
            template: AIR descriptor template text. Defaults to the bundled one.
            env: Extra environment variables for the runtime.
            log_dir: Where runtime output goes (default: next to each binary).
        """
        self.template = template
        self.env = env or {}
        self.log_dir = Path(log_dir) if log_dir is not None else None

    def log_path(self, binary: Path) -> Path:
        """``<stem>.log`` receiving the runtime's stdout and stderr."""
        return (self.log_dir or binary.parent) / f"{binary.stem}.log"

    def command_for(self, request: TestRequest) -> list[str]:
        """Command line for a request; writes the AIR descriptor if needed."""
        command = shlex.split(request.runtime_command)
        if not command:
            raise LaunchEnvironmentError(
                f"No {request.runtime_kind.value} runtime command configured."
            )

        if request.runtime_kind is RuntimeKind.AIR:
            command.append(str(self.write_descriptor(request.binary)))
        else:
            command.append(str(request.binary))

        if request.allow_headless and _is_headless():
            command = HEADLESS_WRAPPER + command

        return command

    def launch(self, request: TestRequest, control_port: int, result_port: int) -> LaunchedProcess:
        """Start the runtime.

        The actual channel ports are exported to the runtime as
        ``FLEXBUILD_CONTROL_PORT`` and ``FLEXBUILD_RESULT_PORT``.

        Raises:
            LaunchEnvironmentError: If the runtime executable doesn't exist.
            LaunchError: If this binary could not be started for another reason.
        """
        command = self.command_for(request)
        env = dict(os.environ)
        env.update(self.env)
        env.update({
            "FLEXBUILD_CONTROL_PORT": str(control_port),
            "FLEXBUILD_RESULT_PORT": str(result_port),
            "FLEXBUILD_TEST_BINARY": str(request.binary),
        })

        log_path = self.log_path(request.binary)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            output = open(log_path, "wb")
        except OSError as e:
            raise LaunchError(f"Failed to open runtime log {log_path}: {e}") from e

        # stdout belongs to the CLI's JSON document; runtime traces go to the log
        try:
            process = subprocess.Popen(
                command,
                cwd=str(request.binary.parent),
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=output,
                stderr=subprocess.STDOUT,
            )
        except FileNotFoundError as e:
            output.close()
            raise LaunchEnvironmentError(
                f"Failed to launch {request.runtime_kind.value} runtime '{command[0]}'. "
                "Make sure it is available on PATH, or set the runtime command "
                "(test.player_command / test.adl_command, FLEXBUILD_PLAYER / FLEXBUILD_ADL)."
            ) from e
        except OSError as e:
            output.close()
            raise LaunchError(f"Failed to launch {request.binary.name}: {e}") from e

        log.debug(
            "launcher.started", binary=request.binary.name, pid=process.pid, command=command, log=str(log_path)
        )
        return LaunchedProcess(process, command, output)

    def write_descriptor(self, binary: Path) -> Path:
        """Write ``<basename>.xml`` next to the binary from the descriptor template."""
        template = self.template if self.template is not None else _bundled_template()
        destination = binary.parent / f"{binary.stem}.xml"
        try:
            destination.write_text(
                string.Template(template).safe_substitute(swf=binary.name),
                encoding="utf-8",
            )
        except OSError as e:
            raise LaunchError(f"Failed to create test AIR descriptor: {e}") from e
        return destination


def _bundled_template() -> str:
    return resources.files("flexbuild.runner").joinpath("templates", DESCRIPTOR_TEMPLATE).read_text(
        encoding="utf-8"
    )


def _is_headless() -> bool:
    return sys.platform.startswith("linux") and not os.environ.get("DISPLAY")
