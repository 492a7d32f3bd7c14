"""Per-binary test requests."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..project.schema import TestRunConfig


class RuntimeKind(str, Enum):
    """Runtime a test binary is launched under."""
    PLAYER = "player"
    AIR = "air"


@dataclass(frozen=True)
class TestRequest:
    """Everything needed to run one test binary. Consumed once."""
    __test__ = False

    binary: Path
    control_port: int
    result_port: int
    test_timeout: float
    first_connection_timeout: float
    runtime_kind: RuntimeKind
    runtime_command: str
    allow_headless: bool = True

    @property
    def name(self) -> str:
        return self.binary.name

    @classmethod
    def from_config(cls, binary: Path, config: TestRunConfig, runtime_kind: RuntimeKind) -> "TestRequest":
        runtime_kind = RuntimeKind(runtime_kind)
        command = config.adl_command if runtime_kind is RuntimeKind.AIR else config.player_command
        return cls(
            binary=Path(binary),
            control_port=config.control_port,
            result_port=config.port,
            test_timeout=float(config.timeout),
            first_connection_timeout=float(config.first_connection_timeout),
            runtime_kind=runtime_kind,
            runtime_command=command,
            allow_headless=config.allow_headless,
        )
