"""Build descriptor data models.

Defines dataclasses for the ``flexbuild.yaml`` build descriptor.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..dependencies.aggregation import Module
from ..dependencies.model import BuildMode, Dependency, TargetKind

VALID_TARGETS = {e.value for e in TargetKind}
VALID_MODES = {e.value for e in BuildMode}
VALID_COVERAGE_PROVIDERS = {"cobertura", "emma"}
VALID_COVERAGE_FORMATS = {"html", "xml", "summaryXml"}

DEFAULT_TEST_PORT = 13539
DEFAULT_CONTROL_PORT = 13540


def _default_player_command() -> str:
    return os.environ.get("FLEXBUILD_PLAYER", "flashplayer")


def _default_adl_command() -> str:
    return os.environ.get("FLEXBUILD_ADL", "adl")


@dataclass
class ProjectInfo:
    """Identity and layout of the project being built."""
    group_id: str
    artifact_id: str
    version: str
    target: str = TargetKind.PLAYER.value
    mode: str = BuildMode.NORMAL.value
    locale: str = "en_US"
    framework_version: Optional[str] = None
    source_dirs: list[Path] = field(default_factory=lambda: [Path("src/main/flex")])
    build_dir: Path = Path("target")
    execution_root: bool = True

    def __post_init__(self):
        self.target = self.target.lower()
        self.mode = self.mode.lower()
        self.source_dirs = [Path(p) for p in self.source_dirs]
        self.build_dir = Path(self.build_dir)


@dataclass
class RepositoryConfig:
    """Where artifacts are resolved from."""
    local: Optional[Path] = None
    remote: list[str] = field(default_factory=list)


@dataclass
class TestRunConfig:
    """Configuration for running compiled test binaries."""
    __test__ = False

    directory: Optional[Path] = None
    port: int = DEFAULT_TEST_PORT
    control_port: int = DEFAULT_CONTROL_PORT
    timeout: float = 2.0
    first_connection_timeout: float = 20.0
    player_command: str = field(default_factory=_default_player_command)
    adl_command: str = field(default_factory=_default_adl_command)
    allow_headless: bool = True
    ignore_failures: bool = False
    skip: bool = False
    report_dir: Optional[Path] = None


@dataclass
class CoverageConfig:
    """Configuration for the coverage pipeline."""
    enabled: bool = False
    provider: str = "cobertura"
    formats: list[str] = field(default_factory=lambda: ["html"])
    encoding: str = "utf-8"
    report_dir: Optional[Path] = None
    data_dir: Optional[Path] = None
    instrumenter: list[str] = field(default_factory=list)

    def __post_init__(self):
        self.provider = self.provider.lower()
        if isinstance(self.formats, str):
            self.formats = [self.formats]
        if isinstance(self.instrumenter, str):
            self.instrumenter = self.instrumenter.split()


@dataclass
class BuildProject:
    """A complete, parsed build descriptor."""
    project: ProjectInfo
    repository: RepositoryConfig = field(default_factory=RepositoryConfig)
    dependencies: list[Dependency] = field(default_factory=list)
    modules: list[Module] = field(default_factory=list)
    test: TestRunConfig = field(default_factory=TestRunConfig)
    coverage: CoverageConfig = field(default_factory=CoverageConfig)
    base_dir: Path = Path(".")

    @property
    def target_kind(self) -> TargetKind:
        return TargetKind(self.project.target)

    @property
    def build_mode(self) -> BuildMode:
        return BuildMode(self.project.mode)

    @property
    def build_dir(self) -> Path:
        return self.resolve_path(self.project.build_dir)

    @property
    def source_dirs(self) -> list[Path]:
        return [self.resolve_path(p) for p in self.project.source_dirs]

    @property
    def test_directory(self) -> Path:
        """Where compiled test binaries are; defaults to ``<build>/test-classes``."""
        if self.test.directory is not None:
            return self.resolve_path(self.test.directory)
        return self.build_dir / "test-classes"

    @property
    def report_dir(self) -> Path:
        if self.test.report_dir is not None:
            return self.resolve_path(self.test.report_dir)
        return self.build_dir / "surefire-reports"

    @property
    def coverage_report_dir(self) -> Path:
        if self.coverage.report_dir is not None:
            return self.resolve_path(self.coverage.report_dir)
        return self.build_dir / "site" / "flexbuild"

    @property
    def coverage_data_dir(self) -> Path:
        if self.coverage.data_dir is not None:
            return self.resolve_path(self.coverage.data_dir)
        return self.build_dir / "flexbuild"

    def resolve_path(self, path: Path) -> Path:
        """Resolve a descriptor-relative path against the descriptor directory."""
        path = Path(path).expanduser()
        return path if path.is_absolute() else self.base_dir / path


@dataclass
class ValidationError:
    """A single validation error."""
    path: str
    message: str
    severity: str = "error"  # "error" or "warning"


@dataclass
class ValidationResult:
    """Result of descriptor validation."""
    valid: bool
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationError] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def __str__(self) -> str:
        if self.valid:
            msg = "Valid"
            if self.warnings:
                msg += f" ({self.warning_count} warnings)"
            return msg
        return f"Invalid: {self.error_count} errors, {self.warning_count} warnings"
