"""Shared pytest fixtures for flexbuild tests."""

import json
import shlex
import sys
from pathlib import Path
from typing import Iterable, Optional, Union

import pytest
import structlog
import yaml

from flexbuild.dependencies.model import Coordinates, Dependency
from flexbuild.errors import ArtifactResolutionError
from flexbuild.project.schema import TestRunConfig
from flexbuild.repository.base import artifact_path, metadata_path
from flexbuild.repository.local import LocalRepository

FAKE_RUNTIME = Path(__file__).parent / "fake_runtime.py"

DependencySpec = Union[str, tuple[str, str]]


class InMemoryResolver:
    """Resolver backed by a dict; artifact files are real but empty."""

    def __init__(self, root: Path):
        self.root = root
        self.artifacts: dict[Coordinates, Path] = {}
        self.graph: dict[Coordinates, list[Dependency]] = {}
        self.requests: list[Coordinates] = []

    def add(self, coordinates: str, dependencies: Iterable[DependencySpec] = ()) -> Path:
        coords = Coordinates.parse(coordinates)
        path = self.root / artifact_path(coords)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"")
        self.artifacts[coords] = path
        self.graph[coords] = [_dependency(spec) for spec in dependencies]
        return path

    def resolve(self, coordinates: Coordinates) -> Path:
        self.requests.append(coordinates)
        if coordinates not in self.artifacts:
            raise ArtifactResolutionError(coordinates, "not in memory")
        return self.artifacts[coordinates]

    def dependencies_of(self, coordinates: Coordinates) -> list[Dependency]:
        return list(self.graph.get(coordinates, []))


def _dependency(spec: DependencySpec) -> Dependency:
    if isinstance(spec, str):
        return Dependency.from_coordinates(Coordinates.parse(spec))
    coordinates, scope = spec
    return Dependency.from_coordinates(Coordinates.parse(coordinates), scope=scope)


@pytest.fixture(autouse=True)
def quiet_structlog():
    """Keep log output out of captured stdout."""
    structlog.configure(logger_factory=structlog.ReturnLoggerFactory())
    yield
    structlog.reset_defaults()


@pytest.fixture
def resolver(tmp_path):
    return InMemoryResolver(tmp_path / "memory-repo")


@pytest.fixture
def local_repository(tmp_path):
    return LocalRepository(tmp_path / "m2")


@pytest.fixture
def install():
    """Factory installing an artifact (and its descriptor) into a local repository."""

    def _install(
        repository: LocalRepository,
        coordinates: str,
        dependencies: Optional[list[dict]] = None,
        content: bytes = b"",
    ) -> Path:
        coords = Coordinates.parse(coordinates)
        path = repository.root / artifact_path(coords)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        if dependencies is not None:
            descriptor = repository.root / metadata_path(coords)
            descriptor.write_text(yaml.safe_dump({"dependencies": dependencies}), encoding="utf-8")
        return path

    return _install


@pytest.fixture
def make_dependency(tmp_path):
    """Factory for resolved dependencies with a unique file each."""

    def _make(
        artifact_id: str,
        scope: Optional[str] = None,
        type: str = "swc",
        classifier: Optional[str] = None,
        group_id: str = "com.example",
        version: str = "1.0",
    ) -> Dependency:
        suffix = f"-{classifier}" if classifier else ""
        path = tmp_path / "libs" / f"{artifact_id}-{version}{suffix}.{type}"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"")
        return Dependency(
            group_id=group_id,
            artifact_id=artifact_id,
            version=version,
            classifier=classifier,
            type=type,
            scope=scope,
            path=path,
        )

    return _make


@pytest.fixture
def report_xml():
    """Factory for streamed test-suite reports."""

    def _report(
        name: str,
        tests: int = 1,
        failures: int = 0,
        errors: int = 0,
        time: float = 0.01,
        coverage: Optional[dict[str, str]] = None,
    ) -> str:
        elements = "".join(
            f'<coverage classname="{classname}" touchs="{touches}"/>'
            for classname, touches in (coverage or {}).items()
        )
        return (
            f'<testsuite name="{name}" tests="{tests}" failures="{failures}" '
            f'errors="{errors}" time="{time}">'
            f'<testcase classname="{name}" name="testSomething" time="{time}"/>'
            f"{elements}</testsuite>"
        )

    return _report


@pytest.fixture
def fake_runtime_command() -> str:
    return f"{shlex.quote(sys.executable)} {shlex.quote(str(FAKE_RUNTIME))}"


@pytest.fixture
def binaries_dir(tmp_path) -> Path:
    directory = tmp_path / "test-classes"
    directory.mkdir()
    return directory


@pytest.fixture
def make_binary(binaries_dir):
    """Factory writing a fake test binary that scripts the fake runtime."""

    def _make(name: str, **behavior) -> Path:
        path = binaries_dir / name
        path.write_text(json.dumps(behavior), encoding="utf-8")
        return path

    return _make


@pytest.fixture
def run_config(fake_runtime_command):
    """Test run configuration using the fake runtime on free ports."""

    def _config(**overrides) -> TestRunConfig:
        values = dict(
            port=0,
            control_port=0,
            timeout=5.0,
            first_connection_timeout=3.0,
            player_command=fake_runtime_command,
            adl_command=fake_runtime_command,
            allow_headless=False,
        )
        values.update(overrides)
        return TestRunConfig(**values)

    return _config
