"""YAML build descriptor parser.

Parses ``flexbuild.yaml`` files into BuildProject dataclass objects.
"""

from pathlib import Path
from typing import Any, Union

import yaml

from ..dependencies.aggregation import Module
from ..dependencies.model import Coordinates, Dependency
from .schema import (
    BuildProject,
    CoverageConfig,
    ProjectInfo,
    RepositoryConfig,
    TestRunConfig,
)

DEFAULT_DESCRIPTOR = "flexbuild.yaml"


def parse_project(file_path: Union[str, Path]) -> BuildProject:
    """Parse a YAML build descriptor into a BuildProject.

    Relative paths in the descriptor are resolved against its directory.

    Raises:
        FileNotFoundError: If the descriptor doesn't exist.
        ValueError: If the YAML is malformed or missing required fields.
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Build descriptor not found: {file_path}")

    if file_path.suffix not in (".yaml", ".yml"):
        raise ValueError(f"Expected .yaml or .yml file, got: {file_path.suffix}")

    with open(file_path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Malformed YAML in {file_path}: {e}") from e

    if data is None:
        raise ValueError(f"Empty build descriptor: {file_path}")

    return parse_project_data(data, source=str(file_path), base_dir=file_path.parent.resolve())


def parse_project_data(
    data: dict, source: str = "<inline>", base_dir: Union[str, Path] = "."
) -> BuildProject:
    """Parse a build descriptor from an already-loaded mapping.

    Raises:
        ValueError: If required fields are missing or malformed.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Build descriptor must be a YAML mapping, got {type(data).__name__}")

    if "project" not in data:
        raise ValueError(f"Missing required field 'project' in {source}")

    project_data = _mapping(data["project"], "project", source)
    _require_fields(project_data, ["group_id", "artifact_id", "version"], "project", source)
    project = ProjectInfo(**_known_fields(ProjectInfo, project_data))

    repository = RepositoryConfig(
        **_known_fields(RepositoryConfig, _mapping(data.get("repository", {}), "repository", source))
    )
    if isinstance(repository.remote, str):
        repository.remote = [repository.remote]

    dependencies = [
        _parse_dependency(entry, f"dependencies[{i}]", source)
        for i, entry in enumerate(_list(data.get("dependencies", []), "dependencies", source))
    ]

    modules = [
        _parse_module(entry, f"modules[{i}]", source)
        for i, entry in enumerate(_list(data.get("modules", []), "modules", source))
    ]

    test = TestRunConfig(**_known_fields(TestRunConfig, _mapping(data.get("test", {}), "test", source)))
    coverage = CoverageConfig(
        **_known_fields(CoverageConfig, _mapping(data.get("coverage", {}), "coverage", source))
    )

    return BuildProject(
        project=project,
        repository=repository,
        dependencies=dependencies,
        modules=modules,
        test=test,
        coverage=coverage,
        base_dir=Path(base_dir),
    )


def _parse_dependency(entry: Any, context: str, source: str) -> Dependency:
    if isinstance(entry, str):
        entry = {"coordinates": entry}
    entry = _mapping(entry, context, source)
    _require_fields(entry, ["coordinates"], context, source)
    coordinates = _coordinates(entry["coordinates"], context, source)
    path = entry.get("path")
    return Dependency.from_coordinates(
        coordinates,
        scope=entry.get("scope"),
        path=Path(path) if path else None,
    )


def _parse_module(entry: Any, context: str, source: str) -> Module:
    if isinstance(entry, str):
        entry = {"artifact": entry}
    entry = _mapping(entry, context, source)
    _require_fields(entry, ["artifact"], context, source)
    managed = _mapping(entry.get("managed_versions", {}), f"{context}.managed_versions", source)
    return Module(
        artifact=_coordinates(entry["artifact"], context, source),
        source_dirs=[Path(p) for p in _list(entry.get("source_dirs", []), f"{context}.source_dirs", source)],
        managed_versions={str(k): str(v) for k, v in managed.items()},
        execution_root=bool(entry.get("execution_root", False)),
    )


def _coordinates(value: Any, context: str, source: str) -> Coordinates:
    try:
        return Coordinates.parse(str(value))
    except ValueError as e:
        raise ValueError(f"{e} in {context} ({source})") from e


def _known_fields(cls, data: dict) -> dict:
    return {k: v for k, v in data.items() if k in cls.__dataclass_fields__}


def _mapping(value: Any, context: str, source: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"'{context}' must be a mapping in {source}")
    return value


def _list(value: Any, context: str, source: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"'{context}' must be a list in {source}")
    return value


def _require_fields(
    data: dict, fields: list[str], context: str, source: str
) -> None:
    """Check that required fields exist in a dictionary."""
    for field_name in fields:
        if field_name not in data:
            raise ValueError(
                f"Missing required field '{field_name}' in {context} ({source})"
            )
