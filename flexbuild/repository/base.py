"""Artifact resolver capability and transitive resolution.

Resolvers are passed explicitly to the classification and aggregation code,
so tests can substitute an in-memory implementation for a live repository.
"""

from collections import deque
from pathlib import Path, PurePosixPath
from typing import Iterable, Mapping, Optional, Protocol, Union

import structlog
import yaml

from ..dependencies.model import Coordinates, Dependency, Scope
from ..errors import ArtifactResolutionError

log = structlog.get_logger("flexbuild.repository")

# Scopes that never propagate to dependants
NON_TRANSITIVE_SCOPES = {Scope.TEST, Scope.PROVIDED}

ManagedVersions = Mapping[Union[str, tuple[str, str]], str]


class ArtifactResolver(Protocol):
    """Resolves coordinates to local files."""

    def resolve(self, coordinates: Coordinates) -> Path:
        """Return the local file for ``coordinates``.

        Raises:
            ArtifactResolutionError: If the artifact cannot be found.
        """
        ...

    def dependencies_of(self, coordinates: Coordinates) -> list[Dependency]:
        """Return the declared (unresolved) dependencies of an artifact."""
        ...


def artifact_path(coordinates: Coordinates) -> PurePosixPath:
    """Repository-relative path of an artifact in the standard layout."""
    classifier = f"-{coordinates.classifier}" if coordinates.classifier else ""
    filename = f"{coordinates.artifact_id}-{coordinates.version}{classifier}.{coordinates.type}"
    return _version_dir(coordinates) / filename


def metadata_path(coordinates: Coordinates) -> PurePosixPath:
    """Repository-relative path of an artifact's dependency descriptor."""
    return _version_dir(coordinates) / f"{coordinates.artifact_id}-{coordinates.version}.yaml"


def _version_dir(coordinates: Coordinates) -> PurePosixPath:
    return PurePosixPath(
        *coordinates.group_id.split("."), coordinates.artifact_id, coordinates.version
    )


def parse_metadata(text: str, source: str = "<metadata>") -> list[Dependency]:
    """Parse a dependency descriptor.

    Expected YAML format::

        dependencies:
          - coordinates: com.example:lib:1.0:swc
            scope: external
          - coordinates: com.example:other:2.0
            optional: true

    Raises:
        ValueError: If the descriptor is malformed.
    """
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Dependency descriptor must be a mapping in {source}")

    entries = data.get("dependencies") or []
    if not isinstance(entries, list):
        raise ValueError(f"'dependencies' must be a list in {source}")

    dependencies = []
    for i, entry in enumerate(entries):
        if isinstance(entry, str):
            entry = {"coordinates": entry}
        if not isinstance(entry, dict) or "coordinates" not in entry:
            raise ValueError(f"dependencies[{i}] needs 'coordinates' in {source}")
        if entry.get("optional"):
            continue
        coordinates = Coordinates.parse(str(entry["coordinates"]))
        dependencies.append(Dependency.from_coordinates(coordinates, scope=entry.get("scope")))
    return dependencies


def normalize_managed_versions(managed: Optional[ManagedVersions]) -> dict[tuple[str, str], str]:
    """Accept ``"group:artifact"`` or ``(group, artifact)`` keys."""
    normalized: dict[tuple[str, str], str] = {}
    for key, version in (managed or {}).items():
        if isinstance(key, str):
            group_id, _, artifact_id = key.partition(":")
            key = (group_id, artifact_id)
        normalized[tuple(key)] = str(version)
    return normalized


def resolve_transitively(
    resolver: ArtifactResolver,
    coordinates: Coordinates,
    managed_versions: Optional[ManagedVersions] = None,
) -> list[Dependency]:
    """Resolve an artifact and everything it depends on.

    The graph is walked breadth-first so the nearest declaration of an
    artifact wins. Versions found in ``managed_versions`` override declared
    ones. Test and provided dependencies of dependencies are not followed.

    Returns:
        Resolved dependencies, the requested artifact first.

    Raises:
        ArtifactResolutionError: If any node of the graph cannot be resolved.
    """
    managed = normalize_managed_versions(managed_versions)

    def pin(coords: Coordinates) -> Coordinates:
        version = managed.get(coords.versionless_key)
        return coords.with_version(version) if version else coords

    root = pin(coordinates)
    resolved = [Dependency.from_coordinates(root, scope=Scope.COMPILE, path=resolver.resolve(root))]
    seen = {resolved[0].key}
    pending = deque([root])

    while pending:
        current = pending.popleft()
        for declared in resolver.dependencies_of(current):
            if declared.scope in NON_TRANSITIVE_SCOPES:
                continue
            if declared.key in seen:
                continue
            seen.add(declared.key)

            pinned = pin(declared.coordinates)
            dependency = Dependency.from_coordinates(
                pinned, scope=declared.scope, path=resolver.resolve(pinned)
            )
            resolved.append(dependency)
            pending.append(pinned)

    log.debug("repository.resolved_transitively", artifact=str(root), count=len(resolved))
    return resolved


class ChainResolver:
    """Tries each resolver in order; the first hit wins."""

    def __init__(self, resolvers: Iterable[ArtifactResolver]):
        self.resolvers = list(resolvers)

    def resolve(self, coordinates: Coordinates) -> Path:
        errors = []
        for resolver in self.resolvers:
            try:
                return resolver.resolve(coordinates)
            except ArtifactResolutionError as e:
                errors.append(e.reason)
        raise ArtifactResolutionError(coordinates, "; ".join(errors) or "no repositories configured")

    def dependencies_of(self, coordinates: Coordinates) -> list[Dependency]:
        for resolver in self.resolvers:
            try:
                return resolver.dependencies_of(coordinates)
            except ArtifactResolutionError:
                continue
        return []
