"""Aggregation resolver for multi-module builds.

In aggregate mode the sibling modules are documented/compiled as one
logical unit: each module's own artifact becomes a peer library, and
dependencies shared between modules collapse to a single entry.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional

import structlog

from ..errors import AggregationError, ArtifactResolutionError
from ..repository import base as repository
from .global_artifact import is_global
from .model import Coordinates, Dependency, DependencyType, Scope

log = structlog.get_logger("flexbuild.aggregation")

DependencyFilter = Callable[[Dependency], bool]


@dataclass
class Module:
    """A sibling build module taking part in an aggregate build."""
    artifact: Coordinates
    source_dirs: list[Path] = field(default_factory=list)
    managed_versions: dict[str, str] = field(default_factory=dict)
    execution_root: bool = False

    def __str__(self) -> str:
        return str(self.artifact)


def default_filter(dependency: Dependency) -> bool:
    """Primary artifacts that are neither test-scoped nor the global library."""
    return (
        dependency.type is DependencyType.SWC
        and dependency.scope is not Scope.TEST
        and not is_global(dependency)
    )


def canonical(path: Path) -> Path:
    """Canonical form of a path used for de-duplication."""
    return Path(path).expanduser().resolve()


def aggregate(
    modules: Iterable[Module],
    resolver: "repository.ArtifactResolver",
    dependency_filter: Optional[DependencyFilter] = None,
) -> list[Path]:
    """Union the transitive libraries of every module.

    Args:
        modules: Sibling modules, in build order.
        resolver: Resolver used for each module's transitive graph.
        dependency_filter: Predicate applied to each resolved dependency.

    Returns:
        Canonical file paths, ordered by first appearance, without duplicates.

    Raises:
        AggregationError: If any module cannot be resolved. Nothing partial
            is returned.
    """
    dependency_filter = dependency_filter or default_filter
    seen: dict[Path, None] = {}

    for module in modules:
        try:
            resolved = repository.resolve_transitively(
                resolver, module.artifact, module.managed_versions
            )
        except ArtifactResolutionError as e:
            raise AggregationError(module, e) from e

        added = 0
        for dependency in resolved:
            if not dependency_filter(dependency):
                continue
            path = canonical(dependency.path)
            if path not in seen:
                seen[path] = None
                added += 1

        log.debug("aggregation.module_resolved", module=str(module), libraries=added)

    return list(seen)


def aggregate_source_dirs(modules: Iterable[Module]) -> list[Path]:
    """Existing source directories of all modules, in module order."""
    dirs: list[Path] = []
    for module in modules:
        for source_dir in module.source_dirs:
            source_dir = Path(source_dir)
            if source_dir.is_dir() and source_dir not in dirs:
                dirs.append(source_dir)
    return dirs
