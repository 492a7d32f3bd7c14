"""Dependency classification engine.

Routes every resolved dependency into one of the compiler's library inputs:

- ``external_libraries``: linked against but left out of the output
  (``external-library-path``)
- ``merged_libraries``: linked and merged as needed (``library-path``)
- ``include_libraries``: merged in full (``include-libraries``)

The routing is a single ``match`` over ``(scope, type)`` so rule precedence
reads top to bottom.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional

import structlog

from ..errors import ArtifactResolutionError
from .model import BuildMode, Dependency, DependencyType, Scope

if TYPE_CHECKING:
    from ..repository.base import ArtifactResolver

log = structlog.get_logger("flexbuild.classifier")


class PathSet:
    """Insertion-ordered set of file paths."""

    def __init__(self, paths: Iterable[Path] = ()):
        self._paths: dict[Path, None] = {}
        self.extend(paths)

    def add(self, path: Path) -> None:
        self._paths.setdefault(Path(path), None)

    def extend(self, paths: Iterable[Path]) -> None:
        for path in paths:
            self.add(path)

    def __contains__(self, path) -> bool:
        return Path(path) in self._paths

    def __iter__(self):
        return iter(self._paths)

    def __len__(self) -> int:
        return len(self._paths)

    def __eq__(self, other) -> bool:
        if isinstance(other, PathSet):
            return list(self) == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"PathSet({[str(p) for p in self]})"

    def to_list(self) -> list[str]:
        return [str(p) for p in self]


@dataclass
class ClassificationResult:
    """Compiler library inputs produced by ``classify``."""
    external_libraries: PathSet = field(default_factory=PathSet)
    merged_libraries: PathSet = field(default_factory=PathSet)
    include_libraries: PathSet = field(default_factory=PathSet)
    module_libraries: PathSet = field(default_factory=PathSet)
    dropped: list[Dependency] = field(default_factory=list)

    @property
    def library_path(self) -> PathSet:
        """``library-path``: merged libraries followed by aggregated module libraries."""
        paths = PathSet(self.merged_libraries)
        paths.extend(self.module_libraries)
        return paths

    def to_compiler_options(self) -> dict[str, list[str]]:
        """Configuration fields consumed by the compiler invocation."""
        return {
            "external-library-path": self.external_libraries.to_list(),
            "library-path": self.library_path.to_list(),
            "include-libraries": self.include_libraries.to_list(),
        }


def classify(
    dependencies: Iterable[Dependency],
    mode: BuildMode = BuildMode.NORMAL,
    locale: Optional[str] = None,
    resolver: Optional["ArtifactResolver"] = None,
) -> ClassificationResult:
    """Partition dependencies into compiler inputs.

    Args:
        dependencies: Resolved dependencies, in traversal order.
        mode: Build mode. ``TEST`` routes test-scoped dependencies into
            ``include_libraries``; ``LIBRARY`` keeps compile-scoped ones external.
        locale: Active build locale used to select resource bundles.
        resolver: Used to fetch the locale variant of resource bundles
            declared without a classifier. Optional.

    Returns:
        ClassificationResult; output order follows input order.
    """
    mode = BuildMode(mode)
    result = ClassificationResult()

    for dependency in dependencies:
        target = _route(dependency, mode)

        if target is None:
            result.dropped.append(dependency)
            continue

        if dependency.is_resource_bundle:
            bundle = _localized_bundle(dependency, locale, resolver)
            if bundle is None:
                result.dropped.append(dependency)
                continue
            dependency = bundle

        if dependency.path is None:
            log.warning("classifier.unresolved_dependency", dependency=str(dependency))
            result.dropped.append(dependency)
            continue

        getattr(result, target).add(dependency.path)

    log.debug(
        "classifier.classified",
        mode=mode.value,
        external=len(result.external_libraries),
        merged=len(result.merged_libraries),
        include=len(result.include_libraries),
        dropped=len(result.dropped),
    )
    return result


def _route(dependency: Dependency, mode: BuildMode) -> Optional[str]:
    """Name of the result set a dependency belongs to, or None to drop it."""
    match (dependency.scope, dependency.type):
        case (Scope.TEST, _):
            return "include_libraries" if mode is BuildMode.TEST else None
        case (Scope.PROVIDED, _):
            return None
        case (_, DependencyType.RESOURCE_BUNDLE):
            return "merged_libraries"
        case (Scope.EXTERNAL, _):
            return "external_libraries"
        case (Scope.INTERNAL, _):
            return "include_libraries"
        case (Scope.MERGED, _):
            return "merged_libraries"
        case (Scope.COMPILE, _) if mode is BuildMode.LIBRARY:
            return "external_libraries"
        case _:
            return "merged_libraries"


def _localized_bundle(
    bundle: Dependency,
    locale: Optional[str],
    resolver: Optional["ArtifactResolver"],
) -> Optional[Dependency]:
    """Return the bundle for the active locale, or None if it doesn't apply."""
    if not locale:
        return None

    if bundle.classifier == locale:
        return bundle

    if bundle.classifier is None and resolver is not None:
        coordinates = bundle.coordinates.with_classifier(locale)
        try:
            path = resolver.resolve(coordinates)
        except ArtifactResolutionError:
            log.info("classifier.bundle_locale_missing", bundle=str(bundle), locale=locale)
            return None
        return Dependency.from_coordinates(coordinates, scope=bundle.scope, path=path)

    # Wrong locale: invisible to the compiler
    return None
