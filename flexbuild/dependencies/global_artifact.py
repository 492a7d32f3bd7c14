"""Resolution of the runtime-global library.

Every build links against exactly one global library (``playerglobal`` for
the standalone player, ``airglobal`` for AIR). It is fetched by fixed
coordinates rather than through the dependency graph, and a build cannot
proceed without it.
"""

from typing import TYPE_CHECKING, Iterable, Optional

import structlog

from ..errors import ArtifactResolutionError, UnresolvedGlobalArtifactError
from .model import Coordinates, Dependency, Scope, TargetKind

if TYPE_CHECKING:
    from ..repository.base import ArtifactResolver

log = structlog.get_logger("flexbuild.global")

FRAMEWORK_GROUP_ID = "com.adobe.flex.framework"

GLOBAL_ARTIFACT_IDS = {
    TargetKind.PLAYER: "playerglobal",
    TargetKind.AIR: "airglobal",
}


def global_coordinates(
    target_kind: TargetKind,
    version: str,
    classifier: Optional[str] = None,
) -> Coordinates:
    """Fixed coordinates of the global artifact for a target kind."""
    artifact_id = GLOBAL_ARTIFACT_IDS[TargetKind(target_kind)]
    return Coordinates(FRAMEWORK_GROUP_ID, artifact_id, version, "swc", classifier)


def is_global(dependency: Dependency) -> bool:
    """Whether a dependency is one of the global artifacts."""
    return (
        dependency.group_id == FRAMEWORK_GROUP_ID
        and dependency.artifact_id in GLOBAL_ARTIFACT_IDS.values()
    )


def find_declared_global(
    dependencies: Iterable[Dependency], target_kind: TargetKind
) -> Optional[Dependency]:
    """The provided-scope global artifact declared in the graph, if any."""
    artifact_id = GLOBAL_ARTIFACT_IDS[TargetKind(target_kind)]
    for dependency in dependencies:
        if (
            dependency.group_id == FRAMEWORK_GROUP_ID
            and dependency.artifact_id == artifact_id
            and dependency.scope is Scope.PROVIDED
        ):
            return dependency
    return None


def resolve_global(
    target_kind: TargetKind,
    version: Optional[str],
    resolver: "ArtifactResolver",
    classifier: Optional[str] = None,
) -> Dependency:
    """Fetch the global artifact for ``target_kind``.

    Raises:
        UnresolvedGlobalArtifactError: If no version is known or the artifact
            cannot be resolved. Always fatal.
    """
    target_kind = TargetKind(target_kind)
    artifact_id = GLOBAL_ARTIFACT_IDS[target_kind]

    if not version:
        raise UnresolvedGlobalArtifactError(
            target_kind.value,
            f"Global artifact '{artifact_id}' not resolved: no framework version declared. "
            f"Add a provided dependency on {FRAMEWORK_GROUP_ID}:{artifact_id} "
            "or set project.framework_version.",
        )

    coordinates = global_coordinates(target_kind, version, classifier)
    try:
        path = resolver.resolve(coordinates)
    except ArtifactResolutionError as e:
        raise UnresolvedGlobalArtifactError(
            target_kind.value, f"Global artifact '{artifact_id}' not resolved: {e.reason}"
        ) from e

    log.debug("global.resolved", artifact=str(coordinates), path=str(path))
    return Dependency.from_coordinates(coordinates, scope=Scope.PROVIDED, path=path)


def resolve_global_for(
    dependencies: Iterable[Dependency],
    target_kind: TargetKind,
    resolver: "ArtifactResolver",
    version: Optional[str] = None,
) -> Dependency:
    """Resolve the global artifact, taking version and classifier from the graph.

    An explicit ``version`` wins over the declared dependency.
    """
    declared = find_declared_global(dependencies, target_kind)
    classifier = declared.classifier if declared else None
    if version is None and declared is not None:
        version = declared.version
    return resolve_global(target_kind, version, resolver, classifier=classifier)
