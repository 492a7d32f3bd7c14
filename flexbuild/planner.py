"""Compilation planning.

Turns a build descriptor into the library inputs of a compiler invocation:
resolve the global artifact, classify the dependency graph and, in
aggregate mode, fold in every module's transitive libraries.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

import structlog

from .dependencies.aggregation import Module, aggregate, aggregate_source_dirs, default_filter
from .dependencies.classifier import ClassificationResult, PathSet, classify
from .dependencies.global_artifact import resolve_global_for
from .dependencies.model import BuildMode, Dependency, Scope
from .project.schema import BuildProject
from .repository.base import ArtifactResolver, ChainResolver
from .repository.local import LocalRepository
from .repository.remote import RemoteRepository

log = structlog.get_logger("flexbuild.planner")


@dataclass
class CompilationPlan:
    """Everything the compiler invocation needs besides its own options."""
    mode: BuildMode
    global_artifact: Dependency
    libraries: ClassificationResult
    source_dirs: list[Path] = field(default_factory=list)

    def to_compiler_options(self) -> dict[str, list[str]]:
        options = self.libraries.to_compiler_options()
        options["source-path"] = [str(p) for p in self.source_dirs]
        return options


def build_resolver(project: BuildProject) -> ArtifactResolver:
    """Resolver chain for a project: local repository, then each remote."""
    local = LocalRepository(project.repository.local)
    resolvers: list[ArtifactResolver] = [local]
    resolvers.extend(RemoteRepository(url, cache=local) for url in project.repository.remote)
    return ChainResolver(resolvers)


def resolve_dependencies(
    dependencies: list[Dependency], resolver: ArtifactResolver
) -> list[Dependency]:
    """Attach files to dependencies that were declared without a path.

    Provided dependencies and locale-neutral resource bundles are left
    alone; the classifier never emits the former and picks the locale
    variant of the latter.
    """
    resolved = []
    for dependency in dependencies:
        if dependency.path is None and dependency.scope is not Scope.PROVIDED and not (
            dependency.is_resource_bundle and dependency.classifier is None
        ):
            dependency = dependency.resolved(resolver.resolve(dependency.coordinates))
        resolved.append(dependency)
    return resolved


def plan_compilation(
    project: BuildProject,
    resolver: Optional[ArtifactResolver] = None,
) -> Optional[CompilationPlan]:
    """Compute the library inputs for ``project``.

    Returns:
        The plan, or None when there is nothing to compile (no source
        directory, or an aggregate build outside the execution root).

    Raises:
        UnresolvedGlobalArtifactError: If the global artifact is missing.
        AggregationError: If any module fails to resolve.
        ArtifactResolutionError: If a declared dependency is missing.
    """
    resolver = resolver or build_resolver(project)
    mode = project.build_mode

    if mode is BuildMode.AGGREGATE:
        if not project.project.execution_root:
            log.info("planner.skipped", reason="aggregate mode active outside the execution root")
            return None
        source_dirs = aggregate_source_dirs(
            [_with_absolute_sources(project, m) for m in project.modules]
        )
    else:
        source_dirs = [p for p in project.source_dirs if p.is_dir()]

    if not source_dirs:
        log.info("planner.skipped", reason="source path doesn't exist")
        return None

    global_artifact = resolve_global_for(
        project.dependencies,
        project.target_kind,
        resolver,
        version=project.project.framework_version,
    )

    dependencies = resolve_dependencies(project.dependencies, resolver)
    libraries = classify(dependencies, mode, project.project.locale, resolver=resolver)

    external = PathSet([global_artifact.path])
    external.extend(libraries.external_libraries)
    libraries.external_libraries = external

    if mode is BuildMode.AGGREGATE:
        libraries.module_libraries.extend(aggregate(project.modules, resolver, default_filter))

    log.info(
        "planner.planned",
        mode=mode.value,
        external=len(libraries.external_libraries),
        library_path=len(libraries.library_path),
        include=len(libraries.include_libraries),
    )
    return CompilationPlan(
        mode=mode,
        global_artifact=global_artifact,
        libraries=libraries,
        source_dirs=source_dirs,
    )


def _with_absolute_sources(project: BuildProject, module: Module) -> Module:
    return replace(module, source_dirs=[project.resolve_path(p) for p in module.source_dirs])
