"""Dependencies module - model and compiler input classification.

The aggregation resolver lives in ``flexbuild.dependencies.aggregation``; it
depends on the repository layer and is imported from there directly.
"""

from .classifier import ClassificationResult, PathSet, classify
from .global_artifact import (
    FRAMEWORK_GROUP_ID,
    GLOBAL_ARTIFACT_IDS,
    resolve_global,
    resolve_global_for,
)
from .model import BuildMode, Coordinates, Dependency, DependencyType, Scope, TargetKind

__all__ = [
    "BuildMode",
    "ClassificationResult",
    "Coordinates",
    "Dependency",
    "DependencyType",
    "FRAMEWORK_GROUP_ID",
    "GLOBAL_ARTIFACT_IDS",
    "PathSet",
    "Scope",
    "TargetKind",
    "classify",
    "resolve_global",
    "resolve_global_for",
]
