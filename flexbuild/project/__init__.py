"""Project module - YAML build descriptor parsing."""

from .schema import (
    BuildProject,
    CoverageConfig,
    ProjectInfo,
    RepositoryConfig,
    TestRunConfig,
    ValidationError,
    ValidationResult,
)
from .parser import DEFAULT_DESCRIPTOR, parse_project, parse_project_data
from .validator import validate_project

__all__ = [
    "BuildProject",
    "CoverageConfig",
    "DEFAULT_DESCRIPTOR",
    "ProjectInfo",
    "RepositoryConfig",
    "TestRunConfig",
    "ValidationError",
    "ValidationResult",
    "parse_project",
    "parse_project_data",
    "validate_project",
]
