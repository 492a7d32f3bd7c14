"""Build descriptor validator.

Validates parsed BuildProject objects against the plugin's rules.
"""

from .schema import (
    BuildProject,
    ValidationError,
    ValidationResult,
    VALID_COVERAGE_FORMATS,
    VALID_COVERAGE_PROVIDERS,
    VALID_MODES,
    VALID_TARGETS,
)


def validate_project(project: BuildProject) -> ValidationResult:
    """Validate a parsed BuildProject.

    Checks:
    - Project fields (target, mode, locale)
    - Test run ports and timeouts
    - Coverage provider and formats
    - Aggregate mode has modules

    Returns:
        ValidationResult with errors and warnings.
    """
    errors: list[ValidationError] = []
    warnings: list[ValidationError] = []

    _validate_project_info(project, errors, warnings)
    _validate_test(project, errors, warnings)
    _validate_coverage(project, errors, warnings)

    if project.project.mode == "aggregate" and not project.modules:
        errors.append(ValidationError(
            path="modules",
            message="Aggregate mode requires at least one module.",
        ))

    if not project.dependencies and not project.project.framework_version:
        warnings.append(ValidationError(
            path="dependencies",
            message="No dependencies and no framework_version; the global artifact cannot be resolved.",
            severity="warning",
        ))

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )


def _validate_project_info(
    project: BuildProject,
    errors: list[ValidationError],
    warnings: list[ValidationError],
) -> None:
    info = project.project

    for name in ("group_id", "artifact_id", "version"):
        if not getattr(info, name):
            errors.append(ValidationError(
                path=f"project.{name}",
                message=f"'{name}' is required and must not be empty.",
            ))

    if info.target not in VALID_TARGETS:
        errors.append(ValidationError(
            path="project.target",
            message=f"Invalid target '{info.target}'. Must be one of: {', '.join(sorted(VALID_TARGETS))}",
        ))

    if info.mode not in VALID_MODES:
        errors.append(ValidationError(
            path="project.mode",
            message=f"Invalid mode '{info.mode}'. Must be one of: {', '.join(sorted(VALID_MODES))}",
        ))

    if not info.locale:
        warnings.append(ValidationError(
            path="project.locale",
            message="No locale set; resource bundles will be ignored.",
            severity="warning",
        ))


def _validate_test(
    project: BuildProject,
    errors: list[ValidationError],
    warnings: list[ValidationError],
) -> None:
    test = project.test

    for name in ("port", "control_port"):
        port = getattr(test, name)
        if not isinstance(port, int) or not 0 <= port < 65536:
            errors.append(ValidationError(
                path=f"test.{name}",
                message=f"Invalid port {port!r}. Must be between 0 and 65535 (0 = any free port).",
            ))

    if test.port == test.control_port and test.port != 0:
        errors.append(ValidationError(
            path="test.control_port",
            message="Control port and result port must differ.",
        ))

    for name in ("timeout", "first_connection_timeout"):
        value = getattr(test, name)
        if not isinstance(value, (int, float)) or value <= 0:
            errors.append(ValidationError(
                path=f"test.{name}",
                message=f"Timeout must be positive, got {value!r}.",
            ))

    if test.ignore_failures:
        warnings.append(ValidationError(
            path="test.ignore_failures",
            message="Test failures will not fail the build.",
            severity="warning",
        ))


def _validate_coverage(
    project: BuildProject,
    errors: list[ValidationError],
    warnings: list[ValidationError],
) -> None:
    coverage = project.coverage
    if not coverage.enabled:
        return

    if coverage.provider not in VALID_COVERAGE_PROVIDERS:
        errors.append(ValidationError(
            path="coverage.provider",
            message=f"Invalid coverage provider '{coverage.provider}'. Must be one of: {', '.join(sorted(VALID_COVERAGE_PROVIDERS))}",
        ))

    for i, fmt in enumerate(coverage.formats):
        if fmt not in VALID_COVERAGE_FORMATS:
            errors.append(ValidationError(
                path=f"coverage.formats[{i}]",
                message=f"Invalid coverage format '{fmt}'. Must be one of: {', '.join(sorted(VALID_COVERAGE_FORMATS))}",
            ))

    if not coverage.instrumenter:
        warnings.append(ValidationError(
            path="coverage.instrumenter",
            message="No instrumenter command configured; binaries are run uninstrumented.",
            severity="warning",
        ))
