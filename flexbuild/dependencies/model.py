"""Dependency data models.

Defines the resolved dependency record and the enums used to route it
into compiler inputs.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Optional


class Scope(str, Enum):
    """Role of a dependency in compilation."""
    EXTERNAL = "external"
    INTERNAL = "internal"
    COMPILE = "compile"
    MERGED = "merged"
    TEST = "test"
    PROVIDED = "provided"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Scope":
        """Parse a scope string; missing or unknown values mean ``compile``."""
        if isinstance(value, Scope):
            return value
        if not isinstance(value, str) or not value:
            return cls.COMPILE
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.COMPILE


class DependencyType(str, Enum):
    """Packaging type of a dependency."""
    SWC = "swc"
    RESOURCE_BUNDLE = "rb.swc"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Optional[str]) -> "DependencyType":
        if isinstance(value, DependencyType):
            return value
        if not value:
            return cls.SWC
        if not isinstance(value, str):
            return cls.OTHER
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.OTHER


class BuildMode(str, Enum):
    """What the compiler is being asked to produce."""
    NORMAL = "normal"
    LIBRARY = "library"
    AGGREGATE = "aggregate"
    TEST = "test"


class TargetKind(str, Enum):
    """Runtime the build targets; selects the global artifact."""
    PLAYER = "player"
    AIR = "air"


@dataclass(frozen=True)
class Coordinates:
    """Repository coordinates of an artifact."""
    group_id: str
    artifact_id: str
    version: str
    type: str = "swc"
    classifier: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "Coordinates":
        """Parse ``group:artifact:version[:type[:classifier]]``.

        Raises:
            ValueError: If fewer than three parts are given.
        """
        parts = [p.strip() for p in text.split(":")]
        if len(parts) < 3 or len(parts) > 5 or not all(parts[:3]):
            raise ValueError(
                f"Invalid coordinates '{text}'. Expected group:artifact:version[:type[:classifier]]"
            )
        group_id, artifact_id, version = parts[:3]
        type_ = parts[3] if len(parts) > 3 and parts[3] else "swc"
        classifier = parts[4] if len(parts) > 4 and parts[4] else None
        return cls(group_id, artifact_id, version, type_, classifier)

    @property
    def versionless_key(self) -> tuple[str, str]:
        """Key used by managed version maps."""
        return self.group_id, self.artifact_id

    def with_classifier(self, classifier: Optional[str]) -> "Coordinates":
        return replace(self, classifier=classifier)

    def with_version(self, version: str) -> "Coordinates":
        return replace(self, version=version)

    def __str__(self) -> str:
        text = f"{self.group_id}:{self.artifact_id}:{self.version}:{self.type}"
        if self.classifier:
            text += f":{self.classifier}"
        return text


@dataclass(frozen=True)
class Dependency:
    """A resolved dependency. Immutable once resolved."""
    group_id: str
    artifact_id: str
    version: str
    classifier: Optional[str] = None
    type: DependencyType = DependencyType.SWC
    scope: Scope = Scope.COMPILE
    path: Optional[Path] = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "type", DependencyType.parse(self.type))
        object.__setattr__(self, "scope", Scope.parse(self.scope))
        if self.path is not None and not isinstance(self.path, Path):
            object.__setattr__(self, "path", Path(self.path))

    @classmethod
    def from_coordinates(
        cls,
        coordinates: Coordinates,
        scope: Optional[str] = None,
        path: Optional[Path] = None,
    ) -> "Dependency":
        return cls(
            group_id=coordinates.group_id,
            artifact_id=coordinates.artifact_id,
            version=coordinates.version,
            classifier=coordinates.classifier,
            type=coordinates.type,
            scope=scope,
            path=path,
        )

    @property
    def key(self) -> tuple[str, str, Optional[str], DependencyType]:
        """Uniqueness key; versions are mediated upstream."""
        return self.group_id, self.artifact_id, self.classifier, self.type

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(
            self.group_id, self.artifact_id, self.version, self.type.value, self.classifier
        )

    @property
    def is_resource_bundle(self) -> bool:
        return self.type is DependencyType.RESOURCE_BUNDLE

    @property
    def is_resolved(self) -> bool:
        return self.path is not None

    def resolved(self, path: Path) -> "Dependency":
        return replace(self, path=Path(path))

    def __str__(self) -> str:
        return f"{self.coordinates} ({self.scope.value})"
