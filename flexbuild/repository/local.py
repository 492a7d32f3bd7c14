"""Local artifact repository using the standard directory layout."""

import os
from pathlib import Path
from typing import Optional, Union

from ..dependencies.model import Coordinates, Dependency
from ..errors import ArtifactResolutionError
from .base import artifact_path, metadata_path, parse_metadata

DEFAULT_LOCAL_REPOSITORY = Path.home() / ".m2" / "repository"


class LocalRepository:
    """Resolves artifacts from a directory on disk.

    Layout: ``<root>/com/example/lib/1.0/lib-1.0[-classifier].swc`` with the
    dependency descriptor at ``<root>/com/example/lib/1.0/lib-1.0.yaml``.
    """

    def __init__(self, root: Optional[Union[str, Path]] = None):
        if root is None:
            root = os.environ.get("FLEXBUILD_LOCAL_REPOSITORY", DEFAULT_LOCAL_REPOSITORY)
        self.root = Path(root).expanduser()

    def path_for(self, coordinates: Coordinates) -> Path:
        return self.root / artifact_path(coordinates)

    def resolve(self, coordinates: Coordinates) -> Path:
        path = self.path_for(coordinates)
        if not path.is_file():
            raise ArtifactResolutionError(coordinates, f"not found in {self.root}")
        return path

    def dependencies_of(self, coordinates: Coordinates) -> list[Dependency]:
        """Declared dependencies; an artifact without a descriptor has none."""
        path = self.root / metadata_path(coordinates)
        if not path.is_file():
            return []
        return parse_metadata(path.read_text(encoding="utf-8"), source=str(path))

    def __repr__(self) -> str:
        return f"LocalRepository({str(self.root)!r})"
