"""Repository module - artifact resolution."""

from .base import (
    ArtifactResolver,
    ChainResolver,
    artifact_path,
    metadata_path,
    parse_metadata,
    resolve_transitively,
)
from .local import DEFAULT_LOCAL_REPOSITORY, LocalRepository
from .remote import RemoteRepository, RetryPolicy, no_retry_policy

__all__ = [
    "ArtifactResolver",
    "ChainResolver",
    "DEFAULT_LOCAL_REPOSITORY",
    "LocalRepository",
    "RemoteRepository",
    "RetryPolicy",
    "artifact_path",
    "metadata_path",
    "no_retry_policy",
    "parse_metadata",
    "resolve_transitively",
]
