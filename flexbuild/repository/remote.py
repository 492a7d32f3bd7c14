"""HTTP client for remote artifact repositories.

Downloads artifacts (and their dependency descriptors) from a repository
served over HTTP in the standard layout and caches them in a local
repository:

- GET <base>/<group path>/<artifact>/<version>/<artifact>-<version>.swc
- GET <base>/<group path>/<artifact>/<version>/<artifact>-<version>.yaml
"""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import requests
import structlog

from ..dependencies.model import Coordinates, Dependency
from ..errors import ArtifactResolutionError
from .base import artifact_path, metadata_path, parse_metadata
from .local import LocalRepository

log = structlog.get_logger("flexbuild.repository")


@dataclass(frozen=True)
class RetryPolicy:
    """How often, and how patiently, a failed download is retried.

    Connection errors, timeouts and the statuses in ``retryable_status_codes``
    are retried with exponential backoff; any other 4xx is final.
    """
    max_retries: int = 3
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 30.0
    retryable_status_codes: frozenset[int] = frozenset({429, 500, 502, 503, 504})

    def get_delay(self, attempt: int) -> float:
        return min(self.initial_delay * self.backoff_factor ** attempt, self.max_delay)

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_retries

    def is_retryable(self, status_code: int) -> bool:
        return status_code in self.retryable_status_codes


def no_retry_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=0)


class RemoteRepository:
    """Resolves artifacts from a remote HTTP repository into a local cache."""

    def __init__(
        self,
        base_url: str,
        cache: LocalRepository,
        retry_policy: Optional[RetryPolicy] = None,
        request_timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the remote repository.

        Args:
            base_url: Repository root (e.g., https://repo.example.com/maven2).
            cache: Local repository downloads are stored in.
            retry_policy: Retry policy for failed requests (default: 3 retries,
                1s initial delay, 2x backoff, 30s max).
            request_timeout: Per-request timeout in seconds.
            session: Optional pre-configured requests session.
        """
        self.base_url = base_url.rstrip("/")
        self.cache = cache
        self.retry_policy = retry_policy or RetryPolicy()
        self.request_timeout = request_timeout
        self._session = session or requests.Session()

    def resolve(self, coordinates: Coordinates) -> Path:
        """Return the cached artifact, downloading it first if needed.

        Raises:
            ArtifactResolutionError: If the artifact is missing remotely or
                the repository stays unreachable after retries.
        """
        target = self.cache.path_for(coordinates)
        if target.is_file():
            return target

        url = f"{self.base_url}/{artifact_path(coordinates)}"
        response = self._get(url, coordinates)
        if response is None:
            raise ArtifactResolutionError(coordinates, f"not found at {self.base_url}")

        partial = target.with_name(target.name + ".part")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(partial, "wb") as f:
                for chunk in response.iter_content(chunk_size=64 * 1024):
                    f.write(chunk)
            partial.replace(target)
        except (requests.RequestException, OSError) as e:
            partial.unlink(missing_ok=True)
            raise ArtifactResolutionError(coordinates, f"download from {url} failed: {e}") from e
        finally:
            response.close()

        log.info("repository.downloaded", artifact=str(coordinates), url=url)
        return target

    def dependencies_of(self, coordinates: Coordinates) -> list[Dependency]:
        target = self.cache.root / metadata_path(coordinates)
        if not target.is_file():
            url = f"{self.base_url}/{metadata_path(coordinates)}"
            response = self._get(url, coordinates)
            if response is None:
                return []
            try:
                text = response.text
            except requests.RequestException as e:
                raise ArtifactResolutionError(coordinates, f"download from {url} failed: {e}") from e
            finally:
                response.close()
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
        return parse_metadata(target.read_text(encoding="utf-8"), source=str(target))

    def _get(self, url: str, coordinates: Coordinates) -> Optional[requests.Response]:
        """GET with retry on connection errors, timeouts and retryable statuses.

        Returns:
            The response, or None on 404.
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.retry_policy.max_retries + 1):
            try:
                response = self._session.get(url, timeout=self.request_timeout, stream=True)

                if response.status_code == 404:
                    response.close()
                    return None

                if not self.retry_policy.is_retryable(response.status_code):
                    try:
                        response.raise_for_status()
                    except requests.HTTPError:
                        response.close()
                        raise
                    return response

                response.close()
                last_error = requests.HTTPError(
                    f"{response.status_code} from {url}", response=response
                )

            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = e

            except requests.HTTPError as e:
                raise ArtifactResolutionError(coordinates, str(e)) from e

            if self.retry_policy.should_retry(attempt):
                delay = self.retry_policy.get_delay(attempt)
                log.debug("repository.retrying", url=url, attempt=attempt + 1, delay=delay)
                time.sleep(delay)

        raise ArtifactResolutionError(coordinates, f"repository unreachable: {last_error}")

    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
