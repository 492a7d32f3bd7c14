"""Discovery of compiled test binaries."""

import fnmatch
from pathlib import Path
from typing import Iterator, Optional, Union

import structlog

log = structlog.get_logger("flexbuild.scanner")

DEFAULT_PATTERN = "*.swf"

# Version-control, editor and OS metadata never worth running
DEFAULT_EXCLUDES = (
    "*~",
    "#*#",
    ".#*",
    "%*%",
    "._*",
    "CVS",
    ".cvsignore",
    "SCCS",
    "vssver.scc",
    ".svn",
    ".arch-ids",
    ".bzr",
    ".bzrignore",
    ".git",
    ".gitignore",
    ".gitattributes",
    ".hg",
    ".hgignore",
    ".DS_Store",
)


class TestScanner:
    """Finds test binaries in the top level of a directory.

    Iterating the scanner performs a fresh scan each time, so a scanner can
    be reused across runs. Binaries are yielded sorted by file name.
    """

    __test__ = False

    def __init__(
        self,
        directory: Optional[Union[str, Path]],
        pattern: str = DEFAULT_PATTERN,
        excludes: tuple[str, ...] = DEFAULT_EXCLUDES,
    ):
        self.directory = Path(directory) if directory is not None else None
        self.pattern = pattern
        self.excludes = excludes

    def __iter__(self) -> Iterator[Path]:
        return self.scan()

    def scan(self) -> Iterator[Path]:
        """Yield matching binaries; a missing or empty directory yields nothing."""
        if self.directory is None or not self.directory.is_dir():
            log.info("scanner.skipped", reason="test directory not found", directory=str(self.directory))
            return

        found = 0
        for path in sorted(self.directory.iterdir(), key=lambda p: p.name):
            if not path.is_file() or self._excluded(path.name):
                continue
            if fnmatch.fnmatch(path.name, self.pattern):
                found += 1
                yield path

        if found == 0:
            log.info("scanner.skipped", reason="no test binaries", directory=str(self.directory))

    def _excluded(self, name: str) -> bool:
        if name.startswith("."):
            return True
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.excludes)


def scan(directory: Optional[Union[str, Path]], pattern: str = DEFAULT_PATTERN) -> list[Path]:
    """Scan ``directory`` once and return the binaries found."""
    return list(TestScanner(directory, pattern))
