"""Run-level accumulation of coverage touches."""

import json
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Union


def normalize_classname(classname: str) -> str:
    """``com.example::Calculator`` -> ``com.example.Calculator``."""
    return classname.replace("::", ".").replace("/", ".")


@dataclass
class ClassCoverage:
    """Coverage figures for one class."""
    classname: str
    hits: dict[int, int]
    source_file: Optional[Path] = None
    valid_lines: Optional[set[int]] = None

    @property
    def package(self) -> str:
        package, _, _ = self.classname.rpartition(".")
        return package

    @property
    def simple_name(self) -> str:
        return self.classname.rpartition(".")[2]

    @property
    def lines_covered(self) -> int:
        if self.valid_lines is None:
            return len(self.hits)
        return len(self.valid_lines.intersection(self.hits))

    @property
    def lines_valid(self) -> int:
        if self.valid_lines is None:
            return len(self.hits)
        return len(self.valid_lines)

    @property
    def line_rate(self) -> float:
        if self.lines_valid == 0:
            return 0.0
        return self.lines_covered / self.lines_valid


class CoverageAccumulator:
    """Touch counts per class and line, merged across every report."""

    def __init__(self):
        self._touches: dict[str, Counter] = {}

    def add(self, classname: str, touches: Iterable[int]) -> None:
        """Merge one report's touches for ``classname``."""
        counter = self._touches.setdefault(normalize_classname(classname), Counter())
        counter.update(touches)

    def __len__(self) -> int:
        return len(self._touches)

    def __contains__(self, classname: str) -> bool:
        return normalize_classname(classname) in self._touches

    def hits(self, classname: str) -> dict[int, int]:
        return dict(self._touches.get(normalize_classname(classname), {}))

    @property
    def classnames(self) -> list[str]:
        return sorted(self._touches)

    def classes(self, source_dir: Optional[Path] = None) -> list[ClassCoverage]:
        """Per-class figures; line totals come from the source file when found."""
        result = []
        for classname in self.classnames:
            source_file = find_source(classname, source_dir) if source_dir else None
            result.append(ClassCoverage(
                classname=classname,
                hits=self.hits(classname),
                source_file=source_file,
                valid_lines=_source_lines(source_file) if source_file else None,
            ))
        return result

    def save(self, path: Union[str, Path]) -> Path:
        """Write the raw touch counts as JSON."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            classname: {str(line): count for line, count in sorted(counter.items())}
            for classname, counter in sorted(self._touches.items())
        }
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        return path


SOURCE_EXTENSIONS = (".as", ".mxml")


def find_source(classname: str, source_dir: Path) -> Optional[Path]:
    """Locate the source file of a class under ``source_dir``."""
    relative = Path(*normalize_classname(classname).split("."))
    for extension in SOURCE_EXTENSIONS:
        candidate = Path(source_dir) / relative.with_suffix(extension)
        if candidate.is_file():
            return candidate
    return None


def _source_lines(path: Path) -> set[int]:
    """Line numbers of non-blank, non-comment lines."""
    lines = set()
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        for number, line in enumerate(f, start=1):
            stripped = line.strip()
            if stripped and not stripped.startswith(("//", "/*", "*")):
                lines.add(number)
    return lines
