"""Manifest locator: bounded-depth walk that skips ignore-listed folders."""

from __future__ import annotations

import fnmatch
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Version control, build output and dependency caches
DEFAULT_IGNORE_DIRS: frozenset[str] = frozenset(
    {
        ".git",
        ".svn",
        ".hg",
        ".idea",
        ".vscode",
        ".eclipse",
        "node_modules",
        "bower_components",
        "vendor",
        "__pycache__",
        ".tox",
        ".nox",
        ".venv",
        "venv",
        ".eggs",
        ".mypy_cache",
        ".pytest_cache",
        "site-packages",
        "target",
        "build",
        "dist",
        "out",
        "bin",
        "classes",
        "generated",
        "generated-sources",
        ".gradle",
        ".bsp",
        ".bundle",
        ".next",
        ".nuxt",
        "coverage",
    }
)


@dataclass
class LocatorResult:
    """Files found by a walk, plus directories that could not be read."""

    files: list[Path] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class ManifestLocator:
    """Walk a project tree depth-first and collect files matching patterns.

    Patterns are fnmatch-style and are tested against both the file name
    and the path relative to the root (``project/build.properties``).
    """

    def __init__(
        self,
        max_depth: int = 8,
        ignore_dirs: frozenset[str] | set[str] | None = None,
    ) -> None:
        self.max_depth = max_depth
        self.ignore_dirs = frozenset(ignore_dirs) if ignore_dirs is not None else DEFAULT_IGNORE_DIRS

    def locate(self, root: Path, patterns: list[str] | None = None) -> LocatorResult:
        """Return every file under *root* whose name matches one of *patterns*.

        With no patterns, every file within the depth bound is returned.
        Results are sorted by relative path.
        """
        result = LocatorResult()
        self._walk(root, root, 0, patterns, result)
        result.files.sort(key=lambda p: p.relative_to(root).as_posix())
        return result

    def _walk(
        self,
        root: Path,
        directory: Path,
        depth: int,
        patterns: list[str] | None,
        result: LocatorResult,
    ) -> None:
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as exc:
            warning = f"Skipped unreadable directory {directory}: {exc.strerror or exc}"
            logger.warning("%s", warning)
            result.warnings.append(warning)
            return

        for entry in entries:
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file()
            except OSError:
                continue
            if is_dir:
                if entry.name in self.ignore_dirs:
                    continue
                if depth + 1 > self.max_depth:
                    logger.debug("Depth limit reached at %s", entry.path)
                    continue
                self._walk(root, Path(entry.path), depth + 1, patterns, result)
            elif is_file:
                path = Path(entry.path)
                if patterns is None or matches_any(path.relative_to(root), patterns):
                    result.files.append(path)


def matches_any(relative: Path, patterns: list[str]) -> bool:
    """True when the file name or the relative posix path matches a pattern."""
    name = relative.name
    rel = relative.as_posix()
    for pattern in patterns:
        if "/" in pattern:
            if fnmatch.fnmatchcase(rel, pattern) or fnmatch.fnmatchcase(rel, f"*/{pattern}"):
                return True
        elif fnmatch.fnmatchcase(name, pattern):
            return True
    return False
