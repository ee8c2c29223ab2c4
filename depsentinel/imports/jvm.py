"""JVM import scanning for Java, Kotlin, Scala and Groovy sources."""

from __future__ import annotations

import re
from pathlib import Path

from depsentinel.models import Ecosystem, ImportSite

_IMPORT_RE = re.compile(r"(?m)^[ \t]*import\s+(?:static\s+)?(?P<name>[A-Za-z_][\w.]*)")

PLATFORM_PREFIXES = ("java.", "javax.", "kotlin.", "kotlinx.coroutines.", "scala.", "sun.", "jdk.", "groovy.")


def _score(module: str, coordinate: str) -> int:
    """How well an imported package matches a group:artifact coordinate."""
    group, _, artifact = coordinate.partition(":")
    segments = module.split(".")
    tokens = [t for t in artifact.split("-") if t and t not in ("core", "api", "java")]
    bonus = 1 if any(t in segments for t in tokens) else 0
    if module == group or module.startswith(group + "."):
        return len(group) * 2 + bonus
    parent = group.rsplit(".", 1)[0]
    if parent != group and module.startswith(parent + ".") and bonus:
        return len(parent) * 2
    return 0


class JvmImportScanner:
    ecosystem = Ecosystem.JAVA
    file_patterns = ["*.java", "*.kt", "*.scala", "*.groovy"]

    def scan_file(self, relative_path: str, content: str) -> list[ImportSite]:
        kind = "test" if "/test/" in f"/{relative_path}" else "static"
        sites: list[ImportSite] = []
        for m in _IMPORT_RE.finditer(content):
            name = m.group("name").rstrip(".")
            if name.startswith(PLATFORM_PREFIXES):
                continue
            sites.append(ImportSite(relative_path, content.count("\n", 0, m.start()) + 1, name, kind=kind))
        return sites

    def local_modules(self, root: Path) -> set[str]:
        return set()

    def match(self, module: str, coordinates: list[str]) -> str | None:
        best, best_score = None, 0
        for coordinate in sorted(coordinates):
            score = _score(module, coordinate)
            if score > best_score:
                best, best_score = coordinate, score
        return best

    def infer(self, module: str, local: set[str]) -> str | None:
        # Java packages do not name the artifact that ships them
        return None
