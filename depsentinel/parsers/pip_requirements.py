"""Parser for pip requirements files (requirements*.txt, requirements.in, constraints)."""

from __future__ import annotations

import re
from pathlib import Path

from depsentinel.models import DeclaredDependency, Ecosystem, Scope
from depsentinel.registry import PatternParser, register_parser

# PEP 508 simplified: name followed by optional extras and version specifiers
PEP508_RE = re.compile(
    r"^([A-Za-z0-9]([A-Za-z0-9._-]*[A-Za-z0-9])?)"  # package name
    r"(\[[^\]]*\])?"  # optional extras [extra1,extra2]
    r"\s*"
    r"(.*)?$",  # version specifiers
)

EXACT_VERSION_RE = re.compile(r"^===?\s*([^\s,;]+)$")

_DEV_NAME_RE = re.compile(r"(?:^|[-_./])(dev|test|tests|testing|lint|docs|ci)(?:[-_.]|$)")


def split_requirement(line: str) -> tuple[str, str | None, str | None] | None:
    """Split a PEP 508 requirement into (name, constraint, exact_version).

    Environment markers (everything after ``;``) and URL requirements are dropped.
    """
    line = line.strip()
    marker_pos = line.find(";")
    if marker_pos != -1:
        line = line[:marker_pos].strip()
    if not line or " @ " in line:
        name = line.split(" @ ", 1)[0].strip()
        return (name, None, None) if name else None

    m = PEP508_RE.match(line)
    if not m:
        return None
    name = m.group(1)
    constraint = (m.group(4) or "").strip().strip("()").strip() or None

    resolved: str | None = None
    if constraint:
        exact = EXACT_VERSION_RE.match(constraint)
        if exact:
            resolved = exact.group(1)
    return name, constraint, resolved


def scope_from_filename(file_name: str) -> Scope:
    stem = file_name.lower()
    if _DEV_NAME_RE.search(stem):
        return Scope.TEST if "test" in stem else Scope.DEV
    return Scope.RUNTIME


class PipRequirementsParser(PatternParser):
    detection_method = "pip-requirements"
    ecosystem = Ecosystem.PYTHON
    file_patterns = [
        "requirements*.txt",
        "*-requirements.txt",
        "*_requirements.txt",
        "requirements/*.txt",
        "requirements*.in",
        "constraints*.txt",
    ]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        deps: list[DeclaredDependency] = []
        rel_path = file_path.name
        scope = scope_from_filename(
            f"{file_path.parent.name}/{rel_path}" if file_path.parent.name == "requirements" else rel_path
        )
        constraints_file = rel_path.lower().startswith("constraints")

        for lineno, raw_line in self._logical_lines(content):
            line = raw_line.split(" #", 1)[0].split(" --", 1)[0].strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith(("-r", "-c", "-e", "--", "git+", "http:", "https:", "file:", ".")):
                continue

            parts = split_requirement(line)
            if parts is None:
                continue
            name, constraint, resolved = parts

            deps.append(
                DeclaredDependency(
                    name=name,
                    ecosystem=self.ecosystem,
                    version=constraint,
                    resolved_version=resolved,
                    scope=scope,
                    raw_scope=rel_path,
                    is_direct=not constraints_file,
                    source_file=rel_path,
                    detection_method=self.detection_method,
                    line=lineno,
                )
            )

        return deps

    @staticmethod
    def _logical_lines(content: str) -> list[tuple[int, str]]:
        """Join backslash continuations, keyed by the physical line they start on."""
        lines: list[tuple[int, str]] = []
        buffer = ""
        start = 0
        for lineno, raw in enumerate(content.splitlines(), start=1):
            if not buffer:
                start = lineno
            if raw.rstrip().endswith("\\"):
                buffer += raw.rstrip()[:-1] + " "
                continue
            lines.append((start, buffer + raw))
            buffer = ""
        if buffer:
            lines.append((start, buffer))
        return lines


register_parser(PipRequirementsParser())
