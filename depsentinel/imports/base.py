"""Shared pieces of the source import scanners."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Protocol, runtime_checkable

from depsentinel.models import Ecosystem, ImportSite, UsageSummary


@runtime_checkable
class ImportScanner(Protocol):
    """Finds import sites in source files and maps them onto coordinates."""

    ecosystem: Ecosystem
    file_patterns: list[str]

    def scan_file(self, relative_path: str, content: str) -> list[ImportSite]: ...

    def local_modules(self, root: Path) -> set[str]: ...

    def match(self, module: str, coordinates: list[str]) -> str | None: ...

    def infer(self, module: str, local: set[str]) -> str | None: ...


def line_of(content: str, pos: int) -> int:
    return content.count("\n", 0, pos) + 1


def summarize(sites: Iterable[ImportSite]) -> UsageSummary:
    """Fold the sites of one coordinate into a UsageSummary.

    Each distinct (file, line, module) counts once.
    """
    unique = {(s.file, s.line, s.module): s for s in sites}
    if not unique:
        return UsageSummary()
    kinds: set[str] = set()
    tags: set[str] = set()
    for site in unique.values():
        kinds.add(site.kind)
        kinds.update(site.flags)
        tags.update(site.build_tags)
    return UsageSummary(
        count=len(unique),
        files=tuple(sorted({s.file for s in unique.values()})),
        kinds=frozenset(kinds),
        conditional_count=sum(1 for s in unique.values() if s.conditional),
        build_tags=tuple(sorted(tags)),
    )


def longest_prefix(module: str, candidates: Iterable[str], separator: str) -> str | None:
    """The longest candidate equal to *module* or a *separator*-bounded prefix of it."""
    best: str | None = None
    for candidate in candidates:
        if module == candidate or module.startswith(candidate + separator):
            if best is None or len(candidate) > len(best):
                best = candidate
    return best
