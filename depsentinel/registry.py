"""Parser registry: discover manifest files and match them to parsers."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Protocol, runtime_checkable

from depsentinel.locator import ManifestLocator, LocatorResult, matches_any
from depsentinel.models import DeclaredDependency, Ecosystem


@runtime_checkable
class ManifestParser(Protocol):
    """Interface that every manifest parser must satisfy."""

    detection_method: str
    ecosystem: Ecosystem
    file_patterns: list[str]

    def can_handle(self, relative_path: Path) -> bool: ...

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]: ...


class PatternParser:
    """Default ``can_handle`` for parsers that are selected by file pattern."""

    file_patterns: list[str] = []

    def can_handle(self, relative_path: Path) -> bool:
        return matches_any(relative_path, self.file_patterns)


PARSER_REGISTRY: dict[str, ManifestParser] = {}


def register_parser(parser: ManifestParser) -> None:
    """Register a parser instance by its detection_method."""
    PARSER_REGISTRY[parser.detection_method] = parser


def parsers_for(ecosystems: Iterable[Ecosystem] | None = None) -> list[ManifestParser]:
    """Registered parsers, restricted to *ecosystems* when given."""
    if ecosystems is None:
        return list(PARSER_REGISTRY.values())
    wanted = set(ecosystems)
    return [p for p in PARSER_REGISTRY.values() if p.ecosystem in wanted]


def find_parser(
    relative_path: Path,
    ecosystems: Iterable[Ecosystem] | None = None,
) -> ManifestParser | None:
    """Return the first registered parser that accepts *relative_path*."""
    for parser in parsers_for(ecosystems):
        if parser.can_handle(relative_path):
            return parser
    return None


def discover_manifests(
    repo_path: Path,
    ecosystems: Iterable[Ecosystem] | None = None,
    locator: ManifestLocator | None = None,
) -> tuple[list[tuple[ManifestParser, Path]], LocatorResult]:
    """Walk the repo and match manifest files to registered parsers.

    Returns the (parser, matched_file) pairs in relative-path order together
    with the raw locator result (its warnings are surfaced by the caller).
    """
    eco_list = list(ecosystems) if ecosystems is not None else None
    parsers = parsers_for(eco_list)
    patterns = sorted({pattern for p in parsers for pattern in p.file_patterns})
    located = (locator or ManifestLocator()).locate(repo_path, patterns)

    matches: list[tuple[ManifestParser, Path]] = []
    for hit in located.files:
        parser = find_parser(hit.relative_to(repo_path), eco_list)
        if parser is not None:
            matches.append((parser, hit))
    return matches, located
