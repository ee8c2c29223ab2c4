"""Dependency graph builder: merges parser, toolchain and usage data into one
immutable, coordinate-keyed snapshot."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace

import structlog

from depsentinel.imports import UsageReport
from depsentinel.models import (
    DeclaredDependency,
    Dependency,
    Ecosystem,
    ManifestFile,
    ResolvedDependency,
    Scope,
    ToolReport,
    ToolUnavailable,
    UsageSummary,
)

log = structlog.get_logger("depsentinel.engine")


def canonical_coordinate(name: str, ecosystem: Ecosystem) -> str:
    """Identity of a dependency within its ecosystem.

    Python names are PEP 503 normalized; the other ecosystems are already
    canonical once surrounding whitespace is gone.
    """
    name = name.strip()
    if ecosystem is Ecosystem.PYTHON:
        return re.sub(r"[-_.]+", "-", name).lower()
    return name


def _default_scope(ecosystem: Ecosystem) -> Scope:
    return Scope.COMPILE if ecosystem is Ecosystem.JAVA else Scope.RUNTIME


def _append_unique(items: list[str], value: str | None) -> None:
    if value and value not in items:
        items.append(value)


@dataclass
class _Entry:
    """Mutable accumulator for one coordinate while the graph is being built."""

    coordinate: str
    ecosystem: Ecosystem
    declared_versions: list[str] = field(default_factory=list)
    direct_versions: list[str] = field(default_factory=list)
    resolved_versions: list[str] = field(default_factory=list)
    direct_scopes: list[Scope] = field(default_factory=list)
    other_scopes: list[Scope] = field(default_factory=list)
    is_direct: bool = False
    optional: list[bool] = field(default_factory=list)
    exclusions: list[str] = field(default_factory=list)
    replacements: list[str] = field(default_factory=list)
    groups: list[str] = field(default_factory=list)
    source_files: list[str] = field(default_factory=list)
    evicted_by: str | None = None
    selected_version: str | None = None
    usage: UsageSummary = UsageSummary()
    inferred: bool = False

    def resolved_version(self) -> str | None:
        if self.selected_version:
            return self.selected_version
        if not self.resolved_versions:
            return None
        for version in self.direct_versions or self.declared_versions:
            if version in self.resolved_versions:
                return version
        return self.resolved_versions[-1]

    def scope(self) -> Scope:
        candidates = self.direct_scopes or self.other_scopes
        if not candidates:
            return _default_scope(self.ecosystem)
        return min(candidates, key=lambda s: s.precedence)

    def freeze(self) -> Dependency:
        declared = (self.direct_versions or self.declared_versions or [None])[0]
        return Dependency(
            coordinate=self.coordinate,
            ecosystem=self.ecosystem,
            declared_version=declared,
            resolved_version=self.resolved_version(),
            scope=self.scope(),
            is_direct=self.is_direct,
            usage_count=self.usage.count,
            usage=self.usage,
            declared_versions=tuple(self.declared_versions),
            exclusions=tuple(self.exclusions),
            replacements=tuple(self.replacements),
            evicted=self.evicted_by is not None,
            evicted_by=self.evicted_by,
            optional=bool(self.optional) and all(self.optional),
            inferred=self.inferred,
            groups=tuple(self.groups),
            source_files=tuple(self.source_files),
        )


@dataclass(frozen=True)
class DependencyGraph:
    """Finished analysis snapshot; dependencies are sorted by coordinate."""

    dependencies: tuple[Dependency, ...] = ()
    edges: tuple[tuple[str, str], ...] = ()
    manifests: tuple[ManifestFile, ...] = ()
    tool_reports: tuple[ToolReport, ...] = ()

    def get(self, coordinate: str, ecosystem: Ecosystem | None = None) -> Dependency | None:
        for dep in self.dependencies:
            if dep.coordinate == coordinate and (ecosystem is None or dep.ecosystem is ecosystem):
                return dep
        return None

    @property
    def direct(self) -> list[Dependency]:
        return [d for d in self.dependencies if d.is_direct]

    @property
    def transitive(self) -> list[Dependency]:
        return [d for d in self.dependencies if d.is_transitive]

    @property
    def conflicts(self) -> list[Dependency]:
        return [d for d in self.dependencies if d.has_version_conflict]

    @property
    def parse_errors(self) -> list[str]:
        return [error for manifest in self.manifests for error in manifest.errors]

    def children(self, coordinate: str) -> list[str]:
        return [child for parent, child in self.edges if parent == coordinate]

    def with_dependencies(self, dependencies: list[Dependency]) -> DependencyGraph:
        """A copy carrying *dependencies* (re-sorted), e.g. after scoring."""
        return replace(self, dependencies=tuple(sorted(dependencies, key=_sort_key)))


def _sort_key(dep: Dependency) -> tuple[str, str]:
    return dep.coordinate, dep.ecosystem.value


class DependencyGraphBuilder:
    """Accumulates declarations, tool output and usage, then freezes."""

    def __init__(self) -> None:
        self._entries: dict[tuple[Ecosystem, str], _Entry] = {}
        self._edges: set[tuple[str, str]] = set()
        self._manifests: list[ManifestFile] = []
        self._tool_reports: list[ToolReport] = []

    def _entry(self, name: str, ecosystem: Ecosystem) -> _Entry:
        coordinate = canonical_coordinate(name, ecosystem)
        key = (ecosystem, coordinate)
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry(coordinate, ecosystem)
        return entry

    def coordinates(self, ecosystem: Ecosystem) -> list[str]:
        return sorted(c for eco, c in self._entries if eco is ecosystem)

    # ── declared dependencies ────────────────────────────────────────────

    def add_manifest(self, manifest: ManifestFile) -> None:
        self._manifests.append(manifest)
        for decl in manifest.declarations:
            self.add_declaration(decl)

    def add_declaration(self, decl: DeclaredDependency) -> None:
        entry = self._entry(decl.name, decl.ecosystem)
        if decl.version:
            _append_unique(entry.declared_versions, decl.version)
            if decl.is_direct:
                _append_unique(entry.direct_versions, decl.version)
        if decl.resolved_version:
            entry.resolved_versions.append(decl.resolved_version)
        (entry.direct_scopes if decl.is_direct else entry.other_scopes).append(decl.scope)
        entry.is_direct = entry.is_direct or decl.is_direct
        entry.optional.append(decl.optional)
        for exclusion in decl.exclusions:
            _append_unique(entry.exclusions, exclusion)
        _append_unique(entry.replacements, decl.replacement)
        for group in decl.groups:
            _append_unique(entry.groups, group)
        _append_unique(entry.source_files, decl.source_file)

        for child in decl.requires:
            self._edges.add((entry.coordinate, canonical_coordinate(child, decl.ecosystem)))

    # ── toolchain output ─────────────────────────────────────────────────

    def add_tool_result(
        self,
        tool: str,
        ecosystem: Ecosystem,
        result: list[ResolvedDependency] | ToolUnavailable,
    ) -> None:
        """Merge one adapter's result; an unavailable tool is only recorded."""
        if isinstance(result, ToolUnavailable):
            self._tool_reports.append(ToolReport(tool=tool, available=False, reason=result.reason))
            return
        for row in result:
            entry = self._entry(row.coordinate, ecosystem)
            if row.version:
                entry.resolved_versions.append(row.version)
                if row.selected:
                    entry.selected_version = row.version
            if row.scope is not None:
                entry.other_scopes.append(row.scope)
            if row.is_direct:
                entry.is_direct = True
            if row.evicted_by:
                entry.evicted_by = row.evicted_by
            _append_unique(entry.replacements, row.replaced_by)
            if row.parent:
                self._edges.add((canonical_coordinate(row.parent, ecosystem), entry.coordinate))
        self._tool_reports.append(ToolReport(tool=tool, available=True, dependency_count=len(result)))

    # ── source usage ─────────────────────────────────────────────────────

    def add_usage(self, ecosystem: Ecosystem, report: UsageReport) -> None:
        for coordinate, summary in report.usage.items():
            self._entry(coordinate, ecosystem).usage = summary
        for coordinate, summary in report.inferred.items():
            key = (ecosystem, canonical_coordinate(coordinate, ecosystem))
            known = key in self._entries
            entry = self._entry(coordinate, ecosystem)
            entry.usage = summary
            if not known:
                entry.inferred = True
                _append_unique(entry.source_files, "inferred")

    # ── snapshot ─────────────────────────────────────────────────────────

    def build(self) -> DependencyGraph:
        dependencies = sorted((e.freeze() for e in self._entries.values()), key=_sort_key)
        for dep in dependencies:
            if dep.has_version_conflict:
                log.info(
                    "graph.version_conflict",
                    coordinate=dep.coordinate,
                    versions=list(dep.declared_versions),
                )
        log.debug(
            "graph.built",
            dependencies=len(dependencies),
            direct=sum(1 for d in dependencies if d.is_direct),
            edges=len(self._edges),
        )
        return DependencyGraph(
            dependencies=tuple(dependencies),
            edges=tuple(sorted(self._edges)),
            manifests=tuple(self._manifests),
            tool_reports=tuple(self._tool_reports),
        )
