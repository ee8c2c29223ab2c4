"""Engine entry points: dependency analysis and version comparison."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

import structlog

from depsentinel.changelog import classify_changelog, classify_sections, parse_changelog, select_sections
from depsentinel.core.config import Settings
from depsentinel.detectors import detect_ecosystems
from depsentinel.exceptions import ManifestNotFoundError, ProjectNotFoundError
from depsentinel.graph import DependencyGraph, DependencyGraphBuilder
from depsentinel.imports import SCANNERS, resolve_usage, scan_imports
from depsentinel.locator import DEFAULT_IGNORE_DIRS, ManifestLocator
from depsentinel.models import (
    ChangelogClassification,
    ChangelogSection,
    Criticality,
    Ecosystem,
    EcosystemReport,
    Finding,
    ImportSite,
    ManifestFile,
    VersionComparison,
)
from depsentinel.recommend import compatibility_notes, dependency_findings, recommend_upgrade, runtime_changed
from depsentinel.scanner import scan
from depsentinel.scoring import ScoringContext, score_graph
from depsentinel.tools import adapters_for
from depsentinel.versions import comparator_for

log = structlog.get_logger("depsentinel.engine")


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of one dependency analysis."""

    root: str
    detection: EcosystemReport
    graph: DependencyGraph
    findings: tuple[Finding, ...] = ()

    @property
    def removal_candidates(self) -> list[str]:
        return [f.coordinate for f in self.findings if f.kind == "removal_candidate" and f.coordinate]


def _as_ecosystem(ecosystem: Ecosystem | str | None) -> Ecosystem | None:
    if ecosystem is None or isinstance(ecosystem, Ecosystem):
        return ecosystem
    return Ecosystem.parse(ecosystem)


class DependencyAnalyzer:
    """detect -> parse -> (tools) -> usage -> graph -> score -> findings."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        use_tools: bool | None = None,
        max_depth: int | None = None,
        timeout: float | None = None,
    ) -> None:
        settings = settings or Settings.from_env()
        self.use_tools = settings.use_tools if use_tools is None else use_tools
        self.timeout = settings.tool_timeout if timeout is None else timeout
        self.locator = ManifestLocator(
            max_depth=settings.max_depth if max_depth is None else max_depth,
            ignore_dirs=DEFAULT_IGNORE_DIRS | set(settings.extra_ignore),
        )

    async def analyze(self, root: Path, ecosystem: Ecosystem | str | None = None) -> AnalysisResult:
        root = Path(root)
        if not root.is_dir():
            raise ProjectNotFoundError(str(root))
        wanted = _as_ecosystem(ecosystem)
        log.info("analyzer.started", root=str(root), ecosystem=wanted.value if wanted else None)

        # ── detection gates the parsers ──────────────────────────────────
        detection = detect_ecosystems(root)
        if wanted is not None:
            detection = _restrict(detection, wanted)
            targets: list[Ecosystem] | None = [wanted]
        else:
            targets = detection.ecosystems or None

        manifests = scan(root, targets, self.locator)
        if not manifests:
            raise ManifestNotFoundError(str(root), wanted.value if wanted else None)

        builder = DependencyGraphBuilder()
        for manifest in manifests:
            builder.add_manifest(manifest)
        present = _ecosystems_of(manifests)

        # ── optional toolchain data ──────────────────────────────────────
        if self.use_tools:
            await self._run_tools(root, present, detection, builder)

        # ── source usage ─────────────────────────────────────────────────
        uses_cgo = False
        bundler_require = False
        for eco in present:
            sites = scan_imports(root, eco, self.locator)
            report = resolve_usage(root, eco, sites, builder.coordinates(eco))
            builder.add_usage(eco, report)
            uses_cgo = uses_cgo or (eco is Ecosystem.GO and _uses_cgo(sites))
            bundler_require = bundler_require or report.bundler_require

        # ── scoring and findings ─────────────────────────────────────────
        contexts = {eco: self._context(eco, detection, uses_cgo) for eco in present}
        graph = score_graph(builder.build(), contexts)
        findings = dependency_findings(graph, detection, uses_cgo=uses_cgo, bundler_require=bundler_require)

        log.info(
            "analyzer.completed",
            root=str(root),
            manifests=len(manifests),
            dependencies=len(graph.dependencies),
            findings=len(findings),
            parse_errors=len(graph.parse_errors),
        )
        return AnalysisResult(root=str(root), detection=detection, graph=graph, findings=tuple(findings))

    async def _run_tools(
        self,
        root: Path,
        ecosystems: list[Ecosystem],
        detection: EcosystemReport,
        builder: DependencyGraphBuilder,
    ) -> None:
        managers = {result.ecosystem: result.package_manager for result in detection.detected}
        adapters = [a for eco in ecosystems for a in adapters_for(eco, managers.get(eco))]
        if not adapters:
            return
        results = await asyncio.gather(*(a.run(root, self.timeout) for a in adapters))
        for adapter, result in zip(adapters, results):
            builder.add_tool_result(adapter.name, adapter.ecosystem, result)

    @staticmethod
    def _context(ecosystem: Ecosystem, detection: EcosystemReport, uses_cgo: bool) -> ScoringContext:
        metadata = next((r.metadata for r in detection.detected if r.ecosystem is ecosystem), {})
        return ScoringContext(
            ecosystem,
            rails_project=bool(metadata.get("railsProject")),
            uses_cgo=uses_cgo and ecosystem is Ecosystem.GO,
        )


def _restrict(detection: EcosystemReport, ecosystem: Ecosystem) -> EcosystemReport:
    match = next((r for r in detection.detected if r.ecosystem is ecosystem), None)
    return EcosystemReport(primary=match)


def _ecosystems_of(manifests: list[ManifestFile]) -> list[Ecosystem]:
    seen: list[Ecosystem] = []
    for manifest in manifests:
        if manifest.ecosystem not in seen and manifest.ecosystem in SCANNERS:
            seen.append(manifest.ecosystem)
    return seen


def _uses_cgo(sites: list[ImportSite]) -> bool:
    return any(site.module == "C" for site in sites)


# ── module-level conveniences ────────────────────────────────────────────


async def analyze(
    root: Path,
    ecosystem: Ecosystem | str | None = None,
    *,
    use_tools: bool | None = None,
    max_depth: int | None = None,
    timeout: float | None = None,
) -> AnalysisResult:
    """Analyze the project at *root*; keyword arguments override DEPSENTINEL_* settings."""
    analyzer = DependencyAnalyzer(use_tools=use_tools, max_depth=max_depth, timeout=timeout)
    return await analyzer.analyze(root, ecosystem)


def detect(root: Path) -> EcosystemReport:
    return detect_ecosystems(Path(root))


def scan_project(
    root: Path,
    ecosystem: Ecosystem | str | None = None,
    max_depth: int | None = None,
) -> list[ManifestFile]:
    """Parse the project's manifests without building a graph."""
    settings = Settings.from_env()
    wanted = _as_ecosystem(ecosystem)
    locator = ManifestLocator(
        max_depth=settings.max_depth if max_depth is None else max_depth,
        ignore_dirs=DEFAULT_IGNORE_DIRS | set(settings.extra_ignore),
    )
    manifests = scan(Path(root), [wanted] if wanted else None, locator)
    if not manifests:
        raise ManifestNotFoundError(str(root), wanted.value if wanted else None)
    return manifests


def compare_versions(
    ecosystem: Ecosystem | str,
    package: str,
    from_version: str,
    to_version: str,
    changelog: str | None = None,
    runtime_from: str | None = None,
    runtime_to: str | None = None,
    criticality: Criticality | None = None,
) -> VersionComparison:
    """Diff two versions of *package* and turn the result into upgrade advice.

    *changelog* may be a whole changelog (only sections in ``(from, to]``
    are mined) or text already restricted to the range. Missing runtime
    requirements mean "unknown" and never block a recommendation.
    """
    eco = _as_ecosystem(ecosystem)
    comparator = comparator_for(eco)
    diff = comparator.compare(from_version, to_version)

    sections: list[ChangelogSection] = []
    classification = ChangelogClassification()
    if changelog:
        parsed = parse_changelog(changelog)
        if parsed:
            sections = select_sections(parsed, from_version, to_version, comparator)
            classification = classify_sections(sections)
        else:
            classification = classify_changelog(changelog)

    runtime_change = runtime_changed(runtime_from, runtime_to)
    notes = compatibility_notes(eco, package, diff, runtime_to, runtime_change)
    recommendation = recommend_upgrade(eco, package, diff, classification, runtime_from, runtime_to, criticality)

    log.info(
        "analyzer.versions_compared",
        ecosystem=eco.value,
        package=package,
        semver_type=diff.semver_type.value,
        risk=recommendation.risk_level.value,
    )
    return VersionComparison(
        ecosystem=eco,
        package=package,
        diff=diff,
        changelog=classification,
        recommendation=recommendation,
        sections=tuple(sections),
        compatibility_notes=tuple(notes),
        runtime_from=runtime_from,
        runtime_to=runtime_to,
        runtime_change=runtime_change,
    )


__all__ = [
    "AnalysisResult",
    "DependencyAnalyzer",
    "analyze",
    "compare_versions",
    "detect",
    "scan_project",
]
