"""Output contract: camelCase pydantic models for every engine result."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from depsentinel.models import (
    Confidence,
    Criticality,
    Ecosystem,
    EcosystemReport,
    EvidenceTier,
    ManifestFile,
    RiskLevel,
    Scope,
    SemverType,
    UpgradeComplexity,
    VersionComparison,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ── detection ────────────────────────────────────────────────────────────


class EvidenceSchema(CamelModel):
    path: str
    tier: EvidenceTier
    manager: str | None = None
    weight: int = 0
    note: str = ""


class DetectionSchema(CamelModel):
    ecosystem: Ecosystem
    package_manager: str | None
    confidence: Confidence
    score: int
    has_lock_file: bool = False
    evidence: list[EvidenceSchema] = []
    secondary_managers: list[str] = []
    metadata: dict[str, Any] = {}


class EcosystemReportSchema(CamelModel):
    primary: DetectionSchema | None = None
    secondaries: list[DetectionSchema] = []


# ── manifests ────────────────────────────────────────────────────────────


class DeclaredDependencySchema(CamelModel):
    name: str
    ecosystem: Ecosystem
    version: str | None = None
    resolved_version: str | None = None
    scope: Scope
    raw_scope: str | None = None
    is_direct: bool
    source_file: str
    line: int | None = None
    optional: bool = False
    groups: list[str] = []
    exclusions: list[str] = []
    replacement: str | None = None


class ManifestFileSchema(CamelModel):
    path: str
    format: str
    ecosystem: Ecosystem
    declarations: list[DeclaredDependencySchema] = []
    errors: list[str] = []


# ── dependency analysis ──────────────────────────────────────────────────


class UsageSchema(CamelModel):
    count: int = 0
    files: list[str] = []
    kinds: list[str] = []
    conditional_count: int = 0
    build_tags: list[str] = []

    @field_validator("kinds", mode="before")
    @classmethod
    def _sorted(cls, v: Any) -> Any:
        return sorted(v) if isinstance(v, (set, frozenset)) else v


class DependencySchema(CamelModel):
    coordinate: str
    ecosystem: Ecosystem
    declared_version: str | None = None
    resolved_version: str | None = None
    scope: Scope
    is_direct: bool
    is_transitive: bool
    usage_count: int = 0
    usage: UsageSchema = UsageSchema()
    criticality: Criticality | None = None
    criticality_reasons: list[str] = []
    declared_versions: list[str] = []
    has_version_conflict: bool = False
    exclusions: list[str] = []
    replacements: list[str] = []
    evicted: bool = False
    evicted_by: str | None = None
    optional: bool = False
    inferred: bool = False
    groups: list[str] = []
    source_files: list[str] = []


class ToolReportSchema(CamelModel):
    tool: str
    available: bool
    reason: str | None = None
    dependency_count: int = 0


class FindingSchema(CamelModel):
    kind: str
    message: str
    coordinate: str | None = None
    ecosystem: Ecosystem | None = None


class EdgeSchema(BaseModel):
    parent: str
    child: str


class AnalysisSummarySchema(CamelModel):
    total_dependencies: int
    direct_dependencies: int
    transitive_dependencies: int
    version_conflicts: int
    high_criticality: int
    medium_criticality: int
    low_criticality: int


class AnalysisResultSchema(CamelModel):
    root: str
    primary_ecosystem: Ecosystem | None = None
    package_manager: str | None = None
    confidence: Confidence | None = None
    detection: EcosystemReportSchema
    summary: AnalysisSummarySchema
    dependencies: list[DependencySchema] = []
    edges: list[EdgeSchema] = []
    recommendations: list[str] = []
    findings: list[FindingSchema] = []
    parse_errors: list[str] = []
    tool_reports: list[ToolReportSchema] = []


# ── version comparison ───────────────────────────────────────────────────


class VersionDiffSchema(CamelModel):
    from_version: str
    to_version: str
    major_change: bool
    minor_change: bool
    patch_change: bool
    prerelease_change: bool
    semver_type: SemverType
    direction: str
    version_distance: int | None = None
    is_pseudo_version: bool | None = None
    import_path_change_required: bool | None = None
    required_import_suffix: str | None = None
    pep440_compliant: bool | None = Field(default=None, alias="pep440Compliant")
    epoch_change: bool | None = None
    is_prerelease: bool | None = None
    is_post_release: bool | None = None
    is_dev_release: bool | None = None
    is_pessimistic_compatible: bool | None = None
    pessimistic_constraint: str | None = None


class PullRequestLinkSchema(CamelModel):
    number: str
    url: str
    type: str


class ChangelogSectionSchema(CamelModel):
    version: str | None
    content: str
    pr_links: list[PullRequestLinkSchema] = []


class RiskAssessmentSchema(CamelModel):
    level: RiskLevel
    factors: list[str] = []


class VersionComparisonSchema(CamelModel):
    package_name: str
    ecosystem: Ecosystem
    from_version: str
    to_version: str
    version_diff: VersionDiffSchema
    breaking_changes: list[str] = []
    security_fixes: list[str] = []
    new_features: list[str] = []
    bug_fixes: list[str] = []
    deprecations: list[str] = []
    changelog_sections: list[ChangelogSectionSchema] = []
    compatibility_notes: list[str] = []
    required_runtime_from: str | None = None
    required_runtime_to: str | None = None
    runtime_change: bool = False
    upgrade_complexity: UpgradeComplexity
    upgrade_recommendations: list[str] = []
    risk_assessment: RiskAssessmentSchema


# ── builders ─────────────────────────────────────────────────────────────


def detection_schema(report: EcosystemReport) -> EcosystemReportSchema:
    return EcosystemReportSchema.model_validate(report)


def manifest_schemas(manifests: list[ManifestFile]) -> list[ManifestFileSchema]:
    return [ManifestFileSchema.model_validate(m) for m in manifests]


def analysis_schema(result: Any) -> AnalysisResultSchema:
    """Contract view of an :class:`~depsentinel.analyzer.AnalysisResult`."""
    graph = result.graph
    primary = result.detection.primary
    buckets = [d.criticality for d in graph.dependencies]
    summary = AnalysisSummarySchema(
        total_dependencies=len(graph.dependencies),
        direct_dependencies=len(graph.direct),
        transitive_dependencies=len(graph.transitive),
        version_conflicts=len(graph.conflicts),
        high_criticality=buckets.count(Criticality.HIGH),
        medium_criticality=buckets.count(Criticality.MEDIUM),
        low_criticality=buckets.count(Criticality.LOW),
    )
    return AnalysisResultSchema(
        root=result.root,
        primary_ecosystem=primary.ecosystem if primary else None,
        package_manager=primary.package_manager if primary else None,
        confidence=primary.confidence if primary else None,
        detection=detection_schema(result.detection),
        summary=summary,
        dependencies=[DependencySchema.model_validate(d) for d in graph.dependencies],
        edges=[EdgeSchema(parent=p, child=c) for p, c in graph.edges],
        recommendations=[f.message for f in result.findings],
        findings=[FindingSchema.model_validate(f) for f in result.findings],
        parse_errors=graph.parse_errors,
        tool_reports=[ToolReportSchema.model_validate(t) for t in graph.tool_reports],
    )


def comparison_schema(comparison: VersionComparison) -> VersionComparisonSchema:
    changelog = comparison.changelog
    recommendation = comparison.recommendation
    return VersionComparisonSchema(
        package_name=comparison.package,
        ecosystem=comparison.ecosystem,
        from_version=comparison.diff.from_version,
        to_version=comparison.diff.to_version,
        version_diff=VersionDiffSchema.model_validate(comparison.diff),
        breaking_changes=list(changelog.breaking_changes),
        security_fixes=list(changelog.security_fixes),
        new_features=list(changelog.new_features),
        bug_fixes=list(changelog.bug_fixes),
        deprecations=list(changelog.deprecations),
        changelog_sections=[ChangelogSectionSchema.model_validate(s) for s in comparison.sections],
        compatibility_notes=list(comparison.compatibility_notes),
        required_runtime_from=comparison.runtime_from,
        required_runtime_to=comparison.runtime_to,
        runtime_change=comparison.runtime_change,
        upgrade_complexity=recommendation.upgrade_complexity,
        upgrade_recommendations=list(recommendation.recommendations),
        risk_assessment=RiskAssessmentSchema(level=recommendation.risk_level, factors=list(recommendation.factors)),
    )
