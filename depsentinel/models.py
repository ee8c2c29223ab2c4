"""Data models shared by every depsentinel component.

Intermediate parser output (``DeclaredDependency``) is a plain mutable
dataclass; everything handed back to callers is frozen.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from depsentinel.exceptions import UnsupportedEcosystemError


class Ecosystem(Enum):
    """Package ecosystems understood by the engine."""

    GO = "go"
    JAVA = "java"
    JAVASCRIPT = "javascript"
    PYTHON = "python"
    RUBY = "ruby"

    @classmethod
    def parse(cls, name: str) -> Ecosystem:
        """Resolve a user-supplied ecosystem or package-manager name."""
        key = name.strip().lower()
        ecosystem = _ECOSYSTEM_ALIASES.get(key)
        if ecosystem is None:
            raise UnsupportedEcosystemError(name)
        return ecosystem


_ECOSYSTEM_ALIASES: dict[str, Ecosystem] = {
    "go": Ecosystem.GO,
    "golang": Ecosystem.GO,
    "gomod": Ecosystem.GO,
    "java": Ecosystem.JAVA,
    "jvm": Ecosystem.JAVA,
    "maven": Ecosystem.JAVA,
    "gradle": Ecosystem.JAVA,
    "sbt": Ecosystem.JAVA,
    "scala": Ecosystem.JAVA,
    "kotlin": Ecosystem.JAVA,
    "javascript": Ecosystem.JAVASCRIPT,
    "typescript": Ecosystem.JAVASCRIPT,
    "js": Ecosystem.JAVASCRIPT,
    "ts": Ecosystem.JAVASCRIPT,
    "node": Ecosystem.JAVASCRIPT,
    "npm": Ecosystem.JAVASCRIPT,
    "yarn": Ecosystem.JAVASCRIPT,
    "pnpm": Ecosystem.JAVASCRIPT,
    "python": Ecosystem.PYTHON,
    "pypi": Ecosystem.PYTHON,
    "pip": Ecosystem.PYTHON,
    "poetry": Ecosystem.PYTHON,
    "uv": Ecosystem.PYTHON,
    "pipenv": Ecosystem.PYTHON,
    "ruby": Ecosystem.RUBY,
    "gem": Ecosystem.RUBY,
    "rubygems": Ecosystem.RUBY,
    "bundler": Ecosystem.RUBY,
}


class Confidence(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_score(cls, score: int) -> Confidence:
        """Map accumulated evidence weight onto a confidence level."""
        if score >= 5:
            return cls.HIGH
        if score >= 3:
            return cls.MEDIUM
        return cls.LOW


class Criticality(Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SemverType(Enum):
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    PRERELEASE = "prerelease"
    UNKNOWN = "unknown"


class UpgradeComplexity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"


class Scope(Enum):
    """Closed scope vocabulary every ecosystem is normalized into."""

    COMPILE = "compile"
    RUNTIME = "runtime"
    SYSTEM = "system"
    PROVIDED = "provided"
    PEER = "peer"
    OPTIONAL = "optional"
    BUILD = "build"
    TEST = "test"
    DEV = "dev"

    @property
    def shapes_runtime(self) -> bool:
        return self in (Scope.COMPILE, Scope.RUNTIME, Scope.SYSTEM)

    @property
    def precedence(self) -> int:
        """Lower wins when several declarations of one coordinate disagree."""
        return list(Scope).index(self)


class EvidenceTier(Enum):
    """Ecosystem-detection evidence tiers, strongest first."""

    LOCK = "lock"
    MANIFEST = "manifest"
    CONFIG = "config"
    DEPENDENCY_FILE = "dependency_file"
    SOURCE = "source"

    @property
    def weight(self) -> int:
        return _TIER_WEIGHTS[self]


_TIER_WEIGHTS = {
    EvidenceTier.LOCK: 3,
    EvidenceTier.MANIFEST: 2,
    EvidenceTier.CONFIG: 1,
    EvidenceTier.DEPENDENCY_FILE: 1,
    EvidenceTier.SOURCE: 1,
}


# ── parser output ────────────────────────────────────────────────────────


@dataclass
class DeclaredDependency:
    """A single dependency declaration read from one manifest file.

    Lock-file parsers fill ``resolved_version`` and leave ``version`` empty;
    ``requires`` lists child coordinates when the format records them.
    """

    name: str
    ecosystem: Ecosystem
    version: str | None = None
    resolved_version: str | None = None
    scope: Scope = Scope.COMPILE
    raw_scope: str | None = None
    is_direct: bool = True
    source_file: str = ""
    detection_method: str = ""
    line: int | None = None
    optional: bool = False
    groups: list[str] = field(default_factory=list)
    exclusions: list[str] = field(default_factory=list)
    replacement: str | None = None
    requires: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ManifestFile:
    """One parsed manifest: its declarations and any non-fatal parse errors."""

    path: str
    format: str
    ecosystem: Ecosystem
    declarations: tuple[DeclaredDependency, ...] = ()
    errors: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors


# ── ecosystem detection ──────────────────────────────────────────────────


@dataclass(frozen=True)
class Evidence:
    """One indicator found while probing a project for an ecosystem."""

    path: str
    tier: EvidenceTier
    manager: str | None = None
    weight: int = 0
    note: str = ""


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of one ecosystem detector."""

    ecosystem: Ecosystem
    package_manager: str | None
    confidence: Confidence
    score: int
    evidence: tuple[Evidence, ...] = ()
    secondary_managers: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def detected(self) -> bool:
        return self.score > 0

    @property
    def has_lock_file(self) -> bool:
        return any(e.tier is EvidenceTier.LOCK for e in self.evidence)

    @property
    def has_version_file(self) -> bool:
        """True when some lock or manifest file backs the detection."""
        return any(e.tier in (EvidenceTier.LOCK, EvidenceTier.MANIFEST) for e in self.evidence)


@dataclass(frozen=True)
class EcosystemReport:
    """All detector results for a project, primary first."""

    primary: DetectionResult | None
    secondaries: tuple[DetectionResult, ...] = ()

    @property
    def detected(self) -> tuple[DetectionResult, ...]:
        if self.primary is None:
            return ()
        return (self.primary, *self.secondaries)

    @property
    def ecosystems(self) -> list[Ecosystem]:
        return [result.ecosystem for result in self.detected]


# ── source usage ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ImportSite:
    """A single source-level reference to an external module."""

    file: str
    line: int
    module: str
    kind: str = "static"
    conditional: bool = False
    flags: frozenset[str] = frozenset()
    build_tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class UsageSummary:
    """Aggregated import sites for one coordinate."""

    count: int = 0
    files: tuple[str, ...] = ()
    kinds: frozenset[str] = frozenset()
    conditional_count: int = 0
    build_tags: tuple[str, ...] = ()

    @property
    def conditional_only(self) -> bool:
        return self.count > 0 and self.conditional_count == self.count

    @property
    def dynamic_only(self) -> bool:
        return self.count > 0 and bool(self.kinds) and self.kinds <= {"dynamic"}

    @property
    def type_only(self) -> bool:
        return self.count > 0 and bool(self.kinds) and self.kinds <= {"type"}


# ── canonical dependency ─────────────────────────────────────────────────


@dataclass(frozen=True)
class Dependency:
    """Canonical, merged view of one coordinate within an analysis run."""

    coordinate: str
    ecosystem: Ecosystem
    declared_version: str | None = None
    resolved_version: str | None = None
    scope: Scope = Scope.COMPILE
    is_direct: bool = False
    usage_count: int = 0
    usage: UsageSummary = UsageSummary()
    criticality: Criticality | None = None
    criticality_reasons: tuple[str, ...] = ()
    declared_versions: tuple[str, ...] = ()
    exclusions: tuple[str, ...] = ()
    replacements: tuple[str, ...] = ()
    evicted: bool = False
    evicted_by: str | None = None
    optional: bool = False
    inferred: bool = False
    groups: tuple[str, ...] = ()
    source_files: tuple[str, ...] = ()

    @property
    def is_transitive(self) -> bool:
        return not self.is_direct

    @property
    def has_version_conflict(self) -> bool:
        return len(self.declared_versions) > 1

    @property
    def effective_version(self) -> str | None:
        return self.resolved_version or self.declared_version


@dataclass(frozen=True)
class ResolvedDependency:
    """A dependency as reported by an external toolchain command."""

    coordinate: str
    version: str | None = None
    is_direct: bool = False
    parent: str | None = None
    scope: Scope | None = None
    evicted_by: str | None = None
    replaced_by: str | None = None
    # Version picked for the whole build, not merely one seen in the graph
    selected: bool = False


@dataclass(frozen=True)
class ToolUnavailable:
    """An external tool could not contribute (missing, failed or timed out)."""

    tool: str
    reason: str


@dataclass(frozen=True)
class ToolReport:
    """What one external tool contributed to an analysis."""

    tool: str
    available: bool
    reason: str | None = None
    dependency_count: int = 0


# ── version comparison ───────────────────────────────────────────────────


@dataclass(frozen=True)
class VersionDiff:
    """Comparison of two version strings of one coordinate."""

    from_version: str
    to_version: str
    major_change: bool = False
    minor_change: bool = False
    patch_change: bool = False
    prerelease_change: bool = False
    semver_type: SemverType = SemverType.UNKNOWN
    direction: str = "none"
    compatibility_notes: tuple[str, ...] = ()
    # Go
    version_distance: int | None = None
    is_pseudo_version: bool | None = None
    import_path_change_required: bool | None = None
    required_import_suffix: str | None = None
    # PEP 440
    pep440_compliant: bool | None = None
    epoch_change: bool | None = None
    is_prerelease: bool | None = None
    is_post_release: bool | None = None
    is_dev_release: bool | None = None
    # RubyGems
    is_pessimistic_compatible: bool | None = None
    pessimistic_constraint: str | None = None


# ── changelog ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PullRequestLink:
    number: str
    url: str
    type: str  # "pr" | "issue"


@dataclass(frozen=True)
class ChangelogClassification:
    """Changelog lines bucketed by kind, each in first-seen order."""

    breaking_changes: tuple[str, ...] = ()
    security_fixes: tuple[str, ...] = ()
    new_features: tuple[str, ...] = ()
    bug_fixes: tuple[str, ...] = ()
    deprecations: tuple[str, ...] = ()


@dataclass(frozen=True)
class ChangelogSection:
    version: str | None
    content: str
    pr_links: tuple[PullRequestLink, ...] = ()
    classification: ChangelogClassification | None = None


# ── recommendations ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Recommendation:
    """Ordered upgrade advice plus the risk it was derived from."""

    recommendations: tuple[str, ...]
    risk_level: RiskLevel
    factors: tuple[str, ...] = ()
    upgrade_complexity: UpgradeComplexity = UpgradeComplexity.UNKNOWN


@dataclass(frozen=True)
class Finding:
    """One dependency-analysis recommendation derived from a finished graph."""

    kind: str
    message: str
    coordinate: str | None = None
    ecosystem: Ecosystem | None = None


@dataclass(frozen=True)
class VersionComparison:
    """Everything known about one package moving between two versions."""

    ecosystem: Ecosystem
    package: str
    diff: VersionDiff
    changelog: ChangelogClassification
    recommendation: Recommendation
    sections: tuple[ChangelogSection, ...] = ()
    compatibility_notes: tuple[str, ...] = ()
    runtime_from: str | None = None
    runtime_to: str | None = None
    runtime_change: bool = False
