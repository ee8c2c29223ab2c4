"""depsentinel: cross-ecosystem manifest parsing, version diff and upgrade-risk scoring."""

__version__ = "0.1.0"

from depsentinel.analyzer import (
    AnalysisResult,
    DependencyAnalyzer,
    analyze,
    compare_versions,
    detect,
    scan_project,
)
from depsentinel.exceptions import (
    DepSentinelError,
    ManifestNotFoundError,
    ManifestParseError,
    ProjectNotFoundError,
    UnsupportedEcosystemError,
)
from depsentinel.graph import DependencyGraph, DependencyGraphBuilder
from depsentinel.models import (
    Confidence,
    Criticality,
    Dependency,
    Ecosystem,
    RiskLevel,
    SemverType,
    UpgradeComplexity,
    VersionComparison,
    VersionDiff,
)

__all__ = [
    "AnalysisResult",
    "Confidence",
    "Criticality",
    "DepSentinelError",
    "Dependency",
    "DependencyAnalyzer",
    "DependencyGraph",
    "DependencyGraphBuilder",
    "Ecosystem",
    "ManifestNotFoundError",
    "ManifestParseError",
    "ProjectNotFoundError",
    "RiskLevel",
    "SemverType",
    "UnsupportedEcosystemError",
    "UpgradeComplexity",
    "VersionComparison",
    "VersionDiff",
    "analyze",
    "compare_versions",
    "detect",
    "scan_project",
]
