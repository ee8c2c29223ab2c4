"""Tests for the camelCase output contract."""

from __future__ import annotations

from depsentinel.analyzer import AnalysisResult, compare_versions
from depsentinel.graph import DependencyGraphBuilder
from depsentinel.imports import UsageReport
from depsentinel.models import (
    Confidence,
    DeclaredDependency,
    DetectionResult,
    Ecosystem,
    EcosystemReport,
    Evidence,
    EvidenceTier,
    Finding,
    ManifestFile,
    Scope,
    UsageSummary,
)
from depsentinel.schemas import analysis_schema, comparison_schema, detection_schema, manifest_schemas
from depsentinel.scoring import score_graph


def _decl(name: str, **kwargs) -> DeclaredDependency:
    kwargs.setdefault("scope", Scope.RUNTIME)
    kwargs.setdefault("source_file", "requirements.txt")
    return DeclaredDependency(name=name, ecosystem=Ecosystem.PYTHON, **kwargs)


def _result(detection: EcosystemReport | None = None) -> AnalysisResult:
    builder = DependencyGraphBuilder()
    builder.add_declaration(_decl("Django", version="==4.2.0", requires=["six"]))
    builder.add_declaration(_decl("requests", version=">=2.0"))
    builder.add_declaration(_decl("requests", version="==2.31.0", source_file="requirements-prod.txt"))
    builder.add_declaration(_decl("attrs", version=">=23"))
    builder.add_declaration(_decl("six", resolved_version="1.16.0", is_direct=False))
    builder.add_usage(
        Ecosystem.PYTHON,
        UsageReport(
            usage={
                "django": UsageSummary(
                    count=12, files=("app/views.py",), kinds=frozenset({"static", "dynamic"})
                )
            }
        ),
    )
    graph = score_graph(builder.build())
    findings = (Finding("version_conflict", "Align the versions of requests.", "requests", Ecosystem.PYTHON),)
    return AnalysisResult(
        root="/srv/app",
        detection=detection or EcosystemReport(primary=None),
        graph=graph,
        findings=findings,
    )


class TestAnalysisSchema:
    def test_top_level_keys(self):
        data = analysis_schema(_result()).dump()
        assert list(data) == [
            "root",
            "primaryEcosystem",
            "packageManager",
            "confidence",
            "detection",
            "summary",
            "dependencies",
            "edges",
            "recommendations",
            "findings",
            "parseErrors",
            "toolReports",
        ]
        assert data["primaryEcosystem"] is None
        assert data["detection"] == {"primary": None, "secondaries": []}

    def test_summary_counts(self):
        summary = analysis_schema(_result()).dump()["summary"]
        assert summary == {
            "totalDependencies": 4,
            "directDependencies": 3,
            "transitiveDependencies": 1,
            "versionConflicts": 1,
            "highCriticality": 2,
            "mediumCriticality": 1,
            "lowCriticality": 1,
        }

    def test_dependency_entries(self):
        data = analysis_schema(_result()).dump()
        assert [d["coordinate"] for d in data["dependencies"]] == ["attrs", "django", "requests", "six"]
        django = data["dependencies"][1]
        assert django["ecosystem"] == "python"
        assert django["declaredVersion"] == "==4.2.0"
        assert django["isDirect"] is True
        assert django["isTransitive"] is False
        assert django["usageCount"] == 12
        assert django["usage"] == {
            "count": 12,
            "files": ["app/views.py"],
            "kinds": ["dynamic", "static"],
            "conditionalCount": 0,
            "buildTags": [],
        }
        assert django["criticality"] == "HIGH"
        assert django["criticalityReasons"][0] == "High usage (12 import sites)"
        requests = data["dependencies"][2]
        assert requests["hasVersionConflict"] is True
        assert requests["declaredVersions"] == [">=2.0", "==2.31.0"]
        assert requests["sourceFiles"] == ["requirements.txt", "requirements-prod.txt"]

    def test_edges_and_findings(self):
        data = analysis_schema(_result()).dump()
        assert data["edges"] == [{"parent": "django", "child": "six"}]
        assert data["recommendations"] == ["Align the versions of requests."]
        assert data["findings"] == [
            {
                "kind": "version_conflict",
                "message": "Align the versions of requests.",
                "coordinate": "requests",
                "ecosystem": "python",
            }
        ]

    def test_primary_detection(self):
        primary = DetectionResult(
            ecosystem=Ecosystem.PYTHON,
            package_manager="pip",
            confidence=Confidence.LOW,
            score=1,
            evidence=(Evidence("requirements.txt", EvidenceTier.DEPENDENCY_FILE, "pip", 1),),
        )
        data = analysis_schema(_result(EcosystemReport(primary=primary))).dump()
        assert data["primaryEcosystem"] == "python"
        assert data["packageManager"] == "pip"
        assert data["confidence"] == "low"
        assert data["detection"]["primary"]["hasLockFile"] is False
        assert data["detection"]["primary"]["evidence"] == [
            {"path": "requirements.txt", "tier": "dependency_file", "manager": "pip", "weight": 1, "note": ""}
        ]


class TestDetectionSchema:
    def test_secondaries(self):
        go = DetectionResult(Ecosystem.GO, "go", Confidence.HIGH, 6, secondary_managers=("dep",))
        js = DetectionResult(Ecosystem.JAVASCRIPT, "npm", Confidence.LOW, 2, metadata={"monorepo": False})
        data = detection_schema(EcosystemReport(primary=go, secondaries=(js,))).dump()
        assert data["primary"]["secondaryManagers"] == ["dep"]
        assert data["secondaries"][0]["packageManager"] == "npm"
        assert data["secondaries"][0]["metadata"] == {"monorepo": False}


class TestManifestSchema:
    def test_camel_case_declarations(self):
        manifest = ManifestFile(
            path="sub/pom.xml",
            format="maven-pom",
            ecosystem=Ecosystem.JAVA,
            declarations=(
                DeclaredDependency(
                    name="junit:junit",
                    ecosystem=Ecosystem.JAVA,
                    version="4.13.2",
                    scope=Scope.TEST,
                    raw_scope="test",
                    source_file="sub/pom.xml",
                    line=12,
                    exclusions=["org.hamcrest:hamcrest-core"],
                ),
            ),
        )
        (data,) = [m.dump() for m in manifest_schemas([manifest])]
        assert data["format"] == "maven-pom"
        assert data["errors"] == []
        decl = data["declarations"][0]
        assert decl["rawScope"] == "test"
        assert decl["scope"] == "test"
        assert decl["isDirect"] is True
        assert decl["sourceFile"] == "sub/pom.xml"
        assert decl["exclusions"] == ["org.hamcrest:hamcrest-core"]
        assert "requires" not in decl


class TestComparisonSchema:
    def test_keys_and_aliases(self):
        data = comparison_schema(compare_versions("python", "requests", "2.31.0", "2.32.0rc1")).dump()
        assert set(data) == {
            "packageName",
            "ecosystem",
            "fromVersion",
            "toVersion",
            "versionDiff",
            "breakingChanges",
            "securityFixes",
            "newFeatures",
            "bugFixes",
            "deprecations",
            "changelogSections",
            "compatibilityNotes",
            "requiredRuntimeFrom",
            "requiredRuntimeTo",
            "runtimeChange",
            "upgradeComplexity",
            "upgradeRecommendations",
            "riskAssessment",
        }
        diff = data["versionDiff"]
        assert diff["pep440Compliant"] is True
        assert diff["isPrerelease"] is True
        assert diff["semverType"] == "minor"
        assert set(data["riskAssessment"]) == {"level", "factors"}
        assert data["requiredRuntimeTo"] is None
        assert data["runtimeChange"] is False
