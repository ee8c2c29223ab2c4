"""Recommendation generation.

Two kinds of advice come out of here:

* upgrade advice for one package moving between two versions
  (:func:`recommend_upgrade`), assembled from fixed templates keyed by the
  version diff, the mined changelog and the package family;
* dependency-analysis findings for a finished graph
  (:func:`dependency_findings`).

Both are pure functions of their inputs.
"""

from __future__ import annotations

from collections.abc import Sequence

from depsentinel.graph import DependencyGraph
from depsentinel.imports import IMPORT_MAPPED_ECOSYSTEMS
from depsentinel.imports.go import is_stdlib
from depsentinel.models import (
    ChangelogClassification,
    Criticality,
    Dependency,
    Ecosystem,
    EcosystemReport,
    Finding,
    Recommendation,
    RiskLevel,
    SemverType,
    UpgradeComplexity,
    VersionDiff,
)
from depsentinel.scoring import is_critical_package, is_official, is_unstable
from depsentinel.versions.ruby import parse_gem_version, pessimistic_constraint

# ── upgrade complexity and risk ──────────────────────────────────────────


def runtime_changed(runtime_from: str | None, runtime_to: str | None) -> bool:
    """True when the target version needs a different language runtime."""
    return bool(runtime_to) and runtime_from != runtime_to


def upgrade_complexity(
    diff: VersionDiff,
    breaking_changes: Sequence[str] = (),
    new_features: Sequence[str] = (),
    runtime_change: bool = False,
) -> UpgradeComplexity:
    if runtime_change or diff.major_change or breaking_changes:
        return UpgradeComplexity.HIGH
    if diff.minor_change or len(new_features) > 3:
        return UpgradeComplexity.MEDIUM
    if diff.patch_change:
        return UpgradeComplexity.LOW
    return UpgradeComplexity.UNKNOWN


RUNTIME_FACTORS = {
    Ecosystem.GO: "Requires Go version upgrade",
    Ecosystem.JAVA: "Java version requirement changes",
    Ecosystem.JAVASCRIPT: "Node.js engine requirement changes",
    Ecosystem.PYTHON: "Python version compatibility issues detected",
    Ecosystem.RUBY: "Ruby version requirement changes",
}


def risk_level(score: int) -> RiskLevel:
    if score >= 5:
        return RiskLevel.CRITICAL
    if score >= 3:
        return RiskLevel.HIGH
    if score >= 1:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def assess_risk(
    ecosystem: Ecosystem,
    package: str,
    diff: VersionDiff,
    breaking_changes: Sequence[str] = (),
    runtime_change: bool = False,
    criticality: Criticality | None = None,
) -> tuple[RiskLevel, list[str]]:
    """Additive risk score for one upgrade, with the factors that fed it."""
    score = 0
    factors: list[str] = []

    if diff.major_change:
        score += 3
        factors.append("Major version change detected")
    elif diff.minor_change:
        score += 1
        factors.append("Minor version change")

    if breaking_changes:
        score += len(breaking_changes)
        factors.append(f"{len(breaking_changes)} breaking changes detected")

    if runtime_change:
        score += 2
        factors.append(RUNTIME_FACTORS[ecosystem])

    if is_critical_package(package, ecosystem):
        score += 2
        if ecosystem is Ecosystem.JAVASCRIPT:
            factors.append("Critical framework/build tool dependency")
        else:
            factors.append("Critical framework/library dependency")
    elif criticality is Criticality.HIGH:
        score += 2
        factors.append("High-criticality dependency in this project")

    if ecosystem is Ecosystem.GO and (is_official(package, ecosystem) or is_stdlib(package)):
        score -= 1
        factors.append("Official Go extended library (generally stable)")

    return risk_level(score), factors


# ── templates ────────────────────────────────────────────────────────────

MAJOR_GO = [
    "This is a major version upgrade. Review all breaking changes carefully before upgrading.",
    "Check if import paths need to be updated (e.g., /v2, /v3 suffixes for major versions).",
    "Consider upgrading in a separate branch and testing thoroughly.",
]
MAJOR = [
    "This is a major version upgrade. Review all breaking changes carefully before upgrading.",
    "Consider upgrading in a separate branch and testing thoroughly.",
    "Update any code that depends on deprecated or removed APIs.",
]
MINOR = ["This is a minor version upgrade. Review new features and any behavioral changes."]
PATCH = ["This is a patch version upgrade. Should be relatively safe to upgrade."]
PRERELEASE = ["This is a pre-release version change. Avoid pre-releases in production unless you need a specific fix."]
UNCHANGED = ["The versions are equivalent; no upgrade is required."]

TESTING = {
    Ecosystem.GO: {
        UpgradeComplexity.HIGH: [
            "Run comprehensive tests: `go test ./...` for the entire module tree.",
            "Consider running race detection tests: `go test -race ./...`",
            "Test with different build tags if your code uses them.",
            "Have a rollback plan ready in case issues are discovered.",
        ],
        UpgradeComplexity.MEDIUM: [
            "Run your existing test suite: `go test ./...`",
            "Add tests for any new features you plan to use.",
        ],
        UpgradeComplexity.LOW: ["Run your existing test suite to ensure no regressions: `go test ./...`"],
    },
    Ecosystem.RUBY: {
        UpgradeComplexity.HIGH: [
            "Run comprehensive tests including unit, integration, and system tests.",
            "Consider setting up a staging environment to test the upgrade.",
            "Have a rollback plan ready in case issues are discovered.",
            "Run bundle audit to check for security vulnerabilities after upgrade.",
        ],
        UpgradeComplexity.MEDIUM: [
            "Run your existing test suite and add tests for any new features you plan to use.",
            "Check for any deprecation warnings in your logs.",
        ],
        UpgradeComplexity.LOW: ["Run your existing test suite to ensure no regressions."],
    },
    Ecosystem.PYTHON: {
        UpgradeComplexity.HIGH: [
            "Run comprehensive tests including unit, integration, and end-to-end tests.",
            "Set up a staging environment to test the upgrade.",
            "Have a rollback plan ready in case issues are discovered.",
            "Consider gradual rollout if this is a production system.",
        ],
        UpgradeComplexity.MEDIUM: [
            "Run your existing test suite and add tests for any new features you plan to use.",
            "Test in a development environment first.",
        ],
        UpgradeComplexity.LOW: ["Run your existing test suite to ensure no regressions."],
    },
}
DEFAULT_TESTING = {
    UpgradeComplexity.HIGH: [
        "Run comprehensive tests including unit, integration, and end-to-end tests.",
        "Consider setting up a staging environment to test the upgrade.",
        "Have a rollback plan ready in case issues are discovered.",
    ],
    UpgradeComplexity.MEDIUM: ["Run your existing test suite and add tests for any new features you plan to use."],
    UpgradeComplexity.LOW: ["Run your existing test suite to ensure no regressions."],
}

RUNTIME_ADVICE = {
    Ecosystem.GO: [
        "Upgrade Go to version {to} or later before upgrading this module.",
        "Update your go.mod file to specify the new Go version requirement.",
    ],
    Ecosystem.PYTHON: [
        "Verify Python version compatibility before upgrading (new requirement: {to}).",
        "Consider upgrading Python version if required by the new package version.",
    ],
    Ecosystem.RUBY: ["Ensure your Ruby version meets the requirement: {to}"],
    Ecosystem.JAVASCRIPT: ["Ensure your Node.js version satisfies the new engines requirement: {to}"],
    Ecosystem.JAVA: ["Ensure your JDK satisfies the new Java version requirement: {to}"],
}

# (ecosystem, coordinate substrings, advice); first match wins
PACKAGE_FAMILIES: list[tuple[Ecosystem, tuple[str, ...], list[str]]] = [
    (Ecosystem.GO, ("gin", "echo", "fiber"), ["Test all HTTP endpoints and middleware after upgrading web framework."]),
    (Ecosystem.GO, ("gorm",), ["Test database operations and check for any migration requirements."]),
    (Ecosystem.GO, ("testify",), ["Run all tests and check for any assertion or mocking changes."]),
    (
        Ecosystem.PYTHON,
        ("django",),
        [
            "Check Django documentation for migration guides and breaking changes.",
            "Run Django system checks after upgrading.",
            "Test database migrations in a non-production environment first.",
        ],
    ),
    (
        Ecosystem.PYTHON,
        ("flask",),
        ["Check Flask extensions compatibility with the new version.", "Test all routes and middleware after upgrading."],
    ),
    (
        Ecosystem.PYTHON,
        ("requests",),
        ["Test all HTTP requests and ensure SSL/TLS settings still work correctly."],
    ),
    (
        Ecosystem.PYTHON,
        ("numpy", "pandas"),
        [
            "Test data processing pipelines thoroughly for numerical accuracy.",
            "Check for performance regressions in data operations.",
        ],
    ),
    (
        Ecosystem.PYTHON,
        ("sqlalchemy",),
        ["Test all database queries and ORM operations.", "Check connection pooling and transaction handling."],
    ),
    (
        Ecosystem.PYTHON,
        ("pytest",),
        [
            "Verify all test plugins are compatible with the new pytest version.",
            "Check for changes in test discovery or reporting.",
        ],
    ),
    (
        Ecosystem.RUBY,
        ("rails",),
        [
            "Review Rails upgrade guides for version-specific changes.",
            "Check that all installed gems are compatible with the new Rails version.",
            "Update config/application.rb and other configuration files as needed.",
        ],
    ),
    (
        Ecosystem.RUBY,
        ("nokogiri",),
        [
            "Check for any native dependency compilation issues.",
            "Verify XML/HTML parsing behavior with your existing code.",
        ],
    ),
    (
        Ecosystem.RUBY,
        ("activerecord",),
        [
            "Review database migrations and model code for compatibility.",
            "Test database queries thoroughly, especially complex ones.",
        ],
    ),
    (
        Ecosystem.JAVASCRIPT,
        ("react",),
        ["Check React DevTools compatibility and update if needed.", "Review component lifecycle changes and hooks usage."],
    ),
    (
        Ecosystem.JAVASCRIPT,
        ("typescript",),
        [
            "Check for TypeScript compilation errors and type definition updates.",
            "Review tsconfig.json settings for any new compiler options.",
        ],
    ),
    (
        Ecosystem.JAVASCRIPT,
        ("webpack",),
        ["Review webpack configuration for any breaking changes.", "Test build process and bundle output thoroughly."],
    ),
    (
        Ecosystem.JAVA,
        ("spring-boot", "springframework"),
        ["Review the Spring migration notes and check auto-configuration and property changes."],
    ),
    (Ecosystem.JAVA, ("hibernate",), ["Test entity mappings, queries and schema generation after upgrading."]),
    (Ecosystem.JAVA, ("junit",), ["Check test runner and extension compatibility with the new JUnit version."]),
    (Ecosystem.JAVA, ("jackson",), ["Verify JSON serialization output and custom (de)serializers."]),
]

GO_FAMILY_NOTES: list[tuple[tuple[str, ...], str]] = [
    (("gorm",), "GORM upgrades often include database migration considerations."),
    (("gin", "echo", "fiber"), "Web framework upgrades may affect middleware compatibility and routing behavior."),
    (("testify",), "Test framework changes may require updating test assertions and mocking patterns."),
]


def package_family_advice(ecosystem: Ecosystem, package: str) -> list[str]:
    lowered = package.lower()
    for family_ecosystem, needles, advice in PACKAGE_FAMILIES:
        if family_ecosystem is ecosystem and any(n in lowered for n in needles):
            return list(advice)
    return []


def compatibility_notes(
    ecosystem: Ecosystem,
    package: str,
    diff: VersionDiff,
    runtime_to: str | None = None,
    runtime_change: bool = False,
) -> list[str]:
    """The comparator's notes plus package- and runtime-specific ones."""
    notes: list[str] = []
    if runtime_change:
        if ecosystem is Ecosystem.GO:
            notes.append(f"Go {runtime_to} or later is required for the target version.")
        else:
            notes.append(f"The target version requires runtime {runtime_to}.")
    notes.extend(diff.compatibility_notes)
    if ecosystem is Ecosystem.GO:
        lowered = package.lower()
        notes.extend(note for needles, note in GO_FAMILY_NOTES if any(n in lowered for n in needles))
        if package.startswith("golang.org/x/"):
            notes.append("This is an official Go extended library with generally stable APIs.")
    return notes


def _version_advice(ecosystem: Ecosystem, diff: VersionDiff) -> list[str]:
    if diff.major_change:
        advice = list(MAJOR_GO if ecosystem is Ecosystem.GO else MAJOR)
    elif diff.minor_change:
        advice = list(MINOR)
    elif diff.patch_change:
        advice = list(PATCH)
    elif diff.semver_type is SemverType.PRERELEASE:
        advice = list(PRERELEASE)
    else:
        advice = list(UNCHANGED)
    if diff.direction == "downgrade":
        advice.insert(0, f"This is a downgrade from {diff.from_version} to {diff.to_version}; confirm it is intentional.")
    return advice


def _ecosystem_advice(ecosystem: Ecosystem, package: str, diff: VersionDiff) -> list[str]:
    advice: list[str] = []
    if ecosystem is Ecosystem.GO and diff.import_path_change_required:
        advice.append(f"Update import paths of {package} to the {diff.required_import_suffix} module path.")
    if ecosystem is Ecosystem.RUBY and diff.pessimistic_constraint:
        advice.append(f"Consider using pessimistic constraint: gem '{package}', '{diff.pessimistic_constraint}'")
    if ecosystem is Ecosystem.PYTHON:
        if diff.pep440_compliant is False:
            advice.append("One of the versions is not PEP 440 compliant; double-check the version you pin.")
        if diff.is_prerelease or diff.is_dev_release:
            advice.append("Pre-release and development versions are not recommended for production.")
    return advice


def _closing_advice(ecosystem: Ecosystem, diff: VersionDiff) -> list[str]:
    if ecosystem is Ecosystem.GO:
        advice = [
            "Use `go mod tidy` after upgrading to clean up dependencies.",
            "Check for any new indirect dependencies with `go list -m all`",
        ]
        if diff.major_change:
            advice.append("Verify that `go mod verify` passes after the upgrade.")
        return advice
    if ecosystem is Ecosystem.RUBY:
        return [
            "Update your Gemfile.lock by running bundle update after the upgrade.",
            "Consider running bundle outdated to check other gems for updates.",
        ]
    if ecosystem is Ecosystem.PYTHON:
        return [
            "Perform the upgrade in a virtual environment first before updating production.",
            "Document the upgrade process and any issues encountered for future reference.",
        ]
    if ecosystem is Ecosystem.JAVASCRIPT:
        return ["Regenerate and commit your lock file after the upgrade."]
    return ["Run the full build and check the resolved dependency tree for new conflicts after the upgrade."]


def recommend_upgrade(
    ecosystem: Ecosystem,
    package: str,
    diff: VersionDiff,
    changelog: ChangelogClassification | None = None,
    runtime_from: str | None = None,
    runtime_to: str | None = None,
    criticality: Criticality | None = None,
) -> Recommendation:
    """Ordered upgrade advice and risk for *package* moving along *diff*."""
    changelog = changelog or ChangelogClassification()
    runtime_change = runtime_changed(runtime_from, runtime_to)
    complexity = upgrade_complexity(diff, changelog.breaking_changes, changelog.new_features, runtime_change)
    level, factors = assess_risk(ecosystem, package, diff, changelog.breaking_changes, runtime_change, criticality)

    advice: list[str] = []
    if runtime_change and ecosystem is Ecosystem.GO:
        advice.extend(line.format(to=runtime_to) for line in RUNTIME_ADVICE[ecosystem])
    advice.extend(_version_advice(ecosystem, diff))
    advice.extend(_ecosystem_advice(ecosystem, package, diff))

    if changelog.security_fixes:
        n = len(changelog.security_fixes)
        advice.append(f"This upgrade includes {n} security fixes. Upgrading is strongly recommended.")
        advice.append("Security updates should be prioritized and deployed as soon as possible.")
    if changelog.breaking_changes:
        advice.append(f"Review and address {len(changelog.breaking_changes)} breaking changes before upgrading.")
        advice.append("Search your codebase for usage patterns that may be affected by breaking changes.")
        if ecosystem is Ecosystem.GO:
            advice.append("Use `go build` and `go test` to identify compilation issues after upgrade.")
    if changelog.deprecations:
        advice.append(f"Address {len(changelog.deprecations)} deprecations to future-proof your code.")
        advice.append("Plan to migrate away from deprecated APIs in upcoming releases.")
    if runtime_change and ecosystem is not Ecosystem.GO:
        advice.extend(line.format(to=runtime_to) for line in RUNTIME_ADVICE[ecosystem])

    testing = TESTING.get(ecosystem, DEFAULT_TESTING)
    advice.extend(testing.get(complexity, []))
    advice.extend(package_family_advice(ecosystem, package))
    if changelog.new_features:
        advice.append(f"Consider adopting {len(changelog.new_features)} new features to improve your codebase.")
    advice.extend(_closing_advice(ecosystem, diff))

    return Recommendation(
        recommendations=tuple(advice),
        risk_level=level,
        factors=tuple(factors),
        upgrade_complexity=complexity,
    )


# ── dependency-analysis findings ─────────────────────────────────────────

LOCK_FILE_HINTS = {
    "npm": "package-lock.json",
    "yarn": "yarn.lock",
    "pnpm": "pnpm-lock.yaml",
    "poetry": "poetry.lock",
    "uv": "uv.lock",
    "pipenv": "Pipfile.lock",
    "pdm": "pdm.lock",
    "pip": "a pinned requirements file",
    "bundler": "Gemfile.lock",
}

# Kinds in the order findings are reported
FINDING_KINDS = (
    "removal_candidate",
    "undeclared_import",
    "critical_transitive",
    "version_conflict",
    "unstable_pin",
    "replaced",
    "evicted",
    "unconstrained_gem",
    "cgo",
    "missing_go_sum",
    "missing_lock_file",
)


def _removal_candidate(dep: Dependency, bundler_require: bool) -> Finding | None:
    if not (dep.is_direct and not dep.inferred and dep.usage_count == 0):
        return None
    if dep.ecosystem not in IMPORT_MAPPED_ECOSYSTEMS or not dep.scope.shapes_runtime or dep.optional:
        return None
    where = ", ".join(dep.source_files) or "a manifest"
    message = f"Remove unused dependency {dep.coordinate}: declared in {where} but never imported."
    if dep.ecosystem is Ecosystem.RUBY and bundler_require:
        message = (
            f"Check whether {dep.coordinate} is still needed: it is never required explicitly "
            f"and may only be loaded by Bundler.require."
        )
    return Finding("removal_candidate", message, dep.coordinate, dep.ecosystem)


def _dependency_findings(dep: Dependency, bundler_require: bool) -> list[Finding]:
    found: list[Finding] = []
    removal = _removal_candidate(dep, bundler_require)
    if removal:
        found.append(removal)
    if dep.inferred:
        found.append(
            Finding(
                "undeclared_import",
                f"Declare {dep.coordinate} explicitly: it is imported {dep.usage_count} time(s) "
                f"but not listed in any manifest.",
                dep.coordinate,
                dep.ecosystem,
            )
        )
    elif not dep.is_direct and dep.criticality is Criticality.HIGH:
        found.append(
            Finding(
                "critical_transitive",
                f"Consider declaring {dep.coordinate} directly: it is a high-criticality transitive dependency.",
                dep.coordinate,
                dep.ecosystem,
            )
        )
    if dep.has_version_conflict:
        found.append(
            Finding(
                "version_conflict",
                f"Align the versions of {dep.coordinate}: declared as {', '.join(dep.declared_versions)}.",
                dep.coordinate,
                dep.ecosystem,
            )
        )
    version = dep.effective_version
    if dep.is_direct and is_unstable(version):
        kind = "SNAPSHOT" if "snapshot" in version.lower() else "pre-release"
        found.append(
            Finding(
                "unstable_pin",
                f"Pin a stable release of {dep.coordinate} instead of the {kind} version {version}.",
                dep.coordinate,
                dep.ecosystem,
            )
        )
    if dep.replacements:
        found.append(
            Finding(
                "replaced",
                f"Review the replacement of {dep.coordinate} with {', '.join(dep.replacements)}; "
                f"replaced modules bypass normal version selection.",
                dep.coordinate,
                dep.ecosystem,
            )
        )
    if dep.evicted:
        by = f" by {dep.evicted_by}" if dep.evicted_by else ""
        declared = f" {dep.declared_version}" if dep.declared_version else ""
        found.append(
            Finding(
                "evicted",
                f"{dep.coordinate}{declared} is evicted{by}; declare the version you actually run.",
                dep.coordinate,
                dep.ecosystem,
            )
        )
    if (
        dep.ecosystem is Ecosystem.RUBY
        and dep.is_direct
        and not dep.inferred
        and not dep.declared_version
        and any(not f.endswith(".lock") and not f.endswith(".locked") for f in dep.source_files)
    ):
        constraint = pessimistic_constraint(parse_gem_version(dep.resolved_version)) if dep.resolved_version else None
        example = f" (for example gem '{dep.coordinate}', '{constraint}')" if constraint else ""
        found.append(
            Finding(
                "unconstrained_gem",
                f"Add a pessimistic version constraint for {dep.coordinate}{example}.",
                dep.coordinate,
                dep.ecosystem,
            )
        )
    return found


def _project_findings(detection: EcosystemReport, uses_cgo: bool) -> list[Finding]:
    found: list[Finding] = []
    for result in detection.detected:
        if result.ecosystem is Ecosystem.GO:
            if uses_cgo:
                found.append(
                    Finding(
                        "cgo",
                        "The project uses cgo: builds need a C toolchain and cross-compilation is restricted.",
                        ecosystem=Ecosystem.GO,
                    )
                )
            if result.metadata.get("modulePath") and not result.metadata.get("hasGoSum"):
                found.append(
                    Finding(
                        "missing_go_sum",
                        "No go.sum found: run `go mod tidy` to record module checksums.",
                        ecosystem=Ecosystem.GO,
                    )
                )
            continue
        if result.ecosystem is Ecosystem.JAVA or result.has_lock_file:
            continue
        manager = result.package_manager or ""
        hint = LOCK_FILE_HINTS.get(manager, "a lock file")
        found.append(
            Finding(
                "missing_lock_file",
                f"No lock file found for {result.ecosystem.value}: commit {hint} for reproducible installs.",
                ecosystem=result.ecosystem,
            )
        )
    return found


def dependency_findings(
    graph: DependencyGraph,
    detection: EcosystemReport,
    uses_cgo: bool = False,
    bundler_require: bool = False,
) -> list[Finding]:
    """Recommendations for a finished graph, grouped by kind then coordinate."""
    found = [f for dep in graph.dependencies for f in _dependency_findings(dep, bundler_require)]
    found.extend(_project_findings(detection, uses_cgo))
    order = {kind: index for index, kind in enumerate(FINDING_KINDS)}
    return sorted(found, key=lambda f: (order[f.kind], f.coordinate or "", f.ecosystem.value if f.ecosystem else ""))
