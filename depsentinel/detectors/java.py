"""JVM build detection: Maven, Gradle, SBT and Groovy Grape scripts."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from depsentinel.detectors.base import (
    DetectionRule,
    EcosystemDetector,
    count_sources,
    evidence,
    read_text,
)
from depsentinel.models import Ecosystem, Evidence, EvidenceTier
from depsentinel.parsers.sbt_build import scala_version

DETECTION_RULES: list[DetectionRule] = [
    ("gradle.lockfile", EvidenceTier.LOCK, "gradle"),
    ("pom.xml", EvidenceTier.MANIFEST, "maven"),
    ("build.gradle", EvidenceTier.MANIFEST, "gradle"),
    ("build.gradle.kts", EvidenceTier.MANIFEST, "gradle"),
    ("build.sbt", EvidenceTier.MANIFEST, "sbt"),
    ("mvnw", EvidenceTier.CONFIG, "maven"),
    (".mvn", EvidenceTier.CONFIG, "maven"),
    ("gradlew", EvidenceTier.CONFIG, "gradle"),
    ("settings.gradle", EvidenceTier.CONFIG, "gradle"),
    ("settings.gradle.kts", EvidenceTier.CONFIG, "gradle"),
    ("gradle/libs.versions.toml", EvidenceTier.CONFIG, "gradle"),
    ("project/build.properties", EvidenceTier.CONFIG, "sbt"),
    ("project/plugins.sbt", EvidenceTier.CONFIG, "sbt"),
]

BUILD_FILES = ("pom.xml", "build.gradle", "build.gradle.kts", "build.sbt")

STANDARD_LAYOUT = (
    "src/main/java",
    "src/main/kotlin",
    "src/main/scala",
    "src/main/resources",
    "src/test/java",
    "src/test/kotlin",
    "src/test/scala",
)

_GRAB_RE = re.compile(r"@Grab\s*\(")

_JAVA_VERSION_PATTERNS = [
    re.compile(r"<maven\.compiler\.release>\s*([^<\s]+)\s*<"),
    re.compile(r"<maven\.compiler\.source>\s*([^<\s]+)\s*<"),
    re.compile(r"<java\.version>\s*([^<\s]+)\s*<"),
    re.compile(r"<release>\s*([^<\s]+)\s*</release>"),
    re.compile(r"JavaLanguageVersion\.of\(\s*(\d+)\s*\)"),
    re.compile(r"sourceCompatibility\s*=\s*(?:JavaVersion\.VERSION_)?['\"]?([\d_.]+)"),
    re.compile(r"jvmTarget\s*[=:]\s*(?:JvmTarget\.JVM_)?['\"]?([\d_.]+)"),
]


def java_version(content: str) -> str | None:
    for pattern in _JAVA_VERSION_PATTERNS:
        m = pattern.search(content)
        if m:
            return m.group(1).replace("_", ".")
    return None


def _modules(root: Path, max_depth: int = 2) -> list[str]:
    """Sub-directories (up to *max_depth* deep) that carry their own build file."""
    modules: list[str] = []
    level = [root]
    for _ in range(max_depth):
        next_level: list[Path] = []
        for directory in level:
            try:
                children = sorted(p for p in directory.iterdir() if p.is_dir())
            except OSError:
                continue
            for child in children:
                if child.name.startswith(".") or child.name in ("src", "target", "build", "project"):
                    continue
                if any((child / name).is_file() for name in BUILD_FILES):
                    modules.append(child.relative_to(root).as_posix())
                next_level.append(child)
        level = next_level
    return modules


class JavaDetector(EcosystemDetector):
    ecosystem = Ecosystem.JAVA
    rules = DETECTION_RULES

    def extra_evidence(self, root: Path, found: list[Evidence]) -> list[Evidence]:
        extra: list[Evidence] = []
        # Grape scripts only count when the project is not already a Gradle build
        if not any(e.manager == "gradle" for e in found):
            for script in sorted(root.glob("*.groovy")):
                content = read_text(script) or ""
                if _GRAB_RE.search(content):
                    extra.append(
                        evidence(script.name, EvidenceTier.DEPENDENCY_FILE, "grape", "@Grab annotations")
                    )
        sources = count_sources(root, ["*.java", "*.kt", "*.scala"])
        if sources:
            extra.append(evidence("src", EvidenceTier.SOURCE, note=f"{sources} JVM source files"))
        return extra

    def metadata(self, root: Path, found: list[Evidence]) -> dict[str, Any]:
        meta: dict[str, Any] = {
            "buildTools": sorted({e.manager for e in found if e.manager}),
            "standardLayout": [d for d in STANDARD_LAYOUT if (root / d).is_dir()],
        }
        modules = _modules(root)
        meta["multiModule"] = bool(modules)
        meta["modules"] = modules

        for name in ("pom.xml", "build.gradle.kts", "build.gradle", "build.sbt"):
            content = read_text(root / name)
            if content is None:
                continue
            version = java_version(content)
            if version and "javaVersion" not in meta:
                meta["javaVersion"] = version
            if name == "build.sbt":
                meta["scalaVersion"] = scala_version(content)
        properties = read_text(root / "project" / "build.properties")
        if properties:
            m = re.search(r"(?m)^\s*sbt\.version\s*=\s*(\S+)", properties)
            if m:
                meta["sbtVersion"] = m.group(1)
        return meta
