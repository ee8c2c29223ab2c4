"""JVM build-tool adapters: Maven, Gradle and SBT dependency trees."""

from __future__ import annotations

import re
from dataclasses import replace

from depsentinel.models import Ecosystem, ResolvedDependency, Scope
from depsentinel.tools.base import ToolAdapter

_MAVEN_SCOPES = {
    "compile": Scope.COMPILE,
    "runtime": Scope.RUNTIME,
    "provided": Scope.PROVIDED,
    "system": Scope.SYSTEM,
    "test": Scope.TEST,
    "import": Scope.BUILD,
}

# [INFO] |  +- group:artifact:type[:classifier]:version:scope
_MAVEN_LINE_RE = re.compile(r"^(?:\[INFO\]\s)?(?P<prefix>[| ]*)(?:\+-|\\-)\s(?P<spec>.+)$")
_MAVEN_OMITTED_RE = re.compile(r"omitted for conflict with ([^)\s]+)")

# |    +--- group:artifact:version -> resolved (*)
_GRADLE_LINE_RE = re.compile(r"^(?P<prefix>[| ]*)(?:\+---|\\---)\s(?P<spec>.+)$")
_GRADLE_MARKERS_RE = re.compile(r"\s+\((?:\*|c|n|constraint)\)$")

# [info]   | +-group:artifact_2.13:version [S]
_SBT_LINE_RE = re.compile(r"^(?:\[info\]\s)?(?P<prefix>[| ]*)\+-(?P<spec>\S.*)$")
_SBT_EVICTED_RE = re.compile(r"\(evicted by: ([^)]+)\)")
_SBT_SELECTED_RE = re.compile(r"\*\s+(?P<group>[^:\s]+):(?P<artifact>[^:\s]+):(?P<version>\S+) is selected over (?P<others>.+)$")
_SCALA_SUFFIX_RE = re.compile(r"_(?:2\.1[0-3]|3|sjs1_[\w.]+|native[\w.]*_[\w.]+)$")


def strip_scala_suffix(artifact: str) -> str:
    return _SCALA_SUFFIX_RE.sub("", artifact)


def _walk_tree(entries: list[tuple[int, ResolvedDependency]]) -> list[ResolvedDependency]:
    """Attach parents to (depth, row) pairs read from an indented tree."""
    stack: list[str] = []
    rows: list[ResolvedDependency] = []
    for depth, row in entries:
        del stack[depth:]
        rows.append(replace(row, is_direct=depth == 0, parent=stack[-1] if stack else None))
        stack.append(row.coordinate)
    return rows


class MavenTreeAdapter(ToolAdapter):
    name = "mvn dependency:tree"
    ecosystem = Ecosystem.JAVA
    managers = frozenset({"maven"})
    command = ["mvn", "-B", "dependency:tree"]
    wrapper = "mvnw"

    def parse(self, output: str) -> list[ResolvedDependency]:
        entries = []
        for line in output.splitlines():
            m = _MAVEN_LINE_RE.match(line)
            if not m:
                continue
            spec = m.group("spec").strip()
            evicted = _MAVEN_OMITTED_RE.search(spec)
            spec = spec.strip("()").split(" ", 1)[0]
            parts = spec.split(":")
            if len(parts) < 4:
                continue
            group, artifact = parts[0], parts[1]
            if len(parts) >= 6:
                version, scope = parts[4], parts[5]
            elif len(parts) == 5:
                version, scope = parts[3], parts[4]
            else:
                version, scope = parts[3], "compile"
            coordinate = f"{group}:{artifact}"
            row = ResolvedDependency(
                coordinate=coordinate,
                version=version,
                scope=_MAVEN_SCOPES.get(scope, Scope.COMPILE),
                evicted_by=evicted.group(1) if evicted else None,
            )
            entries.append((len(m.group("prefix")) // 3, row))
        if not entries and "BUILD SUCCESS" not in output:
            raise ValueError("no dependency tree in mvn output")
        return _walk_tree(entries)


class GradleDependenciesAdapter(ToolAdapter):
    name = "gradle dependencies"
    ecosystem = Ecosystem.JAVA
    managers = frozenset({"gradle"})
    command = ["gradle", "-q", "dependencies", "--configuration", "runtimeClasspath"]
    wrapper = "gradlew"

    def parse(self, output: str) -> list[ResolvedDependency]:
        entries = []
        for line in output.splitlines():
            m = _GRADLE_LINE_RE.match(line)
            if not m:
                continue
            spec = _GRADLE_MARKERS_RE.sub("", m.group("spec").strip())
            if spec.startswith("project ") or spec.endswith(" FAILED"):
                continue
            requested, arrow, selected = spec.partition(" -> ")
            parts = requested.split(":")
            if len(parts) < 2:
                continue
            coordinate = f"{parts[0]}:{parts[1]}"
            declared = parts[2] if len(parts) > 2 else None
            version = selected.strip() if arrow else declared
            evicted_by = version if arrow and declared and declared != version else None
            row = ResolvedDependency(coordinate=coordinate, version=version, evicted_by=evicted_by, scope=Scope.RUNTIME)
            entries.append((len(m.group("prefix")) // 5, row))
        return _walk_tree(entries)


class SbtDependencyTreeAdapter(ToolAdapter):
    name = "sbt dependencyTree"
    ecosystem = Ecosystem.JAVA
    managers = frozenset({"sbt"})
    command = ["sbt", "-batch", "dependencyTree"]

    def parse(self, output: str) -> list[ResolvedDependency]:
        entries = []
        for line in output.splitlines():
            m = _SBT_LINE_RE.match(line)
            if not m:
                continue
            spec = m.group("spec")
            evicted = _SBT_EVICTED_RE.search(spec)
            parts = spec.split()[0].split(":")
            if len(parts) < 3:
                continue
            coordinate = f"{parts[0]}:{strip_scala_suffix(parts[1])}"
            row = ResolvedDependency(
                coordinate=coordinate,
                version=parts[2],
                evicted_by=evicted.group(1).strip() if evicted else None,
            )
            # Direct children of the project root sit one level (two columns) in
            entries.append((max(len(m.group("prefix")) // 2 - 1, 0), row))
        return _walk_tree(entries)


class SbtEvictedAdapter(ToolAdapter):
    name = "sbt evicted"
    ecosystem = Ecosystem.JAVA
    managers = frozenset({"sbt"})
    command = ["sbt", "-batch", "evicted"]

    def parse(self, output: str) -> list[ResolvedDependency]:
        resolved: list[ResolvedDependency] = []
        for line in output.splitlines():
            m = _SBT_SELECTED_RE.search(line)
            if not m:
                continue
            resolved.append(
                ResolvedDependency(
                    coordinate=f"{m.group('group')}:{strip_scala_suffix(m.group('artifact'))}",
                    version=m.group("version"),
                    evicted_by=m.group("version"),
                )
            )
        return resolved
