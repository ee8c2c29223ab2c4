"""Parsers for SBT builds: *.sbt files and project/build.properties."""

from __future__ import annotations

import re
from pathlib import Path

from depsentinel.models import DeclaredDependency, Ecosystem, Scope
from depsentinel.parsers.gradle_build import strip_comments
from depsentinel.registry import PatternParser, register_parser

# "org" %% "name" % "1.0" % Test
_MODULE_ID_RE = re.compile(
    r'"(?P<group>[^"\s]+)"\s*(?P<op>%%%|%%|%)\s*"(?P<artifact>[^"\s]+)"\s*%\s*'
    r'(?P<version>"[^"]*"|[A-Za-z_][\w.]*)'
    r'(?:\s*%\s*(?P<scope>"[^"]+"|[A-Z][A-Za-z]*))?'
)

_PLUGIN_RE = re.compile(r"\baddSbtPlugin\s*\(\s*$")

_VAL_RE = re.compile(r'(?m)^\s*(?:lazy\s+)?val\s+(?P<name>\w+)\s*(?::\s*String\s*)?=\s*"(?P<value>[^"]*)"')

_SCALA_VERSION_RE = re.compile(r'\bscalaVersion\s*:=\s*"(?P<version>[^"]+)"')

_EXCLUDE_RE = re.compile(r'\.?\s*exclude\s*\(\s*"(?P<group>[^"]+)"\s*,\s*"(?P<artifact>[^"]+)"\s*\)')

_SCOPES: dict[str, Scope] = {
    "compile": Scope.COMPILE,
    "runtime": Scope.RUNTIME,
    "test": Scope.TEST,
    "it": Scope.TEST,
    "integrationtest": Scope.TEST,
    "provided": Scope.PROVIDED,
    "optional": Scope.OPTIONAL,
}


def _scope(raw: str | None) -> Scope:
    if raw is None:
        return Scope.COMPILE
    key = raw.strip('"').split("->", 1)[0].lower()
    return _SCOPES.get(key, Scope.COMPILE)


def scala_version(content: str) -> str | None:
    m = _SCALA_VERSION_RE.search(content)
    return m.group("version") if m else None


class SbtBuildParser(PatternParser):
    detection_method = "sbt"
    ecosystem = Ecosystem.JAVA
    file_patterns = ["*.sbt"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        code = strip_comments(content)
        values = {m.group("name"): m.group("value") for m in _VAL_RE.finditer(code)}
        deps: list[DeclaredDependency] = []

        for m in _MODULE_ID_RE.finditer(code):
            raw_version = m.group("version")
            if raw_version.startswith('"'):
                version: str | None = raw_version.strip('"') or None
            else:
                version = values.get(raw_version.rsplit(".", 1)[-1])

            is_plugin = bool(_PLUGIN_RE.search(code[max(0, m.start() - 40) : m.start()]))
            raw_scope = m.group("scope")
            exclusions = [
                f"{e.group('group')}:{e.group('artifact')}"
                for e in _EXCLUDE_RE.finditer(self._tail(code, m.end()))
            ]

            deps.append(
                DeclaredDependency(
                    name=f"{m.group('group')}:{m.group('artifact')}",
                    ecosystem=self.ecosystem,
                    version=version,
                    scope=Scope.BUILD if is_plugin else _scope(raw_scope),
                    raw_scope="sbt-plugin" if is_plugin else (raw_scope.strip('"') if raw_scope else None),
                    source_file=file_path.name,
                    detection_method=self.detection_method,
                    line=code.count("\n", 0, m.start()) + 1,
                    optional=_scope(raw_scope) is Scope.OPTIONAL,
                    exclusions=exclusions,
                )
            )
        return deps

    @staticmethod
    def _tail(code: str, pos: int) -> str:
        """Text after a module id up to the next separator (comma, newline or paren)."""
        end = pos
        depth = 0
        while end < len(code):
            ch = code[end]
            if ch == "(":
                depth += 1
            elif ch == ")":
                if depth == 0:
                    break
                depth -= 1
            elif ch in ",\n" and depth == 0:
                break
            end += 1
        return code[pos:end]


class SbtBuildPropertiesParser(PatternParser):
    detection_method = "sbt-build-properties"
    ecosystem = Ecosystem.JAVA
    file_patterns = ["project/build.properties"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        for lineno, raw_line in enumerate(content.splitlines(), start=1):
            key, sep, value = raw_line.partition("=")
            if sep and key.strip() == "sbt.version" and value.strip():
                return [
                    DeclaredDependency(
                        name="org.scala-sbt:sbt",
                        ecosystem=self.ecosystem,
                        version=value.strip(),
                        scope=Scope.BUILD,
                        raw_scope="sbt.version",
                        source_file=file_path.name,
                        detection_method=self.detection_method,
                        line=lineno,
                    )
                ]
        return []


register_parser(SbtBuildParser())
register_parser(SbtBuildPropertiesParser())
