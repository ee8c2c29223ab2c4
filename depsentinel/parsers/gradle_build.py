"""Parser for Gradle build files (build.gradle / build.gradle.kts) and settings.

Extracts dependencies declared with Gradle configurations such as
implementation, api, compileOnly, runtimeOnly, testImplementation, etc.

Handles both Groovy DSL and Kotlin DSL syntax:
  - implementation "group:artifact:version"
  - implementation("group:artifact:version")
  - implementation group: 'g', name: 'a', version: 'v'
  - implementation(platform("group:artifact:version"))
  - implementation(libs.spring.core)        → resolved via libs.versions.toml
  - api(project(":submodule"))              → skipped (internal)
  - plugins { id("x") version "1.0" }       → plugin marker, build scope
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from depsentinel.exceptions import ManifestParseError
from depsentinel.models import DeclaredDependency, Ecosystem, Scope
from depsentinel.parsers.gradle_catalog import (
    VersionCatalog,
    find_catalog,
    load_catalog,
    plugin_marker,
)
from depsentinel.registry import PatternParser, register_parser

logger = logging.getLogger(__name__)

_CONFIGS: dict[str, Scope] = {
    "implementation": Scope.COMPILE,
    "api": Scope.COMPILE,
    "compile": Scope.COMPILE,
    "optional": Scope.COMPILE,
    "compileOnly": Scope.PROVIDED,
    "compileOnlyApi": Scope.PROVIDED,
    "provided": Scope.PROVIDED,
    "providedCompile": Scope.PROVIDED,
    "providedRuntime": Scope.PROVIDED,
    "runtimeOnly": Scope.RUNTIME,
    "runtime": Scope.RUNTIME,
    "annotationProcessor": Scope.BUILD,
    "kapt": Scope.BUILD,
    "ksp": Scope.BUILD,
    "classpath": Scope.BUILD,
    "developmentOnly": Scope.DEV,
}

# Longest suffix first so CompileOnlyApi wins over Api
_CONFIG_SUFFIXES: list[tuple[str, Scope]] = sorted(
    [
        ("Implementation", Scope.COMPILE),
        ("Api", Scope.COMPILE),
        ("Compile", Scope.COMPILE),
        ("CompileOnly", Scope.PROVIDED),
        ("CompileOnlyApi", Scope.PROVIDED),
        ("RuntimeOnly", Scope.RUNTIME),
        ("Runtime", Scope.RUNTIME),
        ("AnnotationProcessor", Scope.BUILD),
        ("Kapt", Scope.BUILD),
        ("Ksp", Scope.BUILD),
    ],
    key=lambda item: -len(item[0]),
)

_TEST_PREFIXES = ("test", "androidTest", "integrationTest", "functionalTest")

_Q = r"""["']"""

# configuration("group:artifact:version") / configuration platform("g:a:v")
_STRING_DEP_RE = re.compile(
    r"\b(?P<config>[A-Za-z]+)\s*\(?\s*"
    r"(?P<platform>(?:enforcedPlatform|platform)\s*\(\s*)?"
    rf"{_Q}(?P<coords>[^\"'\s:]+:[^\"'\s]+){_Q}"
)

# configuration group: 'g', name: 'a', version: 'v'  (Groovy)  or  group = "g", ... (Kotlin)
_MAP_DEP_RE = re.compile(
    r"\b(?P<config>[A-Za-z]+)\s*\(?\s*"
    rf"group\s*[:=]\s*{_Q}(?P<group>[^\"']+){_Q}\s*,\s*"
    rf"name\s*[:=]\s*{_Q}(?P<name>[^\"']+){_Q}"
    rf"(?:\s*,\s*version\s*[:=]\s*{_Q}(?P<version>[^\"']+){_Q})?"
)

# configuration(libs.some.alias) / configuration libs.bundles.x
_CATALOG_DEP_RE = re.compile(
    r"\b(?P<config>[A-Za-z]+)\s*\(?\s*"
    r"(?P<platform>(?:enforcedPlatform|platform)\s*\(\s*)?"
    r"libs\.(?P<alias>[A-Za-z0-9_.]+)"
)

_PLUGIN_ID_RE = re.compile(
    rf"\bid\s*\(?\s*{_Q}(?P<id>[^\"']+){_Q}\s*\)?"
    rf"(?:\s+version\s*\(?\s*{_Q}(?P<version>[^\"']+){_Q})?"
)
_KOTLIN_PLUGIN_RE = re.compile(
    rf"\bkotlin\s*\(\s*{_Q}(?P<id>[^\"']+){_Q}\s*\)"
    rf"(?:\s+version\s*\(?\s*{_Q}(?P<version>[^\"']+){_Q})?"
)
_PLUGIN_ALIAS_RE = re.compile(r"\balias\s*\(\s*libs\.plugins\.(?P<alias>[A-Za-z0-9_.]+)\s*\)")

_EXCLUDE_RE = re.compile(
    r"\bexclude\s*\(?\s*"
    rf"(?:group\s*[:=]\s*{_Q}(?P<group>[^\"']+){_Q})?\s*,?\s*"
    rf"(?:module\s*[:=]\s*{_Q}(?P<module>[^\"']+){_Q})?"
)

# def springVersion = '6.0.0' / val springVersion = "6.0.0" / ext.springVersion = '6.0.0'
_VAR_RE = re.compile(
    r"(?m)^\s*(?:def\s+|val\s+|var\s+|ext\.|project\.ext\.)?"
    rf"(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s*=\s*{_Q}(?P<value>[^\"'$]+){_Q}"
)
_SET_VAR_RE = re.compile(
    rf"\b(?:set|extra\.set)\(\s*{_Q}(?P<name>\w+){_Q}\s*,\s*{_Q}(?P<value>[^\"']+){_Q}\s*\)"
)
_EXTRA_VAR_RE = re.compile(
    rf"\bextra\[\s*{_Q}(?P<name>\w+){_Q}\s*\]\s*=\s*{_Q}(?P<value>[^\"']+){_Q}"
)
_INTERP_RE = re.compile(r"\$\{?([A-Za-z_][A-Za-z0-9_.]*)\}?")

_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT_RE = re.compile(r"(?m)(^|\s)//.*$")

_INCLUDE_RE = re.compile(r"\binclude\s*\(?\s*((?:[\"'][^\"']+[\"']\s*,?\s*)+)\)?")


def scope_for(config: str) -> Scope | None:
    """Map a Gradle configuration name onto a Scope; None if not a dependency config."""
    scope = _CONFIGS.get(config)
    if scope is None:
        for suffix, suffix_scope in _CONFIG_SUFFIXES:
            if config.endswith(suffix) and config != suffix and config[0].islower():
                scope = suffix_scope
                break
    if scope is None:
        return None
    if config.startswith(_TEST_PREFIXES):
        return Scope.TEST
    return scope


def strip_comments(content: str) -> str:
    content = _BLOCK_COMMENT_RE.sub(lambda m: "\n" * m.group(0).count("\n"), content)
    return _LINE_COMMENT_RE.sub(r"\1", content)


def blocks(content: str, keyword: str) -> list[str]:
    """Bodies of every ``keyword { ... }`` block, with nested braces balanced."""
    bodies: list[str] = []
    for m in re.finditer(rf"\b{re.escape(keyword)}\s*\{{", content):
        depth = 1
        pos = m.end()
        while pos < len(content) and depth:
            if content[pos] == "{":
                depth += 1
            elif content[pos] == "}":
                depth -= 1
            pos += 1
        bodies.append(content[m.end() : pos - 1])
    return bodies


def _trailing_closure(content: str, pos: int) -> str:
    """Body of a ``{ ... }`` closure starting right after *pos*, or ''."""
    m = re.compile(r"\s*\)?\s*\{").match(content, pos)
    if not m:
        return ""
    depth = 1
    end = m.end()
    while end < len(content) and depth:
        if content[end] == "{":
            depth += 1
        elif content[end] == "}":
            depth -= 1
        end += 1
    return content[m.end() : end - 1]


def _exclusions(closure: str) -> list[str]:
    found: list[str] = []
    for m in _EXCLUDE_RE.finditer(closure):
        group, module = m.group("group"), m.group("module")
        if group or module:
            found.append(f"{group or '*'}:{module or '*'}")
    return found


def build_variables(content: str, build_file: Path | None = None) -> dict[str, str]:
    """String variables a build script can interpolate: ext, def/val, gradle.properties."""
    variables: dict[str, str] = {}
    if build_file is not None:
        for directory in (build_file.parent, build_file.parent.parent):
            props_file = directory / "gradle.properties"
            if props_file.is_file():
                for line in props_file.read_text(encoding="utf-8", errors="replace").splitlines():
                    key, sep, value = line.partition("=")
                    if sep and not key.strip().startswith("#"):
                        variables.setdefault(key.strip(), value.strip())
    for regex in (_VAR_RE, _SET_VAR_RE, _EXTRA_VAR_RE):
        for m in regex.finditer(content):
            variables[m.group("name")] = m.group("value")
    return variables


def _interpolate(value: str, variables: dict[str, str]) -> str:
    def _replace(m: re.Match) -> str:
        key = m.group(1)
        if key in variables:
            return variables[key]
        return variables.get(key.rsplit(".", 1)[-1], m.group(0))

    return _INTERP_RE.sub(_replace, value)


def _line_of(content: str, pos: int) -> int:
    return content.count("\n", 0, pos) + 1


class GradleBuildParser(PatternParser):
    detection_method = "gradle"
    ecosystem = Ecosystem.JAVA
    file_patterns = ["build.gradle", "build.gradle.kts"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        code = strip_comments(content)
        variables = build_variables(code, file_path if file_path.is_absolute() else None)
        catalog = self._catalog(file_path)

        seen: set[tuple[str, Scope]] = set()
        deps: list[DeclaredDependency] = []

        def _add(dep: DeclaredDependency) -> None:
            key = (dep.name, dep.scope)
            if key in seen:
                return
            seen.add(key)
            deps.append(dep)

        for m in _STRING_DEP_RE.finditer(code):
            scope = scope_for(m.group("config"))
            if scope is None:
                continue
            coords = _interpolate(m.group("coords"), variables).split("@", 1)[0]
            parts = coords.split(":")
            version = parts[2] if len(parts) > 2 and parts[2] else None
            _add(
                self._dep(
                    f"{parts[0]}:{parts[1]}",
                    version,
                    m.group("config"),
                    scope,
                    file_path,
                    _line_of(code, m.start()),
                    platform=bool(m.group("platform")),
                    exclusions=_exclusions(_trailing_closure(code, m.end())),
                )
            )

        for m in _MAP_DEP_RE.finditer(code):
            scope = scope_for(m.group("config"))
            if scope is None:
                continue
            version = m.group("version")
            _add(
                self._dep(
                    f"{_interpolate(m.group('group'), variables)}:{m.group('name')}",
                    _interpolate(version, variables) if version else None,
                    m.group("config"),
                    scope,
                    file_path,
                    _line_of(code, m.start()),
                    exclusions=_exclusions(_trailing_closure(code, m.end())),
                )
            )

        for m in _CATALOG_DEP_RE.finditer(code):
            scope = scope_for(m.group("config"))
            if scope is None:
                continue
            alias = m.group("alias").lower()
            if catalog is None:
                logger.debug("Catalog reference libs.%s without libs.versions.toml", alias)
                continue
            if alias.startswith("bundles."):
                members = catalog.bundles.get(alias[len("bundles.") :], [])
            else:
                members = [alias]
            for member in members:
                entry = catalog.libraries.get(member)
                if entry is None:
                    continue
                _add(
                    self._dep(
                        entry.coordinate,
                        entry.version,
                        m.group("config"),
                        scope,
                        file_path,
                        _line_of(code, m.start()),
                        platform=bool(m.group("platform")),
                    )
                )

        for body in blocks(code, "plugins"):
            for dep in self._plugins(body, file_path, catalog):
                _add(dep)

        return deps

    def _dep(
        self,
        name: str,
        version: str | None,
        config: str,
        scope: Scope,
        file_path: Path,
        line: int,
        platform: bool = False,
        exclusions: list[str] | None = None,
    ) -> DeclaredDependency:
        return DeclaredDependency(
            name=name,
            ecosystem=self.ecosystem,
            version=version,
            scope=scope,
            raw_scope=f"{config}(platform)" if platform else config,
            source_file=file_path.name,
            detection_method=self.detection_method,
            line=line,
            optional=config == "optional",
            exclusions=exclusions or [],
        )

    def _plugins(
        self, body: str, file_path: Path, catalog: VersionCatalog | None
    ) -> list[DeclaredDependency]:
        found: list[tuple[str, str | None]] = []
        for m in _PLUGIN_ID_RE.finditer(body):
            found.append((plugin_marker(m.group("id")), m.group("version")))
        for m in _KOTLIN_PLUGIN_RE.finditer(body):
            found.append((plugin_marker(f"org.jetbrains.kotlin.{m.group('id')}"), m.group("version")))
        if catalog is not None:
            for m in _PLUGIN_ALIAS_RE.finditer(body):
                entry = catalog.plugins.get(m.group("alias").lower())
                if entry is not None:
                    found.append((entry.coordinate, entry.version))

        return [
            DeclaredDependency(
                name=name,
                ecosystem=self.ecosystem,
                version=version,
                scope=Scope.BUILD,
                raw_scope="plugin",
                source_file=file_path.name,
                detection_method=self.detection_method,
            )
            for name, version in found
        ]

    @staticmethod
    def _catalog(file_path: Path) -> VersionCatalog | None:
        if not file_path.is_absolute():
            return None
        catalog_file = find_catalog(file_path)
        if catalog_file is None:
            return None
        try:
            return load_catalog(catalog_file.read_text(encoding="utf-8", errors="replace"))
        except ManifestParseError as exc:
            logger.warning("Ignoring unreadable version catalog %s: %s", catalog_file, exc)
            return None


def included_modules(content: str) -> list[str]:
    """Module paths named by ``include`` in a settings script."""
    modules: list[str] = []
    for m in _INCLUDE_RE.finditer(strip_comments(content)):
        for name in re.findall(r"[\"']([^\"']+)[\"']", m.group(1)):
            modules.append(name.lstrip(":").replace(":", "/"))
    return modules


class GradleSettingsParser(PatternParser):
    """settings.gradle only pins plugin versions; modules go to detection metadata."""

    detection_method = "gradle-settings"
    ecosystem = Ecosystem.JAVA
    file_patterns = ["settings.gradle", "settings.gradle.kts"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        code = strip_comments(content)
        deps: list[DeclaredDependency] = []
        for management in blocks(code, "pluginManagement"):
            for body in blocks(management, "plugins"):
                for m in _PLUGIN_ID_RE.finditer(body):
                    deps.append(
                        DeclaredDependency(
                            name=plugin_marker(m.group("id")),
                            ecosystem=self.ecosystem,
                            version=m.group("version"),
                            scope=Scope.BUILD,
                            raw_scope="pluginManagement",
                            is_direct=False,
                            source_file=file_path.name,
                            detection_method=self.detection_method,
                        )
                    )
        return deps


register_parser(GradleBuildParser())
register_parser(GradleSettingsParser())
