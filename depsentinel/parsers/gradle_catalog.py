"""Parsers for Gradle version catalogs and dependency lock files."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from depsentinel.exceptions import ManifestParseError
from depsentinel.models import DeclaredDependency, Ecosystem, Scope
from depsentinel.registry import PatternParser, register_parser


@dataclass
class CatalogEntry:
    coordinate: str
    version: str | None


@dataclass
class VersionCatalog:
    """Aliases from libs.versions.toml, keyed by dotted accessor name."""

    libraries: dict[str, CatalogEntry] = field(default_factory=dict)
    plugins: dict[str, CatalogEntry] = field(default_factory=dict)
    bundles: dict[str, list[str]] = field(default_factory=dict)


def accessor(alias: str) -> str:
    """Normalize a catalog alias the way Gradle exposes it (``spring-core`` → ``spring.core``)."""
    return alias.replace("-", ".").replace("_", ".").lower()


def _version(spec: object, versions: dict[str, str]) -> str | None:
    if isinstance(spec, str):
        return spec
    if isinstance(spec, dict):
        if "ref" in spec:
            return versions.get(spec["ref"])
        for key in ("strictly", "require", "prefer"):
            if key in spec:
                return str(spec[key])
    return None


def load_catalog(content: str, path: str = "libs.versions.toml") -> VersionCatalog:
    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        raise ManifestParseError(path, f"invalid TOML: {exc}") from exc

    versions = {k: _version(v, {}) or "" for k, v in data.get("versions", {}).items()}
    catalog = VersionCatalog()

    for alias, spec in data.get("libraries", {}).items():
        if isinstance(spec, str):
            parts = spec.split(":")
            if len(parts) < 2:
                continue
            coordinate = f"{parts[0]}:{parts[1]}"
            version = parts[2] if len(parts) > 2 else None
        elif isinstance(spec, dict):
            if "module" in spec:
                coordinate = spec["module"]
            elif "group" in spec and "name" in spec:
                coordinate = f"{spec['group']}:{spec['name']}"
            else:
                continue
            version = _version(spec.get("version"), versions)
        else:
            continue
        catalog.libraries[accessor(alias)] = CatalogEntry(coordinate, version)

    for alias, spec in data.get("plugins", {}).items():
        if isinstance(spec, str):
            plugin_id, _, version = spec.partition(":")
            version = version or None
        elif isinstance(spec, dict) and "id" in spec:
            plugin_id = spec["id"]
            version = _version(spec.get("version"), versions)
        else:
            continue
        catalog.plugins[accessor(alias)] = CatalogEntry(plugin_marker(plugin_id), version)

    for alias, members in data.get("bundles", {}).items():
        if isinstance(members, list):
            catalog.bundles[accessor(alias)] = [accessor(m) for m in members if isinstance(m, str)]

    return catalog


def plugin_marker(plugin_id: str) -> str:
    """Coordinate of a Gradle plugin marker artifact."""
    return f"{plugin_id}:{plugin_id}.gradle.plugin"


def find_catalog(build_file: Path, max_levels: int = 3) -> Path | None:
    """Look for gradle/libs.versions.toml next to or above a build file."""
    directory = build_file.parent
    for _ in range(max_levels):
        candidate = directory / "gradle" / "libs.versions.toml"
        if candidate.is_file():
            return candidate
        if directory.parent == directory:
            break
        directory = directory.parent
    return None


class GradleVersionCatalogParser(PatternParser):
    """Catalog aliases are offers, not usages: entries come out as non-direct."""

    detection_method = "gradle-version-catalog"
    ecosystem = Ecosystem.JAVA
    file_patterns = ["gradle/libs.versions.toml", "*.versions.toml"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        catalog = load_catalog(content, file_path.name)
        deps: list[DeclaredDependency] = []
        for entries, scope in ((catalog.libraries, Scope.COMPILE), (catalog.plugins, Scope.BUILD)):
            for entry in entries.values():
                deps.append(
                    DeclaredDependency(
                        name=entry.coordinate,
                        ecosystem=self.ecosystem,
                        version=entry.version,
                        scope=scope,
                        raw_scope="catalog",
                        is_direct=False,
                        source_file=file_path.name,
                        detection_method=self.detection_method,
                    )
                )
        return deps


_TEST_CONFIG_PREFIXES = ("test", "androidTest")


class GradleLockfileParser(PatternParser):
    detection_method = "gradle-lockfile"
    ecosystem = Ecosystem.JAVA
    file_patterns = ["gradle.lockfile", "*.lockfile"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        deps: list[DeclaredDependency] = []
        for lineno, raw_line in enumerate(content.splitlines(), start=1):
            line = raw_line.strip()
            if not line or line.startswith("#") or line.startswith("empty="):
                continue
            coords, _, configs = line.partition("=")
            parts = coords.split(":")
            if len(parts) < 3:
                continue
            configurations = [c for c in configs.split(",") if c]
            test_only = bool(configurations) and all(
                c.startswith(_TEST_CONFIG_PREFIXES) for c in configurations
            )
            deps.append(
                DeclaredDependency(
                    name=f"{parts[0]}:{parts[1]}",
                    ecosystem=self.ecosystem,
                    resolved_version=parts[2],
                    scope=Scope.TEST if test_only else Scope.COMPILE,
                    raw_scope=",".join(configurations) or None,
                    is_direct=False,
                    source_file=file_path.name,
                    detection_method=self.detection_method,
                    line=lineno,
                )
            )
        return deps


register_parser(GradleVersionCatalogParser())
register_parser(GradleLockfileParser())
