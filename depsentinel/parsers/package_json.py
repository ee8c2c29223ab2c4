"""Parsers for npm/yarn/pnpm manifests: package.json and the three lock formats."""

from __future__ import annotations

import json
import re
from pathlib import Path

import yaml

from depsentinel.exceptions import ManifestParseError
from depsentinel.models import DeclaredDependency, Ecosystem, Scope
from depsentinel.registry import PatternParser, register_parser

_SECTIONS: list[tuple[str, Scope]] = [
    ("dependencies", Scope.RUNTIME),
    ("devDependencies", Scope.DEV),
    ("peerDependencies", Scope.PEER),
    ("optionalDependencies", Scope.OPTIONAL),
]

PACKAGE_MANAGER_RE = re.compile(r"^(npm|yarn|pnpm)@(.+)$")


def load_json(content: str, path: str) -> dict:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ManifestParseError(path, f"invalid JSON: {exc.msg}", exc.lineno) from exc
    if not isinstance(data, dict):
        raise ManifestParseError(path, "top-level value is not an object")
    return data


class PackageJsonParser(PatternParser):
    detection_method = "package-json"
    ecosystem = Ecosystem.JAVASCRIPT
    file_patterns = ["package.json"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        data = load_json(content, file_path.name)
        deps: list[DeclaredDependency] = []

        for section, scope in _SECTIONS:
            table = data.get(section) or {}
            if not isinstance(table, dict):
                continue
            for name, spec in table.items():
                version = spec if isinstance(spec, str) else None
                deps.append(
                    DeclaredDependency(
                        name=name,
                        ecosystem=self.ecosystem,
                        version=version,
                        scope=scope,
                        raw_scope=section,
                        source_file=file_path.name,
                        detection_method=self.detection_method,
                        optional=scope is Scope.OPTIONAL,
                    )
                )

        bundled = data.get("bundledDependencies") or data.get("bundleDependencies") or []
        declared = {d.name for d in deps}
        for name in bundled if isinstance(bundled, list) else []:
            if name not in declared:
                deps.append(
                    DeclaredDependency(
                        name=name,
                        ecosystem=self.ecosystem,
                        scope=Scope.RUNTIME,
                        raw_scope="bundledDependencies",
                        source_file=file_path.name,
                        detection_method=self.detection_method,
                    )
                )
        return deps


def _lock_name(key: str) -> str:
    """``node_modules/a/node_modules/@s/b`` → ``@s/b``."""
    return key.rsplit("node_modules/", 1)[-1]


class PackageLockParser(PatternParser):
    detection_method = "npm-lock"
    ecosystem = Ecosystem.JAVASCRIPT
    file_patterns = ["package-lock.json", "npm-shrinkwrap.json"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        data = load_json(content, file_path.name)
        packages = data.get("packages")
        if isinstance(packages, dict):
            return self._parse_packages(file_path, packages)
        return self._parse_v1(file_path, data.get("dependencies") or {}, top_level=True)

    def _parse_packages(self, file_path: Path, packages: dict) -> list[DeclaredDependency]:
        root = packages.get("", {})
        direct = set()
        for section, _ in _SECTIONS:
            direct.update((root.get(section) or {}).keys())

        deps: list[DeclaredDependency] = []
        for key, entry in packages.items():
            if not key or "node_modules/" not in key or not isinstance(entry, dict):
                continue
            if entry.get("link"):
                continue
            name = entry.get("name") or _lock_name(key)
            top_level = key == f"node_modules/{name}"
            deps.append(
                self._entry(
                    file_path,
                    name,
                    entry.get("version"),
                    entry,
                    is_direct=top_level and name in direct,
                    requires=list((entry.get("dependencies") or {}).keys()),
                )
            )
        return deps

    def _parse_v1(
        self, file_path: Path, dependencies: dict, top_level: bool
    ) -> list[DeclaredDependency]:
        deps: list[DeclaredDependency] = []
        for name, entry in dependencies.items():
            if not isinstance(entry, dict):
                continue
            deps.append(
                self._entry(
                    file_path,
                    name,
                    entry.get("version"),
                    entry,
                    is_direct=False,
                    requires=list((entry.get("requires") or {}).keys()),
                )
            )
            nested = entry.get("dependencies")
            if isinstance(nested, dict):
                deps.extend(self._parse_v1(file_path, nested, top_level=False))
        return deps

    def _entry(
        self,
        file_path: Path,
        name: str,
        version: str | None,
        entry: dict,
        is_direct: bool,
        requires: list[str],
    ) -> DeclaredDependency:
        if entry.get("dev"):
            scope = Scope.DEV
        elif entry.get("peer"):
            scope = Scope.PEER
        elif entry.get("optional"):
            scope = Scope.OPTIONAL
        else:
            scope = Scope.RUNTIME
        return DeclaredDependency(
            name=name,
            ecosystem=self.ecosystem,
            resolved_version=version,
            scope=scope,
            is_direct=is_direct,
            source_file=file_path.name,
            detection_method=self.detection_method,
            optional=bool(entry.get("optional")),
            requires=requires,
        )


# "@babel/core@^7.0.0", "@babel/core@npm:^7.1.0":
_YARN_HEADER_RE = re.compile(r'^(?P<specs>[^\s#].*?):\s*$')
_YARN_VERSION_RE = re.compile(r'^\s+version:?\s+"?(?P<version>[^"\s]+)"?\s*$')
_YARN_DEPS_RE = re.compile(r"^\s+(dependencies|optionalDependencies|peerDependencies):\s*$")
_YARN_DEP_ENTRY_RE = re.compile(r'^\s{4,}"?(?P<name>@?[^"\s:@]+(?:/[^"\s:@]+)?)"?:?\s+"?[^"]*"?\s*$')


def _yarn_spec_name(spec: str) -> str:
    spec = spec.strip().strip('"')
    at = spec.find("@", 1)
    return spec[:at] if at > 0 else spec


class YarnLockParser(PatternParser):
    """yarn.lock in both the classic (v1) and berry (YAML-like) layouts."""

    detection_method = "yarn-lock"
    ecosystem = Ecosystem.JAVASCRIPT
    file_patterns = ["yarn.lock"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        deps: list[DeclaredDependency] = []
        current: DeclaredDependency | None = None
        in_deps = False

        for lineno, line in enumerate(content.splitlines(), start=1):
            if not line.strip() or line.lstrip().startswith("#"):
                continue

            header = _YARN_HEADER_RE.match(line)
            if header and not line.startswith(" "):
                in_deps = False
                specs = [s for s in header.group("specs").split(",") if s.strip()]
                name = _yarn_spec_name(specs[0])
                if name == "__metadata" or "@workspace:" in specs[0]:
                    current = None
                    continue
                current = DeclaredDependency(
                    name=name,
                    ecosystem=self.ecosystem,
                    scope=Scope.RUNTIME,
                    is_direct=False,
                    source_file=file_path.name,
                    detection_method=self.detection_method,
                    line=lineno,
                )
                deps.append(current)
                continue

            if current is None:
                continue
            version = _YARN_VERSION_RE.match(line)
            if version and not in_deps:
                current.resolved_version = version.group("version")
                continue
            if _YARN_DEPS_RE.match(line):
                in_deps = True
                continue
            if in_deps:
                entry = _YARN_DEP_ENTRY_RE.match(line)
                if entry:
                    current.requires.append(entry.group("name"))
                else:
                    in_deps = False
                    version = _YARN_VERSION_RE.match(line)
                    if version:
                        current.resolved_version = version.group("version")

        return deps


def _pnpm_key(key: str) -> tuple[str, str | None]:
    """Split a pnpm packages key into (name, version) across lockfile versions.

    v5: ``/name/1.2.3``   v6: ``/name@1.2.3``   v9: ``name@1.2.3(peer@x)``
    """
    key = key.lstrip("/").split("(", 1)[0]
    at = key.find("@", 1)
    if at > 0:
        return key[:at], key[at + 1 :] or None
    name, _, version = key.rpartition("/")
    return (name, version or None) if name else (key, None)


class PnpmLockParser(PatternParser):
    detection_method = "pnpm-lock"
    ecosystem = Ecosystem.JAVASCRIPT
    file_patterns = ["pnpm-lock.yaml", "shrinkwrap.yaml"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as exc:
            mark = getattr(exc, "problem_mark", None)
            raise ManifestParseError(
                file_path.name, f"invalid YAML: {exc}", mark.line + 1 if mark else None
            ) from exc
        if not isinstance(data, dict):
            raise ManifestParseError(file_path.name, "top-level value is not a mapping")

        direct = self._direct_names(data)
        packages = data.get("snapshots") or data.get("packages") or {}
        deps: list[DeclaredDependency] = []
        for key, entry in packages.items():
            name, version = _pnpm_key(str(key))
            entry = entry if isinstance(entry, dict) else {}
            version = entry.get("version") or version
            deps.append(
                DeclaredDependency(
                    name=name,
                    ecosystem=self.ecosystem,
                    resolved_version=version,
                    scope=Scope.DEV if entry.get("dev") else Scope.RUNTIME,
                    is_direct=name in direct,
                    source_file=file_path.name,
                    detection_method=self.detection_method,
                    optional=bool(entry.get("optional")),
                    requires=list((entry.get("dependencies") or {}).keys()),
                )
            )
        return deps

    @staticmethod
    def _direct_names(data: dict) -> set[str]:
        importers = data.get("importers")
        roots = [importers.get(".", {})] if isinstance(importers, dict) else [data]
        names: set[str] = set()
        for root in roots:
            for section, _ in _SECTIONS:
                table = root.get(section) or {}
                if isinstance(table, dict):
                    names.update(table.keys())
        return names


register_parser(PackageJsonParser())
register_parser(PackageLockParser())
register_parser(YarnLockParser())
register_parser(PnpmLockParser())
