"""Parsers for poetry.lock and uv.lock ([[package]] arrays of resolved versions)."""

from __future__ import annotations

from pathlib import Path

from depsentinel.models import DeclaredDependency, Ecosystem, Scope
from depsentinel.parsers.pyproject_toml import load_toml
from depsentinel.registry import PatternParser, register_parser


def _requires(package: dict) -> list[str]:
    deps = package.get("dependencies", {})
    if isinstance(deps, dict):  # poetry.lock
        return list(deps.keys())
    if isinstance(deps, list):  # uv.lock
        return [d["name"] for d in deps if isinstance(d, dict) and "name" in d]
    return []


class _PackageArrayLockParser(PatternParser):
    ecosystem = Ecosystem.PYTHON

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        data = load_toml(content, file_path.name)
        deps: list[DeclaredDependency] = []
        for package in data.get("package", []):
            name = package.get("name")
            if not name or self._is_project_root(package):
                continue
            category = package.get("category") or ""
            groups = package.get("groups") or []
            dev_only = category == "dev" or (bool(groups) and "main" not in groups)
            deps.append(
                DeclaredDependency(
                    name=name,
                    ecosystem=self.ecosystem,
                    resolved_version=package.get("version"),
                    scope=Scope.DEV if dev_only else Scope.RUNTIME,
                    raw_scope=category or (",".join(groups) or None),
                    is_direct=False,
                    source_file=file_path.name,
                    detection_method=self.detection_method,
                    optional=bool(package.get("optional")),
                    requires=_requires(package),
                )
            )
        return deps

    @staticmethod
    def _is_project_root(package: dict) -> bool:
        source = package.get("source")
        return isinstance(source, dict) and ("editable" in source or "virtual" in source)


class PoetryLockParser(_PackageArrayLockParser):
    detection_method = "poetry-lock"
    file_patterns = ["poetry.lock"]


class UvLockParser(_PackageArrayLockParser):
    detection_method = "uv-lock"
    file_patterns = ["uv.lock"]


register_parser(PoetryLockParser())
register_parser(UvLockParser())
