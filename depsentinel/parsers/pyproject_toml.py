"""Parser for Python pyproject.toml (PEP 621, PEP 735, Poetry and uv tables)."""

from __future__ import annotations

import sys
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from depsentinel.exceptions import ManifestParseError
from depsentinel.models import DeclaredDependency, Ecosystem, Scope
from depsentinel.parsers.pip_requirements import split_requirement
from depsentinel.registry import PatternParser, register_parser

_TEST_GROUPS = {"test", "tests", "testing"}


def load_toml(content: str, path: str) -> dict:
    try:
        return tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        raise ManifestParseError(path, f"invalid TOML: {exc}") from exc


def group_scope(group: str) -> Scope:
    return Scope.TEST if group.lower() in _TEST_GROUPS else Scope.DEV


def poetry_constraint(spec: object) -> str | None:
    """Version constraint of a Poetry dependency in string or table form."""
    if isinstance(spec, str):
        return spec
    if isinstance(spec, dict):
        version = spec.get("version")
        return str(version) if version is not None else None
    if isinstance(spec, list) and spec:
        return poetry_constraint(spec[0])
    return None


class PyprojectTomlParser(PatternParser):
    detection_method = "pyproject-toml"
    ecosystem = Ecosystem.PYTHON
    file_patterns = ["pyproject.toml"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        data = load_toml(content, file_path.name)
        deps: list[DeclaredDependency] = []

        project = data.get("project", {})
        self._pep508(deps, file_path, project.get("dependencies", []), Scope.RUNTIME, "project")
        for extra, items in project.get("optional-dependencies", {}).items():
            self._pep508(deps, file_path, items, Scope.OPTIONAL, f"extra:{extra}", optional=True)

        for group, items in data.get("dependency-groups", {}).items():
            self._pep508(deps, file_path, items, group_scope(group), f"group:{group}")

        tool = data.get("tool", {})
        poetry = tool.get("poetry", {})
        self._poetry(deps, file_path, poetry.get("dependencies", {}), Scope.RUNTIME, "poetry")
        self._poetry(deps, file_path, poetry.get("dev-dependencies", {}), Scope.DEV, "poetry:dev")
        for group, table in poetry.get("group", {}).items():
            self._poetry(
                deps, file_path, table.get("dependencies", {}), group_scope(group), f"poetry:{group}"
            )

        uv = tool.get("uv", {})
        self._pep508(deps, file_path, uv.get("dev-dependencies", []), Scope.DEV, "uv:dev")

        return deps

    def _pep508(
        self,
        deps: list[DeclaredDependency],
        file_path: Path,
        items: list,
        scope: Scope,
        raw_scope: str,
        optional: bool = False,
    ) -> None:
        for raw in items:
            if not isinstance(raw, str):
                continue  # PEP 735 {include-group = "..."}
            parts = split_requirement(raw)
            if parts is None:
                continue
            name, constraint, resolved = parts
            deps.append(
                DeclaredDependency(
                    name=name,
                    ecosystem=self.ecosystem,
                    version=constraint,
                    resolved_version=resolved,
                    scope=scope,
                    raw_scope=raw_scope,
                    source_file=file_path.name,
                    detection_method=self.detection_method,
                    optional=optional,
                )
            )

    def _poetry(
        self,
        deps: list[DeclaredDependency],
        file_path: Path,
        table: dict,
        scope: Scope,
        raw_scope: str,
    ) -> None:
        for name, spec in table.items():
            if name.lower() == "python":
                continue
            optional = isinstance(spec, dict) and bool(spec.get("optional"))
            deps.append(
                DeclaredDependency(
                    name=name,
                    ecosystem=self.ecosystem,
                    version=poetry_constraint(spec),
                    scope=Scope.OPTIONAL if optional and scope is Scope.RUNTIME else scope,
                    raw_scope=raw_scope,
                    source_file=file_path.name,
                    detection_method=self.detection_method,
                    optional=optional,
                )
            )


register_parser(PyprojectTomlParser())
