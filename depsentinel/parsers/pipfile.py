"""Parsers for pipenv's Pipfile and Pipfile.lock."""

from __future__ import annotations

from pathlib import Path

from depsentinel.models import DeclaredDependency, Ecosystem, Scope
from depsentinel.parsers.package_json import load_json
from depsentinel.parsers.pyproject_toml import load_toml
from depsentinel.registry import PatternParser, register_parser


def _pipfile_constraint(spec: object) -> str | None:
    if isinstance(spec, str):
        return None if spec == "*" else spec
    if isinstance(spec, dict):
        version = spec.get("version")
        return None if version in (None, "*") else str(version)
    return None


class PipfileParser(PatternParser):
    detection_method = "pipfile"
    ecosystem = Ecosystem.PYTHON
    file_patterns = ["Pipfile"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        data = load_toml(content, file_path.name)
        deps: list[DeclaredDependency] = []
        for section, scope in (("packages", Scope.RUNTIME), ("dev-packages", Scope.DEV)):
            for name, spec in data.get(section, {}).items():
                deps.append(
                    DeclaredDependency(
                        name=name,
                        ecosystem=self.ecosystem,
                        version=_pipfile_constraint(spec),
                        scope=scope,
                        raw_scope=section,
                        source_file=file_path.name,
                        detection_method=self.detection_method,
                    )
                )
        return deps


class PipfileLockParser(PatternParser):
    detection_method = "pipfile-lock"
    ecosystem = Ecosystem.PYTHON
    file_patterns = ["Pipfile.lock"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        data = load_json(content, file_path.name)
        deps: list[DeclaredDependency] = []
        for section, scope in (("default", Scope.RUNTIME), ("develop", Scope.DEV)):
            for name, entry in (data.get(section) or {}).items():
                version = entry.get("version") if isinstance(entry, dict) else None
                deps.append(
                    DeclaredDependency(
                        name=name,
                        ecosystem=self.ecosystem,
                        resolved_version=version.lstrip("=") if version else None,
                        scope=scope,
                        raw_scope=section,
                        is_direct=False,
                        source_file=file_path.name,
                        detection_method=self.detection_method,
                    )
                )
        return deps


register_parser(PipfileParser())
register_parser(PipfileLockParser())
