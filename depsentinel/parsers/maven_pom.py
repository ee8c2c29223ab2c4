"""Parser for Maven pom.xml files."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from pathlib import Path

from depsentinel.exceptions import ManifestParseError
from depsentinel.models import DeclaredDependency, Ecosystem, Scope
from depsentinel.registry import PatternParser, register_parser

_PROP_RE = re.compile(r"\$\{([^}]+)\}")

_SCOPES: dict[str, Scope] = {
    "compile": Scope.COMPILE,
    "runtime": Scope.RUNTIME,
    "test": Scope.TEST,
    "provided": Scope.PROVIDED,
    "system": Scope.SYSTEM,
    "import": Scope.BUILD,
}

_DEFAULT_PLUGIN_GROUP = "org.apache.maven.plugins"


def _resolve_props(value: str, props: dict[str, str]) -> str:
    """Replace ${property} placeholders with values from <properties>."""

    def _replace(m: re.Match) -> str:
        key = m.group(1)
        return props.get(key, m.group(0))  # keep original if not found

    # Properties may reference other properties
    for _ in range(5):
        resolved = _PROP_RE.sub(_replace, value)
        if resolved == value:
            break
        value = resolved
    return value


def _strip_namespaces(root: ET.Element) -> None:
    for el in root.iter():
        if isinstance(el.tag, str) and "}" in el.tag:
            el.tag = el.tag.split("}", 1)[1]


def _text(element: ET.Element | None) -> str | None:
    if element is None:
        return None
    return element.text.strip() if element.text else None


def parse_pom(content: str, path: str = "pom.xml") -> ET.Element:
    """Parse POM text into a namespace-free element tree."""
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        line = exc.position[0] if getattr(exc, "position", None) else None
        raise ManifestParseError(path, f"malformed XML: {exc}", line) from exc
    _strip_namespaces(root)
    return root


def extract_properties(root: ET.Element) -> dict[str, str]:
    """Collect <properties> plus the implicit project.* coordinates."""
    props: dict[str, str] = {}
    props_el = root.find("properties")
    if props_el is not None:
        for child in props_el:
            if child.text:
                props[child.tag] = child.text.strip()

    parent = root.find("parent")
    for key in ("groupId", "artifactId", "version"):
        own = _text(root.find(key))
        inherited = _text(parent.find(key)) if parent is not None else None
        if inherited:
            props[f"project.parent.{key}"] = inherited
        value = own or inherited
        if value:
            props[f"project.{key}"] = value
            props[f"pom.{key}"] = value
    return props


class MavenPomParser(PatternParser):
    detection_method = "maven-pom"
    ecosystem = Ecosystem.JAVA
    file_patterns = ["pom.xml"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        root = parse_pom(content, file_path.name)
        props = extract_properties(root)
        managed = self._managed_versions(root, props)

        deps: list[DeclaredDependency] = []

        parent = root.find("parent")
        if parent is not None:
            dep = self._dependency(parent, props, managed, file_path)
            if dep is not None:
                dep.scope = Scope.BUILD
                dep.raw_scope = "parent"
                deps.append(dep)

        dep_containers = [root.find("dependencies")]
        profiles = root.find("profiles")
        if profiles is not None:
            dep_containers.extend(p.find("dependencies") for p in profiles.findall("profile"))

        for container in dep_containers:
            if container is None:
                continue
            for dep_el in container.findall("dependency"):
                dep = self._dependency(dep_el, props, managed, file_path)
                if dep is not None:
                    deps.append(dep)

        plugins = root.find("build/plugins")
        if plugins is not None:
            for plugin_el in plugins.findall("plugin"):
                dep = self._dependency(
                    plugin_el, props, managed, file_path, default_group=_DEFAULT_PLUGIN_GROUP
                )
                if dep is not None:
                    dep.scope = Scope.BUILD
                    dep.raw_scope = "plugin"
                    deps.append(dep)

        return deps

    def _dependency(
        self,
        dep_el: ET.Element,
        props: dict[str, str],
        managed: dict[str, str],
        file_path: Path,
        default_group: str | None = None,
    ) -> DeclaredDependency | None:
        group_id = _text(dep_el.find("groupId")) or default_group
        artifact_id = _text(dep_el.find("artifactId"))
        if not artifact_id:
            return None

        group_id = _resolve_props(group_id, props) if group_id else None
        artifact_id = _resolve_props(artifact_id, props)
        name = f"{group_id}:{artifact_id}" if group_id else artifact_id

        # Resolve ${property} placeholders, then fall back to dependencyManagement
        version = _text(dep_el.find("version"))
        if version:
            version = _resolve_props(version, props)
        else:
            version = managed.get(name)

        raw_scope = _text(dep_el.find("scope"))
        scope = _SCOPES.get((raw_scope or "compile").lower(), Scope.COMPILE)

        exclusions = []
        for exc_el in dep_el.findall("exclusions/exclusion"):
            exc_group = _text(exc_el.find("groupId")) or "*"
            exc_artifact = _text(exc_el.find("artifactId")) or "*"
            exclusions.append(f"{exc_group}:{exc_artifact}")

        return DeclaredDependency(
            name=name,
            ecosystem=self.ecosystem,
            version=version,
            scope=scope,
            raw_scope=raw_scope,
            source_file=file_path.name,
            detection_method=self.detection_method,
            optional=(_text(dep_el.find("optional")) or "").lower() == "true",
            exclusions=exclusions,
        )

    @staticmethod
    def _managed_versions(root: ET.Element, props: dict[str, str]) -> dict[str, str]:
        """Versions pinned in <dependencyManagement>, keyed by group:artifact."""
        managed: dict[str, str] = {}
        for dep_el in root.findall("dependencyManagement/dependencies/dependency"):
            group_id = _text(dep_el.find("groupId"))
            artifact_id = _text(dep_el.find("artifactId"))
            version = _text(dep_el.find("version"))
            if group_id and artifact_id and version:
                key = f"{_resolve_props(group_id, props)}:{_resolve_props(artifact_id, props)}"
                managed[key] = _resolve_props(version, props)
        return managed


register_parser(MavenPomParser())
