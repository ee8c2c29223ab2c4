"""Go toolchain adapters: ``go list -m -json all`` and ``go mod graph``."""

from __future__ import annotations

import json

from depsentinel.models import Ecosystem, ResolvedDependency
from depsentinel.tools.base import ToolAdapter


def iter_json_objects(output: str) -> list[dict]:
    """Decode a stream of concatenated JSON objects."""
    decoder = json.JSONDecoder()
    objects: list[dict] = []
    pos = 0
    text = output.strip()
    while pos < len(text):
        obj, end = decoder.raw_decode(text, pos)
        if not isinstance(obj, dict):
            raise ValueError(f"expected a JSON object at offset {pos}")
        objects.append(obj)
        pos = end
        while pos < len(text) and text[pos].isspace():
            pos += 1
    return objects


class GoListAdapter(ToolAdapter):
    name = "go list"
    ecosystem = Ecosystem.GO
    command = ["go", "list", "-m", "-json", "all"]

    def parse(self, output: str) -> list[ResolvedDependency]:
        resolved: list[ResolvedDependency] = []
        for module in iter_json_objects(output):
            if module.get("Main") or "Path" not in module:
                continue
            replace = module.get("Replace") or {}
            replaced_by = None
            if replace.get("Path"):
                replaced_by = f"{replace['Path']} {replace['Version']}" if replace.get("Version") else replace["Path"]
            resolved.append(
                ResolvedDependency(
                    coordinate=module["Path"],
                    version=module.get("Version"),
                    is_direct=not module.get("Indirect", False),
                    replaced_by=replaced_by,
                    selected=True,
                )
            )
        return resolved


def _split(node: str) -> tuple[str, str | None]:
    path, _, version = node.partition("@")
    return path, version or None


class GoModGraphAdapter(ToolAdapter):
    name = "go mod graph"
    ecosystem = Ecosystem.GO
    command = ["go", "mod", "graph"]

    def parse(self, output: str) -> list[ResolvedDependency]:
        resolved: list[ResolvedDependency] = []
        for line in output.splitlines():
            if not line.strip():
                continue
            parts = line.split()
            if len(parts) != 2:
                raise ValueError(f"unexpected line: {line!r}")
            parent, parent_version = _split(parts[0])
            child, child_version = _split(parts[1])
            if child in ("go", "toolchain"):
                continue
            # The main module is the only node listed without a version. Its edges
            # include // indirect requirements; directness comes from go.mod and go list.
            main = parent_version is None
            resolved.append(
                ResolvedDependency(
                    coordinate=child,
                    version=child_version,
                    parent=None if main else parent,
                )
            )
        return resolved
