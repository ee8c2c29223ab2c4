"""Node package-manager adapters: npm ls, pnpm list and yarn list."""

from __future__ import annotations

import json

from depsentinel.models import Ecosystem, ResolvedDependency, Scope
from depsentinel.tools.base import ToolAdapter


def _load(output: str) -> object:
    return json.loads(output)


def _walk(
    tree: dict,
    parent: str | None,
    rows: list[ResolvedDependency],
    scope: Scope | None = None,
) -> None:
    for name, node in sorted(tree.items()):
        if not isinstance(node, dict):
            continue
        rows.append(
            ResolvedDependency(
                coordinate=name,
                version=node.get("version"),
                is_direct=parent is None,
                parent=parent,
                scope=scope,
            )
        )
        children = node.get("dependencies")
        if isinstance(children, dict):
            _walk(children, name, rows, scope)


class NpmLsAdapter(ToolAdapter):
    name = "npm ls"
    ecosystem = Ecosystem.JAVASCRIPT
    managers = frozenset({"npm"})
    command = ["npm", "ls", "--all", "--json"]
    # npm ls exits 1 on peer/extraneous problems but still prints the tree
    ok_codes = (0, 1)

    def parse(self, output: str) -> list[ResolvedDependency]:
        data = _load(output)
        if not isinstance(data, dict):
            raise ValueError("npm ls did not return a JSON object")
        rows: list[ResolvedDependency] = []
        _walk(data.get("dependencies") or {}, None, rows)
        return rows


class PnpmListAdapter(ToolAdapter):
    name = "pnpm list"
    ecosystem = Ecosystem.JAVASCRIPT
    managers = frozenset({"pnpm"})
    command = ["pnpm", "list", "--json", "--depth", "Infinity"]

    def parse(self, output: str) -> list[ResolvedDependency]:
        data = _load(output)
        projects = data if isinstance(data, list) else [data]
        rows: list[ResolvedDependency] = []
        for project in projects:
            if not isinstance(project, dict):
                raise ValueError("unexpected pnpm list entry")
            for section, scope in (
                ("dependencies", Scope.RUNTIME),
                ("devDependencies", Scope.DEV),
                ("optionalDependencies", Scope.OPTIONAL),
            ):
                _walk(project.get(section) or {}, None, rows, scope)
        return rows


def _split_yarn_name(name: str) -> tuple[str, str | None]:
    at = name.rfind("@")
    if at <= 0:
        return name, None
    return name[:at], name[at + 1 :]


class YarnListAdapter(ToolAdapter):
    name = "yarn list"
    ecosystem = Ecosystem.JAVASCRIPT
    managers = frozenset({"yarn"})
    command = ["yarn", "list", "--json", "--no-progress"]

    def parse(self, output: str) -> list[ResolvedDependency]:
        rows: list[ResolvedDependency] = []
        found_tree = False
        for line in output.splitlines():
            if not line.strip():
                continue
            event = json.loads(line)
            if not isinstance(event, dict) or event.get("type") != "tree":
                continue
            found_tree = True
            for tree in event.get("data", {}).get("trees", []):
                self._node(tree, None, rows)
        if not found_tree:
            raise ValueError("no tree event in yarn output")
        return rows

    def _node(self, node: dict, parent: str | None, rows: list[ResolvedDependency]) -> None:
        name, version = _split_yarn_name(node.get("name", ""))
        if not name:
            return
        # yarn list shows the hoisted layout, which says nothing about directness
        rows.append(ResolvedDependency(coordinate=name, version=version, parent=parent))
        for child in node.get("children", []):
            if isinstance(child, dict):
                self._node(child, name, rows)
