"""Python environment adapters: pip list and poetry show --tree."""

from __future__ import annotations

import json
import re

from depsentinel.models import Ecosystem, ResolvedDependency
from depsentinel.tools.base import ToolAdapter

_POETRY_TOP_RE = re.compile(r"^(?P<name>[A-Za-z0-9][\w.\-]*)\s+(?P<version>\S+)")
_POETRY_CHILD_RE = re.compile(r"^(?P<prefix>[│ ]*)(?:├──|└──)\s+(?P<name>[A-Za-z0-9][\w.\-]*)")


class PipListAdapter(ToolAdapter):
    name = "pip list"
    ecosystem = Ecosystem.PYTHON
    managers = frozenset({"pip"})
    command = ["pip", "list", "--format=json", "--disable-pip-version-check"]

    def parse(self, output: str) -> list[ResolvedDependency]:
        data = json.loads(output)
        if not isinstance(data, list):
            raise ValueError("pip list did not return a JSON array")
        return [
            ResolvedDependency(coordinate=item["name"], version=item.get("version"))
            for item in data
            if isinstance(item, dict) and item.get("name")
        ]


class PoetryShowAdapter(ToolAdapter):
    name = "poetry show"
    ecosystem = Ecosystem.PYTHON
    managers = frozenset({"poetry"})
    command = ["poetry", "show", "--tree", "--no-ansi"]

    def parse(self, output: str) -> list[ResolvedDependency]:
        rows: list[ResolvedDependency] = []
        stack: list[str] = []
        for line in output.splitlines():
            if not line.strip():
                continue
            child = _POETRY_CHILD_RE.match(line)
            if child:
                depth = len(child.group("prefix")) // 4 + 1
                del stack[depth:]
                parent = stack[-1] if stack else None
                # Children carry constraints, not resolved versions
                rows.append(ResolvedDependency(coordinate=child.group("name"), parent=parent))
                stack.append(child.group("name"))
                continue
            top = _POETRY_TOP_RE.match(line)
            if top:
                stack = [top.group("name")]
                rows.append(
                    ResolvedDependency(coordinate=top.group("name"), version=top.group("version"), is_direct=True)
                )
        return rows
