"""External toolchain adapters, consulted only when explicitly enabled."""

from __future__ import annotations

from depsentinel.models import Ecosystem
from depsentinel.tools.base import ToolAdapter, run_command
from depsentinel.tools.go import GoListAdapter, GoModGraphAdapter
from depsentinel.tools.jvm import (
    GradleDependenciesAdapter,
    MavenTreeAdapter,
    SbtDependencyTreeAdapter,
    SbtEvictedAdapter,
)
from depsentinel.tools.node import NpmLsAdapter, PnpmListAdapter, YarnListAdapter
from depsentinel.tools.python import PipListAdapter, PoetryShowAdapter

ADAPTERS: list[ToolAdapter] = [
    GoListAdapter(),
    GoModGraphAdapter(),
    MavenTreeAdapter(),
    GradleDependenciesAdapter(),
    SbtDependencyTreeAdapter(),
    SbtEvictedAdapter(),
    NpmLsAdapter(),
    PnpmListAdapter(),
    YarnListAdapter(),
    PipListAdapter(),
    PoetryShowAdapter(),
]


def adapters_for(ecosystem: Ecosystem, manager: str | None) -> list[ToolAdapter]:
    """Adapters that can describe a project of *ecosystem* managed by *manager*."""
    return [a for a in ADAPTERS if a.ecosystem is ecosystem and a.applies_to(manager)]


__all__ = ["ADAPTERS", "ToolAdapter", "adapters_for", "run_command"]
