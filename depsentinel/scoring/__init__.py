"""Criticality scoring: one evaluator, one rule table per ecosystem."""

from __future__ import annotations

from depsentinel.graph import DependencyGraph
from depsentinel.models import Criticality, Dependency, Ecosystem
from depsentinel.scoring.evaluator import Rule, RuleTable, ScoringContext, evaluate, score_dependency
from depsentinel.scoring.rules import (
    RISK_CRITICAL_PACKAGES,
    RULE_TABLES,
    is_official,
    is_unstable,
    matches_list,
)


def score(dep: Dependency, context: ScoringContext | None = None) -> Dependency:
    """Score one dependency with its ecosystem's table."""
    return score_dependency(dep, RULE_TABLES[dep.ecosystem], context or ScoringContext(dep.ecosystem))


def score_graph(
    graph: DependencyGraph,
    contexts: dict[Ecosystem, ScoringContext] | None = None,
) -> DependencyGraph:
    """A copy of *graph* with every dependency's criticality filled in."""
    contexts = contexts or {}
    scored = [score(dep, contexts.get(dep.ecosystem)) for dep in graph.dependencies]
    return graph.with_dependencies(scored)


def is_critical_package(coordinate: str, ecosystem: Ecosystem) -> bool:
    """Whether an upgrade of *coordinate* carries the critical-package risk factor."""
    return matches_list(coordinate, RISK_CRITICAL_PACKAGES[ecosystem])


__all__ = [
    "Criticality",
    "RISK_CRITICAL_PACKAGES",
    "RULE_TABLES",
    "Rule",
    "RuleTable",
    "ScoringContext",
    "evaluate",
    "is_critical_package",
    "is_official",
    "is_unstable",
    "score",
    "score_dependency",
    "score_graph",
]
