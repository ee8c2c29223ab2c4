"""Generic weighted-rule evaluator.

A dependency's score is the sum of the weights of every rule whose predicate
holds; rules are evaluated in table order and that order is the order of
``criticality_reasons``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace

from depsentinel.models import Criticality, Dependency, Ecosystem


@dataclass(frozen=True)
class ScoringContext:
    """Project-level facts some rules depend on."""

    ecosystem: Ecosystem
    rails_project: bool = False
    uses_cgo: bool = False


Predicate = Callable[[Dependency, ScoringContext], bool]


@dataclass(frozen=True)
class Rule:
    rule_id: str
    weight: int
    message: str
    predicate: Predicate

    def describe(self, dep: Dependency) -> str:
        return self.message.format(
            coordinate=dep.coordinate,
            usage_count=dep.usage_count,
            scope=dep.scope.value,
            version=dep.effective_version or "unversioned",
            declared_versions=", ".join(dep.declared_versions),
            evicted_by=dep.evicted_by or "",
            replacements=", ".join(dep.replacements),
        )


@dataclass(frozen=True)
class RuleTable:
    ecosystem: Ecosystem
    rules: tuple[Rule, ...]
    high_threshold: int = 5
    medium_threshold: int = 3

    def __post_init__(self) -> None:
        if self.high_threshold <= self.medium_threshold:
            raise ValueError("high_threshold must be greater than medium_threshold")

    def bucket(self, score: int) -> Criticality:
        if score >= self.high_threshold:
            return Criticality.HIGH
        if score >= self.medium_threshold:
            return Criticality.MEDIUM
        return Criticality.LOW


def evaluate(dep: Dependency, table: RuleTable, context: ScoringContext) -> tuple[int, list[str]]:
    """Return (score, reasons) for *dep* under *table*."""
    score = 0
    reasons: list[str] = []
    for rule in table.rules:
        if rule.predicate(dep, context):
            score += rule.weight
            reasons.append(rule.describe(dep))
    return score, reasons


def score_dependency(dep: Dependency, table: RuleTable, context: ScoringContext) -> Dependency:
    score, reasons = evaluate(dep, table, context)
    return replace(dep, criticality=table.bucket(score), criticality_reasons=tuple(reasons))
