"""Evidence-weighted ecosystem detection shared by every ecosystem detector."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from depsentinel.locator import ManifestLocator
from depsentinel.models import Confidence, DetectionResult, Ecosystem, Evidence, EvidenceTier

logger = logging.getLogger(__name__)

# Detection rules: (marker glob relative to root, evidence tier, package manager)
DetectionRule = tuple[str, EvidenceTier, str | None]


def evidence(path: str, tier: EvidenceTier, manager: str | None = None, note: str = "") -> Evidence:
    return Evidence(path=path, tier=tier, manager=manager, weight=tier.weight, note=note)


def read_text(path: Path) -> str | None:
    """File contents, or None when the file is missing or unreadable."""
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def count_sources(root: Path, patterns: list[str], max_depth: int = 3) -> int:
    return len(ManifestLocator(max_depth=max_depth).locate(root, patterns).files)


class EcosystemDetector:
    """Base detector: match DETECTION_RULES at the project root, then let the
    subclass add format-specific evidence and metadata.

    The score is the sum of evidence weights, so adding evidence can only keep
    or raise the confidence level.
    """

    ecosystem: Ecosystem
    rules: list[DetectionRule] = []
    default_manager: str | None = None

    def detect(self, root: Path) -> DetectionResult:
        root = Path(root)
        found = self.match_rules(root)
        found.extend(self.extra_evidence(root, found))
        metadata = self.metadata(root, found) if found else {}
        return build_result(self.ecosystem, found, metadata, self.default_manager)

    def match_rules(self, root: Path) -> list[Evidence]:
        found: list[Evidence] = []
        for marker, tier, manager in self.rules:
            for hit in sorted(root.glob(marker)):
                found.append(evidence(hit.relative_to(root).as_posix(), tier, manager))
        return found

    def extra_evidence(self, root: Path, found: list[Evidence]) -> list[Evidence]:
        return []

    def metadata(self, root: Path, found: list[Evidence]) -> dict[str, Any]:
        return {}


def choose_managers(found: list[Evidence]) -> tuple[str | None, tuple[str, ...]]:
    """Primary manager by accumulated weight; ties favour a lock-file manager,
    then the manager seen first."""
    weights: dict[str, int] = {}
    locked: set[str] = set()
    for item in found:
        if item.manager is None:
            continue
        weights[item.manager] = weights.get(item.manager, 0) + item.weight
        if item.tier is EvidenceTier.LOCK:
            locked.add(item.manager)
    if not weights:
        return None, ()
    order = list(weights)
    ranked = sorted(order, key=lambda m: (-weights[m], m not in locked, order.index(m)))
    return ranked[0], tuple(ranked[1:])


def build_result(
    ecosystem: Ecosystem,
    found: list[Evidence],
    metadata: dict[str, Any],
    default_manager: str | None = None,
) -> DetectionResult:
    score = sum(item.weight for item in found)
    primary, secondary = choose_managers(found)
    if primary is None and score > 0:
        primary = default_manager
    result = DetectionResult(
        ecosystem=ecosystem,
        package_manager=primary,
        confidence=Confidence.from_score(score),
        score=score,
        evidence=tuple(found),
        secondary_managers=secondary,
        metadata=metadata,
    )
    if result.detected:
        logger.debug(
            "Detected %s (manager=%s, score=%d, confidence=%s)",
            ecosystem.value,
            primary,
            score,
            result.confidence.value,
        )
    return result
