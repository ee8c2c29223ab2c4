"""Ecosystem detection: run every detector and rank the results."""

from __future__ import annotations

from pathlib import Path

from depsentinel.detectors.base import EcosystemDetector
from depsentinel.detectors.go import GoDetector
from depsentinel.detectors.java import JavaDetector
from depsentinel.detectors.javascript import JavaScriptDetector
from depsentinel.detectors.python import PythonDetector
from depsentinel.detectors.ruby import RubyDetector
from depsentinel.exceptions import ProjectNotFoundError
from depsentinel.models import DetectionResult, Ecosystem, EcosystemReport

# Fixed order, also the last tie-breaker between equally scored ecosystems
DETECTORS: list[EcosystemDetector] = [
    GoDetector(),
    JavaDetector(),
    JavaScriptDetector(),
    PythonDetector(),
    RubyDetector(),
]


def detector_for(ecosystem: Ecosystem) -> EcosystemDetector:
    return next(d for d in DETECTORS if d.ecosystem is ecosystem)


def rank(results: list[DetectionResult]) -> list[DetectionResult]:
    """Detected results, highest score first; ties prefer lock/version-file
    evidence over a bare source-file signal, then fixed ecosystem order."""
    order = [d.ecosystem for d in DETECTORS]
    detected = [r for r in results if r.detected]
    return sorted(
        detected,
        key=lambda r: (-r.score, not r.has_lock_file, not r.has_version_file, order.index(r.ecosystem)),
    )


def detect_ecosystems(root: Path) -> EcosystemReport:
    """Run every detector against *root* and pick the primary ecosystem."""
    root = Path(root)
    if not root.is_dir():
        raise ProjectNotFoundError(str(root))
    ranked = rank([detector.detect(root) for detector in DETECTORS])
    if not ranked:
        return EcosystemReport(primary=None)
    return EcosystemReport(primary=ranked[0], secondaries=tuple(ranked[1:]))


__all__ = [
    "DETECTORS",
    "EcosystemDetector",
    "detect_ecosystems",
    "detector_for",
    "rank",
]
