"""Go modules detection."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from depsentinel.detectors.base import (
    DetectionRule,
    EcosystemDetector,
    count_sources,
    evidence,
    read_text,
)
from depsentinel.models import Ecosystem, Evidence, EvidenceTier
from depsentinel.parsers.go_mod import parse_go_mod

logger = logging.getLogger(__name__)

DETECTION_RULES: list[DetectionRule] = [
    ("go.sum", EvidenceTier.LOCK, "go"),
    ("go.work.sum", EvidenceTier.LOCK, "go"),
    ("go.mod", EvidenceTier.MANIFEST, "go"),
    ("go.work", EvidenceTier.MANIFEST, "go"),
    ("vendor/modules.txt", EvidenceTier.DEPENDENCY_FILE, "go"),
]


class GoDetector(EcosystemDetector):
    ecosystem = Ecosystem.GO
    rules = DETECTION_RULES
    default_manager = "go"

    def extra_evidence(self, root: Path, found: list[Evidence]) -> list[Evidence]:
        sources = count_sources(root, ["*.go"])
        if not sources:
            return []
        return [evidence("*.go", EvidenceTier.SOURCE, note=f"{sources} Go source files")]

    def metadata(self, root: Path, found: list[Evidence]) -> dict[str, Any]:
        meta: dict[str, Any] = {}
        go_mod = read_text(root / "go.mod")
        go_work = read_text(root / "go.work")
        if go_mod is not None:
            mod = parse_go_mod(go_mod)
            meta["modulePath"] = mod.module
            meta["goVersion"] = mod.go_version
            meta["toolchain"] = mod.toolchain
            meta["directDependencies"] = sum(1 for _, _, indirect, _ in mod.requires if not indirect)
            meta["indirectDependencies"] = sum(1 for _, _, indirect, _ in mod.requires if indirect)
            meta["replaceDirectives"] = len(mod.replaces)
        if go_work is not None:
            work = parse_go_mod(go_work)
            meta["workspaceModules"] = work.uses
            meta.setdefault("goVersion", work.go_version)
        meta["hasGoSum"] = (root / "go.sum").is_file()
        meta["vendored"] = (root / "vendor" / "modules.txt").is_file()
        meta["goPathMode"] = go_mod is None and go_work is None
        if meta["goPathMode"]:
            logger.info("No go.mod or go.work in %s, assuming GOPATH mode", root)
        return meta
