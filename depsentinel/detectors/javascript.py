"""JavaScript / TypeScript package-manager detection (npm, yarn, pnpm)."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from depsentinel.detectors.base import DetectionRule, EcosystemDetector, evidence, read_text
from depsentinel.models import Ecosystem, Evidence, EvidenceTier
from depsentinel.parsers.package_json import PACKAGE_MANAGER_RE

logger = logging.getLogger(__name__)

DETECTION_RULES: list[DetectionRule] = [
    ("package-lock.json", EvidenceTier.LOCK, "npm"),
    ("npm-shrinkwrap.json", EvidenceTier.LOCK, "npm"),
    ("yarn.lock", EvidenceTier.LOCK, "yarn"),
    ("pnpm-lock.yaml", EvidenceTier.LOCK, "pnpm"),
    ("shrinkwrap.yaml", EvidenceTier.LOCK, "pnpm"),
    ("package.json", EvidenceTier.MANIFEST, None),
    (".yarnrc", EvidenceTier.CONFIG, "yarn"),
    (".yarnrc.yml", EvidenceTier.CONFIG, "yarn"),
    (".yarnrc.yaml", EvidenceTier.CONFIG, "yarn"),
    (".pnpmrc", EvidenceTier.CONFIG, "pnpm"),
    (".pnpmfile.cjs", EvidenceTier.CONFIG, "pnpm"),
    (".npmrc", EvidenceTier.CONFIG, "npm"),
]

WORKSPACE_INDICATORS = ("pnpm-workspace.yaml", "lerna.json", "nx.json", "rush.json", "turbo.json")


def _package_json(root: Path) -> dict:
    content = read_text(root / "package.json")
    if content is None:
        return {}
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        logger.warning("Ignoring malformed package.json in %s", root)
        return {}
    return data if isinstance(data, dict) else {}


class JavaScriptDetector(EcosystemDetector):
    ecosystem = Ecosystem.JAVASCRIPT
    rules = DETECTION_RULES
    default_manager = "npm"

    def extra_evidence(self, root: Path, found: list[Evidence]) -> list[Evidence]:
        field_value = _package_json(root).get("packageManager")
        if not isinstance(field_value, str):
            return []
        m = PACKAGE_MANAGER_RE.match(field_value)
        if not m:
            return []
        return [
            evidence(
                "package.json#packageManager",
                EvidenceTier.MANIFEST,
                m.group(1),
                note=m.group(2),
            )
        ]

    def metadata(self, root: Path, found: list[Evidence]) -> dict[str, Any]:
        pkg = _package_json(root)
        meta: dict[str, Any] = {}
        for item in found:
            if item.path == "package.json#packageManager":
                meta["packageManagerVersion"] = item.note.split("+", 1)[0]
        engines = pkg.get("engines")
        if isinstance(engines, dict):
            meta["engines"] = {k: v for k, v in engines.items() if isinstance(v, str)}

        workspaces = pkg.get("workspaces")
        if isinstance(workspaces, dict):
            workspaces = workspaces.get("packages")
        indicators = [name for name in WORKSPACE_INDICATORS if (root / name).is_file()]
        if isinstance(workspaces, list) and workspaces:
            indicators.append("package.json#workspaces")
            meta["workspaces"] = [w for w in workspaces if isinstance(w, str)]
        meta["monorepo"] = bool(indicators)
        meta["workspaceIndicators"] = indicators
        meta["typescript"] = (root / "tsconfig.json").is_file()
        if pkg.get("type") == "module":
            meta["moduleType"] = "module"
        return meta
