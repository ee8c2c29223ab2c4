"""Source usage scanning: find import sites and map them onto coordinates."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path

from depsentinel.imports.base import ImportScanner, summarize
from depsentinel.imports.go import GoImportScanner
from depsentinel.imports.javascript import JavaScriptImportScanner
from depsentinel.imports.jvm import JvmImportScanner
from depsentinel.imports.python import PythonImportScanner
from depsentinel.imports.ruby import RubyImportScanner
from depsentinel.locator import ManifestLocator
from depsentinel.models import Ecosystem, ImportSite, UsageSummary

logger = logging.getLogger(__name__)

SCANNERS: dict[Ecosystem, ImportScanner] = {
    Ecosystem.GO: GoImportScanner(),
    Ecosystem.JAVA: JvmImportScanner(),
    Ecosystem.JAVASCRIPT: JavaScriptImportScanner(),
    Ecosystem.PYTHON: PythonImportScanner(),
    Ecosystem.RUBY: RubyImportScanner(),
}

# Ecosystems whose import names map reliably onto declared coordinates
IMPORT_MAPPED_ECOSYSTEMS = frozenset({Ecosystem.GO, Ecosystem.JAVASCRIPT, Ecosystem.PYTHON, Ecosystem.RUBY})


@dataclass
class UsageReport:
    """Usage per known coordinate, plus external modules nobody declared."""

    usage: dict[str, UsageSummary] = field(default_factory=dict)
    inferred: dict[str, UsageSummary] = field(default_factory=dict)
    bundler_require: bool = False


def scan_imports(
    root: Path,
    ecosystem: Ecosystem,
    locator: ManifestLocator | None = None,
) -> list[ImportSite]:
    """Collect every import site in the project's source files."""
    scanner = SCANNERS[ecosystem]
    located = (locator or ManifestLocator()).locate(root, scanner.file_patterns)
    sites: list[ImportSite] = []
    for path in located.files:
        rel = path.relative_to(root).as_posix()
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.warning("Skipping unreadable source file %s: %s", rel, exc)
            continue
        sites.extend(scanner.scan_file(rel, content))
    logger.debug("Found %d %s import sites in %d files", len(sites), ecosystem.value, len(located.files))
    return sites


def resolve_usage(
    root: Path,
    ecosystem: Ecosystem,
    sites: list[ImportSite],
    coordinates: list[str],
) -> UsageReport:
    """Attribute import sites to *coordinates*; collect the unmatched rest."""
    scanner = SCANNERS[ecosystem]
    local = scanner.local_modules(root)
    matched: dict[str, list[ImportSite]] = defaultdict(list)
    unmatched: dict[str, list[ImportSite]] = defaultdict(list)
    report = UsageReport()

    for site in sites:
        if site.kind == "bundler_require":
            report.bundler_require = True
            continue
        coordinate = scanner.match(site.module, coordinates)
        if coordinate is not None:
            matched[coordinate].append(site)
            continue
        inferred = scanner.infer(site.module, local)
        if inferred is not None:
            unmatched[inferred].append(site)

    report.usage = {c: summarize(s) for c, s in matched.items()}
    report.inferred = {c: summarize(s) for c, s in unmatched.items()}
    return report


__all__ = [
    "IMPORT_MAPPED_ECOSYSTEMS",
    "SCANNERS",
    "UsageReport",
    "resolve_usage",
    "scan_imports",
]
