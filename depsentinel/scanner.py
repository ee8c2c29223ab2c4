"""Manifest scanning: locate files, run parsers, collect per-file errors."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import structlog

# Ensure parsers are registered before any scan runs.
import depsentinel.parsers  # noqa: F401
from depsentinel.exceptions import ManifestParseError, ProjectNotFoundError
from depsentinel.locator import ManifestLocator
from depsentinel.models import Ecosystem, ManifestFile
from depsentinel.registry import discover_manifests

log = structlog.get_logger("depsentinel.engine")


def scan(
    repo_path: Path,
    ecosystems: Iterable[Ecosystem] | None = None,
    locator: ManifestLocator | None = None,
) -> list[ManifestFile]:
    """Parse every recognised manifest under *repo_path*.

    A file that fails to parse is still returned, with no declarations and
    the failure recorded in ``errors``; the other files are unaffected.
    """
    repo_path = Path(repo_path)
    if not repo_path.is_dir():
        raise ProjectNotFoundError(str(repo_path))

    matches, located = discover_manifests(repo_path, ecosystems, locator)
    for warning in located.warnings:
        log.warning("scanner.walk_warning", detail=warning)

    results: list[ManifestFile] = []
    for parser, file_path in matches:
        rel = file_path.relative_to(repo_path).as_posix()
        errors: list[str] = []
        parsed = []
        try:
            content = file_path.read_text(encoding="utf-8", errors="replace")
            parsed = parser.parse(file_path, content)
        except ManifestParseError as exc:
            location = f"{rel}:{exc.line}" if exc.line is not None else rel
            errors.append(f"{location}: {exc.message}")
            log.warning("scanner.parse_failed", file=rel, error=exc.message, line=exc.line)
        except OSError as exc:
            errors.append(f"{rel}: {exc.strerror or exc}")
            log.warning("scanner.read_failed", file=rel, error=str(exc))

        # Fix source_file to be relative to repo root
        for dep in parsed:
            dep.source_file = rel
        results.append(
            ManifestFile(
                path=rel,
                format=parser.detection_method,
                ecosystem=parser.ecosystem,
                declarations=tuple(parsed),
                errors=tuple(errors),
            )
        )
    log.debug("scanner.done", files=len(results), root=str(repo_path))
    return results
