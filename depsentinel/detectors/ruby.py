"""Ruby / Bundler detection, including Rails project recognition."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from depsentinel.detectors.base import DetectionRule, EcosystemDetector, evidence, read_text
from depsentinel.models import Ecosystem, Evidence, EvidenceTier
from depsentinel.parsers.gemfile import read_gemfile, read_lockfile

DETECTION_RULES: list[DetectionRule] = [
    ("Gemfile.lock", EvidenceTier.LOCK, "bundler"),
    ("gems.locked", EvidenceTier.LOCK, "bundler"),
    ("Gemfile", EvidenceTier.MANIFEST, "bundler"),
    ("gems.rb", EvidenceTier.MANIFEST, "bundler"),
    ("*.gemspec", EvidenceTier.CONFIG, "bundler"),
    (".bundle/config", EvidenceTier.CONFIG, "bundler"),
]

# Ruby version managers: (marker file, manager name)
VERSION_MANAGERS: list[tuple[str, str]] = [
    (".ruby-version", "rbenv"),
    (".rvmrc", "rvm"),
    (".tool-versions", "asdf"),
]

RAILS_MARKERS = (
    "config/application.rb",
    "config/environment.rb",
    "config/routes.rb",
    "app/controllers/application_controller.rb",
    "bin/rails",
)


def _asdf_ruby(content: str) -> str | None:
    for line in content.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "ruby":
            return parts[1]
    return None


class RubyDetector(EcosystemDetector):
    ecosystem = Ecosystem.RUBY
    rules = DETECTION_RULES
    default_manager = "bundler"

    def extra_evidence(self, root: Path, found: list[Evidence]) -> list[Evidence]:
        extra: list[Evidence] = []
        for marker, manager in VERSION_MANAGERS:
            content = read_text(root / marker)
            if content is None:
                continue
            if marker == ".tool-versions" and _asdf_ruby(content) is None:
                continue
            extra.append(evidence(marker, EvidenceTier.DEPENDENCY_FILE, note=manager))
        return extra

    def metadata(self, root: Path, found: list[Evidence]) -> dict[str, Any]:
        meta: dict[str, Any] = {
            "versionManagers": [e.note for e in found if e.path in dict(VERSION_MANAGERS)],
        }
        gems: set[str] = set()
        gemfile = read_text(root / "Gemfile") or read_text(root / "gems.rb")
        if gemfile is not None:
            info = read_gemfile(gemfile)
            meta["sources"] = info.sources
            meta["groups"] = info.groups
            if info.ruby_version:
                meta["rubyVersion"] = info.ruby_version
            gems.update(g.name for g in info.gems)

        lock = read_text(root / "Gemfile.lock") or read_text(root / "gems.locked")
        if lock is not None:
            locked = read_lockfile(lock)
            if locked.bundler_version:
                meta["bundlerVersion"] = locked.bundler_version
            if locked.ruby_version:
                meta.setdefault("rubyVersion", locked.ruby_version)
            if locked.platforms:
                meta["platforms"] = locked.platforms
            gems.update(locked.specs)

        version_file = read_text(root / ".ruby-version")
        if version_file and version_file.strip():
            meta.setdefault("rubyVersion", version_file.strip())
        tool_versions = read_text(root / ".tool-versions")
        if tool_versions and _asdf_ruby(tool_versions):
            meta.setdefault("rubyVersion", _asdf_ruby(tool_versions))

        markers = [m for m in RAILS_MARKERS if (root / m).is_file()]
        signals = len(markers) + (1 if "rails" in gems else 0)
        meta["railsProject"] = signals >= 2
        meta["railsIndicators"] = markers
        return meta
