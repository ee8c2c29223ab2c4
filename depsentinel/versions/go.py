"""Go module version comparison: semantic import versioning and pseudo-versions."""

from __future__ import annotations

import re

from depsentinel.models import Ecosystem, VersionDiff
from depsentinel.versions.base import ParsedVersion, classify, identifier_key, parse_release, strip_zeros

# vX.0.0-yyyymmddhhmmss-abcdefabcdef, vX.Y.Z-pre.0.yyyymmddhhmmss-..., vX.Y.(Z+1)-0.yyyymmddhhmmss-...
_PSEUDO_RE = re.compile(r"-(?:[0-9A-Za-z.\-]+\.)?\d{14}-[0-9a-f]{12}$")

IMPORT_PATH_NOTE = "Review import paths - major version changes may require /v2, /v3, etc. suffixes."


def is_pseudo_version(version: str) -> bool:
    return bool(_PSEUDO_RE.search(version.split("+", 1)[0]))


def _key(parsed: ParsedVersion) -> tuple:
    return strip_zeros(parsed.release), identifier_key(parsed.prerelease)


class GoComparator:
    ecosystem = Ecosystem.GO

    def sort_key(self, version: str) -> tuple:
        return _key(parse_release(version))

    def compare(self, from_version: str, to_version: str) -> VersionDiff:
        a, b = parse_release(from_version), parse_release(to_version)
        flags = classify(a, b, _key(a), _key(b))
        distance = abs(
            (b.major - a.major) * 1_000_000 + (b.minor - a.minor) * 1_000 + (b.patch - a.patch)
        )
        pseudo = is_pseudo_version(from_version) or is_pseudo_version(to_version)
        incompatible = (b.build or "") == "incompatible"
        needs_suffix = flags["major_change"] and b.major >= 2 and not incompatible

        notes: list[str] = []
        if flags["major_change"]:
            notes.append("Major version changes in Go modules may include significant API changes.")
            notes.append(IMPORT_PATH_NOTE)
        if incompatible:
            notes.append("Target is a +incompatible release without a go.mod; the import path does not change.")
        if pseudo:
            notes.append("A pseudo-version (untagged commit) is involved; prefer a tagged release.")

        return VersionDiff(
            from_version=from_version,
            to_version=to_version,
            compatibility_notes=tuple(notes),
            version_distance=distance,
            is_pseudo_version=pseudo,
            import_path_change_required=needs_suffix,
            required_import_suffix=f"/v{b.major}" if needs_suffix else None,
            **flags,
        )
