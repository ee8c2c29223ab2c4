"""SemVer-family comparison for npm packages and JVM artifacts."""

from __future__ import annotations

from depsentinel.models import Ecosystem, VersionDiff
from depsentinel.versions.base import ParsedVersion, classify, identifier_key, parse_release, strip_zeros

# Qualifiers that mark a release rather than a pre-release
RELEASE_QUALIFIERS = frozenset({"final", "release", "ga", "jre", "android", "sp1", "sp2"})


def parse_semver(version: str) -> ParsedVersion:
    parsed = parse_release(version)
    if parsed.prerelease and parsed.prerelease.lower() in RELEASE_QUALIFIERS:
        return ParsedVersion(parsed.raw, parsed.release, None, parsed.build, parsed.valid)
    return parsed


def semver_key(parsed: ParsedVersion) -> tuple:
    return strip_zeros(parsed.release), identifier_key(parsed.prerelease)


class SemverComparator:
    """``major.minor.patch[-prerelease][+build]`` with a tolerated leading ``v``."""

    def __init__(self, ecosystem: Ecosystem = Ecosystem.JAVASCRIPT) -> None:
        self.ecosystem = ecosystem

    def sort_key(self, version: str) -> tuple:
        return semver_key(parse_semver(version))

    def compare(self, from_version: str, to_version: str) -> VersionDiff:
        a, b = parse_semver(from_version), parse_semver(to_version)
        flags = classify(a, b, semver_key(a), semver_key(b))
        return VersionDiff(
            from_version=from_version,
            to_version=to_version,
            compatibility_notes=tuple(self.notes(a, b, flags)),
            **flags,
        )

    def notes(self, a: ParsedVersion, b: ParsedVersion, flags: dict) -> list[str]:
        notes: list[str] = []
        if not (a.valid and b.valid):
            notes.append("One of the versions could not be parsed; comparison is best-effort.")
        if flags["major_change"]:
            notes.append("Major version changes may remove or change public APIs.")
        elif flags["minor_change"] and a.major == 0 and self.ecosystem is Ecosystem.JAVASCRIPT:
            notes.append("Minor bumps below 1.0.0 may be breaking; caret ranges do not cross them.")
        if self.ecosystem is Ecosystem.JAVA and "snapshot" in (b.prerelease or "").lower():
            notes.append("SNAPSHOT versions are mutable; pin a release for reproducible builds.")
        elif b.prerelease:
            notes.append(f"Target version is a pre-release ({b.prerelease}).")
        return notes
