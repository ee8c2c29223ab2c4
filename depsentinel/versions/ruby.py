"""RubyGems version comparison and ``~>`` (pessimistic) constraint advice."""

from __future__ import annotations

import re

from depsentinel.models import Ecosystem, VersionDiff
from depsentinel.versions.base import ParsedVersion, classify, identifier_key, strip_v, strip_zeros

_SEGMENT_RE = re.compile(r"[0-9]+|[A-Za-z]+")


def parse_gem_version(version: str) -> ParsedVersion:
    """Numeric segments up to the first alphabetic one; the rest is the pre-release.

    ``1.0.0.rc1`` and ``1.0.0-beta.2`` are both pre-releases. Platform
    suffixes (``1.13.8-x86_64-linux``) are dropped.
    """
    text = strip_v(version)
    if re.search(r"-(x86|x64|arm|aarch|java|universal|mingw|mswin)", text):
        text = text.split("-", 1)[0]
    segments = _SEGMENT_RE.findall(text.replace("-", ".pre."))
    release: list[int] = []
    for index, segment in enumerate(segments):
        if not segment.isdigit():
            pre = ".".join(s for s in segments[index:] if s != "pre") or "pre"
            return ParsedVersion(version, tuple(release), prerelease=pre, valid=bool(release))
        release.append(int(segment))
    return ParsedVersion(version, tuple(release), valid=bool(release))


def _key(parsed: ParsedVersion) -> tuple:
    return strip_zeros(parsed.release), identifier_key(parsed.prerelease)


def pessimistic_constraint(version: ParsedVersion) -> str | None:
    """``~> M.m``, or ``~> M.m.p`` when the target carries a non-zero patch."""
    if len(version.release) < 2:
        return None
    if len(version.release) >= 3 and version.patch > 0:
        return f"~> {version.major}.{version.minor}.{version.patch}"
    return f"~> {version.major}.{version.minor}"


class RubyGemsComparator:
    ecosystem = Ecosystem.RUBY

    def sort_key(self, version: str) -> tuple:
        return _key(parse_gem_version(version))

    def compare(self, from_version: str, to_version: str) -> VersionDiff:
        a, b = parse_gem_version(from_version), parse_gem_version(to_version)
        flags = classify(a, b, _key(a), _key(b))
        # ~> M.m permits minor bumps, ~> M.m.p only patch bumps
        compatible = not flags["major_change"] and (len(a.release) <= 2 or not flags["minor_change"])
        constraint = pessimistic_constraint(b)

        notes: list[str] = []
        if not (a.valid and b.valid):
            notes.append("One of the versions could not be parsed; comparison is best-effort.")
        if not compatible:
            notes.append("Upgrade crosses the range a ~> constraint on the current version allows.")
        if b.prerelease:
            notes.append("Target is a pre-release gem; Bundler needs an explicit pre-release requirement.")

        return VersionDiff(
            from_version=from_version,
            to_version=to_version,
            compatibility_notes=tuple(notes),
            is_pessimistic_compatible=compatible,
            pessimistic_constraint=constraint,
            **flags,
        )
