"""Shared version parsing and the comparator interface."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from depsentinel.models import Ecosystem, SemverType, VersionDiff

_LEADING_V_RE = re.compile(r"^[vV](?=\d)")
_RELEASE_RE = re.compile(r"^(?P<release>\d+(?:\.\d+)*)(?:[-.]?(?P<rest>.+))?$")


@runtime_checkable
class VersionComparator(Protocol):
    ecosystem: Ecosystem

    def compare(self, from_version: str, to_version: str) -> VersionDiff: ...

    def sort_key(self, version: str) -> tuple: ...


@dataclass(frozen=True)
class ParsedVersion:
    raw: str
    release: tuple[int, ...]
    prerelease: str | None = None
    build: str | None = None
    valid: bool = True

    def component(self, index: int) -> int:
        return self.release[index] if index < len(self.release) else 0

    @property
    def major(self) -> int:
        return self.component(0)

    @property
    def minor(self) -> int:
        return self.component(1)

    @property
    def patch(self) -> int:
        return self.component(2)

    @property
    def tail(self) -> tuple[int, ...]:
        """Patch and any finer components, without trailing zeros."""
        return strip_zeros(self.release[2:])


def strip_v(version: str) -> str:
    return _LEADING_V_RE.sub("", version.strip())


def strip_zeros(parts: tuple[int, ...]) -> tuple[int, ...]:
    """Drop trailing zero components so that 1.2 and 1.2.0 compare equal."""
    end = len(parts)
    while end > 0 and parts[end - 1] == 0:
        end -= 1
    return parts[:end]


def parse_release(version: str) -> ParsedVersion:
    """Split ``[v]N(.N)*[-.]rest[+build]``; missing components read as zero."""
    text, _, build = strip_v(version).partition("+")
    m = _RELEASE_RE.match(text)
    if not m:
        return ParsedVersion(version, (), build=build or None, valid=False)
    release = tuple(int(p) for p in m.group("release").split("."))
    return ParsedVersion(version, release, prerelease=m.group("rest"), build=build or None)


def identifier_key(token: str | None) -> tuple:
    """Order pre-release identifiers: numeric parts numerically, others lexically;
    a version without a pre-release sorts after any with one."""
    if token is None:
        return (1,)
    parts = tuple((0, int(p), "") if p.isdigit() else (1, 0, p.lower()) for p in re.split(r"[.\-_]", token) if p)
    return (0, parts)


def classify(a: ParsedVersion, b: ParsedVersion, key_a: Any, key_b: Any) -> dict[str, Any]:
    """Change flags for a → b.

    Exactly one of major/minor/patch can be set: the most significant
    component that differs.
    """
    major = a.major != b.major
    minor = not major and a.minor != b.minor
    patch = not major and not minor and a.tail != b.tail
    prerelease = a.prerelease != b.prerelease

    if major:
        semver_type = SemverType.MAJOR
    elif minor:
        semver_type = SemverType.MINOR
    elif patch:
        semver_type = SemverType.PATCH
    elif prerelease:
        semver_type = SemverType.PRERELEASE
    else:
        semver_type = SemverType.UNKNOWN

    direction = "upgrade" if key_b > key_a else "downgrade" if key_b < key_a else "none"
    return {
        "major_change": major,
        "minor_change": minor,
        "patch_change": patch,
        "prerelease_change": prerelease,
        "semver_type": semver_type,
        "direction": direction,
    }
