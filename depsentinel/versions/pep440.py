"""PEP 440 version comparison (epochs, pre/post/dev releases)."""

from __future__ import annotations

import re
from dataclasses import dataclass

from depsentinel.models import Ecosystem, VersionDiff
from depsentinel.versions.base import ParsedVersion, classify, strip_v, strip_zeros

COMPLIANT_RE = re.compile(r"^(\d+!)?\d+(\.\d+)*((a|b|rc)\d+)?(\.post\d+)?(\.dev\d+)?$")

_VERSION_RE = re.compile(
    r"""
    ^(?:(?P<epoch>\d+)!)?
    (?P<release>\d+(?:\.\d+)*)
    (?:[-_.]?(?P<pre_l>alpha|beta|preview|pre|rc|a|b|c)[-_.]?(?P<pre_n>\d*))?
    (?:(?:-(?P<post_implicit>\d+))|(?:[-_.]?(?:post|rev|r)[-_.]?(?P<post_n>\d*)))?
    (?:[-_.]?dev[-_.]?(?P<dev_n>\d*))?
    (?:\+(?P<local>[a-z0-9.]+))?$
    """,
    re.VERBOSE,
)

_PRE_SPELLING = {"alpha": "a", "beta": "b", "c": "rc", "pre": "rc", "preview": "rc"}
_PRE_ORDER = {"a": 0, "b": 1, "rc": 2}


@dataclass(frozen=True)
class Pep440Version:
    parsed: ParsedVersion
    epoch: int = 0
    pre: tuple[str, int] | None = None
    post: int | None = None
    dev: int | None = None
    compliant: bool = True


def parse_pep440(version: str) -> Pep440Version:
    text = strip_v(version)
    compliant = bool(COMPLIANT_RE.match(text))
    m = _VERSION_RE.match(text.lower())
    if not m:
        # best effort: leading numeric components only
        numbers = re.match(r"^(\d+(?:\.\d+)*)", text)
        release = tuple(int(p) for p in numbers.group(1).split(".")) if numbers else ()
        return Pep440Version(ParsedVersion(version, release, prerelease=None, valid=False), compliant=False)

    release = tuple(int(p) for p in m.group("release").split("."))
    pre = None
    if m.group("pre_l"):
        letter = _PRE_SPELLING.get(m.group("pre_l"), m.group("pre_l"))
        pre = (letter, int(m.group("pre_n") or 0))
    post_raw = m.group("post_implicit") or m.group("post_n")
    post = None
    if post_raw is not None:
        post = int(post_raw or 0)
    dev = int(m.group("dev_n") or 0) if m.group("dev_n") is not None else None

    # prerelease token covers everything after the release segment
    token = "".join(
        part
        for part in (
            f"{pre[0]}{pre[1]}" if pre else "",
            f".post{post}" if post is not None else "",
            f".dev{dev}" if dev is not None else "",
        )
    )
    parsed = ParsedVersion(version, release, prerelease=token or None, build=m.group("local"))
    return Pep440Version(parsed, int(m.group("epoch") or 0), pre, post, dev, compliant)


def pep440_key(version: Pep440Version) -> tuple:
    """Ordering: dev < pre-release < final < post-release."""
    if version.pre is not None:
        pre_key: tuple[int, int] = (_PRE_ORDER[version.pre[0]], version.pre[1])
    elif version.dev is not None and version.post is None:
        pre_key = (-1, 0)
    else:
        pre_key = (3, 0)
    post_key = version.post if version.post is not None else -1
    dev_key = (0, version.dev) if version.dev is not None else (1, 0)
    return version.epoch, strip_zeros(version.parsed.release), pre_key, post_key, dev_key


class Pep440Comparator:
    ecosystem = Ecosystem.PYTHON

    def sort_key(self, version: str) -> tuple:
        return pep440_key(parse_pep440(version))

    def compare(self, from_version: str, to_version: str) -> VersionDiff:
        a, b = parse_pep440(from_version), parse_pep440(to_version)
        flags = classify(a.parsed, b.parsed, pep440_key(a), pep440_key(b))
        epoch_change = a.epoch != b.epoch

        notes: list[str] = []
        if not (a.compliant and b.compliant):
            notes.append("Version string is not PEP 440 compliant; comparison is best-effort.")
        if epoch_change:
            notes.append(f"Version epoch changes from {a.epoch} to {b.epoch}; ordering restarts.")
        if b.pre is not None or b.dev is not None:
            notes.append("Target is a pre-release; pip only selects it with --pre or an exact pin.")
        if flags["major_change"]:
            notes.append("Major version changes may drop deprecated APIs or supported Python versions.")

        return VersionDiff(
            from_version=from_version,
            to_version=to_version,
            compatibility_notes=tuple(notes),
            pep440_compliant=a.compliant and b.compliant,
            epoch_change=epoch_change,
            is_prerelease=b.pre is not None,
            is_post_release=b.post is not None,
            is_dev_release=b.dev is not None,
            **flags,
        )
