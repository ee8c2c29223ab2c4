"""Changelog mining: split a changelog into version sections and bucket its lines.

Classification is a keyword heuristic. Every line lands in at most one
bucket, checked in priority order breaking > security > feature > fix >
deprecation; lines matching nothing are dropped.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence

from depsentinel.models import ChangelogClassification, ChangelogSection, PullRequestLink
from depsentinel.versions.base import VersionComparator
from depsentinel.versions.semver import SemverComparator

logger = logging.getLogger(__name__)

# ── keyword tables ───────────────────────────────────────────────────────

BREAKING_PATTERNS = [
    re.compile(r"\bbreaking\b"),
    re.compile(r"\bbackwards?[- ]incompatible\b"),
    re.compile(r"\bincompatib"),
    re.compile(r"(?<!will be )\bremoved\b"),
    re.compile(r"\b(drop|drops|dropped|remove|removes)\b.*\bsupport\b"),
    re.compile(r"\bno longer\b"),
    re.compile(r"\bchanged? (the )?(default )?behaviou?r\b"),
    re.compile(r"^(?:[-*+]\s*)?[a-z]+(?:\([^)]*\))?!:"),
]

SECURITY_PATTERNS = [
    re.compile(r"\bsecurity\b"),
    re.compile(r"\bcve-\d"),
    re.compile(r"\bvulnerab"),
    re.compile(r"\bexploit"),
    re.compile(r"\bcsrf\b"),
    re.compile(r"\bxss\b"),
    re.compile(r"\binjection\b"),
]

FEATURE_PATTERNS = [
    re.compile(r"\b(add|adds|added|adding)\b"),
    re.compile(r"\bnew\b"),
    re.compile(r"\bfeatures?\b"),
    re.compile(r"\benhance"),
    re.compile(r"\bsupport for\b"),
]

FIX_PATTERNS = [
    re.compile(r"\b(fix|fixes|fixed|fixing)\b"),
    re.compile(r"\bbugs?\b"),
    re.compile(r"\b(resolve|resolves|resolved)\b"),
    re.compile(r"\bcorrect(s|ed|ly)?\b"),
]

DEPRECATION_PATTERNS = [
    re.compile(r"\bdeprecat"),
    re.compile(r"\bobsolete\b"),
    re.compile(r"\bwill be removed\b"),
    re.compile(r"\bplanned removal\b"),
    re.compile(r"\bdiscouraged\b"),
]

# Conventional-commit type, applied after the breaking and security checks
_CONVENTIONAL_RE = re.compile(r"^(?:[-*+]\s*)?(?P<type>feat|fix)(?:\([^)]*\))?:\s*")
_CONVENTIONAL_BUCKET = {"feat": "new_features", "fix": "bug_fixes"}

_BUCKETS = [
    ("breaking_changes", BREAKING_PATTERNS),
    ("security_fixes", SECURITY_PATTERNS),
    ("new_features", FEATURE_PATTERNS),
    ("bug_fixes", FIX_PATTERNS),
    ("deprecations", DEPRECATION_PATTERNS),
]

_SKIP_PREFIXES = ("#", "<details", "</details", "<summary", "</summary")
_UNDERLINE_RE = re.compile(r"^(=+|-+|~+)$")

# ── section headings ─────────────────────────────────────────────────────

_VERSION = r"v?(?P<version>\d+(?:\.\d+)+(?:[-+.]?[0-9A-Za-z][0-9A-Za-z.\-]*)?)"
_ATX_HEADING_RE = re.compile(
    rf"^#{{1,6}}\s+\[?(?:(?:version|release)\s+)?{_VERSION}\]?(?=$|[\s(:-])",
    re.IGNORECASE,
)
_UNRELEASED_RE = re.compile(r"^#{1,6}\s+\[?unreleased\]?", re.IGNORECASE)
_PLAIN_HEADING_RE = re.compile(
    rf"^(?:(?:version|release)\s+)?{_VERSION}(?:\s+[(\[-].*)?\s*$",
    re.IGNORECASE,
)
_VERSION_LINE_RE = re.compile(rf"^version\s+{_VERSION}\s*(?:\(.*\))?:?\s*$", re.IGNORECASE)

_PR_LINK_RE = re.compile(r"\[#(\d+)\]\((https://github\.com/[^/]+/[^/]+/(pull|issues)/\d+)\)")
_BARE_PR_RE = re.compile(r"(?<!\()https://github\.com/[^/\s]+/[^/\s]+/(pull|issues)/(\d+)")


def classify_line(line: str) -> str | None:
    """Bucket name for one changelog line, or None when nothing matches."""
    text = line.strip().lower()
    if not text:
        return None
    for bucket, patterns in _BUCKETS[:2]:
        if any(p.search(text) for p in patterns):
            return bucket
    m = _CONVENTIONAL_RE.match(text)
    if m:
        return _CONVENTIONAL_BUCKET[m.group("type")]
    for bucket, patterns in _BUCKETS[2:]:
        if any(p.search(text) for p in patterns):
            return bucket
    return None


def _entry_lines(text: str) -> Iterable[str]:
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith(_SKIP_PREFIXES) or _UNDERLINE_RE.match(line):
            continue
        if "Work in this release was contributed" in line or "Thank you for your contribution" in line:
            continue
        yield line


def classify_lines(lines: Iterable[str]) -> ChangelogClassification:
    buckets: dict[str, dict[str, None]] = {name: {} for name, _ in _BUCKETS}
    for line in lines:
        bucket = classify_line(line)
        if bucket is not None:
            buckets[bucket].setdefault(line.strip(), None)
    return ChangelogClassification(**{name: tuple(entries) for name, entries in buckets.items()})


def classify_changelog(text: str) -> ChangelogClassification:
    """Classify every entry line of *text*; headings and markup are skipped."""
    return classify_lines(_entry_lines(text))


def classify_sections(sections: Sequence[ChangelogSection]) -> ChangelogClassification:
    """Merge the classifications of several sections, keeping first-seen order."""
    return classify_lines(line for section in sections for line in _entry_lines(section.content))


def extract_pr_links(text: str) -> tuple[PullRequestLink, ...]:
    """GitHub pull request and issue links, deduplicated by URL."""
    found: dict[str, PullRequestLink] = {}
    for m in _PR_LINK_RE.finditer(text):
        url = m.group(2)
        found.setdefault(url, PullRequestLink(m.group(1), url, "pr" if m.group(3) == "pull" else "issue"))
    for m in _BARE_PR_RE.finditer(text):
        url = m.group(0)
        found.setdefault(url, PullRequestLink(m.group(2), url, "pr" if m.group(1) == "pull" else "issue"))
    return tuple(found.values())


# ── sections ─────────────────────────────────────────────────────────────


def _heading_version(lines: list[str], index: int) -> tuple[bool, str | None]:
    """(is_heading, version) for ``lines[index]``.

    Setext headings (a version line underlined with ``===`` or ``---``)
    and bare ``Version X`` lines count as headings too.
    """
    line = lines[index].strip()
    if _UNRELEASED_RE.match(line):
        return True, None
    m = _ATX_HEADING_RE.match(line)
    if m:
        return True, _clean(m.group("version"))
    if line.startswith("#"):
        return False, None
    following = lines[index + 1].strip() if index + 1 < len(lines) else ""
    m = _PLAIN_HEADING_RE.match(line)
    if m and _UNDERLINE_RE.match(following) and len(following) >= 3:
        return True, _clean(m.group("version"))
    m = _VERSION_LINE_RE.match(line)
    if m:
        return True, _clean(m.group("version"))
    return False, None


def _clean(version: str) -> str:
    return version.rstrip(".-")


def _section(version: str | None, body_lines: list[str]) -> ChangelogSection:
    content = "\n".join(body_lines).strip()
    if body_lines and _UNDERLINE_RE.match(body_lines[0].strip()):
        content = "\n".join(body_lines[1:]).strip()
    return ChangelogSection(
        version=version,
        content=content,
        pr_links=extract_pr_links(content),
        classification=classify_changelog(content),
    )


def parse_changelog(text: str) -> list[ChangelogSection]:
    """Split a changelog into sections on version headings, in file order.

    Text before the first heading is dropped. An "Unreleased" heading
    opens a section whose version is None.
    """
    lines = text.splitlines()
    sections: list[ChangelogSection] = []
    current: tuple[str | None, list[str]] | None = None

    for index, line in enumerate(lines):
        is_heading, version = _heading_version(lines, index)
        if is_heading:
            if current is not None:
                sections.append(_section(*current))
            current = (version, [])
        elif current is not None:
            current[1].append(line)

    if current is not None:
        sections.append(_section(*current))
    logger.debug("Parsed %d changelog sections", len(sections))
    return sections


def select_sections(
    sections: Sequence[ChangelogSection],
    from_version: str,
    to_version: str,
    comparator: VersionComparator | None = None,
) -> list[ChangelogSection]:
    """Sections whose version lies in ``(from_version, to_version]``."""
    comparator = comparator or SemverComparator()
    low, high = comparator.sort_key(from_version), comparator.sort_key(to_version)
    return [
        section
        for section in sections
        if section.version is not None and low < comparator.sort_key(section.version) <= high
    ]
