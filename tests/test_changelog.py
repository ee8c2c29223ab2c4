"""Tests for changelog section splitting and line classification."""

from __future__ import annotations

import pytest

from depsentinel.changelog import (
    classify_changelog,
    classify_line,
    classify_sections,
    extract_pr_links,
    parse_changelog,
    select_sections,
)
from depsentinel.versions import Pep440Comparator

CHANGELOG = """\
# Changelog

All notable changes to this project are documented here.

## [Unreleased]

- Add streaming support

## [2.1.0] - 2024-03-01

### Added
- Add retry helper ([#120](https://github.com/acme/lib/pull/120))

### Fixed
- fix: memory leak in parser

## [2.0.0] - 2024-01-15

- BREAKING: removed the legacy client
- Dropped support for Python 3.7
- Fix CVE-2023-1234 in header parsing

## v1.9.0

- Deprecate `Client.fetch`, use `Client.get`
- New `timeout` option

## 1.8.0

- Initial public release
"""


# ── line classification ──────────────────────────────────────────────────


class TestClassifyLine:
    @pytest.mark.parametrize(
        "line, bucket",
        [
            ("- BREAKING: removed the legacy client", "breaking_changes"),
            ("- Backwards incompatible change to config loading", "breaking_changes"),
            ("- Dropped support for Python 3.7", "breaking_changes"),
            ("- feat(api)!: rename endpoints", "breaking_changes"),
            ("- The parser no longer accepts tabs", "breaking_changes"),
            ("- Patch CVE-2023-1234", "security_fixes"),
            ("- Prevent XSS in rendered templates", "security_fixes"),
            ("- Add retry helper", "new_features"),
            ("- feat: streaming uploads", "new_features"),
            ("- Support for HTTP/3", "new_features"),
            ("- Fix crash on empty input", "bug_fixes"),
            ("- Resolved race in pool shutdown", "bug_fixes"),
            ("- Deprecate the `fetch` helper", "deprecations"),
            ("- `fetch` will be removed in 3.0", "deprecations"),
        ],
    )
    def test_bucket(self, line, bucket):
        assert classify_line(line) == bucket

    def test_conventional_fix_is_only_a_bug_fix(self):
        assert classify_line("- fix: memory leak in parser") == "bug_fixes"

    def test_unmatched_line_is_dropped(self):
        assert classify_line("- Bump copyright year") is None
        assert classify_line("   ") is None

    def test_word_boundaries(self):
        # "address" must not count as "add"
        assert classify_line("- Update the address format docs") is None

    def test_security_wins_over_fix(self):
        assert classify_line("- Fix security issue in cookie parsing") == "security_fixes"


class TestClassifyChangelog:
    def test_scenario_fix_line(self):
        result = classify_changelog("- fix: memory leak in parser\n")
        assert result.bug_fixes == ("- fix: memory leak in parser",)
        assert result.breaking_changes == ()

    def test_deduplicates_in_first_seen_order(self):
        text = "- Add a\n- Add b\n- Add a\n"
        assert classify_changelog(text).new_features == ("- Add a", "- Add b")

    def test_headings_are_not_classified(self):
        result = classify_changelog("### New Features\n- Fix bug\n")
        assert result.new_features == ()
        assert result.bug_fixes == ("- Fix bug",)

    def test_idempotent(self):
        assert classify_changelog(CHANGELOG) == classify_changelog(CHANGELOG)

    def test_breaking_lines_not_in_other_buckets(self):
        result = classify_changelog(CHANGELOG)
        others = set(result.new_features) | set(result.bug_fixes) | set(result.deprecations)
        assert not set(result.breaking_changes) & others


# ── sections ─────────────────────────────────────────────────────────────


class TestParseChangelog:
    def test_sections_in_file_order(self):
        sections = parse_changelog(CHANGELOG)
        assert [s.version for s in sections] == [None, "2.1.0", "2.0.0", "1.9.0", "1.8.0"]

    def test_preamble_is_dropped(self):
        sections = parse_changelog(CHANGELOG)
        assert all("notable changes" not in s.content for s in sections)

    def test_section_classification(self):
        section = parse_changelog(CHANGELOG)[2]
        assert section.classification.breaking_changes == (
            "- BREAKING: removed the legacy client",
            "- Dropped support for Python 3.7",
        )
        assert section.classification.security_fixes == ("- Fix CVE-2023-1234 in header parsing",)

    def test_pr_links(self):
        section = parse_changelog(CHANGELOG)[1]
        assert len(section.pr_links) == 1
        link = section.pr_links[0]
        assert link.number == "120"
        assert link.type == "pr"

    def test_setext_headings(self):
        text = "1.1.0 (2024-02-01)\n------------------\n\n- Add x\n\n1.0.0\n=====\n\n- Fix y\n"
        sections = parse_changelog(text)
        assert [s.version for s in sections] == ["1.1.0", "1.0.0"]
        assert sections[0].classification.new_features == ("- Add x",)

    def test_version_prefixed_headings(self):
        text = "## Version 3.0.0\n- Removed x\n## Release 2.9.1\n- Fix y\n"
        assert [s.version for s in parse_changelog(text)] == ["3.0.0", "2.9.1"]

    def test_no_headings(self):
        assert parse_changelog("- Fix bug\n") == []


class TestSelectSections:
    def test_half_open_range(self):
        sections = parse_changelog(CHANGELOG)
        selected = select_sections(sections, "1.9.0", "2.1.0")
        assert [s.version for s in selected] == ["2.1.0", "2.0.0"]

    def test_unreleased_is_never_selected(self):
        sections = parse_changelog(CHANGELOG)
        assert all(s.version for s in select_sections(sections, "0.1", "99.0"))

    def test_downgrade_selects_nothing(self):
        sections = parse_changelog(CHANGELOG)
        assert select_sections(sections, "2.1.0", "1.8.0") == []

    def test_custom_comparator(self):
        sections = parse_changelog("## 2.0.0rc1\n- Add x\n## 1.0.0\n- Fix y\n")
        selected = select_sections(sections, "1.0.0", "2.0.0", Pep440Comparator())
        assert [s.version for s in selected] == ["2.0.0rc1"]

    def test_classify_selected_sections(self):
        sections = select_sections(parse_changelog(CHANGELOG), "1.9.0", "2.1.0")
        result = classify_sections(sections)
        assert result.new_features == ("- Add retry helper ([#120](https://github.com/acme/lib/pull/120))",)
        assert result.bug_fixes == ("- fix: memory leak in parser",)
        assert len(result.breaking_changes) == 2


class TestPullRequestLinks:
    def test_markdown_and_bare_links_deduplicated(self):
        text = (
            "- Fix ([#5](https://github.com/o/r/pull/5))\n"
            "- See https://github.com/o/r/pull/5 and https://github.com/o/r/issues/9\n"
        )
        links = extract_pr_links(text)
        assert [(l.number, l.type) for l in links] == [("5", "pr"), ("9", "issue")]
