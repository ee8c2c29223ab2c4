"""Tests for the manifest locator and the parser registry: pure filesystem logic."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

import depsentinel.parsers  # noqa: F401
from depsentinel.locator import ManifestLocator, matches_any
from depsentinel.models import Ecosystem
from depsentinel.registry import PARSER_REGISTRY, discover_manifests, find_parser, parsers_for


def _rel(root: Path, files: list[Path]) -> list[str]:
    return [f.relative_to(root).as_posix() for f in files]


@pytest.fixture
def locator():
    return ManifestLocator()


# ── walking ──────────────────────────────────────────────────────────────


class TestLocate:
    def test_sorted_by_relative_path(self, write_tree, locator):
        root = write_tree({"b/package.json": "{}", "a/package.json": "{}", "package.json": "{}"})
        result = locator.locate(root, ["package.json"])
        assert _rel(root, result.files) == ["a/package.json", "b/package.json", "package.json"]
        assert result.warnings == []

    def test_ignored_directories(self, write_tree, locator):
        root = write_tree(
            {
                "package.json": "{}",
                "node_modules/left-pad/package.json": "{}",
                ".git/package.json": "{}",
                "vendor/github.com/x/go.mod": "",
                "target/classes/pom.xml": "",
            }
        )
        result = locator.locate(root, ["package.json", "go.mod", "pom.xml"])
        assert _rel(root, result.files) == ["package.json"]

    def test_custom_ignore_set(self, write_tree):
        root = write_tree({"vendor/go.mod": "", "skip/go.mod": ""})
        result = ManifestLocator(ignore_dirs={"skip"}).locate(root, ["go.mod"])
        assert _rel(root, result.files) == ["vendor/go.mod"]

    def test_depth_limit(self, write_tree):
        root = write_tree({"top.txt": "", "a/one.txt": "", "a/b/two.txt": ""})
        result = ManifestLocator(max_depth=1).locate(root)
        assert _rel(root, result.files) == ["a/one.txt", "top.txt"]

    def test_no_patterns_returns_everything(self, write_tree, locator):
        root = write_tree({"x.py": "", "docs/readme.md": ""})
        assert _rel(root, locator.locate(root).files) == ["docs/readme.md", "x.py"]

    def test_unreadable_directory_is_a_warning(self, write_tree, locator, monkeypatch):
        root = write_tree({"ok/go.mod": "", "locked/go.mod": ""})
        real_scandir = os.scandir

        def scandir(path):
            if Path(path).name == "locked":
                raise PermissionError(13, "Permission denied")
            return real_scandir(path)

        monkeypatch.setattr("depsentinel.locator.os.scandir", scandir)
        result = locator.locate(root, ["go.mod"])
        assert _rel(root, result.files) == ["ok/go.mod"]
        assert len(result.warnings) == 1
        assert result.warnings[0].endswith("locked: Permission denied")


class TestMatchesAny:
    @pytest.mark.parametrize(
        "relative, expected",
        [
            ("project/build.properties", True),
            ("service/project/build.properties", True),
            ("build.properties", False),
            ("project/plugins.sbt", True),
            ("build.sbt", True),
        ],
    )
    def test_patterns(self, relative, expected):
        patterns = ["project/build.properties", "*.sbt"]
        assert matches_any(Path(relative), patterns) is expected

    def test_case_sensitive(self):
        assert not matches_any(Path("gemfile"), ["Gemfile"])


# ── registry ─────────────────────────────────────────────────────────────


class TestFindParser:
    @pytest.mark.parametrize(
        "relative, method",
        [
            ("package.json", "package-json"),
            ("apps/web/yarn.lock", "yarn-lock"),
            ("services/api/go.mod", "go-mod"),
            ("go.work", "go-work"),
            ("requirements/dev.txt", "pip-requirements"),
            ("dev-requirements.txt", "pip-requirements"),
            ("Pipfile.lock", "pipfile-lock"),
            ("uv.lock", "uv-lock"),
            ("Gemfile.lock", "gemfile-lock"),
            ("acme.gemspec", "gemspec"),
            ("pom.xml", "maven-pom"),
            ("build.gradle.kts", "gradle"),
            ("settings.gradle", "gradle-settings"),
            ("gradle/libs.versions.toml", "gradle-version-catalog"),
            ("gradle.lockfile", "gradle-lockfile"),
            ("project/plugins.sbt", "sbt"),
            ("project/build.properties", "sbt-build-properties"),
        ],
    )
    def test_routes_to_parser(self, relative, method):
        parser = find_parser(Path(relative))
        assert parser is not None
        assert parser.detection_method == method

    def test_unknown_file(self):
        assert find_parser(Path("README.md")) is None

    def test_ecosystem_filter(self):
        assert find_parser(Path("go.mod"), [Ecosystem.PYTHON]) is None
        assert find_parser(Path("go.mod"), [Ecosystem.GO]).detection_method == "go-mod"

    def test_every_parser_registered(self):
        assert len(PARSER_REGISTRY) == 23
        ruby = {p.detection_method for p in parsers_for([Ecosystem.RUBY])}
        assert ruby == {"gemfile", "gemfile-lock", "gemspec"}


class TestDiscoverManifests:
    def test_pairs_in_path_order(self, write_tree):
        root = write_tree(
            {
                "requirements-dev.txt": "pytest\n",
                "package.json": "{}",
                "go.mod": "module x\n",
                "docs/README.md": "",
                "node_modules/x/package.json": "{}",
            }
        )
        matches, located = discover_manifests(root)
        assert [(p.detection_method, f.name) for p, f in matches] == [
            ("go-mod", "go.mod"),
            ("package-json", "package.json"),
            ("pip-requirements", "requirements-dev.txt"),
        ]
        assert located.warnings == []

    def test_restricted_to_ecosystems(self, write_tree):
        root = write_tree({"package.json": "{}", "go.mod": "module x\n"})
        matches, _ = discover_manifests(root, [Ecosystem.GO])
        assert [f.name for _, f in matches] == ["go.mod"]
