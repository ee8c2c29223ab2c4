"""Tests for evidence-weighted ecosystem and package-manager detection."""

from __future__ import annotations

import pytest

from depsentinel.detectors import detect_ecosystems, rank
from depsentinel.detectors.base import build_result, choose_managers, evidence
from depsentinel.detectors.go import GoDetector
from depsentinel.detectors.java import JavaDetector, java_version
from depsentinel.detectors.javascript import JavaScriptDetector
from depsentinel.detectors.python import PythonDetector
from depsentinel.detectors.ruby import RubyDetector
from depsentinel.exceptions import ProjectNotFoundError
from depsentinel.models import Confidence, Ecosystem, EvidenceTier

GO_MOD = """\
module example.com/app

go 1.21

require (
\tgithub.com/gin-gonic/gin v1.9.1
\tgolang.org/x/net v0.17.0 // indirect
)
"""


# ── manager choice ───────────────────────────────────────────────────────


class TestChooseManagers:
    def test_heaviest_manager_wins(self):
        found = [
            evidence(".npmrc", EvidenceTier.CONFIG, "npm"),
            evidence("yarn.lock", EvidenceTier.LOCK, "yarn"),
        ]
        assert choose_managers(found) == ("yarn", ("npm",))

    def test_tie_prefers_lock_manager(self):
        found = [
            evidence("a", EvidenceTier.DEPENDENCY_FILE, "x"),
            evidence("b", EvidenceTier.MANIFEST, "x"),
            evidence("c", EvidenceTier.LOCK, "y"),
        ]
        assert choose_managers(found)[0] == "y"

    def test_tie_without_lock_keeps_first_seen(self):
        found = [
            evidence("a", EvidenceTier.CONFIG, "x"),
            evidence("b", EvidenceTier.CONFIG, "x"),
            evidence("c", EvidenceTier.MANIFEST, "y"),
        ]
        assert choose_managers(found) == ("x", ("y",))

    def test_no_managers(self):
        assert choose_managers([evidence("pyproject.toml", EvidenceTier.CONFIG)]) == (None, ())

    def test_default_manager_only_when_detected(self):
        assert build_result(Ecosystem.GO, [], {}, "go").package_manager is None
        found = [evidence("*.go", EvidenceTier.SOURCE)]
        assert build_result(Ecosystem.GO, found, {}, "go").package_manager == "go"


# ── JavaScript ───────────────────────────────────────────────────────────


class TestJavaScriptDetector:
    def test_npm_lock_and_manifest(self, write_tree):
        root = write_tree({"package-lock.json": "{}", "package.json": '{"name": "app"}'})
        result = JavaScriptDetector().detect(root)
        assert result.package_manager == "npm"
        assert result.confidence is Confidence.HIGH
        assert result.score == 5
        assert result.has_lock_file
        assert result.metadata["monorepo"] is False
        assert result.metadata["typescript"] is False

    def test_package_manager_field(self, write_tree):
        root = write_tree({"package.json": '{"packageManager": "yarn@4.1.0+sha256.abc"}'})
        result = JavaScriptDetector().detect(root)
        assert result.package_manager == "yarn"
        assert result.confidence is Confidence.MEDIUM
        assert result.metadata["packageManagerVersion"] == "4.1.0"

    def test_pnpm_workspace_is_monorepo(self, write_tree):
        root = write_tree(
            {
                "package.json": '{"name": "root", "type": "module"}',
                "pnpm-lock.yaml": "lockfileVersion: '9.0'\n",
                "pnpm-workspace.yaml": "packages:\n  - 'packages/*'\n",
                "tsconfig.json": "{}",
            }
        )
        result = JavaScriptDetector().detect(root)
        assert result.package_manager == "pnpm"
        assert result.metadata["monorepo"] is True
        assert result.metadata["workspaceIndicators"] == ["pnpm-workspace.yaml"]
        assert result.metadata["typescript"] is True
        assert result.metadata["moduleType"] == "module"

    def test_workspaces_field(self, write_tree):
        root = write_tree({"package.json": '{"workspaces": {"packages": ["apps/*"]}}'})
        meta = JavaScriptDetector().detect(root).metadata
        assert meta["workspaces"] == ["apps/*"]
        assert meta["workspaceIndicators"] == ["package.json#workspaces"]

    def test_malformed_package_json_still_detected(self, write_tree):
        root = write_tree({"package.json": "{not json"})
        result = JavaScriptDetector().detect(root)
        assert result.detected
        assert result.package_manager == "npm"

    def test_not_detected(self, tmp_path):
        result = JavaScriptDetector().detect(tmp_path)
        assert not result.detected
        assert result.package_manager is None
        assert result.metadata == {}


# ── Go ───────────────────────────────────────────────────────────────────


class TestGoDetector:
    def test_module_project(self, write_tree):
        root = write_tree({"go.mod": GO_MOD, "go.sum": "", "main.go": "package main\n"})
        result = GoDetector().detect(root)
        assert result.confidence is Confidence.HIGH
        assert result.score == 6
        meta = result.metadata
        assert meta["modulePath"] == "example.com/app"
        assert meta["goVersion"] == "1.21"
        assert meta["directDependencies"] == 1
        assert meta["indirectDependencies"] == 1
        assert meta["hasGoSum"] is True
        assert meta["goPathMode"] is False

    def test_gopath_mode(self, write_tree):
        root = write_tree({"main.go": "package main\n"})
        result = GoDetector().detect(root)
        assert result.confidence is Confidence.LOW
        assert result.package_manager == "go"
        assert result.metadata["goPathMode"] is True
        assert result.metadata["hasGoSum"] is False

    def test_workspace(self, write_tree):
        root = write_tree({"go.work": "go 1.22\n\nuse (\n\t./api\n\t./worker\n)\n"})
        meta = GoDetector().detect(root).metadata
        assert meta["workspaceModules"] == ["./api", "./worker"]
        assert meta["goVersion"] == "1.22"

    def test_vendored_sources_are_not_counted(self, write_tree):
        root = write_tree({"vendor/github.com/x/y/y.go": "package y\n"})
        assert not GoDetector().detect(root).detected


# ── Python ───────────────────────────────────────────────────────────────


class TestPythonDetector:
    def test_poetry_project(self, write_tree):
        root = write_tree(
            {
                "pyproject.toml": '[tool.poetry]\nname = "app"\n\n[tool.poetry.dependencies]\npython = "^3.11"\n',
                "poetry.lock": "",
            }
        )
        result = PythonDetector().detect(root)
        assert result.package_manager == "poetry"
        assert result.confidence is Confidence.HIGH
        assert result.metadata["requiresPython"] == "^3.11"

    def test_requirements_only(self, write_tree):
        root = write_tree({"requirements.txt": "requests==2.31.0\n", ".python-version": "3.11.4\n"})
        result = PythonDetector().detect(root)
        assert result.package_manager == "pip"
        assert result.confidence is Confidence.LOW
        assert result.metadata["pythonVersion"] == "3.11.4"

    def test_pep621_project(self, write_tree):
        root = write_tree(
            {"pyproject.toml": '[project]\nname = "app"\nrequires-python = ">=3.10"\ndependencies = ["click"]\n'}
        )
        result = PythonDetector().detect(root)
        assert result.package_manager == "pip"
        assert result.metadata["requiresPython"] == ">=3.10"
        assert [e.path for e in result.evidence] == ["pyproject.toml#project.dependencies"]

    def test_bare_pyproject_is_config_evidence(self, write_tree):
        root = write_tree({"pyproject.toml": "[tool.black]\nline-length = 100\n"})
        result = PythonDetector().detect(root)
        assert result.score == 1
        assert result.package_manager == "pip"
        assert result.evidence[0].tier is EvidenceTier.CONFIG

    def test_malformed_pyproject_does_not_raise(self, write_tree):
        root = write_tree({"pyproject.toml": "[tool.poetry\n"})
        result = PythonDetector().detect(root)
        assert result.detected

    def test_virtualenv(self, write_tree):
        root = write_tree({".venv/pyvenv.cfg": "home = /usr/bin\nversion = 3.12.1\n", "setup.py": ""})
        meta = PythonDetector().detect(root).metadata
        assert meta["virtualenv"] == ".venv"
        assert meta["pythonVersion"] == "3.12.1"

    def test_runtime_txt(self, write_tree):
        root = write_tree({"requirements.txt": "", "runtime.txt": "python-3.10.13\n"})
        assert PythonDetector().detect(root).metadata["pythonVersion"] == "3.10.13"


# ── Ruby ─────────────────────────────────────────────────────────────────


class TestRubyDetector:
    def test_rails_application(self, write_tree):
        root = write_tree(
            {
                "Gemfile": 'source "https://rubygems.org"\nruby "3.2.2"\ngem "rails", "~> 7.1"\n',
                "Gemfile.lock": "GEM\n  remote: https://rubygems.org/\n  specs:\n    rails (7.1.2)\n\n"
                "BUNDLED WITH\n   2.4.22\n",
                "config/application.rb": "",
                "config/routes.rb": "",
            }
        )
        result = RubyDetector().detect(root)
        assert result.package_manager == "bundler"
        assert result.confidence is Confidence.HIGH
        meta = result.metadata
        assert meta["railsProject"] is True
        assert meta["railsIndicators"] == ["config/application.rb", "config/routes.rb"]
        assert meta["rubyVersion"] == "3.2.2"
        assert meta["bundlerVersion"] == "2.4.22"
        assert meta["sources"] == ["https://rubygems.org"]

    def test_single_rails_signal_is_not_enough(self, write_tree):
        root = write_tree({"Gemfile": 'gem "sinatra"\n', "config/routes.rb": ""})
        assert RubyDetector().detect(root).metadata["railsProject"] is False

    def test_version_managers(self, write_tree):
        root = write_tree({"Gemfile": "", ".ruby-version": "3.1.4\n", ".tool-versions": "nodejs 20.1.0\n"})
        result = RubyDetector().detect(root)
        assert result.metadata["versionManagers"] == ["rbenv"]
        assert result.metadata["rubyVersion"] == "3.1.4"


# ── JVM ──────────────────────────────────────────────────────────────────


class TestJavaDetector:
    def test_multi_module_maven(self, write_tree):
        pom = "<project><properties><maven.compiler.release>17</maven.compiler.release></properties></project>"
        root = write_tree({"pom.xml": pom, "mvnw": "", "core/pom.xml": "<project/>"})
        result = JavaDetector().detect(root)
        assert result.package_manager == "maven"
        assert result.confidence is Confidence.MEDIUM
        meta = result.metadata
        assert meta["buildTools"] == ["maven"]
        assert meta["javaVersion"] == "17"
        assert meta["multiModule"] is True
        assert meta["modules"] == ["core"]

    def test_sbt_versions(self, write_tree):
        root = write_tree(
            {"build.sbt": 'scalaVersion := "2.13.12"\n', "project/build.properties": "sbt.version=1.9.7\n"}
        )
        meta = JavaDetector().detect(root).metadata
        assert meta["scalaVersion"] == "2.13.12"
        assert meta["sbtVersion"] == "1.9.7"

    def test_grape_script(self, write_tree):
        root = write_tree({"fetch.groovy": "@Grab('org.jsoup:jsoup:1.17.1')\nimport org.jsoup.Jsoup\n"})
        result = JavaDetector().detect(root)
        assert result.package_manager == "grape"

    def test_no_default_manager(self, write_tree):
        root = write_tree({"src/main/java/App.java": "class App {}\n"})
        result = JavaDetector().detect(root)
        assert result.detected
        assert result.package_manager is None

    @pytest.mark.parametrize(
        "content, version",
        [
            ("<java.version>21</java.version>", "21"),
            ("java { toolchain { languageVersion = JavaLanguageVersion.of(17) } }", "17"),
            ("sourceCompatibility = JavaVersion.VERSION_11", "11"),
            ("sourceCompatibility = '1.8'", "1.8"),
            ("nothing here", None),
        ],
    )
    def test_java_version(self, content, version):
        assert java_version(content) == version


# ── ranking ──────────────────────────────────────────────────────────────


class TestDetectEcosystems:
    def test_missing_root(self, tmp_path):
        with pytest.raises(ProjectNotFoundError):
            detect_ecosystems(tmp_path / "missing")

    def test_empty_project(self, tmp_path):
        report = detect_ecosystems(tmp_path)
        assert report.primary is None
        assert report.ecosystems == []

    def test_primary_and_secondaries(self, write_tree):
        root = write_tree({"go.mod": GO_MOD, "go.sum": "", "package.json": "{}"})
        report = detect_ecosystems(root)
        assert report.ecosystems == [Ecosystem.GO, Ecosystem.JAVASCRIPT]

    def test_tie_prefers_lock_evidence(self, write_tree):
        # Go: go.mod + source = 3; Ruby: Gemfile.lock = 3
        root = write_tree({"go.mod": "module x\n", "main.go": "package main\n", "Gemfile.lock": ""})
        report = detect_ecosystems(root)
        assert report.primary.ecosystem is Ecosystem.RUBY
        assert report.ecosystems == [Ecosystem.RUBY, Ecosystem.GO]

    def test_full_tie_uses_fixed_order(self, write_tree):
        root = write_tree({"Gemfile": "", "go.mod": "module x\n"})
        assert detect_ecosystems(root).ecosystems == [Ecosystem.GO, Ecosystem.RUBY]

    def test_rank_drops_undetected(self):
        detected = build_result(Ecosystem.PYTHON, [evidence("setup.py", EvidenceTier.DEPENDENCY_FILE, "pip")], {})
        missing = build_result(Ecosystem.GO, [], {})
        assert rank([missing, detected]) == [detected]


# ── monotonic confidence ─────────────────────────────────────────────────

_CONFIDENCE_ORDER = [Confidence.LOW, Confidence.MEDIUM, Confidence.HIGH]


@pytest.mark.parametrize(
    "detector, base, additions",
    [
        (
            JavaScriptDetector,
            {"package.json": "{}"},
            [(".npmrc", ""), ("yarn.lock", ""), ("package-lock.json", "{}"), (".yarnrc.yml", ""), ("lerna.json", "{}")],
        ),
        (
            PythonDetector,
            {"requirements.txt": "six\n"},
            [("setup.cfg", ""), ("Pipfile", "[packages]\n"), ("poetry.lock", ""), ("Pipfile.lock", "{}")],
        ),
        (
            GoDetector,
            {"main.go": "package main\n"},
            [("vendor/modules.txt", ""), ("go.mod", GO_MOD), ("go.sum", "")],
        ),
        (
            RubyDetector,
            {"Gemfile": "source 'https://rubygems.org'\n"},
            [(".ruby-version", "3.2.2\n"), ("app.gemspec", ""), ("Gemfile.lock", "")],
        ),
        (
            JavaDetector,
            {"src/main/java/App.java": "class App {}\n"},
            [("mvnw", ""), ("pom.xml", "<project/>"), ("build.gradle", ""), ("gradle.lockfile", "")],
        ),
    ],
)
def test_added_evidence_never_lowers_confidence(write_tree, detector, base, additions):
    root = write_tree(base)
    previous = detector().detect(root)
    assert previous.detected
    for name, content in additions:
        write_tree({name: content})
        current = detector().detect(root)
        assert current.score >= previous.score, name
        assert _CONFIDENCE_ORDER.index(current.confidence) >= _CONFIDENCE_ORDER.index(previous.confidence), name
        previous = current
    assert previous.confidence is Confidence.HIGH
