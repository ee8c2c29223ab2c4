"""Tests for CLI commands: run in-process through click's CliRunner."""

from __future__ import annotations

import json
import logging
from unittest.mock import patch

import pytest
import structlog
from click.testing import CliRunner

from depsentinel.cli import main

NPM_PROJECT = {
    "package.json": json.dumps(
        {
            "name": "shop",
            "dependencies": {"react": "^18.2.0", "left-pad": "^1.3.0"},
            "devDependencies": {"jest": "^29.7.0"},
        }
    ),
    "package-lock.json": json.dumps(
        {
            "lockfileVersion": 3,
            "packages": {
                "": {
                    "name": "shop",
                    "dependencies": {"react": "^18.2.0", "left-pad": "^1.3.0"},
                    "devDependencies": {"jest": "^29.7.0"},
                },
                "node_modules/react": {"version": "18.2.0", "dependencies": {"loose-envify": "^1.1.0"}},
                "node_modules/loose-envify": {"version": "1.4.0"},
                "node_modules/left-pad": {"version": "1.3.0"},
                "node_modules/jest": {"version": "29.7.0", "dev": True},
            },
        }
    ),
    "src/index.js": "import React from 'react';\nconst _ = require('lodash');\n",
}

REQUESTS_CHANGELOG = """## 2.32.0 (2024-05-20)

- Added support for the SSLContext argument.
- Fixed CVE-2024-35195 in session verification.

## 2.31.0 (2023-05-22)

- Fixed a security issue with Proxy-Authorization headers.

## 2.30.0

- Dropped support for Python 2.7.
"""


@pytest.fixture(autouse=True)
def _restore_logging():
    """setup_logging points the root handler at CliRunner's stderr; undo it."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    package_level = logging.getLogger("depsentinel").level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("depsentinel").setLevel(package_level)
    structlog.reset_defaults()


@pytest.fixture
def runner():
    return CliRunner()


# ── detect ───────────────────────────────────────────────────────────────


class TestDetect:
    def test_json_report(self, runner, write_tree):
        root = write_tree(NPM_PROJECT)
        result = runner.invoke(main, ["detect", str(root)])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        primary = data["primary"]
        assert primary["ecosystem"] == "javascript"
        assert primary["packageManager"] == "npm"
        assert primary["confidence"] == "high"
        assert primary["hasLockFile"] is True
        assert {e["path"] for e in primary["evidence"]} == {"package-lock.json", "package.json"}
        assert data["secondaries"] == []

    def test_missing_path(self, runner, tmp_path):
        result = runner.invoke(main, ["detect", str(tmp_path / "nope")])
        assert result.exit_code == 1
        assert "Error: Project path not found" in result.output

    def test_verbose_flag(self, runner, write_tree):
        root = write_tree(NPM_PROJECT)
        with patch("depsentinel.cli.setup_logging") as setup:
            runner.invoke(main, ["-v", "detect", str(root)])
            runner.invoke(main, ["detect", str(root)])
        assert [c.args for c in setup.call_args_list] == [("DEBUG",), (None,)]


# ── scan ─────────────────────────────────────────────────────────────────


class TestScan:
    def test_summary(self, runner, write_tree):
        root = write_tree({"requirements.txt": "requests==2.31.0\nflask\n"})
        result = runner.invoke(main, ["scan", str(root)])
        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == [
            "requirements.txt [pip-requirements] 2 dependencies, ok",
            "  requests ==2.31.0 (runtime)",
            "  flask * (runtime)",
        ]

    def test_parse_error_is_listed(self, runner, write_tree):
        root = write_tree({"pyproject.toml": "[project\n", "requirements.txt": "six\n"})
        result = runner.invoke(main, ["scan", str(root)])
        assert result.exit_code == 0
        assert "pyproject.toml [pyproject-toml] 0 dependencies, 1 error(s)" in result.output
        assert "  ! pyproject.toml: invalid TOML" in result.output
        assert "requirements.txt [pip-requirements] 1 dependencies, ok" in result.output

    def test_json(self, runner, write_tree):
        root = write_tree({"requirements.txt": "requests==2.31.0\n", "go.mod": "module x\n"})
        result = runner.invoke(main, ["scan", str(root), "--json", "-e", "python"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert [m["path"] for m in data] == ["requirements.txt"]
        decl = data[0]["declarations"][0]
        assert decl["name"] == "requests"
        assert decl["version"] == "==2.31.0"
        assert decl["resolvedVersion"] == "2.31.0"
        assert decl["isDirect"] is True
        assert decl["sourceFile"] == "requirements.txt"
        assert data[0]["errors"] == []

    def test_unknown_ecosystem(self, runner, write_tree):
        root = write_tree({"requirements.txt": "six\n"})
        result = runner.invoke(main, ["scan", str(root), "-e", "cobol"])
        assert result.exit_code == 1
        assert "Error: Unsupported ecosystem: cobol" in result.output

    def test_no_manifests(self, runner, tmp_path):
        result = runner.invoke(main, ["scan", str(tmp_path)])
        assert result.exit_code == 1
        assert "No dependency manifest found" in result.output


# ── analyze ──────────────────────────────────────────────────────────────


class TestAnalyze:
    def test_json_result(self, runner, write_tree):
        root = write_tree(NPM_PROJECT)
        result = runner.invoke(main, ["analyze", str(root), "--no-tools"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)

        assert data["root"] == str(root)
        assert data["primaryEcosystem"] == "javascript"
        assert data["packageManager"] == "npm"
        assert data["confidence"] == "high"
        summary = data["summary"]
        assert summary["totalDependencies"] == 5
        assert summary["directDependencies"] == 3
        assert summary["transitiveDependencies"] == 2
        assert summary["versionConflicts"] == 0
        assert (
            summary["highCriticality"] + summary["mediumCriticality"] + summary["lowCriticality"]
            == summary["totalDependencies"]
        )

        assert {"parent": "react", "child": "loose-envify"} in data["edges"]
        assert [f["kind"] for f in data["findings"]] == ["removal_candidate", "undeclared_import"]
        assert data["recommendations"][0].startswith("Remove unused dependency left-pad")
        assert data["parseErrors"] == []
        assert data["toolReports"] == []

        react = next(d for d in data["dependencies"] if d["coordinate"] == "react")
        assert react["isDirect"] is True
        assert react["usageCount"] == 1
        assert react["usage"]["kinds"] == ["static"]

    def test_missing_manifest_for_ecosystem(self, runner, write_tree):
        root = write_tree(NPM_PROJECT)
        result = runner.invoke(main, ["analyze", str(root), "-e", "ruby", "--no-tools"])
        assert result.exit_code == 1
        assert "No dependency manifest found for ecosystem 'ruby'" in result.output


# ── compare ──────────────────────────────────────────────────────────────


class TestCompare:
    def test_go_major(self, runner):
        result = runner.invoke(main, ["compare", "go", "github.com/gin-gonic/gin", "v1.8.1", "v2.0.0"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["packageName"] == "github.com/gin-gonic/gin"
        assert data["ecosystem"] == "go"
        assert data["versionDiff"]["semverType"] == "major"
        assert data["versionDiff"]["majorChange"] is True
        assert data["upgradeComplexity"] == "high"
        assert data["riskAssessment"]["level"] == "critical"
        assert data["riskAssessment"]["factors"][0] == "Major version change detected"

    def test_changelog_file(self, runner, tmp_path):
        changelog = tmp_path / "CHANGELOG.md"
        changelog.write_text(REQUESTS_CHANGELOG, encoding="utf-8")
        result = runner.invoke(
            main, ["compare", "pip", "requests", "2.30.0", "2.32.0", "--changelog", str(changelog)]
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["ecosystem"] == "python"
        assert len(data["securityFixes"]) == 2
        assert [s["version"] for s in data["changelogSections"]] == ["2.32.0", "2.31.0"]
        assert data["versionDiff"]["pep440Compliant"] is True

    def test_runtime_and_criticality(self, runner):
        result = runner.invoke(
            main,
            [
                "compare",
                "maven",
                "com.acme:widgets",
                "1.2.0",
                "1.3.0",
                "--runtime-from",
                "17",
                "--runtime-to",
                "21",
                "--criticality",
                "high",
            ],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["requiredRuntimeFrom"] == "17"
        assert data["requiredRuntimeTo"] == "21"
        assert data["runtimeChange"] is True
        assert data["upgradeComplexity"] == "high"
        assert data["riskAssessment"]["factors"] == [
            "Minor version change",
            "Java version requirement changes",
            "High-criticality dependency in this project",
        ]
        assert data["riskAssessment"]["level"] == "critical"

    def test_bad_criticality(self, runner):
        result = runner.invoke(main, ["compare", "go", "x", "1.0.0", "1.1.0", "--criticality", "urgent"])
        assert result.exit_code == 2

    def test_unknown_ecosystem(self, runner):
        result = runner.invoke(main, ["compare", "cobol", "x", "1.0", "2.0"])
        assert result.exit_code == 1
        assert "Error: Unsupported ecosystem: cobol" in result.output
