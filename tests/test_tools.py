"""Tests for external toolchain adapters and command invocation."""

from __future__ import annotations

import json
import stat
import sys
from unittest.mock import AsyncMock, patch

import pytest

from depsentinel.models import Ecosystem, ResolvedDependency, Scope, ToolUnavailable
from depsentinel.tools import adapters_for, run_command
from depsentinel.tools.go import GoListAdapter, GoModGraphAdapter, iter_json_objects
from depsentinel.tools.jvm import (
    GradleDependenciesAdapter,
    MavenTreeAdapter,
    SbtDependencyTreeAdapter,
    SbtEvictedAdapter,
    strip_scala_suffix,
)
from depsentinel.tools.node import NpmLsAdapter, PnpmListAdapter, YarnListAdapter
from depsentinel.tools.python import PipListAdapter, PoetryShowAdapter


def _tree(rows):
    return [(r.coordinate, r.version, r.is_direct, r.parent) for r in rows]


# ── invocation ───────────────────────────────────────────────────────────


class TestRunCommand:
    @pytest.mark.asyncio
    async def test_missing_binary(self, tmp_path):
        result = await run_command(["definitely-not-a-real-tool-xyz", "--version"], tmp_path, 5)
        assert isinstance(result, ToolUnavailable)
        assert result.tool == "definitely-not-a-real-tool-xyz"
        assert result.reason.endswith("not found")

    @pytest.mark.asyncio
    async def test_stdout(self, tmp_path):
        result = await run_command([sys.executable, "-c", "print('hi')"], tmp_path, 30)
        assert result.strip() == "hi"

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, tmp_path):
        code = "import sys; sys.stderr.write('boom'); sys.exit(3)"
        result = await run_command([sys.executable, "-c", code], tmp_path, 30)
        assert isinstance(result, ToolUnavailable)
        assert result.reason == "exit 3: boom"

    @pytest.mark.asyncio
    async def test_allowed_exit_code(self, tmp_path):
        code = "import sys; print('tree'); sys.exit(1)"
        result = await run_command([sys.executable, "-c", code], tmp_path, 30, ok_codes=(0, 1))
        assert result.strip() == "tree"

    @pytest.mark.asyncio
    async def test_timeout(self, tmp_path):
        result = await run_command([sys.executable, "-c", "import time; time.sleep(10)"], tmp_path, 0.2)
        assert isinstance(result, ToolUnavailable)
        assert result.reason == "timed out after 0.2s"


class TestAdapterRun:
    @pytest.mark.asyncio
    async def test_parsed_rows(self, tmp_path):
        output = json.dumps([{"name": "requests", "version": "2.31.0"}])
        with patch("depsentinel.tools.base.run_command", AsyncMock(return_value=output)):
            result = await PipListAdapter().run(tmp_path, 5)
        assert result == [ResolvedDependency(coordinate="requests", version="2.31.0")]

    @pytest.mark.asyncio
    async def test_unavailable_is_renamed_to_adapter(self, tmp_path):
        missing = ToolUnavailable("pip", "pip not found")
        with patch("depsentinel.tools.base.run_command", AsyncMock(return_value=missing)):
            result = await PipListAdapter().run(tmp_path, 5)
        assert result == ToolUnavailable("pip list", "pip not found")

    @pytest.mark.asyncio
    async def test_unparseable_output(self, tmp_path):
        with patch("depsentinel.tools.base.run_command", AsyncMock(return_value="not json")):
            result = await PipListAdapter().run(tmp_path, 5)
        assert isinstance(result, ToolUnavailable)
        assert result.reason.startswith("unparseable output:")

    @pytest.mark.asyncio
    async def test_passes_timeout_and_ok_codes(self, tmp_path):
        mock = AsyncMock(return_value="{}")
        with patch("depsentinel.tools.base.run_command", mock):
            await NpmLsAdapter().run(tmp_path, 7.5)
        mock.assert_awaited_once_with(["npm", "ls", "--all", "--json"], tmp_path, 7.5, (0, 1))

    def test_wrapper_script_preferred(self, tmp_path):
        wrapper = tmp_path / "mvnw"
        wrapper.write_text("#!/bin/sh\n")
        wrapper.chmod(wrapper.stat().st_mode | stat.S_IXUSR)
        assert MavenTreeAdapter().command_for(tmp_path) == [str(wrapper), "-B", "dependency:tree"]

    def test_without_wrapper(self, tmp_path):
        assert GradleDependenciesAdapter().command_for(tmp_path)[0] == "gradle"

    def test_adapters_for(self):
        assert [a.name for a in adapters_for(Ecosystem.JAVASCRIPT, "npm")] == ["npm ls"]
        assert [a.name for a in adapters_for(Ecosystem.GO, None)] == ["go list", "go mod graph"]
        assert [a.name for a in adapters_for(Ecosystem.JAVA, "sbt")] == ["sbt dependencyTree", "sbt evicted"]
        assert adapters_for(Ecosystem.PYTHON, "uv") == []


# ── Go ───────────────────────────────────────────────────────────────────


class TestGoAdapters:
    def test_go_list(self):
        output = "\n".join(
            [
                '{"Path": "example.com/app", "Main": true}',
                '{"Path": "github.com/gin-gonic/gin", "Version": "v1.9.1"}',
                '{"Path": "golang.org/x/net", "Version": "v0.17.0", "Indirect": true, "Replace": {"Path": "../net"}}',
            ]
        )
        rows = GoListAdapter().parse(output)
        assert _tree(rows) == [
            ("github.com/gin-gonic/gin", "v1.9.1", True, None),
            ("golang.org/x/net", "v0.17.0", False, None),
        ]
        assert rows[1].replaced_by == "../net"
        assert all(r.selected for r in rows)

    def test_concatenated_objects_must_be_objects(self):
        assert iter_json_objects('{"a": 1}\n{"b": 2}') == [{"a": 1}, {"b": 2}]
        with pytest.raises(ValueError):
            iter_json_objects("[1, 2]")
        with pytest.raises(ValueError):
            iter_json_objects('{"a": ')

    def test_mod_graph(self):
        output = (
            "example.com/app github.com/gin-gonic/gin@v1.9.1\n"
            "example.com/app go@1.21\n"
            "github.com/gin-gonic/gin@v1.9.1 golang.org/x/net@v0.17.0\n"
        )
        assert _tree(GoModGraphAdapter().parse(output)) == [
            ("github.com/gin-gonic/gin", "v1.9.1", False, None),
            ("golang.org/x/net", "v0.17.0", False, "github.com/gin-gonic/gin"),
        ]

    def test_mod_graph_rejects_garbage(self):
        with pytest.raises(ValueError):
            GoModGraphAdapter().parse("one two three\n")


# ── Node ─────────────────────────────────────────────────────────────────


class TestNodeAdapters:
    def test_npm_ls(self):
        output = json.dumps(
            {
                "name": "app",
                "dependencies": {
                    "react": {"version": "18.2.0"},
                    "express": {"version": "4.18.2", "dependencies": {"accepts": {"version": "1.3.8"}}},
                },
            }
        )
        assert _tree(NpmLsAdapter().parse(output)) == [
            ("express", "4.18.2", True, None),
            ("accepts", "1.3.8", False, "express"),
            ("react", "18.2.0", True, None),
        ]

    def test_npm_ls_rejects_non_object(self):
        with pytest.raises(ValueError):
            NpmLsAdapter().parse("[]")

    def test_pnpm_list_scopes(self):
        output = json.dumps(
            [
                {
                    "name": "app",
                    "dependencies": {"react": {"version": "18.2.0"}},
                    "devDependencies": {"vitest": {"version": "1.0.0"}},
                }
            ]
        )
        rows = PnpmListAdapter().parse(output)
        assert [(r.coordinate, r.scope) for r in rows] == [("react", Scope.RUNTIME), ("vitest", Scope.DEV)]

    def test_yarn_list(self):
        tree = {
            "type": "tree",
            "data": {
                "type": "list",
                "trees": [
                    {"name": "express@4.18.2", "children": [{"name": "accepts@1.3.8"}]},
                    {"name": "@babel/core@7.23.0", "children": []},
                ],
            },
        }
        output = json.dumps({"type": "info", "data": "resolving"}) + "\n" + json.dumps(tree) + "\n"
        assert _tree(YarnListAdapter().parse(output)) == [
            ("express", "4.18.2", False, None),
            ("accepts", "1.3.8", False, "express"),
            ("@babel/core", "7.23.0", False, None),
        ]

    def test_yarn_without_tree(self):
        with pytest.raises(ValueError):
            YarnListAdapter().parse(json.dumps({"type": "info", "data": "x"}))


# ── Python ───────────────────────────────────────────────────────────────


class TestPythonAdapters:
    def test_pip_list_requires_array(self):
        with pytest.raises(ValueError):
            PipListAdapter().parse("{}")

    def test_poetry_show_tree(self):
        output = (
            "requests 2.31.0 Python HTTP for Humans.\n"
            "├── certifi >=2017.4.17\n"
            "└── urllib3 >=1.21.1,<3\n"
            "    └── pysocks >=1.5.6,<2.0,!=1.5.7\n"
            "rich 13.7.0 Render rich text\n"
        )
        assert _tree(PoetryShowAdapter().parse(output)) == [
            ("requests", "2.31.0", True, None),
            ("certifi", None, False, "requests"),
            ("urllib3", None, False, "requests"),
            ("pysocks", None, False, "urllib3"),
            ("rich", "13.7.0", True, None),
        ]


# ── JVM ──────────────────────────────────────────────────────────────────

MAVEN_OUTPUT = """\
[INFO] --- maven-dependency-plugin:3.6.0:tree (default-cli) @ app ---
[INFO] com.acme:app:jar:1.0.0
[INFO] +- com.google.guava:guava:jar:32.1.3-jre:compile
[INFO] |  +- com.google.guava:failureaccess:jar:1.0.1:compile
[INFO] |  \\- (commons-io:commons-io:jar:2.11.0:compile - omitted for conflict with 2.15.0)
[INFO] \\- org.junit.jupiter:junit-jupiter:jar:5.10.0:test
[INFO] ------------------------------------------------------------------------
[INFO] BUILD SUCCESS
"""

GRADLE_OUTPUT = """\
runtimeClasspath - Runtime classpath of source set 'main'.
+--- org.springframework.boot:spring-boot-starter-web:3.2.0
|    +--- org.springframework.boot:spring-boot-starter:3.2.0
|    \\--- com.fasterxml.jackson.core:jackson-databind:2.15.2 -> 2.16.0
+--- project :core
\\--- com.google.guava:guava:32.1.3-jre (*)
"""

SBT_OUTPUT = """\
[info] com.acme:app_2.13:0.1.0 [S]
[info]   +-com.typesafe.akka:akka-actor_2.13:2.8.5 [S]
[info]   | +-com.typesafe:config:1.4.2
[info]   |
[info]   +-org.slf4j:slf4j-api:1.7.36 (evicted by: 2.0.9)
"""


class TestJvmAdapters:
    def test_maven_tree(self):
        rows = MavenTreeAdapter().parse(MAVEN_OUTPUT)
        assert _tree(rows) == [
            ("com.google.guava:guava", "32.1.3-jre", True, None),
            ("com.google.guava:failureaccess", "1.0.1", False, "com.google.guava:guava"),
            ("commons-io:commons-io", "2.11.0", False, "com.google.guava:guava"),
            ("org.junit.jupiter:junit-jupiter", "5.10.0", True, None),
        ]
        assert rows[2].evicted_by == "2.15.0"
        assert rows[3].scope is Scope.TEST

    def test_maven_without_tree(self):
        with pytest.raises(ValueError):
            MavenTreeAdapter().parse("[ERROR] Failed to execute goal\n")

    def test_gradle_dependencies(self):
        rows = GradleDependenciesAdapter().parse(GRADLE_OUTPUT)
        assert _tree(rows) == [
            ("org.springframework.boot:spring-boot-starter-web", "3.2.0", True, None),
            ("org.springframework.boot:spring-boot-starter", "3.2.0", False, "org.springframework.boot:spring-boot-starter-web"),
            ("com.fasterxml.jackson.core:jackson-databind", "2.16.0", False, "org.springframework.boot:spring-boot-starter-web"),
            ("com.google.guava:guava", "32.1.3-jre", True, None),
        ]
        assert rows[2].evicted_by == "2.16.0"
        assert rows[0].evicted_by is None

    def test_sbt_dependency_tree(self):
        rows = SbtDependencyTreeAdapter().parse(SBT_OUTPUT)
        assert _tree(rows) == [
            ("com.typesafe.akka:akka-actor", "2.8.5", True, None),
            ("com.typesafe:config", "1.4.2", False, "com.typesafe.akka:akka-actor"),
            ("org.slf4j:slf4j-api", "1.7.36", True, None),
        ]
        assert rows[2].evicted_by == "2.0.9"

    def test_sbt_evicted(self):
        output = "[warn] Found version conflict(s) in library dependencies\n[warn] \t* org.slf4j:slf4j-api:2.0.9 is selected over {1.7.36, 1.7.30}\n"
        rows = SbtEvictedAdapter().parse(output)
        assert [(r.coordinate, r.version) for r in rows] == [("org.slf4j:slf4j-api", "2.0.9")]

    @pytest.mark.parametrize(
        "artifact, stripped",
        [("cats-core_2.13", "cats-core"), ("zio_3", "zio"), ("scalajs-dom_sjs1_2.13", "scalajs-dom"), ("guava", "guava")],
    )
    def test_strip_scala_suffix(self, artifact, stripped):
        assert strip_scala_suffix(artifact) == stripped
