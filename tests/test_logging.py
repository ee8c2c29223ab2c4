"""Tests for logging setup: level resolution and the stderr renderers."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from depsentinel.core.logging import resolve_format, resolve_level, setup_logging


@pytest.fixture(autouse=True)
def _restore_logging(monkeypatch):
    monkeypatch.delenv("DEPSENTINEL_LOG_LEVEL", raising=False)
    monkeypatch.delenv("DEPSENTINEL_LOG_FORMAT", raising=False)
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    package_level = logging.getLogger("depsentinel").level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("depsentinel").setLevel(package_level)
    structlog.reset_defaults()


class TestResolve:
    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setenv("DEPSENTINEL_LOG_LEVEL", "ERROR")
        assert resolve_level("debug") == "DEBUG"
        assert resolve_level() == "ERROR"

    def test_default_and_unknown_levels(self, monkeypatch):
        assert resolve_level() == "WARNING"
        monkeypatch.setenv("DEPSENTINEL_LOG_LEVEL", "chatty")
        assert resolve_level() == "WARNING"

    @pytest.mark.parametrize("value, expected", [("JSON", "json"), ("console", "console"), ("xml", "console")])
    def test_format(self, monkeypatch, value, expected):
        monkeypatch.setenv("DEPSENTINEL_LOG_FORMAT", value)
        assert resolve_format() == expected


class TestSetupLogging:
    def test_package_level_follows_environment(self, monkeypatch):
        monkeypatch.setenv("DEPSENTINEL_LOG_LEVEL", "info")
        setup_logging()
        assert logging.getLogger("depsentinel").level == logging.INFO
        assert logging.getLogger("asyncio").level == logging.WARNING

    def test_json_records_go_to_stderr(self, monkeypatch, capsys):
        monkeypatch.setenv("DEPSENTINEL_LOG_FORMAT", "json")
        setup_logging("INFO")
        structlog.get_logger("depsentinel.engine").info("analyzer.started", root="/srv/app")
        logging.getLogger("depsentinel.parsers.gemfile").warning("Ignoring %s", "Gemfile.local")

        captured = capsys.readouterr()
        assert captured.out == ""
        first, second = [json.loads(line) for line in captured.err.splitlines()]
        assert first["event"] == "analyzer.started"
        assert first["root"] == "/srv/app"
        assert first["level"] == "info"
        assert first["logger"] == "depsentinel.engine"
        assert "timestamp" in first
        assert second["event"] == "Ignoring Gemfile.local"
        assert second["level"] == "warning"
        assert second["logger"] == "depsentinel.parsers.gemfile"

    def test_records_below_level_are_dropped(self, capsys):
        setup_logging()
        logging.getLogger("depsentinel.locator").info("not shown")
        structlog.get_logger("depsentinel.engine").debug("graph.built")
        assert capsys.readouterr().err == ""
