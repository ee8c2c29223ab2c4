"""Shared pytest fixtures for depsentinel tests."""

from pathlib import Path

import pytest


@pytest.fixture
def write_tree(tmp_path):
    """Materialize ``{relative_path: text}`` under tmp_path and return the root."""

    def _write(files: dict[str, str], root: Path | None = None) -> Path:
        base = root or tmp_path
        for rel, text in files.items():
            path = base / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return base

    return _write
