"""Python packaging detection: pip, poetry, uv, pipenv, pdm and conda."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

from depsentinel.detectors.base import DetectionRule, EcosystemDetector, evidence, read_text
from depsentinel.exceptions import ManifestParseError
from depsentinel.models import Ecosystem, Evidence, EvidenceTier
from depsentinel.parsers.pyproject_toml import load_toml

logger = logging.getLogger(__name__)

DETECTION_RULES: list[DetectionRule] = [
    ("poetry.lock", EvidenceTier.LOCK, "poetry"),
    ("uv.lock", EvidenceTier.LOCK, "uv"),
    ("Pipfile.lock", EvidenceTier.LOCK, "pipenv"),
    ("pdm.lock", EvidenceTier.LOCK, "pdm"),
    ("conda-lock.yml", EvidenceTier.LOCK, "conda"),
    ("Pipfile", EvidenceTier.MANIFEST, "pipenv"),
    ("requirements*.txt", EvidenceTier.DEPENDENCY_FILE, "pip"),
    ("requirements/*.txt", EvidenceTier.DEPENDENCY_FILE, "pip"),
    ("setup.py", EvidenceTier.DEPENDENCY_FILE, "pip"),
    ("setup.cfg", EvidenceTier.DEPENDENCY_FILE, "pip"),
    ("constraints.txt", EvidenceTier.DEPENDENCY_FILE, "pip"),
    ("environment.yml", EvidenceTier.DEPENDENCY_FILE, "conda"),
    ("environment.yaml", EvidenceTier.DEPENDENCY_FILE, "conda"),
    ("poetry.toml", EvidenceTier.CONFIG, "poetry"),
    ("pip.conf", EvidenceTier.CONFIG, "pip"),
]

# pyproject.toml tables that name a manager: (dotted table path, manager)
PYPROJECT_SECTIONS: list[tuple[str, str]] = [
    ("tool.poetry", "poetry"),
    ("tool.uv", "uv"),
    ("tool.pdm", "pdm"),
    ("project.dependencies", "pip"),
]

VIRTUALENV_DIRS = (".venv", "venv", "env")

_RUNTIME_TXT_RE = re.compile(r"^python-(\S+)")
_PYVENV_VERSION_RE = re.compile(r"(?m)^\s*version(?:_info)?\s*=\s*(\S+)")


def _lookup(data: dict, dotted: str) -> object:
    node: object = data
    for key in dotted.split("."):
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


def _pyproject(root: Path) -> dict | None:
    content = read_text(root / "pyproject.toml")
    if content is None:
        return None
    try:
        return load_toml(content, "pyproject.toml")
    except ManifestParseError as exc:
        logger.warning("Ignoring unreadable pyproject.toml: %s", exc)
        return {}


class PythonDetector(EcosystemDetector):
    ecosystem = Ecosystem.PYTHON
    rules = DETECTION_RULES
    default_manager = "pip"

    def extra_evidence(self, root: Path, found: list[Evidence]) -> list[Evidence]:
        extra: list[Evidence] = []
        data = _pyproject(root)
        if data is not None:
            sections = [
                (table, manager) for table, manager in PYPROJECT_SECTIONS if _lookup(data, table)
            ]
            for table, manager in sections:
                extra.append(
                    evidence(f"pyproject.toml#{table}", EvidenceTier.MANIFEST, manager, note=table)
                )
            if not sections:
                extra.append(evidence("pyproject.toml", EvidenceTier.CONFIG))

        for name in VIRTUALENV_DIRS:
            if (root / name / "pyvenv.cfg").is_file():
                extra.append(evidence(name, EvidenceTier.DEPENDENCY_FILE, note="virtualenv"))
        return extra

    def metadata(self, root: Path, found: list[Evidence]) -> dict[str, Any]:
        meta: dict[str, Any] = {}
        venvs = [e.path for e in found if e.note == "virtualenv"]
        if venvs:
            meta["virtualenv"] = venvs[0]

        version = self._python_version(root, venvs)
        if version:
            meta["pythonVersion"] = version
        data = _pyproject(root) or {}
        requires = _lookup(data, "project.requires-python")
        if isinstance(requires, str):
            meta["requiresPython"] = requires
        poetry_python = _lookup(data, "tool.poetry.dependencies.python")
        if isinstance(poetry_python, str):
            meta.setdefault("requiresPython", poetry_python)
        return meta

    @staticmethod
    def _python_version(root: Path, venvs: list[str]) -> str | None:
        content = read_text(root / ".python-version")
        if content and content.strip():
            return content.strip().splitlines()[0]
        content = read_text(root / "runtime.txt")
        if content:
            m = _RUNTIME_TXT_RE.match(content.strip())
            if m:
                return m.group(1)
        for venv in venvs:
            m = _PYVENV_VERSION_RE.search(read_text(root / venv / "pyvenv.cfg") or "")
            if m:
                return m.group(1)
        return None
