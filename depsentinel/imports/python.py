"""Python import scanning with conditional-import and TYPE_CHECKING tracking."""

from __future__ import annotations

import re
import sys
from pathlib import Path

from depsentinel.imports.base import longest_prefix
from depsentinel.models import Ecosystem, ImportSite

_IMPORT_RE = re.compile(r"^import\s+(?P<names>[\w.]+(?:\s+as\s+\w+)?(?:\s*,\s*[\w.]+(?:\s+as\s+\w+)?)*)")
_FROM_RE = re.compile(r"^from\s+(?P<dots>\.*)(?P<module>[\w.]*)\s+import\b")
_DYNAMIC_RE = re.compile(r"""(?:\b__import__|\bimport_module)\(\s*['"](?P<module>[\w.]+)['"]""")
_BLOCK_RE = re.compile(r"^(?P<keyword>if|elif|else|try|except|finally|with|for|while|def|async|class)\b.*:\s*(#.*)?$")
_CONDITIONAL_KEYWORDS = frozenset({"if", "elif", "else", "try", "except", "finally"})

# Distribution name → import names that differ from the normalized name
DISTRIBUTION_ALIASES: dict[str, list[str]] = {
    "pyyaml": ["yaml"],
    "pillow": ["PIL"],
    "beautifulsoup4": ["bs4"],
    "scikit-learn": ["sklearn"],
    "scikit-image": ["skimage"],
    "opencv-python": ["cv2"],
    "opencv-python-headless": ["cv2"],
    "python-dateutil": ["dateutil"],
    "python-dotenv": ["dotenv"],
    "python-multipart": ["multipart"],
    "python-jose": ["jose"],
    "pyjwt": ["jwt"],
    "protobuf": ["google.protobuf"],
    "grpcio": ["grpc"],
    "attrs": ["attr", "attrs"],
    "psycopg2-binary": ["psycopg2"],
    "psycopg-binary": ["psycopg"],
    "pymysql": ["pymysql"],
    "mysqlclient": ["MySQLdb"],
    "msgpack-python": ["msgpack"],
    "pycryptodome": ["Crypto"],
    "pyopenssl": ["OpenSSL"],
    "google-cloud-storage": ["google.cloud.storage"],
    "google-api-python-client": ["googleapiclient"],
    "setuptools": ["setuptools", "pkg_resources"],
    "pywin32": ["win32api", "win32con"],
    "typing-extensions": ["typing_extensions"],
    "ruamel-yaml": ["ruamel.yaml"],
    "django-rest-framework": ["rest_framework"],
    "djangorestframework": ["rest_framework"],
}

# Import name → distribution, for usage of packages nobody declared
_IMPORT_TO_DISTRIBUTION = {
    names[0].split(".")[0]: dist
    for dist, names in DISTRIBUTION_ALIASES.items()
    if len(names) == 1 and "." not in names[0]
}

STDLIB_MODULES = frozenset(sys.stdlib_module_names) | {"__future__"}


def canonical_name(name: str) -> str:
    """PEP 503 normalized project name."""
    return re.sub(r"[-_.]+", "-", name).lower()


def import_names(distribution: str) -> list[str]:
    canonical = canonical_name(distribution)
    names = list(DISTRIBUTION_ALIASES.get(canonical, []))
    names.append(canonical.replace("-", "_"))
    if canonical.startswith("python-"):
        names.append(canonical[len("python-") :].replace("-", "_"))
    return names


class PythonImportScanner:
    ecosystem = Ecosystem.PYTHON
    file_patterns = ["*.py", "*.pyi"]

    def scan_file(self, relative_path: str, content: str) -> list[ImportSite]:
        sites: list[ImportSite] = []
        stack: list[tuple[int, str, bool]] = []  # (indent, keyword, TYPE_CHECKING guard)
        in_string: str | None = None

        for lineno, raw_line in enumerate(content.splitlines(), start=1):
            stripped = raw_line.strip()
            if in_string is not None:
                if stripped.count(in_string) % 2 == 1:
                    in_string = None
                continue
            if not stripped or stripped.startswith("#"):
                continue
            for quote in ('"""', "'''"):
                if stripped.count(quote) % 2 == 1:
                    in_string = quote
                    break

            indent = len(raw_line) - len(raw_line.lstrip())
            while stack and stack[-1][0] >= indent:
                stack.pop()
            conditional = any(kw in _CONDITIONAL_KEYWORDS and not guard for _, kw, guard in stack)
            type_only = any(guard for _, _, guard in stack)
            kind = "type" if type_only else "static"

            for module in self._modules(stripped):
                sites.append(
                    ImportSite(relative_path, lineno, module, kind=kind, conditional=conditional)
                )
            for m in _DYNAMIC_RE.finditer(stripped):
                sites.append(
                    ImportSite(relative_path, lineno, m.group("module"), kind="dynamic", conditional=conditional)
                )

            block = _BLOCK_RE.match(stripped)
            if block:
                guard = block.group("keyword") == "if" and "TYPE_CHECKING" in stripped
                stack.append((indent, block.group("keyword"), guard))
        return sites

    @staticmethod
    def _modules(line: str) -> list[str]:
        m = _IMPORT_RE.match(line)
        if m:
            return [part.split()[0] for part in m.group("names").split(",")]
        m = _FROM_RE.match(line)
        if m and not m.group("dots") and m.group("module"):
            return [m.group("module")]
        return []

    def local_modules(self, root: Path) -> set[str]:
        """Top-level packages and modules that belong to the project itself."""
        local: set[str] = set()
        for base in (root, root / "src", root / "lib"):
            try:
                entries = list(base.iterdir())
            except OSError:
                continue
            for entry in entries:
                if entry.is_dir() and (entry / "__init__.py").is_file():
                    local.add(entry.name)
                elif entry.suffix == ".py":
                    local.add(entry.stem)
        for tests_dir in ("tests", "test"):
            if (root / tests_dir).is_dir():
                local.add(tests_dir)
        local.add("conftest")
        return local

    def match(self, module: str, coordinates: list[str]) -> str | None:
        index: dict[str, str] = {}
        for coordinate in coordinates:
            for name in import_names(coordinate):
                index.setdefault(name, coordinate)
        hit = longest_prefix(module, index, ".")
        return index[hit] if hit else None

    def infer(self, module: str, local: set[str]) -> str | None:
        top = module.split(".")[0]
        if top in STDLIB_MODULES or top in local or top.startswith("_"):
            return None
        return _IMPORT_TO_DISTRIBUTION.get(top, canonical_name(top))
