"""Go import scanning: import blocks, aliases, blank/dot imports, cgo and
build constraints."""

from __future__ import annotations

import re
from pathlib import Path

from depsentinel.imports.base import line_of, longest_prefix
from depsentinel.models import Ecosystem, ImportSite
from depsentinel.parsers.go_mod import parse_go_mod

_SINGLE_IMPORT_RE = re.compile(r'(?m)^[ \t]*import\s+(?P<alias>[\w.]+\s+)?"(?P<path>[^"]+)"')
_BLOCK_IMPORT_RE = re.compile(r"(?ms)^\s*import\s*\((?P<body>.*?)^\s*\)")
_BLOCK_ENTRY_RE = re.compile(r'^\s*(?P<alias>[\w.]+\s+)?"(?P<path>[^"]+)"')
_GO_BUILD_RE = re.compile(r"^//go:build\s+(?P<expr>.+)$")
_PLUS_BUILD_RE = re.compile(r"^//\s*\+build\s+(?P<expr>.+)$")
_TAG_RE = re.compile(r"!?[\w.]+")
_PACKAGE_RE = re.compile(r"^\s*package\s+\w+")

# Hosts whose module paths are host/owner/repo
_THREE_SEGMENT_HOSTS = frozenset(
    {"github.com", "gitlab.com", "bitbucket.org", "golang.org", "go.googlesource.com", "code.gitea.io"}
)


def build_tags(content: str) -> tuple[str, ...]:
    """Tags named by //go:build or // +build lines ahead of the package clause."""
    tags: list[str] = []
    for line in content.splitlines():
        if _PACKAGE_RE.match(line):
            break
        stripped = line.strip()
        m = _GO_BUILD_RE.match(stripped) or _PLUS_BUILD_RE.match(stripped)
        if m:
            for tag in _TAG_RE.findall(m.group("expr")):
                if tag not in tags:
                    tags.append(tag)
    return tuple(tags)


def _flags(alias: str | None) -> set[str]:
    alias = (alias or "").strip()
    if alias == "_":
        return {"blank"}
    if alias == ".":
        return {"dot"}
    if alias:
        return {"alias"}
    return set()


def is_stdlib(path: str) -> bool:
    """Standard-library packages have no dot in their first path element."""
    return "." not in path.split("/", 1)[0]


def module_root(path: str) -> str:
    """Best guess at the module path that owns an import path."""
    parts = path.split("/")
    if parts[0] in _THREE_SEGMENT_HOSTS:
        root = parts[:3]
        # Major version suffix belongs to the module path
        if len(parts) > 3 and re.fullmatch(r"v\d+", parts[3]):
            root = parts[:4]
        return "/".join(root)
    if parts[0] == "gopkg.in":
        return "/".join(parts[:3] if len(parts) > 2 and "." not in parts[1] else parts[:2])
    return "/".join(parts[:3])


class GoImportScanner:
    ecosystem = Ecosystem.GO
    file_patterns = ["*.go"]

    def scan_file(self, relative_path: str, content: str) -> list[ImportSite]:
        kind = "test" if relative_path.endswith("_test.go") else "static"
        tags = build_tags(content)
        found: list[tuple[int, str, set[str]]] = []

        for block in _BLOCK_IMPORT_RE.finditer(content):
            body_start = block.start("body")
            offset = 0
            for raw in block.group("body").splitlines(keepends=True):
                entry = _BLOCK_ENTRY_RE.match(raw.split("//", 1)[0])
                if entry:
                    found.append(
                        (line_of(content, body_start + offset), entry.group("path"), _flags(entry.group("alias")))
                    )
                offset += len(raw)
        for single in _SINGLE_IMPORT_RE.finditer(content):
            found.append((line_of(content, single.start()), single.group("path"), _flags(single.group("alias"))))

        cgo = any(path == "C" for _, path, _ in found)
        sites: list[ImportSite] = []
        for line, path, flags in sorted(found, key=lambda item: item[0]):
            if cgo:
                flags = flags | {"cgo"}
            sites.append(
                ImportSite(
                    file=relative_path,
                    line=line,
                    module=path,
                    kind="cgo" if path == "C" else kind,
                    conditional=bool(tags),
                    flags=frozenset(flags),
                    build_tags=tags,
                )
            )
        return sites

    def local_modules(self, root: Path) -> set[str]:
        local: set[str] = set()
        for go_file in ("go.mod", "go.work"):
            try:
                mod = parse_go_mod((root / go_file).read_text(encoding="utf-8", errors="replace"))
            except OSError:
                continue
            if mod.module:
                local.add(mod.module)
            for use in mod.uses:
                try:
                    sub = parse_go_mod((root / use / "go.mod").read_text(encoding="utf-8", errors="replace"))
                except OSError:
                    continue
                if sub.module:
                    local.add(sub.module)
        return local

    def match(self, module: str, coordinates: list[str]) -> str | None:
        return longest_prefix(module, coordinates, "/")

    def infer(self, module: str, local: set[str]) -> str | None:
        if is_stdlib(module) or longest_prefix(module, local, "/"):
            return None
        return module_root(module)
