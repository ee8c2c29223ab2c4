"""JavaScript / TypeScript import scanning (ESM, CommonJS, dynamic import)."""

from __future__ import annotations

import json
import re
from pathlib import Path

from depsentinel.imports.base import line_of
from depsentinel.models import Ecosystem, ImportSite

_Q = r"""['"`]"""

# (regex, kind); the "type" group upgrades static imports/exports to type-only
_IMPORT_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(rf"\bimport\s+(?P<type>type\s+)?[^'\"`;()]*?\bfrom\s*{_Q}(?P<spec>[^'\"`]+){_Q}"), "static"),
    (re.compile(rf"(?m)^\s*import\s*{_Q}(?P<spec>[^'\"`]+){_Q}"), "side_effect"),
    (re.compile(rf"\bimport\s*\(\s*{_Q}(?P<spec>[^'\"`]+){_Q}\s*\)"), "dynamic"),
    (re.compile(rf"\brequire(?:\.resolve)?\s*\(\s*{_Q}(?P<spec>[^'\"`]+){_Q}\s*\)"), "require"),
    (re.compile(rf"\bexport\s+(?P<type>type\s+)?[^'\"`;()]*?\bfrom\s*{_Q}(?P<spec>[^'\"`]+){_Q}"), "reexport"),
]

_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT_RE = re.compile(r"(?m)^[ \t]*//.*$")

NODE_BUILTINS = frozenset(
    {
        "assert", "async_hooks", "buffer", "child_process", "cluster", "console",
        "constants", "crypto", "dgram", "diagnostics_channel", "dns", "domain",
        "events", "fs", "http", "http2", "https", "inspector", "module", "net",
        "os", "path", "perf_hooks", "process", "punycode", "querystring",
        "readline", "repl", "stream", "string_decoder", "sys", "timers", "tls",
        "trace_events", "tty", "url", "util", "v8", "vm", "wasi",
        "worker_threads", "zlib",
    }
)


def _blank_comments(content: str) -> str:
    """Remove comments while keeping every newline so line numbers hold."""
    content = _BLOCK_COMMENT_RE.sub(lambda m: "\n" * m.group(0).count("\n"), content)
    return _LINE_COMMENT_RE.sub("", content)


def package_name(spec: str) -> str | None:
    """npm package addressed by an import specifier, None for local paths."""
    if spec.startswith((".", "/", "~", "#", "@/")) or spec.startswith("node:"):
        return None
    if "://" in spec or spec.startswith(("data:", "virtual:")):
        return None
    parts = spec.split("/")
    if spec.startswith("@"):
        return "/".join(parts[:2]) if len(parts) >= 2 else None
    return parts[0]


class JavaScriptImportScanner:
    ecosystem = Ecosystem.JAVASCRIPT
    file_patterns = ["*.js", "*.jsx", "*.mjs", "*.cjs", "*.ts", "*.tsx", "*.mts", "*.cts", "*.vue", "*.svelte"]

    def scan_file(self, relative_path: str, content: str) -> list[ImportSite]:
        text = _blank_comments(content)
        sites: list[ImportSite] = []
        seen: set[tuple[int, str]] = set()
        for pattern, kind in _IMPORT_PATTERNS:
            for m in pattern.finditer(text):
                name = package_name(m.group("spec"))
                if name is None:
                    continue
                line = line_of(text, m.start("spec"))
                if (line, name) in seen:
                    continue
                seen.add((line, name))
                type_only = "type" in m.groupdict() and m.group("type") is not None
                sites.append(
                    ImportSite(file=relative_path, line=line, module=name, kind="type" if type_only else kind)
                )
        sites.sort(key=lambda s: (s.line, s.module))
        return sites

    def local_modules(self, root: Path) -> set[str]:
        """The project's own package name, which self-references resolve to."""
        try:
            data = json.loads((root / "package.json").read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return set()
        name = data.get("name") if isinstance(data, dict) else None
        return {name} if isinstance(name, str) else set()

    def match(self, module: str, coordinates: list[str]) -> str | None:
        return module if module in coordinates else None

    def infer(self, module: str, local: set[str]) -> str | None:
        if module in NODE_BUILTINS or module in local:
            return None
        return module
