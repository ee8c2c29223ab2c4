"""Ruby require scanning."""

from __future__ import annotations

import re
from pathlib import Path

from depsentinel.models import Ecosystem, ImportSite

_REQUIRE_RE = re.compile(r"""\brequire(?!_relative)\s*\(?\s*['"](?P<path>[^'"]+)['"]""")
_LOAD_RE = re.compile(r"""\bload\s*\(?\s*['"](?P<path>[^'"]+)['"]""")
_AUTOLOAD_RE = re.compile(r"""\bautoload\s*\(?\s*:\w+\s*,\s*['"](?P<path>[^'"]+)['"]""")
_BUNDLER_REQUIRE_RE = re.compile(r"\bBundler\.require\b")
_MODIFIER_RE = re.compile(r"""['"]\s*\)?\s*(if|unless|rescue)\b""")
_OPEN_RE = re.compile(r"^(if|unless|while|until|case|begin|def|class|module)\b")
_DO_RE = re.compile(r"\bdo\s*(\|[^|]*\|)?\s*$")
_END_RE = re.compile(r"^end\b")
_CONDITIONAL_BLOCKS = frozenset({"if", "unless", "begin", "case"})

# require path → gem, where the gem name is not derivable from the path
REQUIRE_ALIASES: dict[str, str] = {
    "active_support": "activesupport",
    "active_record": "activerecord",
    "active_model": "activemodel",
    "active_job": "activejob",
    "active_storage": "activestorage",
    "action_controller": "actionpack",
    "action_dispatch": "actionpack",
    "action_view": "actionview",
    "action_mailer": "actionmailer",
    "action_cable": "actioncable",
    "action_text": "actiontext",
    "rails/all": "rails",
}

RUBY_STDLIB = frozenset(
    {
        "base64", "benchmark", "bigdecimal", "cgi", "csv", "date", "delegate",
        "digest", "English", "erb", "etc", "fileutils", "find", "forwardable",
        "io", "ipaddr", "json", "logger", "monitor", "net", "objspace",
        "observer", "open-uri", "open3", "openssl", "optparse", "ostruct",
        "pathname", "pp", "prettyprint", "psych", "rbconfig", "resolv",
        "ripper", "securerandom", "set", "shellwords", "singleton", "socket",
        "stringio", "strscan", "tempfile", "thread", "time", "timeout",
        "tmpdir", "tsort", "uri", "weakref", "yaml", "zlib", "coverage",
        "matrix", "prime", "abbrev", "mkmf", "bundler", "rubygems",
    }
)


def _candidates(path: str) -> list[str]:
    first = path.split("/", 1)[0]
    names = [REQUIRE_ALIASES.get(path), REQUIRE_ALIASES.get(first), path, path.replace("/", "-"), first]
    names.append(first.replace("_", "-"))
    return [n for n in names if n]


class RubyImportScanner:
    ecosystem = Ecosystem.RUBY
    file_patterns = ["*.rb", "*.rake", "Rakefile", "config.ru"]

    def scan_file(self, relative_path: str, content: str) -> list[ImportSite]:
        sites: list[ImportSite] = []
        stack: list[str] = []
        for lineno, raw_line in enumerate(content.splitlines(), start=1):
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            if _END_RE.match(line):
                if stack:
                    stack.pop()
                continue

            conditional = any(kw in _CONDITIONAL_BLOCKS for kw in stack) or bool(_MODIFIER_RE.search(line))
            for pattern, kind in ((_REQUIRE_RE, "require"), (_LOAD_RE, "load"), (_AUTOLOAD_RE, "autoload")):
                for m in pattern.finditer(line):
                    sites.append(
                        ImportSite(relative_path, lineno, m.group("path"), kind=kind, conditional=conditional)
                    )
            if _BUNDLER_REQUIRE_RE.search(line):
                sites.append(ImportSite(relative_path, lineno, "bundler", kind="bundler_require"))

            opener = _OPEN_RE.match(line)
            if opener and not line.endswith(" end"):
                stack.append(opener.group(1))
            elif _DO_RE.search(line):
                stack.append("do")
        return sites

    def local_modules(self, root: Path) -> set[str]:
        local: set[str] = set()
        for base in (root / "lib", root / "app"):
            try:
                entries = list(base.iterdir())
            except OSError:
                continue
            for entry in entries:
                local.add(entry.stem if entry.suffix == ".rb" else entry.name)
        return local

    def match(self, module: str, coordinates: list[str]) -> str | None:
        known = {c.lower(): c for c in coordinates}
        for name in _candidates(module):
            if name.lower() in known:
                return known[name.lower()]
        return None

    def infer(self, module: str, local: set[str]) -> str | None:
        first = module.split("/", 1)[0]
        if "." in module.rsplit("/", 1)[-1] or first in RUBY_STDLIB or first in local:
            return None
        return REQUIRE_ALIASES.get(module) or REQUIRE_ALIASES.get(first) or first
