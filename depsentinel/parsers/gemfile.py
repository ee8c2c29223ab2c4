"""Parsers for Bundler manifests: Gemfile, Gemfile.lock and *.gemspec."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from depsentinel.models import DeclaredDependency, Ecosystem, Scope
from depsentinel.registry import PatternParser, register_parser

# gem "rails", "~> 7.0", ">= 7.0.1", require: false
_GEM_RE = re.compile(
    r"""^\s*gem\s*\(?\s*['"](?P<name>[^'"]+)['"]"""
    r"""(?P<versions>(?:\s*,\s*['"][^'"]*['"])*)"""
    r"""(?P<options>.*)$"""
)
_QUOTED_RE = re.compile(r"""['"]([^'"]*)['"]""")
_GROUP_BLOCK_RE = re.compile(r"^\s*group\s*\(?(?P<groups>.+?)\)?\s+do\s*(\|.*\|)?\s*$")
_BLOCK_OPEN_RE = re.compile(r"\bdo\s*(\|[^|]*\|)?\s*$")
_BLOCK_END_RE = re.compile(r"^\s*end\b")
_KEYWORD_BLOCK_RE = re.compile(r"^\s*(?:if|unless|case|begin|while|until)\b")
_INLINE_GROUP_RE = re.compile(r"""(?:\bgroups?:|:groups?\s*=>)\s*(?P<value>\[[^\]]*\]|%i\[[^\]]*\]|:\w+|['"]\w+['"])""")
_SYMBOL_RE = re.compile(r"""(?::|['"])?(\w+)""")
_SOURCE_RE = re.compile(r"""^\s*source\s*\(?\s*['"]([^'"]+)['"]""")
_RUBY_RE = re.compile(r"""^\s*ruby\s*\(?\s*['"]([^'"]+)['"]""")
_GIT_OPTION_RE = re.compile(r"""\b(git|github|path)\s*:\s*['"]([^'"]+)['"]""")
_TRAILING_COMMENT_RE = re.compile(r"""\s+#[^'"]*$""")

_GEMSPEC_DEP_RE = re.compile(
    r"""\.add_(?P<kind>runtime_|development_)?dependency\s*\(?\s*['"](?P<name>[^'"]+)['"]"""
    r"""(?P<versions>(?:\s*,\s*['"][^'"]*['"])*)"""
)
_REQUIRED_RUBY_RE = re.compile(r"""required_ruby_version\s*=\s*['"]([^'"]+)['"]""")


def _symbols(text: str) -> list[str]:
    return [s for s in _SYMBOL_RE.findall(text) if s not in ("i",)]


def groups_scope(groups: list[str]) -> Scope:
    lowered = {g.lower() for g in groups}
    if lowered & {"development", "dev"}:
        return Scope.DEV
    if "test" in lowered:
        return Scope.TEST
    return Scope.RUNTIME


@dataclass
class GemfileInfo:
    """Gemfile facts used by detection besides the gem list."""

    sources: list[str] = field(default_factory=list)
    ruby_version: str | None = None
    groups: list[str] = field(default_factory=list)
    gems: list[DeclaredDependency] = field(default_factory=list)


def read_gemfile(content: str, source_file: str = "Gemfile") -> GemfileInfo:
    info = GemfileInfo()
    stack: list[list[str]] = []

    for lineno, raw_line in enumerate(content.splitlines(), start=1):
        if raw_line.lstrip().startswith("#"):
            continue
        line = _TRAILING_COMMENT_RE.sub("", raw_line).rstrip()
        if not line.strip():
            continue

        block = _GROUP_BLOCK_RE.match(line)
        if block:
            names = _symbols(block.group("groups"))
            stack.append(names)
            info.groups.extend(n for n in names if n not in info.groups)
            continue
        if _BLOCK_END_RE.match(line):
            if stack:
                stack.pop()
            continue
        if _KEYWORD_BLOCK_RE.match(line):
            stack.append([])
            continue

        m = _SOURCE_RE.match(line)
        if m:
            info.sources.append(m.group(1))
            if _BLOCK_OPEN_RE.search(line):
                stack.append([])
            continue
        m = _RUBY_RE.match(line)
        if m:
            info.ruby_version = m.group(1)
            continue

        m = _GEM_RE.match(line)
        if m:
            groups = [g for frame in stack for g in frame]
            inline = _INLINE_GROUP_RE.search(m.group("options"))
            if inline:
                groups.extend(_symbols(inline.group("value")))
                info.groups.extend(g for g in _symbols(inline.group("value")) if g not in info.groups)
            constraints = _QUOTED_RE.findall(m.group("versions"))
            git = _GIT_OPTION_RE.search(m.group("options"))
            info.gems.append(
                DeclaredDependency(
                    name=m.group("name"),
                    ecosystem=Ecosystem.RUBY,
                    version=", ".join(constraints) or None,
                    scope=groups_scope(groups),
                    raw_scope=",".join(groups) or None,
                    source_file=source_file,
                    detection_method="gemfile",
                    line=lineno,
                    groups=groups,
                    replacement=f"{git.group(1)}: {git.group(2)}" if git else None,
                )
            )
            continue

        if _BLOCK_OPEN_RE.search(line):
            stack.append([])
    return info


class GemfileParser(PatternParser):
    detection_method = "gemfile"
    ecosystem = Ecosystem.RUBY
    file_patterns = ["Gemfile", "gems.rb", "*.gemfile"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        return read_gemfile(content, file_path.name).gems


@dataclass
class LockfileInfo:
    specs: dict[str, tuple[str, list[str]]] = field(default_factory=dict)
    dependencies: list[str] = field(default_factory=list)
    platforms: list[str] = field(default_factory=list)
    ruby_version: str | None = None
    bundler_version: str | None = None


def _lock_version(raw: str) -> str:
    """Drop a platform suffix: ``1.14.0-x86_64-linux`` → ``1.14.0``."""
    return raw.split("-", 1)[0]


def read_lockfile(content: str) -> LockfileInfo:
    info = LockfileInfo()
    section = ""
    remote = ""
    current: str | None = None

    for raw_line in content.splitlines():
        if not raw_line.strip():
            continue
        indent = len(raw_line) - len(raw_line.lstrip(" "))
        text = raw_line.strip()

        if indent == 0:
            section = text
            remote = ""
            current = None
            continue

        if section in ("GEM", "GIT", "PATH"):
            if indent == 2 and text.startswith("remote:"):
                remote = text.split(":", 1)[1].strip()
            elif indent == 4 and not (section == "PATH" and remote in (".", "./")):
                m = re.match(r"^(\S+) \(([^)]+)\)$", text)
                if m:
                    current = m.group(1)
                    info.specs[current] = (_lock_version(m.group(2)), [])
            elif indent == 6 and current is not None:
                info.specs[current][1].append(text.split(" ", 1)[0])
        elif section == "DEPENDENCIES" and indent == 2:
            info.dependencies.append(text.split(" ", 1)[0].rstrip("!"))
        elif section == "PLATFORMS":
            info.platforms.append(text)
        elif section == "RUBY VERSION":
            info.ruby_version = text.replace("ruby", "", 1).strip()
        elif section == "BUNDLED WITH":
            info.bundler_version = text
    return info


class GemfileLockParser(PatternParser):
    detection_method = "gemfile-lock"
    ecosystem = Ecosystem.RUBY
    file_patterns = ["Gemfile.lock", "gems.locked"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        info = read_lockfile(content)
        direct = set(info.dependencies)
        return [
            DeclaredDependency(
                name=name,
                ecosystem=self.ecosystem,
                resolved_version=version,
                scope=Scope.RUNTIME,
                is_direct=name in direct,
                source_file=file_path.name,
                detection_method=self.detection_method,
                requires=list(children),
            )
            for name, (version, children) in info.specs.items()
        ]


def required_ruby_version(content: str) -> str | None:
    m = _REQUIRED_RUBY_RE.search(content)
    return m.group(1) if m else None


class GemspecParser(PatternParser):
    detection_method = "gemspec"
    ecosystem = Ecosystem.RUBY
    file_patterns = ["*.gemspec"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        deps: list[DeclaredDependency] = []
        for m in _GEMSPEC_DEP_RE.finditer(content):
            development = m.group("kind") == "development_"
            constraints = _QUOTED_RE.findall(m.group("versions"))
            deps.append(
                DeclaredDependency(
                    name=m.group("name"),
                    ecosystem=self.ecosystem,
                    version=", ".join(constraints) or None,
                    scope=Scope.DEV if development else Scope.RUNTIME,
                    raw_scope="development" if development else "runtime",
                    source_file=file_path.name,
                    detection_method=self.detection_method,
                    line=content.count("\n", 0, m.start()) + 1,
                )
            )
        return deps


register_parser(GemfileParser())
register_parser(GemfileLockParser())
register_parser(GemspecParser())
