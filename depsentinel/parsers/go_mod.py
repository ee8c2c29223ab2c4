"""Parsers for Go module files: go.mod, go.work and go.sum."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from depsentinel.models import DeclaredDependency, Ecosystem, Scope
from depsentinel.registry import PatternParser, register_parser

# Block opener: require (
_BLOCK_START_RE = re.compile(r"^(\w+)\s*\($")

# Single directive: require github.com/foo/bar v1.2.3
_DIRECTIVE_RE = re.compile(r"^(\w+)\s+(.+)$")

# module@version on the left or right of a replace arrow
_MODULE_VERSION_RE = re.compile(r"^(\S+)(?:\s+(\S+))?$")


@dataclass
class GoDirective:
    keyword: str
    args: str
    line: int
    indirect: bool = False


@dataclass
class GoReplace:
    old_path: str
    old_version: str | None
    new_path: str
    new_version: str | None

    @property
    def target(self) -> str:
        return f"{self.new_path} {self.new_version}" if self.new_version else self.new_path


@dataclass
class GoModFile:
    """Structured content of a go.mod or go.work file."""

    module: str | None = None
    go_version: str | None = None
    toolchain: str | None = None
    requires: list[tuple[str, str, bool, int]] = field(default_factory=list)
    replaces: list[GoReplace] = field(default_factory=list)
    excludes: list[tuple[str, str]] = field(default_factory=list)
    uses: list[str] = field(default_factory=list)


def _directives(content: str) -> list[GoDirective]:
    """Flatten block and single-line directives into one list."""
    directives: list[GoDirective] = []
    block: str | None = None

    for lineno, raw_line in enumerate(content.splitlines(), start=1):
        code, _, comment = raw_line.partition("//")
        indirect = comment.strip().startswith("indirect")
        line = code.strip()
        if not line:
            continue

        if block is not None:
            if line == ")":
                block = None
                continue
            directives.append(GoDirective(block, line, lineno, indirect))
            continue

        m = _BLOCK_START_RE.match(line)
        if m:
            block = m.group(1)
            continue
        m = _DIRECTIVE_RE.match(line)
        if m:
            directives.append(GoDirective(m.group(1), m.group(2).strip(), lineno, indirect))
    return directives


def _parse_replace(args: str) -> GoReplace | None:
    if "=>" not in args:
        return None
    left, right = (part.strip() for part in args.split("=>", 1))
    lm = _MODULE_VERSION_RE.match(left)
    rm = _MODULE_VERSION_RE.match(right)
    if not lm or not rm:
        return None
    return GoReplace(lm.group(1), lm.group(2), rm.group(1), rm.group(2))


def parse_go_mod(content: str) -> GoModFile:
    """Parse go.mod (or go.work) text into a :class:`GoModFile`."""
    mod = GoModFile()
    for d in _directives(content):
        parts = d.args.split()
        if d.keyword == "module" and parts:
            mod.module = parts[0].strip('"')
        elif d.keyword == "go" and parts:
            mod.go_version = parts[0]
        elif d.keyword == "toolchain" and parts:
            mod.toolchain = parts[0]
        elif d.keyword == "require" and len(parts) >= 2:
            mod.requires.append((parts[0], parts[1], d.indirect, d.line))
        elif d.keyword == "replace":
            replace = _parse_replace(d.args)
            if replace is not None:
                mod.replaces.append(replace)
        elif d.keyword == "exclude" and len(parts) >= 2:
            mod.excludes.append((parts[0], parts[1]))
        elif d.keyword == "use" and parts:
            mod.uses.append(parts[0])
    return mod


def _replacement_for(mod: GoModFile, path: str, version: str | None) -> str | None:
    for replace in mod.replaces:
        if replace.old_path != path:
            continue
        if replace.old_version is None or replace.old_version == version:
            return replace.target
    return None


class GoModParser(PatternParser):
    detection_method = "go-mod"
    ecosystem = Ecosystem.GO
    file_patterns = ["go.mod"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        mod = parse_go_mod(content)
        deps: list[DeclaredDependency] = []

        for module, version, indirect, lineno in mod.requires:
            deps.append(
                DeclaredDependency(
                    name=module,
                    ecosystem=self.ecosystem,
                    version=version,
                    scope=Scope.COMPILE,
                    raw_scope="indirect" if indirect else "require",
                    is_direct=not indirect,
                    source_file=file_path.name,
                    detection_method=self.detection_method,
                    line=lineno,
                    exclusions=[v for path, v in mod.excludes if path == module],
                    replacement=_replacement_for(mod, module, version),
                )
            )
        return deps


class GoWorkParser(PatternParser):
    """go.work declares no requirements of its own, only workspace replaces."""

    detection_method = "go-work"
    ecosystem = Ecosystem.GO
    file_patterns = ["go.work"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        work = parse_go_mod(content)
        return [
            DeclaredDependency(
                name=replace.old_path,
                ecosystem=self.ecosystem,
                version=replace.old_version,
                is_direct=False,
                source_file=file_path.name,
                detection_method=self.detection_method,
                replacement=replace.target,
            )
            for replace in work.replaces
        ]


class GoSumParser(PatternParser):
    """go.sum pins every module version the build graph touched."""

    detection_method = "go-sum"
    ecosystem = Ecosystem.GO
    file_patterns = ["go.sum"]

    def parse(self, file_path: Path, content: str) -> list[DeclaredDependency]:
        seen: set[tuple[str, str]] = set()
        deps: list[DeclaredDependency] = []

        for lineno, raw_line in enumerate(content.splitlines(), start=1):
            parts = raw_line.split()
            if len(parts) < 3:
                continue
            module, version = parts[0], parts[1]
            if version.endswith("/go.mod"):
                continue
            if (module, version) in seen:
                continue
            seen.add((module, version))
            deps.append(
                DeclaredDependency(
                    name=module,
                    ecosystem=self.ecosystem,
                    resolved_version=version,
                    is_direct=False,
                    source_file=file_path.name,
                    detection_method=self.detection_method,
                    line=lineno,
                )
            )
        return deps


register_parser(GoModParser())
register_parser(GoWorkParser())
register_parser(GoSumParser())
