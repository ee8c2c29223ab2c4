"""External toolchain invocation with an explicit timeout.

Every failure mode (binary missing, non-zero exit, timeout, output that
cannot be parsed) comes back as a :class:`ToolUnavailable` value instead of
an exception, so callers branch on it explicitly.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path

import structlog

from depsentinel.models import Ecosystem, ResolvedDependency, ToolUnavailable

log = structlog.get_logger("depsentinel.engine")

_STDERR_TAIL = 300


def _executable(program: str) -> bool:
    if os.sep in program:
        return os.path.isfile(program) and os.access(program, os.X_OK)
    return shutil.which(program) is not None


async def run_command(
    cmd: list[str],
    cwd: Path,
    timeout: float,
    ok_codes: tuple[int, ...] = (0,),
) -> str | ToolUnavailable:
    """Run *cmd* in *cwd* and return its stdout, or why it could not."""
    tool = Path(cmd[0]).name
    if not _executable(cmd[0]):
        return ToolUnavailable(tool, f"{cmd[0]} not found")
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        return ToolUnavailable(tool, f"failed to start: {exc}")

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return ToolUnavailable(tool, f"timed out after {timeout:g}s")

    if proc.returncode not in ok_codes:
        detail = stderr.decode("utf-8", errors="replace").strip()[-_STDERR_TAIL:]
        return ToolUnavailable(tool, f"exit {proc.returncode}: {detail}" if detail else f"exit {proc.returncode}")
    return stdout.decode("utf-8", errors="replace")


class ToolAdapter:
    """One external command whose output is turned into ResolvedDependency rows.

    Subclasses set ``name``, ``ecosystem``, ``managers`` and ``command`` and
    implement :meth:`parse`; ``parse`` raises ``ValueError`` on output it
    does not understand.
    """

    name: str
    ecosystem: Ecosystem
    managers: frozenset[str] | None = None
    command: list[str] = []
    wrapper: str | None = None
    ok_codes: tuple[int, ...] = (0,)

    def applies_to(self, manager: str | None) -> bool:
        return self.managers is None or manager in self.managers

    def command_for(self, root: Path) -> list[str]:
        if self.wrapper and (root / self.wrapper).is_file():
            return [str(root / self.wrapper), *self.command[1:]]
        return list(self.command)

    async def run(self, root: Path, timeout: float) -> list[ResolvedDependency] | ToolUnavailable:
        output = await run_command(self.command_for(root), root, timeout, self.ok_codes)
        if isinstance(output, ToolUnavailable):
            log.info("tool.unavailable", tool=self.name, reason=output.reason)
            return ToolUnavailable(self.name, output.reason)
        try:
            resolved = self.parse(output)
        except ValueError as exc:
            log.warning("tool.unparseable_output", tool=self.name, error=str(exc))
            return ToolUnavailable(self.name, f"unparseable output: {exc}")
        log.debug("tool.completed", tool=self.name, dependencies=len(resolved))
        return resolved

    def parse(self, output: str) -> list[ResolvedDependency]:
        raise NotImplementedError
