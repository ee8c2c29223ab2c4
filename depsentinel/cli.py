"""CLI entry point: depsentinel.

Subcommands:
    depsentinel detect PATH                    # Ecosystem / package-manager detection
    depsentinel scan PATH [--json]             # Parse manifests only
    depsentinel analyze PATH                   # Full dependency analysis
    depsentinel compare ECOSYSTEM PKG FROM TO  # Upgrade risk for one package
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import click

from depsentinel.analyzer import analyze as run_analysis
from depsentinel.analyzer import compare_versions, detect as run_detection, scan_project
from depsentinel.core.logging import setup_logging
from depsentinel.exceptions import DepSentinelError
from depsentinel.models import Criticality
from depsentinel.schemas import analysis_schema, comparison_schema, detection_schema, manifest_schemas


def _emit(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2))


def _fail(exc: DepSentinelError) -> None:
    click.echo(f"Error: {exc}", err=True)
    sys.exit(1)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """Dependency manifest analysis and upgrade-risk assessment."""
    setup_logging("DEBUG" if verbose else None)


@main.command("detect")
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
def detect(path: Path) -> None:
    """Detect the ecosystems and package managers a project uses."""
    try:
        report = run_detection(path)
    except DepSentinelError as e:
        _fail(e)
        return
    _emit(detection_schema(report).dump())


@main.command("scan")
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
@click.option("--ecosystem", "-e", default=None, help="Only parse this ecosystem's manifests")
@click.option("--max-depth", type=int, default=None, help="Directory walk depth")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a summary")
def scan(path: Path, ecosystem: str | None, max_depth: int | None, as_json: bool) -> None:
    """Parse every manifest under PATH."""
    try:
        manifests = scan_project(path, ecosystem, max_depth)
    except DepSentinelError as e:
        _fail(e)
        return
    if as_json:
        _emit([m.dump() for m in manifest_schemas(manifests)])
        return
    for manifest in manifests:
        status = "ok" if manifest.ok else f"{len(manifest.errors)} error(s)"
        click.echo(f"{manifest.path} [{manifest.format}] {len(manifest.declarations)} dependencies, {status}")
        for decl in manifest.declarations:
            version = decl.version or decl.resolved_version or "*"
            click.echo(f"  {decl.name} {version} ({decl.scope.value})")
        for error in manifest.errors:
            click.echo(f"  ! {error}")


@main.command("analyze")
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
@click.option("--ecosystem", "-e", default=None, help="Restrict the analysis to one ecosystem")
@click.option("--tools/--no-tools", default=None, help="Consult installed toolchains for transitive data")
@click.option("--max-depth", type=int, default=None, help="Directory walk depth")
@click.option("--timeout", type=float, default=None, help="Seconds per external tool call")
def analyze(
    path: Path,
    ecosystem: str | None,
    tools: bool | None,
    max_depth: int | None,
    timeout: float | None,
) -> None:
    """Build the dependency graph, score criticality and list findings."""
    try:
        result = asyncio.run(
            run_analysis(path, ecosystem, use_tools=tools, max_depth=max_depth, timeout=timeout)
        )
    except DepSentinelError as e:
        _fail(e)
        return
    _emit(analysis_schema(result).dump())


@main.command("compare")
@click.argument("ecosystem")
@click.argument("package")
@click.argument("from_version")
@click.argument("to_version")
@click.option(
    "--changelog",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Changelog file to mine for the version range",
)
@click.option("--runtime-from", default=None, help="Runtime requirement of the current version")
@click.option("--runtime-to", default=None, help="Runtime requirement of the target version")
@click.option(
    "--criticality",
    type=click.Choice([c.value for c in Criticality], case_sensitive=False),
    default=None,
    help="Criticality of the package in your project",
)
def compare(
    ecosystem: str,
    package: str,
    from_version: str,
    to_version: str,
    changelog: Path | None,
    runtime_from: str | None,
    runtime_to: str | None,
    criticality: str | None,
) -> None:
    """Assess the risk of moving PACKAGE from FROM_VERSION to TO_VERSION."""
    text = changelog.read_text(encoding="utf-8", errors="replace") if changelog else None
    try:
        comparison = compare_versions(
            ecosystem,
            package,
            from_version,
            to_version,
            changelog=text,
            runtime_from=runtime_from,
            runtime_to=runtime_to,
            criticality=Criticality(criticality.upper()) if criticality else None,
        )
    except DepSentinelError as e:
        _fail(e)
        return
    _emit(comparison_schema(comparison).dump())


if __name__ == "__main__":
    main()
