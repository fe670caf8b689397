"""CLI entry point: depharmony.

Subcommands:
    depharmony scan /path/to/project       # graph stats + conflicts + fixes
    depharmony suggest "react, react-dom"  # jointly compatible versions
    depharmony audit /path/to/project      # declared deps behind by a major
"""

from __future__ import annotations

import asyncio
import json
import sys
from dataclasses import asdict
from typing import Any

import click

from depharmony.core.logging import setup_logging
from depharmony.engines.conflict_analyzer import AnalysisResult, ConflictAnalyzer
from depharmony.engines.graph_builder import build_graph, get_graph_stats
from depharmony.engines.npm_registry import NpmRegistryClient
from depharmony.engines.version_resolver import (
    AuditResult,
    CompatibilityResult,
    VersionResolver,
    parse_package_list,
)
from depharmony.exceptions import HarmonyError
from depharmony.project import load_project_files


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """depharmony: npm peer-dependency and singleton conflict analysis."""
    setup_logging("DEBUG" if verbose else None)


@main.command("scan")
@click.argument("project_dir", type=click.Path(exists=True, file_okay=False))
@click.option("--registry-url", default=None, help="npm registry base URL")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def scan(project_dir: str, registry_url: str | None, as_json: bool) -> None:
    """Build the installed dependency graph and report conflicts."""
    try:
        files = load_project_files(project_dir)
        graph = build_graph(files.manifest, files.lockfile)
    except HarmonyError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    stats = get_graph_stats(graph)

    async def _analyze() -> AnalysisResult:
        async with NpmRegistryClient(registry_url) as registry:
            return await ConflictAnalyzer(registry).analyze(graph)

    result = asyncio.run(_analyze())

    if as_json:
        click.echo(json.dumps({"stats": asdict(stats), **_analysis_to_dict(result)}, indent=2))
        return

    click.echo(
        f"{graph.root.name}@{graph.root.version}: {stats.total_nodes} packages, "
        f"{stats.direct_dependencies} direct ({stats.dev_dependencies} dev), "
        f"max depth {stats.max_depth}"
    )
    if not result.conflicts:
        click.echo("No conflicts found.")
    else:
        click.echo(f"\nFound {len(result.conflicts)} conflict(s):\n")
    for conflict in result.conflicts:
        click.echo(f"  [{conflict.type.value}] {conflict.message}")
        for solution in conflict.solutions:
            click.echo(f"    - {solution.description}")
            click.echo(f"      $ {solution.action.install_command()}")
        if not conflict.solutions:
            click.echo("    (no automatic solution available)")
    for issue in result.issues:
        click.echo(f"  ! registry {issue.status.value}: {issue.package_name}", err=True)


@main.command("suggest")
@click.argument("packages")
@click.option("--registry-url", default=None, help="npm registry base URL")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def suggest(packages: str, registry_url: str | None, as_json: bool) -> None:
    """Suggest compatible versions for a comma-separated package list."""
    names = parse_package_list(packages)
    if not names:
        click.echo("Error: no package names given", err=True)
        sys.exit(1)

    async def _suggest() -> CompatibilityResult:
        async with NpmRegistryClient(registry_url) as registry:
            return await VersionResolver(registry).suggest_compatible_packages(names)

    result = asyncio.run(_suggest())

    if as_json:
        click.echo(json.dumps(asdict(result), indent=2))
    else:
        for s in result.suggestions:
            click.echo(f"  {s.spec}  ({s.reason})")
        for c in result.conflicts:
            click.echo(f"  ! {c}")
        if result.install_command:
            click.echo(f"\n$ {result.install_command}")

    if not result.compatible:
        sys.exit(1)


@main.command("audit")
@click.argument("project_dir", type=click.Path(exists=True, file_okay=False))
@click.option("--registry-url", default=None, help="npm registry base URL")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def audit(project_dir: str, registry_url: str | None, as_json: bool) -> None:
    """List declared dependencies that are at least one major version behind."""
    try:
        files = load_project_files(project_dir)
    except HarmonyError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    async def _audit() -> AuditResult:
        async with NpmRegistryClient(registry_url) as registry:
            return await VersionResolver(registry).analyze_existing_packages(files.manifest)

    result = asyncio.run(_audit())

    if as_json:
        click.echo(json.dumps(asdict(result), indent=2))
        return
    if not result.issues:
        click.echo("All declared dependencies are on the latest major version.")
    for issue in result.issues:
        click.echo(f"  {issue}")


def _analysis_to_dict(result: AnalysisResult) -> dict[str, Any]:
    return {
        "conflicts": [
            {
                "type": c.type.value,
                "package_name": c.package_name,
                "message": c.message,
                "nodes": [{"name": n.name, "version": n.version, "path": n.path} for n in c.nodes],
                "solutions": [
                    {
                        "description": s.description,
                        "install_command": s.action.install_command(),
                    }
                    for s in c.solutions
                ],
            }
            for c in result.conflicts
        ],
        "issues": [
            {"package_name": i.package_name, "status": i.status.value, "detail": i.detail}
            for i in result.issues
        ],
    }


if __name__ == "__main__":
    main()
