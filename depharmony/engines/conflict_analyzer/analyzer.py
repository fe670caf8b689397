"""ConflictAnalyzer — peer-dependency and duplicate-singleton detection."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence

import structlog

from depharmony.core.env import env_int, env_list
from depharmony.core.semver import compare, major, max_satisfying, parse_version, satisfies
from depharmony.engines.conflict_analyzer.models import (
    AnalysisResult,
    Conflict,
    ConflictType,
    LookupIssue,
    Solution,
)
from depharmony.engines.conflict_analyzer.remediation import RemediationAction, RemediationKind
from depharmony.engines.graph_builder.models import DependencyGraph, PackageNode
from depharmony.engines.npm_registry.client import NpmRegistryClient
from depharmony.engines.npm_registry.models import PackageInfo

log = structlog.get_logger("depharmony.engine")

# Packages whose concurrent major versions break at runtime (shared internal state).
DEFAULT_SINGLETON_PACKAGES: tuple[str, ...] = (
    "react",
    "vue",
    "angular",
    "@angular/core",
    "jquery",
    "lodash",
    "moment",
    "axios",
)

_DEFAULT_CONCURRENCY = 8

SolutionFactory = Callable[[list[LookupIssue]], Awaitable[list[Solution]]]


class ConflictAnalyzer:
    """Walk a built graph and report conflicts with registry-backed fixes.

    Detection is synchronous and ordered (peer conflicts first, then
    singletons). Solution generation awaits the registry, concurrently
    across conflicts; a failed lookup only empties that conflict's
    solution list and is reported in :attr:`AnalysisResult.issues`.
    """

    def __init__(
        self,
        registry: NpmRegistryClient,
        singleton_packages: Sequence[str] | None = None,
        *,
        concurrency: int | None = None,
    ) -> None:
        self._registry = registry
        if singleton_packages is None:
            singleton_packages = (
                env_list("DEPHARMONY_SINGLETON_PACKAGES") or DEFAULT_SINGLETON_PACKAGES
            )
        self.singleton_packages: tuple[str, ...] = tuple(singleton_packages)
        # at least one slot, or every registry lookup would wait forever
        self._concurrency = max(
            1, concurrency or env_int("DEPHARMONY_REGISTRY_CONCURRENCY", _DEFAULT_CONCURRENCY)
        )

    # ── public ─────────────────────────────────────────────────────────────

    async def find_conflicts(self, graph: DependencyGraph) -> list[Conflict]:
        return (await self.analyze(graph)).conflicts

    async def analyze(self, graph: DependencyGraph) -> AnalysisResult:
        pending = self._detect_peer_conflicts(graph) + self._detect_singleton_conflicts(graph)

        sem = asyncio.Semaphore(self._concurrency)
        outcomes = await asyncio.gather(
            *(self._solve(sem, conflict, factory) for conflict, factory in pending)
        )

        conflicts: list[Conflict] = []
        issues: list[LookupIssue] = []
        for (conflict, _), (solutions, conflict_issues) in zip(pending, outcomes):
            conflict.solutions = solutions
            conflicts.append(conflict)
            issues.extend(conflict_issues)

        log.info(
            "analyzer.completed",
            conflicts=len(conflicts),
            registry_issues=len(issues),
        )
        return AnalysisResult(conflicts=conflicts, issues=issues)

    # ── detection ──────────────────────────────────────────────────────────

    def _detect_peer_conflicts(
        self, graph: DependencyGraph
    ) -> list[tuple[Conflict, SolutionFactory]]:
        found: list[tuple[Conflict, SolutionFactory]] = []
        for path, node in graph.all_nodes.items():
            if path == "":
                continue
            for peer_name, peer_range in node.peer_dependencies.items():
                installed = find_installed_peer(graph, peer_name)

                if installed is None:
                    if node.is_optional_peer(peer_name):
                        continue
                    conflict = Conflict(
                        type=ConflictType.PEER_DEPENDENCY,
                        package_name=peer_name,
                        message=(
                            f"{node.name}@{node.version} requires peer dependency "
                            f"{peer_name}@{peer_range}, but it is not installed."
                        ),
                        nodes=[node],
                    )
                    found.append((conflict, self._missing_peer_factory(peer_name, peer_range)))
                    continue

                if satisfies(installed.version, peer_range):
                    continue

                conflict = Conflict(
                    type=ConflictType.PEER_DEPENDENCY,
                    package_name=peer_name,
                    message=(
                        f"{node.name}@{node.version} requires peer dependency "
                        f"{peer_name}@{peer_range}, but {peer_name}@{installed.version} "
                        "is installed."
                    ),
                    nodes=[node, installed],
                )
                found.append(
                    (conflict, self._peer_mismatch_factory(peer_name, peer_range, installed))
                )
        return found

    def _detect_singleton_conflicts(
        self, graph: DependencyGraph
    ) -> list[tuple[Conflict, SolutionFactory]]:
        found: list[tuple[Conflict, SolutionFactory]] = []
        for package_name in self.singleton_packages:
            instances = graph.find_by_name(package_name)
            if len(instances) < 2:
                continue
            majors = {major(n.version) for n in instances} - {None}
            if len(majors) < 2:
                continue

            listing = ", ".join(f"{n.version} ({n.path})" for n in instances)
            conflict = Conflict(
                type=ConflictType.DUPLICATE_SINGLETON,
                package_name=package_name,
                message=(
                    f"Multiple incompatible versions of {package_name} detected: "
                    f"{listing}. This may cause runtime issues."
                ),
                nodes=instances,
            )
            is_dev = _top_level_is_dev(graph, package_name)
            found.append((conflict, self._singleton_factory(package_name, instances, is_dev)))
        return found

    # ── solutions ──────────────────────────────────────────────────────────

    async def _solve(
        self,
        sem: asyncio.Semaphore,
        conflict: Conflict,
        factory: SolutionFactory,
    ) -> tuple[list[Solution], list[LookupIssue]]:
        issues: list[LookupIssue] = []
        async with sem:
            try:
                solutions = await factory(issues)
            except Exception:
                log.exception("analyzer.solution_failed", package=conflict.package_name)
                solutions = []
        return solutions, issues

    async def _fetch(self, package_name: str, issues: list[LookupIssue]) -> PackageInfo | None:
        lookup = await self._registry.lookup(package_name)
        if not lookup.ok:
            issues.append(LookupIssue(package_name, lookup.status, lookup.error))
            log.info(
                "analyzer.solutions_unavailable",
                package=package_name,
                status=lookup.status.value,
            )
            return None
        return lookup.info

    def _missing_peer_factory(self, peer_name: str, peer_range: str) -> SolutionFactory:
        async def make(issues: list[LookupIssue]) -> list[Solution]:
            info = await self._fetch(peer_name, issues)
            if info is None:
                return []

            best = max_satisfying(info.versions, [peer_range])
            if best is not None:
                action = RemediationAction(RemediationKind.INSTALL, peer_name, best)
                return [Solution(action.describe("latest compatible version"), action)]

            latest = info.latest_version
            if latest is None:
                return []
            action = RemediationAction(RemediationKind.INSTALL, peer_name, latest)
            note = "latest version - may require updating dependent packages"
            return [Solution(action.describe(note), action)]

        return make

    def _peer_mismatch_factory(
        self, peer_name: str, peer_range: str, installed: PackageNode
    ) -> SolutionFactory:
        async def make(issues: list[LookupIssue]) -> list[Solution]:
            info = await self._fetch(peer_name, issues)
            if info is None:
                return []

            best = max_satisfying(info.versions, [peer_range])
            if best is None:
                return []

            try:
                direction = compare(best, installed.version)
            except ValueError:
                action = RemediationAction(
                    RemediationKind.INSTALL, peer_name, best, is_dev=installed.is_dev
                )
                return [Solution(action.describe("latest compatible version"), action)]

            if direction == 0:
                return []
            kind = RemediationKind.UPGRADE if direction > 0 else RemediationKind.DOWNGRADE
            action = RemediationAction(
                kind,
                peer_name,
                best,
                from_version=installed.version,
                is_dev=installed.is_dev,
            )
            return [Solution(action.describe(), action)]

        return make

    def _singleton_factory(
        self, package_name: str, instances: list[PackageNode], is_dev: bool
    ) -> SolutionFactory:
        async def make(issues: list[LookupIssue]) -> list[Solution]:
            valid = [n for n in instances if parse_version(n.version) is not None]
            if not valid:
                return []
            highest = max(valid, key=lambda n: parse_version(n.version))

            consolidate = RemediationAction(
                RemediationKind.INSTALL, package_name, highest.version, is_dev=is_dev
            )
            solutions = [
                Solution(
                    consolidate.describe("consolidate duplicates to the highest installed version"),
                    consolidate,
                )
            ]

            info = await self._fetch(package_name, issues)
            latest = info.latest_version if info is not None else None
            if latest and parse_version(latest) is not None and compare(latest, highest.version) > 0:
                upgrade = RemediationAction(
                    RemediationKind.INSTALL, package_name, latest, is_dev=is_dev
                )
                solutions.append(
                    Solution(
                        upgrade.describe("upgrade all instances to the latest available version"),
                        upgrade,
                    )
                )
            return solutions

        return make


def find_installed_peer(graph: DependencyGraph, peer_name: str) -> PackageNode | None:
    """The install a peer requirement is checked against.

    The top-level copy wins; otherwise the first install in lockfile order.
    Per-consumer visibility of nested copies is not modelled.
    """
    hoisted = graph.get(f"node_modules/{peer_name}")
    if hoisted is not None:
        return hoisted
    for node in graph.all_nodes.values():
        if node.name == peer_name:
            return node
    return None


def _top_level_is_dev(graph: DependencyGraph, package_name: str) -> bool:
    node = graph.get(f"node_modules/{package_name}")
    return node.is_dev if node is not None else False
