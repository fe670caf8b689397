"""VersionResolver — pick mutually compatible versions for a package set."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from typing import Any

import structlog
from semantic_version import Version

from depharmony.core.env import env_int
from depharmony.core.semver import coerce, max_satisfying, parse_version, satisfies
from depharmony.engines.npm_registry.client import NpmRegistryClient
from depharmony.engines.npm_registry.models import LookupStatus, RegistryLookup
from depharmony.engines.version_resolver.models import (
    AuditResult,
    CompatibilityResult,
    PackageSuggestion,
)

log = structlog.get_logger("depharmony.engine")

_DEFAULT_CONCURRENCY = 8
# alignment can oscillate between versions; give up after this many passes
_MAX_SETTLE_PASSES = 10

REASON_LATEST = "Latest stable version"
REASON_PEER = "Required peer dependency"

_NON_REGISTRY_PREFIXES = (
    "file:",
    "link:",
    "workspace:",
    "npm:",
    "git",
    "github:",
    "http:",
    "https:",
)


class VersionResolver:
    """Suggestion engine over the npm registry.

    Lookup problems never raise: they are returned as entries in the
    result's ``conflicts``/``issues`` list and processing moves on.
    """

    def __init__(self, registry: NpmRegistryClient, *, concurrency: int | None = None) -> None:
        self._registry = registry
        self._concurrency = max(
            1, concurrency or env_int("DEPHARMONY_REGISTRY_CONCURRENCY", _DEFAULT_CONCURRENCY)
        )

    async def suggest_compatible_packages(self, package_names: Sequence[str]) -> CompatibilityResult:
        """Latest versions of *package_names* plus the peers they agree on.

        Peers requested by several packages with different ranges are
        resolved to the newest version satisfying all of them; if none
        exists the clash is reported rather than guessed.
        """
        names = list(dict.fromkeys(package_names))
        lookups = await self._lookup_all(names)

        suggestions: list[PackageSuggestion] = []
        conflicts: list[str] = []
        requested: dict[str, tuple[PackageSuggestion, RegistryLookup]] = {}

        for name, lookup in zip(names, lookups):
            if not lookup.ok:
                conflicts.append(_lookup_message(name, lookup))
                continue
            info = lookup.info
            latest = info.latest_version
            if latest is None:
                conflicts.append(f"No latest version found for {name}")
                continue

            suggestion = PackageSuggestion(
                package_name=name,
                suggested_version=latest,
                reason=REASON_LATEST,
                peer_dependencies=info.peer_dependencies(latest),
            )
            suggestions.append(suggestion)
            requested[name] = (suggestion, lookup)

        peer_ranges, problems = self._settle_requested_peers(requested)
        conflicts.extend(problems)

        for peer_name, ranges in peer_ranges.items():
            if peer_name in requested or len(ranges) < 2:
                continue

            lookup = await self._registry.lookup(peer_name)
            if not lookup.ok:
                conflicts.append(_lookup_message(peer_name, lookup))
                continue
            compatible = max_satisfying(lookup.info.versions, ranges)
            if compatible is None:
                conflicts.append(
                    f"Conflicting peer dependency requirements for {peer_name}: "
                    f"{', '.join(ranges)}"
                )
                continue
            suggestions.append(
                PackageSuggestion(
                    package_name=peer_name,
                    suggested_version=compatible,
                    reason=REASON_PEER,
                )
            )

        if not conflicts:
            conflicts.extend(_unsatisfied_peers(suggestions))

        log.info(
            "resolver.suggested",
            requested=len(names),
            suggestions=len(suggestions),
            conflicts=len(conflicts),
        )
        return CompatibilityResult(
            compatible=not conflicts,
            suggestions=suggestions,
            conflicts=conflicts,
            install_command=generate_install_command(suggestions),
        )

    async def find_compatible_version(self, package_name: str, ranges: Iterable[str]) -> str | None:
        """Newest published version of *package_name* inside every range."""
        versions = await self._registry.get_available_versions(package_name)
        return max_satisfying(versions, ranges)

    async def analyze_existing_packages(self, manifest: dict[str, Any]) -> AuditResult:
        """Flag declared dependencies that are a major version or more behind.

        Peer constraints are not consulted here.
        """
        declared: dict[str, str] = {
            **(manifest.get("dependencies") or {}),
            **(manifest.get("devDependencies") or {}),
        }
        names = list(declared)
        lookups = await self._lookup_all(names)

        result = AuditResult()
        for name, lookup in zip(names, lookups):
            if not lookup.ok:
                log.info("resolver.audit_skipped", package=name, status=lookup.status.value)
                continue
            info = lookup.info
            latest = info.latest_version
            latest_v = parse_version(latest)
            current = _coerce_spec(declared[name])
            if latest_v is None or current is None or not current < latest_v:
                continue

            behind = latest_v.major - current.major
            if behind <= 0:
                continue
            result.issues.append(
                f"{name} is {behind} major version(s) behind "
                f"(current: {current}, latest: {latest})"
            )
            result.recommendations.append(
                PackageSuggestion(
                    package_name=name,
                    suggested_version=latest,
                    reason=f"Update from {current} to latest version",
                    peer_dependencies=info.peer_dependencies(latest),
                )
            )
        return result

    # ── internal ───────────────────────────────────────────────────────────

    async def _lookup_all(self, names: list[str]) -> list[RegistryLookup]:
        sem = asyncio.Semaphore(self._concurrency)

        async def one(name: str) -> RegistryLookup:
            async with sem:
                return await self._registry.lookup(name)

        return list(await asyncio.gather(*(one(n) for n in names)))

    def _settle_requested_peers(
        self, requested: dict[str, tuple[PackageSuggestion, RegistryLookup]]
    ) -> tuple[dict[str, list[str]], list[str]]:
        """Align requested packages with each other's peer ranges until stable.

        Lowering a package changes the peer ranges it contributes, so the
        ranges are recollected from the current suggestions on every pass.
        """
        suggestions = [s for s, _ in requested.values()]
        for _ in range(_MAX_SETTLE_PASSES):
            peer_ranges = _collect_peer_ranges(suggestions)
            problems: list[str] = []
            changed = False
            for peer_name, ranges in peer_ranges.items():
                if peer_name not in requested:
                    continue
                suggestion, lookup = requested[peer_name]
                before = suggestion.suggested_version
                problem = self._align_requested_peer(suggestion, lookup, ranges)
                if problem:
                    problems.append(problem)
                elif suggestion.suggested_version != before:
                    changed = True
            if problems or not changed:
                return peer_ranges, problems

        log.warning("resolver.peers_unsettled", packages=list(requested))
        unsettled = ", ".join(requested)
        return _collect_peer_ranges(suggestions), [
            f"Peer dependency requirements did not settle for: {unsettled}"
        ]

    @staticmethod
    def _align_requested_peer(
        suggestion: PackageSuggestion,
        lookup: RegistryLookup,
        ranges: list[str],
    ) -> str | None:
        """Lower a requested package to satisfy what its co-requested packages need."""
        if all(satisfies(suggestion.suggested_version, r) for r in ranges):
            return None

        compatible = max_satisfying(lookup.info.versions, ranges)
        if compatible is None:
            joined = ", ".join(ranges)
            if len(ranges) > 1:
                return f"Conflicting peer dependency requirements for {suggestion.package_name}: {joined}"
            return f"No version of {suggestion.package_name} satisfies peer dependency range {joined}"

        suggestion.suggested_version = compatible
        suggestion.reason = f"Adjusted to satisfy peer dependency ranges: {', '.join(ranges)}"
        suggestion.peer_dependencies = lookup.info.peer_dependencies(compatible)
        return None


def generate_install_command(suggestions: Sequence[PackageSuggestion]) -> str:
    if not suggestions:
        return ""
    return "npm install " + " ".join(s.spec for s in suggestions)


def parse_package_list(text: str) -> list[str]:
    """``"react@18, @types/react@18 ,vue"`` -> ``["react", "@types/react", "vue"]``."""
    names: list[str] = []
    for raw in text.split(","):
        pkg = raw.strip()
        at = pkg.find("@", 1)
        if at != -1:
            pkg = pkg[:at]
        if pkg:
            names.append(pkg)
    return names


def _lookup_message(name: str, lookup: RegistryLookup) -> str:
    if lookup.status is LookupStatus.NOT_FOUND:
        return f"Package {name} not found in npm registry"
    return f"Registry lookup failed for {name}: {lookup.error}"


def _coerce_spec(spec: str) -> Version | None:
    if spec.startswith(_NON_REGISTRY_PREFIXES) or "/" in spec:
        return None
    return coerce(spec)


def _collect_peer_ranges(suggestions: Iterable[PackageSuggestion]) -> dict[str, list[str]]:
    """Peer name -> distinct ranges, in first-seen order."""
    peer_ranges: dict[str, list[str]] = {}
    for suggestion in suggestions:
        for peer_name, peer_range in suggestion.peer_dependencies.items():
            ranges = peer_ranges.setdefault(peer_name, [])
            if peer_range not in ranges:
                ranges.append(peer_range)
    return peer_ranges


def _unsatisfied_peers(suggestions: Sequence[PackageSuggestion]) -> list[str]:
    versions = {s.package_name: s.suggested_version for s in suggestions}
    problems: list[str] = []
    for suggestion in suggestions:
        for peer_name, peer_range in suggestion.peer_dependencies.items():
            chosen = versions.get(peer_name)
            if chosen is not None and not satisfies(chosen, peer_range):
                problems.append(
                    f"{suggestion.spec} requires peer dependency {peer_name}@{peer_range}, "
                    f"but {peer_name}@{chosen} is suggested"
                )
    return problems
