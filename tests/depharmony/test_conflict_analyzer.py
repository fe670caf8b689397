"""Tests for the conflict analyzer engine."""

from __future__ import annotations

import os
from unittest.mock import MagicMock, patch

import anyio
import httpx
import pytest

from depharmony.engines.conflict_analyzer import (
    DEFAULT_SINGLETON_PACKAGES,
    ConflictAnalyzer,
    ConflictType,
    RemediationKind,
    find_installed_peer,
    parse_solution_description,
)
from depharmony.engines.graph_builder import build_graph
from depharmony.engines.npm_registry import LookupStatus

MANIFEST = {"name": "app", "version": "1.0.0", "devDependencies": {"react": "^18.0.0"}}


def _graph(lockfile_factory, packages: dict, manifest: dict | None = None):
    return build_graph(manifest or {"name": "app", "version": "1.0.0"}, lockfile_factory(packages))


def _ui(peer_range: str = "^17.0.0", **extra) -> dict:
    return {"version": "1.0.0", "peerDependencies": {"react": peer_range}, **extra}


# ── peer dependencies ────────────────────────────────────────────────────


class TestPeerConflicts:
    @pytest.mark.anyio
    async def test_satisfied_peer_no_conflict(self, fake_registry, npm_docs, lockfile_factory):
        graph = _graph(
            lockfile_factory,
            {"node_modules/ui": _ui(), "node_modules/react": {"version": "17.2.0"}},
        )
        async with fake_registry(npm_docs).client() as registry:
            conflicts = await ConflictAnalyzer(registry).find_conflicts(graph)
        assert conflicts == []

    @pytest.mark.anyio
    async def test_mismatched_peer_cites_both_nodes(self, fake_registry, npm_docs, lockfile_factory):
        graph = _graph(
            lockfile_factory,
            {"node_modules/ui": _ui(), "node_modules/react": {"version": "18.0.0"}},
        )
        async with fake_registry(npm_docs).client() as registry:
            conflicts = await ConflictAnalyzer(registry).find_conflicts(graph)

        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert conflict.type is ConflictType.PEER_DEPENDENCY
        assert conflict.package_name == "react"
        assert [n.path for n in conflict.nodes] == ["node_modules/ui", "node_modules/react"]
        assert conflict.message == (
            "ui@1.0.0 requires peer dependency react@^17.0.0, "
            "but react@18.0.0 is installed."
        )
        assert [s.description for s in conflict.solutions] == [
            "Downgrade react from 18.0.0 to 17.0.2"
        ]
        assert conflict.solutions[0].action.kind is RemediationKind.DOWNGRADE

    @pytest.mark.anyio
    async def test_upgrade_solution(self, fake_registry, npm_docs, lockfile_factory):
        graph = _graph(
            lockfile_factory,
            {"node_modules/ui": _ui("^17.0.0"), "node_modules/react": {"version": "16.14.0"}},
        )
        async with fake_registry(npm_docs).client() as registry:
            conflicts = await ConflictAnalyzer(registry).find_conflicts(graph)
        solution = conflicts[0].solutions[0]
        assert solution.description == "Upgrade react from 16.14.0 to 17.0.2"
        assert solution.action.from_version == "16.14.0"
        assert solution.action.to_version == "17.0.2"

    @pytest.mark.anyio
    async def test_dev_peer_solution_keeps_dev_flag(self, fake_registry, npm_docs, lockfile_factory):
        graph = _graph(
            lockfile_factory,
            {"node_modules/ui": _ui("^17.0.0"), "node_modules/react": {"version": "18.0.0"}},
            manifest=MANIFEST,
        )
        async with fake_registry(npm_docs).client() as registry:
            conflicts = await ConflictAnalyzer(registry).find_conflicts(graph)
        solution = conflicts[0].solutions[0]
        assert solution.action.is_dev is True
        assert parse_solution_description(solution.description) == solution.action

    @pytest.mark.anyio
    async def test_missing_peer_suggests_latest_compatible(
        self, fake_registry, npm_docs, lockfile_factory
    ):
        graph = _graph(lockfile_factory, {"node_modules/ui": _ui("^17.0.0")})
        async with fake_registry(npm_docs).client() as registry:
            conflicts = await ConflictAnalyzer(registry).find_conflicts(graph)

        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert [n.path for n in conflict.nodes] == ["node_modules/ui"]
        assert conflict.message.endswith("but it is not installed.")
        assert [s.description for s in conflict.solutions] == [
            "Install react@17.0.2 (latest compatible version)"
        ]

    @pytest.mark.anyio
    async def test_missing_peer_falls_back_to_latest(self, fake_registry, npm_docs, lockfile_factory):
        graph = _graph(
            lockfile_factory,
            {"node_modules/utils": {"version": "1.0.0", "peerDependencies": {"lodash": "^9.0.0"}}},
        )
        async with fake_registry(npm_docs).client() as registry:
            conflicts = await ConflictAnalyzer(registry).find_conflicts(graph)
        assert [s.description for s in conflicts[0].solutions] == [
            "Install lodash@4.17.21 (latest version - may require updating dependent packages)"
        ]

    @pytest.mark.anyio
    async def test_optional_missing_peer_ignored(self, fake_registry, npm_docs, lockfile_factory):
        ui = _ui(peerDependenciesMeta={"react": {"optional": True}})
        graph = _graph(lockfile_factory, {"node_modules/ui": ui})
        async with fake_registry(npm_docs).client() as registry:
            assert await ConflictAnalyzer(registry).find_conflicts(graph) == []

    @pytest.mark.anyio
    async def test_optional_peer_still_version_checked(
        self, fake_registry, npm_docs, lockfile_factory
    ):
        ui = _ui(peerDependenciesMeta={"react": {"optional": True}})
        graph = _graph(
            lockfile_factory,
            {"node_modules/ui": ui, "node_modules/react": {"version": "18.0.0"}},
        )
        async with fake_registry(npm_docs).client() as registry:
            conflicts = await ConflictAnalyzer(registry).find_conflicts(graph)
        assert len(conflicts) == 1

    @pytest.mark.anyio
    async def test_invalid_installed_version_gets_install_solution(
        self, fake_registry, npm_docs, lockfile_factory
    ):
        graph = _graph(
            lockfile_factory,
            {"node_modules/ui": _ui("^17.0.0"), "node_modules/react": {}},
        )
        async with fake_registry(npm_docs).client() as registry:
            conflicts = await ConflictAnalyzer(registry).find_conflicts(graph)
        assert "react@unknown is installed" in conflicts[0].message
        assert conflicts[0].solutions[0].description == (
            "Install react@17.0.2 (latest compatible version)"
        )

    @pytest.mark.anyio
    async def test_root_peer_dependencies_are_not_checked(
        self, fake_registry, npm_docs, lockfile_factory
    ):
        lock = lockfile_factory({}, root={"peerDependencies": {"react": "^17.0.0"}})
        graph = build_graph({"name": "app"}, lock)
        async with fake_registry(npm_docs).client() as registry:
            assert await ConflictAnalyzer(registry).find_conflicts(graph) == []


class TestRegistryFailures:
    @pytest.mark.anyio
    async def test_registry_error_keeps_conflict_without_solutions(
        self, fake_registry, npm_docs, lockfile_factory
    ):
        graph = _graph(
            lockfile_factory,
            {"node_modules/ui": _ui(), "node_modules/react": {"version": "18.0.0"}},
        )
        registry = fake_registry(npm_docs, errors={"react": httpx.ConnectError("offline")})
        async with registry.client() as client:
            result = await ConflictAnalyzer(client).analyze(graph)

        assert len(result.conflicts) == 1
        assert result.conflicts[0].solutions == []
        assert [(i.package_name, i.status) for i in result.issues] == [
            ("react", LookupStatus.ERROR)
        ]

    @pytest.mark.anyio
    async def test_unknown_peer_package(self, fake_registry, lockfile_factory):
        graph = _graph(
            lockfile_factory,
            {"node_modules/ui": {"version": "1.0.0", "peerDependencies": {"ghost": "^1.0.0"}}},
        )
        async with fake_registry({}).client() as client:
            result = await ConflictAnalyzer(client).analyze(graph)
        assert result.conflicts[0].solutions == []
        assert result.issues[0].status is LookupStatus.NOT_FOUND

    @pytest.mark.anyio
    async def test_one_failure_does_not_affect_others(
        self, fake_registry, npm_docs, lockfile_factory
    ):
        graph = _graph(
            lockfile_factory,
            {
                "node_modules/ui": _ui("^17.0.0"),
                "node_modules/utils": {
                    "version": "1.0.0",
                    "peerDependencies": {"lodash": "^4.0.0"},
                },
            },
        )
        registry = fake_registry(npm_docs, errors={"react": 500})
        async with registry.client() as client:
            result = await ConflictAnalyzer(client).analyze(graph)
        react, lodash = result.conflicts
        assert react.solutions == []
        assert lodash.solutions[0].description == "Install lodash@4.17.21 (latest compatible version)"


# ── singletons ───────────────────────────────────────────────────────────


class TestSingletonConflicts:
    REACTS = {
        "node_modules/react": {"version": "17.0.0"},
        "node_modules/legacy/node_modules/react": {"version": "16.8.0"},
        "node_modules/modern/node_modules/react": {"version": "17.0.2"},
    }

    @pytest.mark.anyio
    async def test_two_majors_one_conflict(self, fake_registry, npm_docs, lockfile_factory):
        graph = _graph(lockfile_factory, self.REACTS)
        async with fake_registry(npm_docs).client() as registry:
            conflicts = await ConflictAnalyzer(registry).find_conflicts(graph)

        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert conflict.type is ConflictType.DUPLICATE_SINGLETON
        assert conflict.package_name == "react"
        assert len(conflict.nodes) == 3
        assert conflict.message == (
            "Multiple incompatible versions of react detected: "
            "17.0.0 (node_modules/react), "
            "16.8.0 (node_modules/legacy/node_modules/react), "
            "17.0.2 (node_modules/modern/node_modules/react). "
            "This may cause runtime issues."
        )
        assert [s.description for s in conflict.solutions] == [
            "Install react@17.0.2 (consolidate duplicates to the highest installed version)",
            "Install react@18.2.0 (upgrade all instances to the latest available version)",
        ]

    @pytest.mark.anyio
    async def test_same_major_no_conflict(self, fake_registry, npm_docs, lockfile_factory):
        graph = _graph(
            lockfile_factory,
            {
                "node_modules/react": {"version": "17.0.0"},
                "node_modules/a/node_modules/react": {"version": "17.0.1"},
                "node_modules/b/node_modules/react": {"version": "17.0.2"},
            },
        )
        async with fake_registry(npm_docs).client() as registry:
            assert await ConflictAnalyzer(registry).find_conflicts(graph) == []

    @pytest.mark.anyio
    async def test_no_upgrade_solution_when_already_latest(
        self, fake_registry, npm_docs, lockfile_factory
    ):
        graph = _graph(
            lockfile_factory,
            {
                "node_modules/lodash": {"version": "4.17.21"},
                "node_modules/old/node_modules/lodash": {"version": "3.10.1"},
            },
        )
        async with fake_registry(npm_docs).client() as registry:
            conflicts = await ConflictAnalyzer(registry).find_conflicts(graph)
        assert [s.action.to_version for s in conflicts[0].solutions] == ["4.17.21"]

    @pytest.mark.anyio
    async def test_consolidate_survives_registry_failure(
        self, fake_registry, npm_docs, lockfile_factory
    ):
        graph = _graph(lockfile_factory, self.REACTS)
        registry = fake_registry(npm_docs, errors={"react": 502})
        async with registry.client() as client:
            result = await ConflictAnalyzer(client).analyze(graph)
        assert len(result.conflicts[0].solutions) == 1
        assert len(result.issues) == 1

    @pytest.mark.anyio
    async def test_non_singleton_duplicates_ignored(self, fake_registry, npm_docs, lockfile_factory):
        graph = _graph(
            lockfile_factory,
            {
                "node_modules/debug": {"version": "4.3.4"},
                "node_modules/express/node_modules/debug": {"version": "2.6.9"},
            },
        )
        async with fake_registry(npm_docs).client() as registry:
            assert await ConflictAnalyzer(registry).find_conflicts(graph) == []

    @pytest.mark.anyio
    async def test_custom_singleton_list(self, fake_registry, npm_docs, lockfile_factory):
        graph = _graph(
            lockfile_factory,
            {
                "node_modules/debug": {"version": "4.3.4"},
                "node_modules/express/node_modules/debug": {"version": "2.6.9"},
            },
        )
        async with fake_registry(npm_docs).client() as registry:
            analyzer = ConflictAnalyzer(registry, singleton_packages=["debug"])
            conflicts = await analyzer.find_conflicts(graph)
        assert [c.package_name for c in conflicts] == ["debug"]

    def test_singletons_from_env(self):
        with patch.dict(os.environ, {"DEPHARMONY_SINGLETON_PACKAGES": "react, vue ,"}):
            analyzer = ConflictAnalyzer(MagicMock())
        assert analyzer.singleton_packages == ("react", "vue")

    def test_default_singletons(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("DEPHARMONY_SINGLETON_PACKAGES", None)
            analyzer = ConflictAnalyzer(MagicMock())
        assert analyzer.singleton_packages == DEFAULT_SINGLETON_PACKAGES


class TestConcurrencySetting:
    @pytest.mark.anyio
    async def test_zero_from_env_still_analyzes(self, fake_registry, npm_docs, lockfile_factory):
        graph = _graph(
            lockfile_factory,
            {"node_modules/ui": _ui(), "node_modules/react": {"version": "18.0.0"}},
        )
        async with fake_registry(npm_docs).client() as registry:
            with patch.dict(os.environ, {"DEPHARMONY_REGISTRY_CONCURRENCY": "0"}):
                analyzer = ConflictAnalyzer(registry)
            with anyio.fail_after(5):
                conflicts = await analyzer.find_conflicts(graph)
        assert [s.description for s in conflicts[0].solutions] == [
            "Downgrade react from 18.0.0 to 17.0.2"
        ]

    def test_negative_from_env_clamped(self):
        with patch.dict(os.environ, {"DEPHARMONY_REGISTRY_CONCURRENCY": "-4"}):
            analyzer = ConflictAnalyzer(MagicMock())
        assert analyzer._concurrency == 1


# ── ordering / determinism ───────────────────────────────────────────────


class TestOrdering:
    PACKAGES = {
        "node_modules/react": {"version": "18.0.0"},
        "node_modules/old/node_modules/react": {"version": "16.8.0"},
        "node_modules/ui": _ui("^17.0.0"),
        "node_modules/utils": {"version": "1.0.0", "peerDependencies": {"lodash": "^4.0.0"}},
    }

    @pytest.mark.anyio
    async def test_peer_conflicts_before_singletons(self, fake_registry, npm_docs, lockfile_factory):
        graph = _graph(lockfile_factory, self.PACKAGES)
        async with fake_registry(npm_docs).client() as registry:
            conflicts = await ConflictAnalyzer(registry).find_conflicts(graph)
        assert [(c.type, c.package_name) for c in conflicts] == [
            (ConflictType.PEER_DEPENDENCY, "react"),
            (ConflictType.PEER_DEPENDENCY, "lodash"),
            (ConflictType.DUPLICATE_SINGLETON, "react"),
        ]

    @pytest.mark.anyio
    async def test_repeat_analysis_is_identical(self, fake_registry, npm_docs, lockfile_factory):
        graph = _graph(lockfile_factory, self.PACKAGES)
        registry = fake_registry(npm_docs)
        async with registry.client() as client:
            analyzer = ConflictAnalyzer(client, concurrency=2)
            first = await analyzer.find_conflicts(graph)
            second = await analyzer.find_conflicts(graph)
        assert first == second
        assert [c.message for c in first] == [c.message for c in second]


def test_find_installed_peer_prefers_top_level(lockfile_factory):
    graph = _graph(
        lockfile_factory,
        {
            "node_modules/a/node_modules/react": {"version": "16.8.0"},
            "node_modules/react": {"version": "17.0.2"},
        },
    )
    assert find_installed_peer(graph, "react").path == "node_modules/react"


def test_find_installed_peer_falls_back_to_first_nested(lockfile_factory):
    graph = _graph(
        lockfile_factory,
        {
            "node_modules/a/node_modules/react": {"version": "16.8.0"},
            "node_modules/b/node_modules/react": {"version": "17.0.2"},
        },
    )
    assert find_installed_peer(graph, "react").path == "node_modules/a/node_modules/react"
    assert find_installed_peer(graph, "vue") is None
