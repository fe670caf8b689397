"""Build a linked dependency graph from package.json + package-lock.json."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import structlog

from depharmony.engines.graph_builder.models import DependencyGraph, GraphStats, PackageNode
from depharmony.exceptions import MissingRootError, UnsupportedLockfileError

log = structlog.get_logger("depharmony.engine")

MIN_LOCKFILE_VERSION = 2

_NODE_MODULES = "node_modules/"
_NESTED = "/node_modules/"


def build_graph(manifest: dict[str, Any], lockfile: dict[str, Any]) -> DependencyGraph:
    """Turn the lockfile's flat ``packages`` map into a linked graph.

    Pass one creates a node per lockfile entry; pass two links every
    declared dependency to the install that Node's module resolution
    would pick (nested first, then each ancestor, then the top level).

    Raises :class:`UnsupportedLockfileError` for v1 lockfiles and
    :class:`MissingRootError` when there is no ``""`` entry.
    """
    lockfile_version = lockfile.get("lockfileVersion", 1)
    if not isinstance(lockfile_version, int) or lockfile_version < MIN_LOCKFILE_VERSION:
        raise UnsupportedLockfileError(lockfile_version)

    packages: dict[str, dict[str, Any]] = lockfile.get("packages") or {}
    dev_names = set(manifest.get("devDependencies") or {})

    # ── pass 1: nodes ────────────────────────────────────────────────────
    all_nodes: dict[str, PackageNode] = {}
    for path, entry in packages.items():
        entry = entry or {}
        if path == "":
            all_nodes[path] = _root_node(manifest, entry)
            continue

        source = _link_target(packages, entry)
        name = entry.get("name") or source.get("name") or _name_from_path(path)
        all_nodes[path] = PackageNode(
            name=name,
            version=source.get("version") or "unknown",
            path=path,
            resolved=entry.get("resolved") or "",
            integrity=entry.get("integrity") or "",
            is_dev=is_direct_path(path) and _name_from_path(path) in dev_names,
            dependencies=dict(source.get("dependencies") or {}),
            peer_dependencies=dict(source.get("peerDependencies") or {}),
            peer_dependencies_meta=dict(source.get("peerDependenciesMeta") or {}),
        )

    root = all_nodes.get("")
    if root is None:
        raise MissingRootError()

    # ── pass 2: edges ────────────────────────────────────────────────────
    for path, node in all_nodes.items():
        for dep_name in node.dependencies:
            child = find_child_node(path, dep_name, all_nodes)
            if child is None:
                log.debug("graph.dependency_unresolved", dependency=dep_name, parent=path)
                continue
            node.children.append(child.path)

    log.debug("graph.built", nodes=len(all_nodes), lockfile_version=lockfile_version)
    return DependencyGraph(root=root, all_nodes=all_nodes)


def find_child_node(
    parent_path: str,
    dep_name: str,
    all_nodes: dict[str, PackageNode],
) -> PackageNode | None:
    """Resolve *dep_name* as seen from the package installed at *parent_path*."""
    for candidate in _hoisting_candidates(parent_path, dep_name):
        node = all_nodes.get(candidate)
        if node is not None:
            return node
    return None


def _hoisting_candidates(parent_path: str, dep_name: str) -> Iterator[str]:
    # a/node_modules/b -> a/node_modules/b/node_modules/x, a/node_modules/x, node_modules/x
    base = parent_path
    while base:
        yield f"{base}{_NESTED}{dep_name}"
        idx = base.rfind(_NESTED)
        base = base[:idx] if idx != -1 else ""
    yield f"{_NODE_MODULES}{dep_name}"


def is_direct_path(path: str) -> bool:
    """True for top-level installs: ``node_modules/<name>`` and nothing deeper."""
    return path.startswith(_NODE_MODULES) and _NESTED not in path


def get_graph_stats(graph: DependencyGraph) -> GraphStats:
    direct = [n for p, n in graph.all_nodes.items() if p and is_direct_path(p)]
    return GraphStats(
        total_nodes=len(graph.all_nodes),
        direct_dependencies=len(direct),
        dev_dependencies=sum(1 for n in direct if n.is_dev),
        max_depth=_max_depth(graph),
    )


def _max_depth(graph: DependencyGraph) -> int:
    """Longest child chain below the root; a leaf has depth 0.

    npm trees may contain cycles, so an edge back to a node still on the
    current path is ignored. A result that depended on cutting an edge to
    one of the node's ancestors is path-specific and is not memoized.
    """
    memo: dict[str, int] = {}
    on_path: dict[str, int] = {}  # path -> position on the current walk
    no_cut = len(graph.all_nodes)

    def depth(node: PackageNode) -> tuple[int, int]:
        # returns (depth, shallowest walk position an edge was cut at)
        if node.path in memo:
            return memo[node.path], no_cut
        level = len(on_path)
        on_path[node.path] = level
        best = 0
        lowest_cut = no_cut
        for child in graph.children_of(node):
            if child.path in on_path:
                lowest_cut = min(lowest_cut, on_path[child.path])
                continue
            child_depth, child_cut = depth(child)
            best = max(best, 1 + child_depth)
            lowest_cut = min(lowest_cut, child_cut)
        del on_path[node.path]
        if lowest_cut >= level:
            memo[node.path] = best
        return best, lowest_cut

    return depth(graph.root)[0]


def _root_node(manifest: dict[str, Any], entry: dict[str, Any]) -> PackageNode:
    dependencies: dict[str, str] = {}
    for key in ("dependencies", "devDependencies", "optionalDependencies"):
        dependencies.update(entry.get(key) or {})
    if not dependencies:
        dependencies.update(manifest.get("dependencies") or {})
        dependencies.update(manifest.get("devDependencies") or {})

    return PackageNode(
        name=manifest.get("name") or "root",
        version=manifest.get("version") or "0.0.0",
        path="",
        resolved=entry.get("resolved") or "",
        integrity=entry.get("integrity") or "",
        is_dev=False,
        dependencies=dependencies,
        peer_dependencies=dict(entry.get("peerDependencies") or {}),
    )


def _link_target(packages: dict[str, dict[str, Any]], entry: dict[str, Any]) -> dict[str, Any]:
    """Workspace symlinks carry their metadata on the entry they point at."""
    if entry.get("link"):
        target = packages.get(entry.get("resolved") or "")
        if target:
            return target
    return entry


def _name_from_path(path: str) -> str:
    # node_modules/@scope/pkg -> @scope/pkg; packages/foo -> foo
    idx = path.rfind(_NODE_MODULES)
    if idx != -1:
        return path[idx + len(_NODE_MODULES) :]
    return path.rsplit("/", 1)[-1]
