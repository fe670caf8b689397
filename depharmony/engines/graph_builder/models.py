"""Data models for the dependency graph."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any


@dataclass
class PackageNode:
    """One installed package instance, identified by its install path.

    ``children`` holds install paths, not nodes: a hoisted package is shared
    by every dependent that resolves to it, so nodes live only in
    :attr:`DependencyGraph.all_nodes`.
    """

    name: str
    version: str
    path: str
    resolved: str = ""
    integrity: str = ""
    is_dev: bool = False
    dependencies: dict[str, str] = field(default_factory=dict)
    peer_dependencies: dict[str, str] = field(default_factory=dict)
    peer_dependencies_meta: dict[str, dict[str, Any]] = field(default_factory=dict)
    children: list[str] = field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return self.path == ""

    def is_optional_peer(self, peer_name: str) -> bool:
        meta = self.peer_dependencies_meta.get(peer_name) or {}
        return bool(meta.get("optional"))

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass
class DependencyGraph:
    root: PackageNode
    all_nodes: dict[str, PackageNode]

    def get(self, path: str) -> PackageNode | None:
        return self.all_nodes.get(path)

    def children_of(self, node: PackageNode) -> list[PackageNode]:
        return [self.all_nodes[p] for p in node.children if p in self.all_nodes]

    def find_by_name(self, name: str) -> list[PackageNode]:
        """Every installed instance of *name*, in lockfile order."""
        return [n for n in self.all_nodes.values() if n.name == name]

    def walk(self) -> Iterator[PackageNode]:
        """Depth-first pre-order from the root, each node visited once."""
        seen: set[str] = set()
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.path in seen:
                continue
            seen.add(node.path)
            yield node
            stack.extend(reversed(self.children_of(node)))


@dataclass
class GraphStats:
    total_nodes: int
    direct_dependencies: int
    dev_dependencies: int
    max_depth: int
