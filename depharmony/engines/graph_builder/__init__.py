"""Graph builder engine — lockfile flat map to a linked dependency graph."""

from depharmony.engines.graph_builder.builder import (
    build_graph,
    find_child_node,
    get_graph_stats,
    is_direct_path,
)
from depharmony.engines.graph_builder.models import DependencyGraph, GraphStats, PackageNode

__all__ = [
    "DependencyGraph",
    "GraphStats",
    "PackageNode",
    "build_graph",
    "find_child_node",
    "get_graph_stats",
    "is_direct_path",
]
