"""Data models for the conflict analyzer engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from depharmony.engines.conflict_analyzer.remediation import RemediationAction
from depharmony.engines.graph_builder.models import PackageNode
from depharmony.engines.npm_registry.models import LookupStatus


class ConflictType(Enum):
    PEER_DEPENDENCY = "PeerDependency"
    DUPLICATE_SINGLETON = "DuplicateSingleton"


@dataclass
class Solution:
    """A ranked remediation; ``description`` follows the fix-tooling templates."""

    description: str
    action: RemediationAction


@dataclass
class Conflict:
    type: ConflictType
    package_name: str
    message: str
    nodes: list[PackageNode]
    solutions: list[Solution] = field(default_factory=list)


@dataclass
class LookupIssue:
    """A registry lookup that degraded a solution to "unavailable"."""

    package_name: str
    status: LookupStatus
    detail: str | None = None


@dataclass
class AnalysisResult:
    conflicts: list[Conflict]
    issues: list[LookupIssue] = field(default_factory=list)
