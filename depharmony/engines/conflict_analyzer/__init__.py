"""Conflict analyzer engine — peer-dependency and duplicate-singleton conflicts."""

from depharmony.engines.conflict_analyzer.analyzer import (
    DEFAULT_SINGLETON_PACKAGES,
    ConflictAnalyzer,
    find_installed_peer,
)
from depharmony.engines.conflict_analyzer.models import (
    AnalysisResult,
    Conflict,
    ConflictType,
    LookupIssue,
    Solution,
)
from depharmony.engines.conflict_analyzer.remediation import (
    DryRunExecutor,
    FixResult,
    RemediationAction,
    RemediationExecutor,
    RemediationKind,
    parse_solution_description,
)

__all__ = [
    "DEFAULT_SINGLETON_PACKAGES",
    "AnalysisResult",
    "Conflict",
    "ConflictAnalyzer",
    "ConflictType",
    "DryRunExecutor",
    "FixResult",
    "LookupIssue",
    "RemediationAction",
    "RemediationExecutor",
    "RemediationKind",
    "Solution",
    "find_installed_peer",
    "parse_solution_description",
]
