"""Data models for the version resolver / suggestion engine."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class PackageSuggestion:
    package_name: str
    suggested_version: str
    reason: str
    peer_dependencies: dict[str, str] = field(default_factory=dict)

    @property
    def spec(self) -> str:
        return f"{self.package_name}@{self.suggested_version}"


@dataclass
class CompatibilityResult:
    """Outcome of resolving a set of packages together.

    ``conflicts`` holds human-readable problems, lookup failures included;
    ``compatible`` is true only when it is empty.
    """

    compatible: bool
    suggestions: list[PackageSuggestion]
    conflicts: list[str]
    install_command: str


@dataclass
class AuditResult:
    issues: list[str] = field(default_factory=list)
    recommendations: list[PackageSuggestion] = field(default_factory=list)
