"""Data models for the npm registry client."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass
class PackageInfo:
    """A package's registry metadata document (the "packument")."""

    name: str
    versions: dict[str, dict[str, Any]] = field(default_factory=dict)
    dist_tags: dict[str, str] = field(default_factory=dict)
    time: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_json(cls, name: str, data: dict[str, Any]) -> PackageInfo:
        return cls(
            name=data.get("name") or name,
            versions=data.get("versions") or {},
            dist_tags=data.get("dist-tags") or {},
            time=data.get("time") or {},
        )

    @property
    def latest_version(self) -> str | None:
        return self.dist_tags.get("latest") or None

    def peer_dependencies(self, version: str) -> dict[str, str]:
        manifest = self.versions.get(version) or {}
        return dict(manifest.get("peerDependencies") or {})


class LookupStatus(Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass
class RegistryLookup:
    """Outcome of a single registry fetch; failures are values, not exceptions."""

    package_name: str
    status: LookupStatus
    info: PackageInfo | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is LookupStatus.OK


@dataclass
class CacheStats:
    size: int
    packages: list[str]
