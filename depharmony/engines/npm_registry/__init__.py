"""npm registry client — metadata fetches with an in-memory cache."""

from depharmony.engines.npm_registry.cache import RegistryCache
from depharmony.engines.npm_registry.client import NpmRegistryClient
from depharmony.engines.npm_registry.models import (
    CacheStats,
    LookupStatus,
    PackageInfo,
    RegistryLookup,
)

__all__ = [
    "CacheStats",
    "LookupStatus",
    "NpmRegistryClient",
    "PackageInfo",
    "RegistryCache",
    "RegistryLookup",
]
