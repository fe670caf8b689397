"""In-memory read-through cache for registry metadata."""

from __future__ import annotations

from depharmony.engines.npm_registry.models import CacheStats, PackageInfo


class RegistryCache:
    """Package name -> :class:`PackageInfo`, kept for the cache's lifetime.

    Only successful lookups are stored. Two coroutines filling the same key
    is harmless; the last ``put`` wins.
    """

    def __init__(self) -> None:
        self._entries: dict[str, PackageInfo] = {}

    def get(self, package_name: str) -> PackageInfo | None:
        return self._entries.get(package_name)

    def put(self, package_name: str, info: PackageInfo) -> None:
        self._entries[package_name] = info

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> CacheStats:
        return CacheStats(size=len(self._entries), packages=list(self._entries))

    def __contains__(self, package_name: object) -> bool:
        return package_name in self._entries

    def __len__(self) -> int:
        return len(self._entries)
