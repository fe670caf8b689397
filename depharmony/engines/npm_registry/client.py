"""Async npm registry client with an explicit metadata cache."""

from __future__ import annotations

import os
from urllib.parse import quote

import httpx
import structlog

from depharmony.core.semver import sort_descending
from depharmony.engines.npm_registry.cache import RegistryCache
from depharmony.engines.npm_registry.models import (
    CacheStats,
    LookupStatus,
    PackageInfo,
    RegistryLookup,
)

log = structlog.get_logger("depharmony.engine")

DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"
_DEFAULT_TIMEOUT = 30.0


class NpmRegistryClient:
    """Thin async wrapper around the npm registry metadata endpoint.

    Every public method is soft-failing: HTTP errors, network errors and
    malformed documents are logged and surface as ``None``/empty results.
    """

    def __init__(
        self,
        registry_url: str | None = None,
        *,
        cache: RegistryCache | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        base_url = registry_url or os.environ.get("DEPHARMONY_REGISTRY_URL") or DEFAULT_REGISTRY_URL
        if timeout is None:
            timeout = float(os.environ.get("DEPHARMONY_REGISTRY_TIMEOUT", _DEFAULT_TIMEOUT))
        self.cache = cache if cache is not None else RegistryCache()
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> NpmRegistryClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def lookup(self, package_name: str) -> RegistryLookup:
        """Fetch a package document, serving repeat requests from the cache.

        404s are reported as ``NOT_FOUND`` and are not cached, so a later
        call retries. Anything else that goes wrong is ``ERROR``.
        """
        cached = self.cache.get(package_name)
        if cached is not None:
            return RegistryLookup(package_name, LookupStatus.OK, info=cached)

        url = "/" + quote(package_name, safe="@")
        try:
            resp = await self._client.get(url)
        except httpx.HTTPError as exc:
            log.warning("registry.fetch_failed", package=package_name, error=str(exc))
            return RegistryLookup(package_name, LookupStatus.ERROR, error=str(exc))

        if resp.status_code == 404:
            log.info("registry.not_found", package=package_name)
            return RegistryLookup(package_name, LookupStatus.NOT_FOUND)

        if resp.status_code != 200:
            detail = f"HTTP {resp.status_code}: {resp.reason_phrase}"
            log.warning("registry.bad_status", package=package_name, status=resp.status_code)
            return RegistryLookup(package_name, LookupStatus.ERROR, error=detail)

        try:
            data = resp.json()
        except ValueError as exc:
            log.warning("registry.invalid_json", package=package_name, error=str(exc))
            return RegistryLookup(package_name, LookupStatus.ERROR, error="invalid JSON document")
        if not isinstance(data, dict):
            return RegistryLookup(package_name, LookupStatus.ERROR, error="unexpected document shape")

        info = PackageInfo.from_json(package_name, data)
        self.cache.put(package_name, info)
        log.debug("registry.fetched", package=package_name, versions=len(info.versions))
        return RegistryLookup(package_name, LookupStatus.OK, info=info)

    async def get_package_info(self, package_name: str) -> PackageInfo | None:
        return (await self.lookup(package_name)).info

    async def get_available_versions(self, package_name: str) -> list[str]:
        """All published versions, newest first by semver precedence."""
        info = await self.get_package_info(package_name)
        if info is None:
            return []
        return sort_descending(info.versions)

    async def get_latest_version(self, package_name: str) -> str | None:
        info = await self.get_package_info(package_name)
        if info is None:
            return None
        return info.latest_version

    async def get_peer_dependencies(self, package_name: str, version: str) -> dict[str, str]:
        info = await self.get_package_info(package_name)
        if info is None:
            return {}
        return info.peer_dependencies(version)

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()
