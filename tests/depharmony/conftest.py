"""Shared fixtures for depharmony tests.

No network access: the npm registry is an ``httpx.MockTransport`` serving
packuments from a dict.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import unquote

import httpx
import pytest

from depharmony.engines.npm_registry import NpmRegistryClient

REGISTRY_URL = "https://registry.test"


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


def _packument(
    name: str,
    versions: list[str],
    *,
    latest: str | None = None,
    peers: dict[str, dict[str, str]] | None = None,
) -> dict[str, Any]:
    peers = peers or {}
    return {
        "name": name,
        "dist-tags": {"latest": latest or versions[-1]},
        "versions": {
            v: {"name": name, "version": v, "peerDependencies": peers.get(v, {})}
            for v in versions
        },
        "time": {},
    }


class FakeRegistry:
    """Serves packuments; ``errors`` maps a name to a status code or exception."""

    def __init__(self, docs: dict[str, dict[str, Any]], errors: dict[str, Any] | None = None):
        self.docs = docs
        self.errors = errors or {}
        self.requests: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        name = unquote(request.url.path.lstrip("/"))
        self.requests.append(name)
        if name in self.errors:
            err = self.errors[name]
            if isinstance(err, Exception):
                raise err
            return httpx.Response(err)
        doc = self.docs.get(name)
        if doc is None:
            return httpx.Response(404, json={"error": "Not found"})
        return httpx.Response(200, json=doc)

    def client(self) -> NpmRegistryClient:
        return NpmRegistryClient(REGISTRY_URL, transport=httpx.MockTransport(self.handler))


@pytest.fixture
def packument():
    return _packument


@pytest.fixture
def fake_registry():
    def _make(docs: dict[str, dict[str, Any]] | None = None, errors: dict[str, Any] | None = None):
        return FakeRegistry(docs or {}, errors)

    return _make


@pytest.fixture
def npm_docs():
    """A small slice of the public registry used across engine tests."""
    return {
        "react": _packument(
            "react",
            ["16.8.0", "16.14.0", "17.0.0", "17.0.2", "18.0.0", "18.2.0"],
        ),
        "react-dom": _packument(
            "react-dom",
            ["17.0.2", "18.2.0"],
            peers={"17.0.2": {"react": "17.0.2"}, "18.2.0": {"react": "^18.2.0"}},
        ),
        "lodash": _packument("lodash", ["3.10.1", "4.17.20", "4.17.21"]),
        "typescript": _packument("typescript", ["4.9.5", "5.0.4"]),
        "legacy-ui": _packument(
            "legacy-ui", ["1.0.0"], peers={"1.0.0": {"react": "^16.0.0"}}
        ),
        "modern-ui": _packument(
            "modern-ui", ["2.0.0"], peers={"2.0.0": {"react": "^17.0.0"}}
        ),
        "router-kit": _packument(
            "router-kit", ["5.0.0"], peers={"5.0.0": {"react": ">=16.8.0 <18.0.0"}}
        ),
        "forms-kit": _packument(
            "forms-kit", ["3.0.0"], peers={"3.0.0": {"react": "^17.0.0 || ^18.0.0"}}
        ),
    }


def make_lockfile(packages: dict[str, dict[str, Any]], *, version: int = 3, root: dict | None = None):
    """Lockfile document with a root entry plus *packages*."""
    return {
        "name": "app",
        "version": "1.0.0",
        "lockfileVersion": version,
        "packages": {"": root if root is not None else {"name": "app", "version": "1.0.0"}, **packages},
    }


@pytest.fixture
def lockfile_factory():
    return make_lockfile
