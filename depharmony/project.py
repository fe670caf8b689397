"""Locate and read package.json / package-lock.json for a project."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from depharmony.exceptions import ProjectFilesError

MANIFEST_NAME = "package.json"
LOCKFILE_NAME = "package-lock.json"


@dataclass
class ProjectFiles:
    manifest: dict[str, Any]
    lockfile: dict[str, Any]
    project_root: Path


def load_project_files(project_dir: Path | str) -> ProjectFiles:
    root = Path(project_dir)
    return ProjectFiles(
        manifest=load_json(root / MANIFEST_NAME),
        lockfile=load_json(root / LOCKFILE_NAME),
        project_root=root,
    )


def load_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ProjectFilesError(f"{path.name} not found in {path.parent}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise ProjectFilesError(f"Failed to read or parse {path.name}: {exc}") from exc
    if not isinstance(data, dict):
        raise ProjectFilesError(f"{path.name} must contain a JSON object")
    return data
