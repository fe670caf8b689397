"""Environment variable helpers for engine settings."""

from __future__ import annotations

import os


def env_int(key: str, default: int) -> int:
    return int(os.environ.get(key, default))


def env_list(key: str) -> list[str] | None:
    """Comma-separated list, or None when the variable is unset or blank."""
    raw = os.environ.get(key, "").strip()
    if not raw:
        return None
    return [item.strip() for item in raw.split(",") if item.strip()]
