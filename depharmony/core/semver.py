"""npm-flavoured semantic version helpers on top of ``semantic_version``.

Only what the engines need: parsing, range satisfaction, ordering and
coercion of loose range strings. Invalid input never raises from these
helpers; callers get ``None``/``False`` instead.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from semantic_version import NpmSpec, Version

_COERCE_RE = re.compile(r"(\d{1,16})(?:\.(\d{1,16}))?(?:\.(\d{1,16}))?")
# npm accepts ">= 1.2.3"; NpmSpec wants the operator glued to the version.
_OPERATOR_GAP_RE = re.compile(r"(<=|>=|<|>|=|\^|~)\s+(?=[vxX*\d])")


def parse_version(value: str | None) -> Version | None:
    """Parse an exact version (``1.2.3``, ``v1.2.3``, ``=1.2.3``)."""
    if not value:
        return None
    text = value.strip().lstrip("=v").strip()
    try:
        return Version(text)
    except ValueError:
        return None


def parse_range(expression: str | None) -> NpmSpec | None:
    """Parse an npm range; an empty range means ``*`` like npm does."""
    text = " ".join((expression or "").split()) or "*"
    text = _OPERATOR_GAP_RE.sub(r"\1", text)
    try:
        return NpmSpec(text)
    except ValueError:
        return None


def satisfies(version: str, expression: str) -> bool:
    """True if *version* is inside the npm range *expression*."""
    parsed = parse_version(version)
    spec = parse_range(expression)
    if parsed is None or spec is None:
        return False
    return spec.match(parsed)


def major(version: str) -> int | None:
    parsed = parse_version(version)
    return parsed.major if parsed is not None else None


def compare(a: str, b: str) -> int:
    """Three-way comparison; raises ValueError if either side is invalid."""
    left = parse_version(a)
    right = parse_version(b)
    if left is None or right is None:
        raise ValueError(f"cannot compare versions {a!r} and {b!r}")
    return (left > right) - (left < right)


def sort_descending(versions: Iterable[str]) -> list[str]:
    """Sort version strings newest first, dropping the unparseable ones."""
    parsed = [(v, parse_version(v)) for v in versions]
    valid = [(v, p) for v, p in parsed if p is not None]
    valid.sort(key=lambda item: item[1], reverse=True)
    return [v for v, _ in valid]


def max_satisfying(versions: Iterable[str], expressions: Iterable[str]) -> str | None:
    """Newest version satisfying every range in *expressions*.

    Range intersection is done by testing each candidate against every
    range, newest first, rather than by interval arithmetic.
    """
    specs = [parse_range(e) for e in expressions]
    if any(s is None for s in specs):
        return None
    for candidate in sort_descending(versions):
        parsed = parse_version(candidate)
        if all(spec.match(parsed) for spec in specs):  # type: ignore[union-attr]
            return candidate
    return None


def coerce(text: str | None) -> Version | None:
    """Pull the first ``X[.Y[.Z]]`` run out of *text* (``^17.0`` -> ``17.0.0``)."""
    if not text:
        return None
    m = _COERCE_RE.search(text)
    if not m:
        return None
    major_, minor_, patch_ = (int(g or 0) for g in m.groups())
    return Version(f"{major_}.{minor_}.{patch_}")
