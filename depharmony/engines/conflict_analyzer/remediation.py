"""Remediation instructions attached to conflict solutions.

A solution carries a :class:`RemediationAction` (plain data) instead of a
callable; executing it is the job of a :class:`RemediationExecutor`.

The human-readable description doubles as a wire format for downstream
fix tooling, so :meth:`RemediationAction.describe` and
:func:`parse_solution_description` must stay inverses of each other:

    Upgrade react from 17.0.2 to 18.2.0
    Downgrade typescript from 5.0.0 to 4.9.5 (devDependencies)
    Install react@18.2.0 (latest compatible version)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

import structlog

log = structlog.get_logger("depharmony.engine")

DEV_MARKER = "(devDependencies)"

_CHANGE_RE = re.compile(
    r"^(Upgrade|Downgrade)\s+(\S+)\s+from\s+(\S+)\s+to\s+(\S+)(\s+\(devDependencies\))?$"
)
_INSTALL_RE = re.compile(r"^Install\s+(@?[^@\s]+)@(\S+)(?:\s+(.*))?$")


class RemediationKind(Enum):
    UPGRADE = "Upgrade"
    DOWNGRADE = "Downgrade"
    INSTALL = "Install"


@dataclass(frozen=True)
class RemediationAction:
    kind: RemediationKind
    package_name: str
    to_version: str
    from_version: str | None = None
    is_dev: bool = False

    def describe(self, note: str | None = None) -> str:
        if self.kind is RemediationKind.INSTALL:
            text = f"Install {self.package_name}@{self.to_version}"
            if note:
                text += f" ({note})"
        else:
            text = (
                f"{self.kind.value} {self.package_name} "
                f"from {self.from_version} to {self.to_version}"
            )
        if self.is_dev:
            text += f" {DEV_MARKER}"
        return text

    def install_command(self) -> str:
        flag = " --save-dev" if self.is_dev else ""
        return f"npm install{flag} {self.package_name}@{self.to_version}"


def parse_solution_description(description: str) -> RemediationAction | None:
    """Recover the fix parameters from a solution description.

    Returns ``None`` for text that matches neither template; the caller is
    expected to fall back to asking the user.
    """
    text = description.strip()

    m = _CHANGE_RE.match(text)
    if m:
        return RemediationAction(
            kind=RemediationKind(m.group(1)),
            package_name=m.group(2),
            from_version=m.group(3),
            to_version=m.group(4),
            is_dev=m.group(5) is not None,
        )

    m = _INSTALL_RE.match(text)
    if m:
        rest = m.group(3) or ""
        return RemediationAction(
            kind=RemediationKind.INSTALL,
            package_name=m.group(1),
            to_version=m.group(2),
            is_dev=rest.endswith(DEV_MARKER),
        )

    return None


# ── execution ────────────────────────────────────────────────────────────


@dataclass
class FixResult:
    success: bool
    message: str
    error: str | None = None


@runtime_checkable
class RemediationExecutor(Protocol):
    """Anything that can carry out a remediation (edit manifest, run npm, ...)."""

    async def apply(self, action: RemediationAction) -> FixResult: ...


class DryRunExecutor:
    """Logs the npm command each action implies without touching the project."""

    def __init__(self) -> None:
        self.applied: list[RemediationAction] = []

    async def apply(self, action: RemediationAction) -> FixResult:
        command = action.install_command()
        if action not in self.applied:
            self.applied.append(action)
            log.info("remediation.dry_run", command=command)
        return FixResult(success=True, message=f"Would run: {command}")
