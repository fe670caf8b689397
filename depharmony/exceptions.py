"""Custom exceptions for depharmony."""


class HarmonyError(Exception):
    """Base exception for all depharmony errors."""


class UnsupportedLockfileError(HarmonyError):
    """Raised when the lockfile predates the flat ``packages`` map (v1)."""

    def __init__(self, lockfile_version: object):
        self.lockfile_version = lockfile_version
        super().__init__(
            f"Lockfile version {lockfile_version} is not supported. "
            "Please upgrade to npm 7+ to generate a v2/v3 lockfile."
        )


class MissingRootError(HarmonyError):
    """Raised when the lockfile has no root (empty path) package entry."""

    def __init__(self) -> None:
        super().__init__("Root package not found in lockfile")


class ProjectFilesError(HarmonyError):
    """Raised when package.json or package-lock.json cannot be read."""
