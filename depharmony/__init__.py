"""depharmony — npm dependency conflict detection and remediation."""

__version__ = "0.1.0"
