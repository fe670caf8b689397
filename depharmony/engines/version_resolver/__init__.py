"""Version resolver engine — jointly compatible versions and install commands."""

from depharmony.engines.version_resolver.models import (
    AuditResult,
    CompatibilityResult,
    PackageSuggestion,
)
from depharmony.engines.version_resolver.resolver import (
    VersionResolver,
    generate_install_command,
    parse_package_list,
)

__all__ = [
    "AuditResult",
    "CompatibilityResult",
    "PackageSuggestion",
    "VersionResolver",
    "generate_install_command",
    "parse_package_list",
]
