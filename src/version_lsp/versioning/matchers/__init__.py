"""Version matchers for the supported registry families."""

from typing import Dict

from ..models import RegistryType
from .base import VersionMatcher
from .cargo import CargoVersionMatcher
from .exact import ExactVersionMatcher
from .npm import NpmVersionMatcher
from .prefix import PrefixVersionMatcher
from .pypi import PyPIVersionMatcher


def default_matchers() -> Dict[RegistryType, VersionMatcher]:
    """One shared matcher per registry kind, selected once at start-up."""
    return {
        RegistryType.NPM: NpmVersionMatcher(RegistryType.NPM),
        RegistryType.PNPM_CATALOG: NpmVersionMatcher(RegistryType.PNPM_CATALOG),
        RegistryType.JSR: NpmVersionMatcher(RegistryType.JSR),
        RegistryType.CRATES: CargoVersionMatcher(RegistryType.CRATES),
        RegistryType.GO_PROXY: ExactVersionMatcher(RegistryType.GO_PROXY),
        RegistryType.GITHUB_RELEASES: PrefixVersionMatcher(RegistryType.GITHUB_RELEASES),
        RegistryType.PYPI: PyPIVersionMatcher(RegistryType.PYPI),
    }


__all__ = [
    "VersionMatcher",
    "CargoVersionMatcher",
    "ExactVersionMatcher",
    "NpmVersionMatcher",
    "PrefixVersionMatcher",
    "PyPIVersionMatcher",
    "default_matchers",
]
