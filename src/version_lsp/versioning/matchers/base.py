"""Base class for registry-specific version matchers."""

from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional, Tuple

from ..models import MatchResult, RegistryType, VersionSet


class VersionMatcher(ABC):
    """Comparison semantics for one registry family.

    Implementations are pure: no I/O and no shared mutable state, so one
    instance is shared across every query for its registry kind.
    """

    def __init__(self, registry_type: RegistryType):
        self._registry_type = registry_type

    @property
    def registry_type(self) -> RegistryType:
        """Registry kind this matcher instance serves."""
        return self._registry_type

    @abstractmethod
    def check_version(self, version_spec: str, available: VersionSet) -> MatchResult:
        """Compare a declared spec against the known version set.

        Args:
            version_spec: Spec as written in the manifest
            available: Cached version set for the package

        Returns:
            MatchResult; unparseable specs yield MatchKind.INVALID rather than raising
        """

    @abstractmethod
    def parse_version(self, version: str) -> Optional[Any]:
        """Parse a published version into a comparable object, or None."""

    @abstractmethod
    def is_prerelease(self, parsed: Any) -> bool:
        """Whether a parsed version is a pre-release."""

    def display_version(self, version_spec: str) -> str:
        """Human display form of a spec; comparison semantics are untouched."""
        return version_spec.strip()

    def latest_version(self, available: VersionSet) -> Optional[str]:
        """Registry 'latest' marker, else the highest comparable version."""
        if available.latest:
            return available.latest
        return self.highest(available.versions)

    def parsed_versions(self, versions: Iterable[str]) -> List[Tuple[str, Any]]:
        """Pair each parseable version string with its parsed form."""
        pairs = []
        for raw in versions:
            parsed = self.parse_version(raw)
            if parsed is not None:
                pairs.append((raw, parsed))
        return pairs

    def highest(self, versions: Iterable[str]) -> Optional[str]:
        """Highest stable version, falling back to the highest pre-release."""
        pairs = self.parsed_versions(versions)
        if not pairs:
            return None
        stable = [pair for pair in pairs if not self.is_prerelease(pair[1])]
        pool = stable or pairs
        return max(pool, key=lambda pair: pair[1])[0]
