"""Exact-match version matcher (Go modules, pinned versions)."""

from typing import Any, Optional

from ..models import MatchResult, VersionSet
from .base import VersionMatcher
from .semver import is_semver_prerelease, parse_semver, strip_v


class ExactVersionMatcher(VersionMatcher):
    """A spec is a single version that must appear in the registry.

    Satisfied when it is the latest known version, upgradable when it is a
    known older one, not found when the registry never published it.
    """

    def parse_version(self, version: str) -> Optional[Any]:
        return parse_semver(version)

    def is_prerelease(self, parsed: Any) -> bool:
        return is_semver_prerelease(parsed)

    def display_version(self, version_spec: str) -> str:
        return version_spec.strip()

    def check_version(self, version_spec: str, available: VersionSet) -> MatchResult:
        token = version_spec.strip()
        wanted = self.parse_version(token)
        if wanted is None:
            return MatchResult.invalid()

        known = self._find_known(token, wanted, available)
        if known is None:
            return MatchResult.not_found()

        latest = self.latest_version(available)
        if latest is None or known == latest:
            return MatchResult.satisfied()

        latest_parsed = self.parse_version(latest)
        if latest_parsed is None or wanted >= latest_parsed:
            # Ahead of the registry's latest marker (e.g. a newer pre-release).
            return MatchResult.satisfied()
        return MatchResult.upgradable(latest)

    def _find_known(self, token: str, wanted: Any, available: VersionSet) -> Optional[str]:
        """Return the published version string the spec refers to, if any."""
        if token in available:
            return token
        bare = strip_v(token)
        for raw in available.versions:
            if strip_v(raw) == bare:
                return raw
        for raw, parsed in self.parsed_versions(available.versions):
            if parsed == wanted:
                return raw
        return None
