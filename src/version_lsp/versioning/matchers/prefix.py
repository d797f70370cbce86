"""Partial-prefix matcher for Git tag based registries (GitHub Actions)."""

import re
from typing import Any, Optional, Tuple

from ..models import MatchResult, VersionSet
from .base import VersionMatcher
from .semver import coerce_semver, is_semver_prerelease

_SPEC_RE = re.compile(r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?$", re.IGNORECASE)


class PrefixVersionMatcher(VersionMatcher):
    """Matches partial tags such as ``v6`` or ``v4.1``.

    A spec selects every published version sharing the components it names;
    the highest of those is the best match. The spec itself stands for its
    zero-padded version, so ``v6`` is current only while ``v6.0.0`` is the
    newest ``v6`` release. Other majors never influence the verdict.
    """

    def parse_version(self, version: str) -> Optional[Any]:
        return coerce_semver(version)

    def is_prerelease(self, parsed: Any) -> bool:
        return is_semver_prerelease(parsed)

    def check_version(self, version_spec: str, available: VersionSet) -> MatchResult:
        prefix = self._parse_prefix(version_spec)
        if prefix is None:
            return MatchResult.invalid()

        candidates = [
            (raw, parsed)
            for raw, parsed in self.parsed_versions(available.versions)
            if not self.is_prerelease(parsed) and _components(parsed)[:len(prefix)] == prefix
        ]
        if not candidates:
            return MatchResult.not_found()

        best_raw, best = max(candidates, key=lambda pair: pair[1])
        padded = prefix + (0,) * (3 - len(prefix))
        if _components(best) == padded:
            return MatchResult.satisfied()
        return MatchResult.upgradable(best_raw)

    @staticmethod
    def _parse_prefix(version_spec: str) -> Optional[Tuple[int, ...]]:
        match = _SPEC_RE.match(version_spec.strip())
        if not match:
            return None
        return tuple(int(part) for part in match.groups() if part is not None)


def _components(version: Any) -> Tuple[int, int, int]:
    return (version.major, version.minor, version.patch)
