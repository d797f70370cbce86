"""npm range matcher using semantic versioning.

Supports the npm range grammar through ``semantic_version.NpmSpec``:

- ``1.2.3`` exact, ``^1.2.3`` caret, ``~1.2.3`` tilde
- ``>``, ``>=``, ``<``, ``<=`` comparators
- ``1.2.x``, ``1.x``, ``*`` wildcards, hyphen ranges and ``||`` unions

Shared by npm, pnpm catalogs and JSR, which all publish semver.
"""

import re
from typing import Any, Optional

import semantic_version

from ..models import MatchResult, VersionSet
from .base import VersionMatcher
from .semver import is_semver_prerelease, parse_semver

# A single comparator whose lower bound is the version the user wrote down.
_ANCHORED_RE = re.compile(
    r"^(?P<op>\^|~|>=|=)?\s*"
    r"(?P<major>\d+)(?:\.(?P<minor>\d+|[xX*]))?(?:\.(?P<patch>\d+|[xX*]))?"
    r"(?P<pre>-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$"
)
_V_PREFIX_RE = re.compile(r"(^|[\s^~<>=])[vV](?=\d)")


class NpmVersionMatcher(VersionMatcher):
    """Range semantics: the best match is the highest published version in range.

    Anchored specs (exact, caret, tilde, ``>=``, x-ranges) are current when
    the best match is the anchor itself. Floating specs (``*``, ``>``, ``<``,
    unions) are current whenever anything satisfies them.
    """

    def parse_version(self, version: str) -> Optional[Any]:
        return parse_semver(version)

    def is_prerelease(self, parsed: Any) -> bool:
        return is_semver_prerelease(parsed)

    def normalize_spec(self, version_spec: str) -> str:
        """Rewrite a spec into NpmSpec syntax; subclasses adapt dialects here."""
        return _V_PREFIX_RE.sub(r"\1", version_spec.strip())

    def display_version(self, version_spec: str) -> str:
        """Strip a leading range operator: ``^1.2.3`` displays as ``1.2.3``."""
        text = version_spec.strip()
        match = _ANCHORED_RE.match(self.normalize_spec(text))
        if match and match.group("op"):
            return text[len(match.group("op")):].strip()
        return text

    def check_version(self, version_spec: str, available: VersionSet) -> MatchResult:
        expression = self.normalize_spec(version_spec)
        try:
            spec = semantic_version.NpmSpec(expression)
        except ValueError:
            return MatchResult.invalid()

        matching = [
            (raw, parsed)
            for raw, parsed in self.parsed_versions(available.versions)
            if spec.match(parsed)
        ]
        if not matching:
            return MatchResult.not_found()

        best_raw, best = max(matching, key=lambda pair: pair[1])
        anchor = self.anchor(expression)
        if anchor is None or _same_release(best, anchor):
            return MatchResult.satisfied()
        return MatchResult.upgradable(best_raw)

    @staticmethod
    def anchor(expression: str) -> Optional[semantic_version.Version]:
        """Lower-bound version written in an anchored spec, None for floating specs."""
        match = _ANCHORED_RE.match(expression.strip())
        if not match:
            return None
        parts = []
        for name in ("major", "minor", "patch"):
            value = match.group(name)
            parts.append(value if value is not None and value.isdigit() else "0")
        return parse_semver(".".join(parts) + (match.group("pre") or ""))


def _same_release(left: semantic_version.Version, right: semantic_version.Version) -> bool:
    """Equality on precedence, ignoring build metadata."""
    return (left.major, left.minor, left.patch, left.prerelease) == (
        right.major, right.minor, right.patch, right.prerelease)
